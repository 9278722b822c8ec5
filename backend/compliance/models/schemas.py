"""Pydantic schemas for API requests and responses."""

from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional

from ..services.decision import VerificationStatus
from ..services.domain import Address
from ..services.repository import UserRecord


class AddressIn(BaseModel):
    """Postal address as entered by the user."""
    line1: str = Field(..., min_length=1)
    line2: Optional[str] = None
    line3: Optional[str] = None
    town: str = Field(..., min_length=1)
    county: Optional[str] = None
    postcode: str = Field(..., min_length=1)
    country: str = "GB"

    class Config:
        json_schema_extra = {
            "example": {
                "line1": "Flat 2, 10 Downing Street",
                "town": "London",
                "postcode": "SW1A 2AA",
                "country": "GB"
            }
        }

    def to_domain(self) -> Address:
        return Address(
            line1=self.line1,
            line2=self.line2,
            line3=self.line3,
            town=self.town,
            county=self.county,
            postcode=self.postcode,
            country=self.country,
        )


class AddressOut(BaseModel):
    line1: str
    line2: Optional[str] = None
    line3: Optional[str] = None
    town: str
    county: Optional[str] = None
    postcode: str
    country: str

    @classmethod
    def from_domain(cls, address: Address) -> "AddressOut":
        return cls(**address.to_dict())


class CreateUserRequest(BaseModel):
    """Signup payload."""
    email: str = Field(..., min_length=3, description="Email address")
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    date_of_birth: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$", description="YYYY-MM-DD")
    phone_number: str = Field(..., min_length=5)
    address: AddressIn

    class Config:
        json_schema_extra = {
            "example": {
                "email": "jane@example.com",
                "first_name": "Jane",
                "last_name": "Doe",
                "date_of_birth": "1990-01-31",
                "phone_number": "07700900123",
                "address": {
                    "line1": "10 Downing Street",
                    "town": "London",
                    "postcode": "SW1A 2AA"
                }
            }
        }


class UserResponse(BaseModel):
    """User as seen by its owner."""
    id: str
    email: str
    first_name: str
    last_name: str
    date_of_birth: Optional[str] = None
    phone_number: str
    address: Optional[AddressOut] = None
    is_self_excluded: bool
    kyc_instance_id: Optional[str] = None
    kyc_completed: bool
    is_identity_verified: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, user: UserRecord) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            date_of_birth=user.date_of_birth,
            phone_number=user.phone_number,
            address=AddressOut.from_domain(user.address) if user.address else None,
            is_self_excluded=user.is_self_excluded,
            kyc_instance_id=user.kyc_instance_id or None,
            kyc_completed=user.kyc_completed,
            is_identity_verified=user.is_identity_verified,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class VerificationStateResponse(BaseModel):
    """Resolved state of an identity journey."""
    instance_id: str
    status: VerificationStatus
    journey_status: str
    decision: str
    is_resolved: bool

    class Config:
        json_schema_extra = {
            "example": {
                "instance_id": "a1b2c3",
                "status": "PASS",
                "journey_status": "Completed",
                "decision": "Pass 1+1",
                "is_resolved": True
            }
        }


class TaskOut(BaseModel):
    task_id: str
    variant_id: Optional[str] = None


class TaskListResponse(BaseModel):
    instance_id: str
    tasks: list[TaskOut]


class DocumentUploadRequest(BaseModel):
    """Identity documents as JPEG data URLs."""
    # Element checks happen in DocumentValidator
    documents: list = Field(..., description="data:image/jpeg;base64,... strings")


class DocumentUploadResponse(BaseModel):
    success: bool
    instance_id: str
    task_id: str
    status: Optional[str] = None


class RecheckResponse(BaseModel):
    """Report of a bulk exclusion recheck run."""
    total_users: int
    batches_processed: int
    changed: int
    unchanged: int
    errors: int
    duration_ms: int


class ErrorResponse(BaseModel):
    """Error response schema."""
    error: str
    message: str
    details: Optional[str] = None
    self_excluded: Optional[bool] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    environment: str
