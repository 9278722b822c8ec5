"""Pydantic models for request/response schemas."""

from .schemas import (
    AddressIn,
    AddressOut,
    CreateUserRequest,
    UserResponse,
    VerificationStateResponse,
    TaskOut,
    TaskListResponse,
    DocumentUploadRequest,
    DocumentUploadResponse,
    RecheckResponse,
    ErrorResponse,
    HealthResponse,
)

__all__ = [
    "AddressIn",
    "AddressOut",
    "CreateUserRequest",
    "UserResponse",
    "VerificationStateResponse",
    "TaskOut",
    "TaskListResponse",
    "DocumentUploadRequest",
    "DocumentUploadResponse",
    "RecheckResponse",
    "ErrorResponse",
    "HealthResponse",
]
