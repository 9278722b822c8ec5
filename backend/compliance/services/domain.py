"""Identity value types shared by the exclusion and identity flows."""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Address:
    """Postal address as stored on the user record."""
    line1: str
    town: str
    postcode: str
    country: str = "GB"
    line2: Optional[str] = None
    line3: Optional[str] = None
    county: Optional[str] = None

    @property
    def lines(self) -> list[str]:
        return [line for line in (self.line1, self.line2, self.line3) if line]

    def missing_fields(self) -> list[str]:
        """Mandatory fields that are blank."""
        return [
            name
            for name in ("line1", "town", "postcode", "country")
            if not (getattr(self, name) or "").strip()
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line1": self.line1,
            "line2": self.line2,
            "line3": self.line3,
            "town": self.town,
            "county": self.county,
            "postcode": self.postcode,
            "country": self.country,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Address":
        return cls(
            line1=data.get("line1") or "",
            line2=data.get("line2") or None,
            line3=data.get("line3") or None,
            town=data.get("town") or "",
            county=data.get("county") or None,
            postcode=data.get("postcode") or "",
            country=data.get("country") or "GB",
        )


@dataclass(frozen=True)
class PersonData:
    """Projection of a user record used for one verification call."""
    first_name: str
    last_name: str
    date_of_birth: Optional[str] = None  # YYYY-MM-DD
    address: Optional[Address] = None
    email: Optional[str] = None
    phone: Optional[str] = None
