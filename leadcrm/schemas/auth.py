from pydantic import BaseModel, Field, field_validator
from typing import Optional

from leadcrm.core.security import is_valid_phone
from leadcrm.models.user import UserRole


class CurrentUser(BaseModel):
    """Caller identity resolved from a bearer token or gateway headers."""
    user_id: int
    role: str
    organization_id: Optional[int] = None
    phone: Optional[str] = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN.value


class PhoneRequest(BaseModel):
    phone: str

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        v = (v or "").strip()
        if not is_valid_phone(v):
            raise ValueError("Invalid phone number. Must be 10 digits")
        return v


class OTPVerifyRequest(PhoneRequest):
    otp: str = Field(..., min_length=4, max_length=6)
