from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime

from leadcrm.core.security import is_valid_phone, PIN_PATTERN


class OrganizationResponse(BaseModel):
    id: int
    name: str
    logo_url: Optional[str] = None
    contact_number: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    logo_url: Optional[str] = Field(None, max_length=500)
    contact_number: Optional[str] = Field(None, max_length=20)


class OrganizationCreate(BaseModel):
    """New organisation together with its first manager."""
    name: str = Field(..., min_length=2, max_length=200)
    contact_number: Optional[str] = Field(None, max_length=20)
    manager_name: str = Field(..., min_length=2, max_length=100)
    manager_phone: str
    manager_pin: str

    @field_validator("manager_phone")
    @classmethod
    def validate_phone(cls, v):
        if not is_valid_phone(v):
            raise ValueError("Invalid phone number. Must be 10 digits")
        return v

    @field_validator("manager_pin")
    @classmethod
    def validate_pin(cls, v):
        if not PIN_PATTERN.match(v or ""):
            raise ValueError("PIN must be exactly 4 digits")
        return v
