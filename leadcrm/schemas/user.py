from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from leadcrm.core.security import is_valid_phone
from leadcrm.models.user import UserRole, StaffType
from leadcrm.schemas.common import Money


class UserResponse(BaseModel):
    id: int
    organization_id: Optional[int] = None
    phone: str
    name: str
    role: str
    staff_type: str
    manager_id: Optional[int] = None
    monthly_salary: Optional[Money] = None
    is_active: bool = True
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TeamMemberCreate(BaseModel):
    phone: str
    name: str = Field(..., min_length=2, max_length=100)
    role: UserRole = UserRole.SALES_REP
    staff_type: StaffType = StaffType.SALES
    manager_id: Optional[int] = None
    monthly_salary: Optional[Decimal] = Field(None, ge=0)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if not is_valid_phone(v):
            raise ValueError("Invalid phone number. Must be 10 digits")
        return v

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v


class TeamMemberUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    staff_type: Optional[StaffType] = None
    monthly_salary: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None


class AssignManagerRequest(BaseModel):
    user_id: int
    manager_id: int
