from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime


class CategoryCreate(BaseModel):
    name: str = Field(..., max_length=100)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Category name must be at least 2 characters")
        return v


class CategoryResponse(BaseModel):
    id: int
    organization_id: int
    name: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
