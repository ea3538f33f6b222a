from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime
import re

from leadcrm.core.security import is_valid_phone
from leadcrm.schemas.lead import LeadCreate

PROBABILITY_TOLERANCE = 0.01


class SpinPrize(BaseModel):
    label: str = Field(..., min_length=1, max_length=100)
    probability: float = Field(..., ge=0, le=1)
    color: str = Field(..., min_length=1, max_length=20)
    text_color: Optional[str] = Field(None, max_length=20)
    disabled: bool = False  # still drawn on the wheel, never selected


class OfferLeadCreate(BaseModel):
    """Submitted by the customer from the public offer page."""
    name: str
    phone: str
    locality: str
    address: Optional[str] = Field(None, max_length=500)
    sales_rep_id: int

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        v = (v or "").strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if not is_valid_phone(v):
            raise ValueError("Please enter a valid 10-digit mobile number")
        return v

    @field_validator("locality")
    @classmethod
    def validate_locality(cls, v):
        v = (v or "").strip()
        if len(v) < 2:
            raise ValueError("Please select your locality")
        return v

    @field_validator("address")
    @classmethod
    def strip_address(cls, v):
        if v is None:
            return v
        return v.strip() or None


class SpinRequest(BaseModel):
    offer_lead_id: int


class OfferConvertRequest(LeadCreate):
    """Lead details for a walk-in; customer name and phone come from the offer."""
    offer_lead_id: int
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None

    # replaced by the offer's own details on conversion
    @field_validator("customer_name")
    @classmethod
    def validate_customer_name(cls, v):
        return None

    @field_validator("customer_phone")
    @classmethod
    def validate_customer_phone(cls, v):
        return None


class OfferSettingsUpdate(BaseModel):
    whatsapp_number: Optional[str] = None
    prizes: Optional[List[SpinPrize]] = None
    enabled: Optional[bool] = None

    @field_validator("whatsapp_number")
    @classmethod
    def clean_whatsapp_number(cls, v):
        if v is None:
            return v
        digits = re.sub(r"\D", "", v)
        if digits and len(digits) < 10:
            raise ValueError("Invalid WhatsApp number")
        return digits

    @field_validator("prizes")
    @classmethod
    def validate_total_probability(cls, v):
        if v is None:
            return v
        total = sum(prize.probability for prize in v)
        if abs(total - 1) > PROBABILITY_TOLERANCE:
            raise ValueError(f"Total probability must equal 100% (currently {total * 100:.1f}%)")
        return v


class OfferLeadResponse(BaseModel):
    id: int
    organization_id: int
    sales_rep_id: int
    customer_name: str
    phone: str
    locality: str
    address: Optional[str] = None
    prize_won: Optional[str] = None
    coupon_code: Optional[str] = None
    coupon_expires_at: Optional[datetime] = None
    redeemed: bool = False
    redeemed_at: Optional[datetime] = None
    converted_to_lead_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
