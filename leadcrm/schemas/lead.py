from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from leadcrm.core.security import is_valid_phone
from leadcrm.models.lead import LeadStatus, PurchaseTimeline, NotTodayReason, ReviewStatus
from leadcrm.schemas.common import Money


class LeadCreate(BaseModel):
    status: LeadStatus
    customer_name: str
    customer_phone: str
    category_id: int

    # lost
    deal_size: Optional[Decimal] = None
    model_name: Optional[str] = None
    purchase_timeline: Optional[PurchaseTimeline] = None
    not_today_reason: Optional[NotTodayReason] = None

    # win
    invoice_no: Optional[str] = None
    sale_price: Optional[Decimal] = None

    @field_validator("customer_name")
    @classmethod
    def validate_customer_name(cls, v):
        v = (v or "").strip()
        if len(v) < 2:
            raise ValueError("Customer name must be at least 2 characters")
        return v

    @field_validator("customer_phone")
    @classmethod
    def validate_customer_phone(cls, v):
        v = (v or "").strip()
        if not is_valid_phone(v):
            raise ValueError("Invalid phone number. Must be 10 digits")
        return v

    @model_validator(mode="after")
    def validate_by_status(self):
        if self.status == LeadStatus.LOST:
            if self.deal_size is None or self.deal_size < 1:
                raise ValueError("Deal size must be at least 1")
            if not self.model_name or len(self.model_name.strip()) < 2:
                raise ValueError("Model name must be at least 2 characters")
            self.model_name = self.model_name.strip()
            if self.purchase_timeline is None:
                raise ValueError("Purchase timeline is required")
            # a reason only makes sense when the customer is not buying today
            if self.purchase_timeline == PurchaseTimeline.TODAY:
                self.not_today_reason = None
        else:
            if not self.invoice_no or len(self.invoice_no.strip()) < 3:
                raise ValueError("Invoice number must be at least 3 characters")
            self.invoice_no = self.invoice_no.strip()
            if self.sale_price is None or self.sale_price <= 0:
                raise ValueError("Sale price must be greater than 0")
        return self


class InvoiceCheckRequest(BaseModel):
    invoice_no: str = Field(..., min_length=3, max_length=50)


class ReviewStatusUpdate(BaseModel):
    review_status: ReviewStatus


class LeadResponse(BaseModel):
    id: int
    organization_id: int
    sales_rep_id: int
    category_id: int
    category_name: Optional[str] = None
    sales_rep_name: Optional[str] = None
    customer_name: str
    customer_phone: str
    status: str
    deal_size: Optional[Money] = None
    model_name: Optional[str] = None
    purchase_timeline: Optional[str] = None
    not_today_reason: Optional[str] = None
    sale_price: Optional[Money] = None
    invoice_no: Optional[str] = None
    review_status: Optional[str] = None
    commission_rate_applied: Optional[Money] = None
    commission_amount: Optional[Money] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
