from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional
from datetime import date, datetime
from decimal import Decimal

from leadcrm.models.penalty import PenaltyType
from leadcrm.schemas.common import Money
from leadcrm.utils.date_utils import is_valid_month


def _check_month(v):
    if v is not None and not is_valid_month(v):
        raise ValueError("Invalid month format. Use YYYY-MM")
    return v


# ---- commission rates ----

class CommissionRateCreate(BaseModel):
    category_name: str = Field(..., min_length=1, max_length=100)
    category_id: Optional[int] = None
    commission_percentage: Decimal = Field(..., ge=0, le=100)
    multiplier: Decimal = Field(Decimal("1"), ge=1, le=10)
    min_sale_price: Decimal = Field(Decimal("0"), ge=0)
    premium_threshold: Decimal = Field(Decimal("50000"), ge=0)


class CommissionRateUpdate(BaseModel):
    id: int
    category_name: Optional[str] = Field(None, min_length=1, max_length=100)
    category_id: Optional[int] = None
    commission_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    multiplier: Optional[Decimal] = Field(None, ge=1, le=10)
    min_sale_price: Optional[Decimal] = Field(None, ge=0)
    premium_threshold: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None


class CommissionRateResponse(BaseModel):
    id: int
    organization_id: int
    category_id: Optional[int] = None
    category_name: str
    commission_percentage: Money
    multiplier: Money
    min_sale_price: Money
    premium_threshold: Money
    is_active: bool

    class Config:
        from_attributes = True


# ---- incentive config ----

class IncentiveConfigUpdate(BaseModel):
    """Partial update; unknown keys are ignored."""
    streak_bonus_7_days: Optional[Decimal] = Field(None, ge=0)
    streak_bonus_14_days: Optional[Decimal] = Field(None, ge=0)
    streak_bonus_30_days: Optional[Decimal] = Field(None, ge=0)
    review_bonus_per_review: Optional[Decimal] = Field(None, ge=0)
    default_monthly_target: Optional[Decimal] = Field(None, ge=0)
    salary_cap_enabled: Optional[bool] = None
    penalty_late_arrival: Optional[Decimal] = Field(None, ge=0)
    penalty_unauthorized_absence: Optional[Decimal] = Field(None, ge=0)
    penalty_back_to_back_offs: Optional[Decimal] = Field(None, ge=0)
    penalty_low_compliance: Optional[Decimal] = Field(None, ge=0)
    penalty_high_error_rate: Optional[Decimal] = Field(None, ge=0)
    penalty_non_escalated_lost_lead: Optional[Decimal] = Field(None, ge=0)
    penalty_missing_documentation: Optional[Decimal] = Field(None, ge=0)
    penalty_low_team_eval: Optional[Decimal] = Field(None, ge=0)
    penalty_client_disrespect: Optional[Decimal] = Field(None, ge=0)
    compliance_threshold: Optional[Decimal] = Field(None, ge=0)
    error_rate_threshold: Optional[Decimal] = Field(None, ge=0)
    team_eval_threshold: Optional[Decimal] = Field(None, ge=0)
    team_pool_top_performer: Optional[Decimal] = Field(None, ge=0)
    team_pool_second_performer: Optional[Decimal] = Field(None, ge=0)
    team_pool_third_performer: Optional[Decimal] = Field(None, ge=0)
    team_pool_manager: Optional[Decimal] = Field(None, ge=0)
    team_pool_support_staff: Optional[Decimal] = Field(None, ge=0)
    team_pool_others: Optional[Decimal] = Field(None, ge=0)

    class Config:
        extra = "ignore"


# ---- targets ----

class TargetCreate(BaseModel):
    user_id: int
    month: str
    target_amount: Optional[Decimal] = Field(None, ge=0)

    check_month = field_validator("month")(_check_month)


class TargetResponse(BaseModel):
    id: int
    user_id: int
    organization_id: int
    month: str
    target_amount: Money
    achieved_amount: Money
    set_by_user_id: Optional[int] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- penalties ----

class PenaltyCreate(BaseModel):
    user_id: int
    penalty_type: PenaltyType
    description: Optional[str] = None
    incident_date: Optional[date] = None
    related_lead_id: Optional[int] = None
    measured_value: Optional[Decimal] = None  # compliance %, error rate or team evaluation score


class PenaltyAction(BaseModel):
    action: Literal["dispute", "resolve"]
    dispute_reason: Optional[str] = None
    resolution: Optional[Literal["active", "waived"]] = None
    resolution_notes: Optional[str] = None


class PenaltyResponse(BaseModel):
    id: int
    user_id: int
    organization_id: int
    month: str
    penalty_type: str
    penalty_percentage: Money
    description: Optional[str] = None
    incident_date: Optional[date] = None
    related_lead_id: Optional[int] = None
    status: str
    created_by: Optional[int] = None
    disputed_at: Optional[datetime] = None
    dispute_reason: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[int] = None
    resolution_notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- team pool ----

class TeamPoolCreate(BaseModel):
    month: str
    total_pool_amount: Decimal = Field(..., gt=0)
    distribution_notes: Optional[str] = None

    check_month = field_validator("month")(_check_month)


class TeamPoolAction(BaseModel):
    month: str
    action: Literal["approve", "distribute"]

    check_month = field_validator("month")(_check_month)


class TeamPoolResponse(BaseModel):
    id: int
    organization_id: int
    month: str
    total_pool_amount: Money
    status: str
    distribution_json: Optional[dict] = None
    distribution_notes: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    distributed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
