from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal

from leadcrm.models.incentive_config import DEFAULT_INCENTIVE_CONFIG
from leadcrm.schemas.common import Money
from leadcrm.utils.date_utils import is_valid_month


# ---- calculator inputs ----

class IncentiveRules(BaseModel):
    """Organisation incentive settings as seen by the calculator."""
    streak_bonus_7_days: Money = DEFAULT_INCENTIVE_CONFIG["streak_bonus_7_days"]
    streak_bonus_14_days: Money = DEFAULT_INCENTIVE_CONFIG["streak_bonus_14_days"]
    streak_bonus_30_days: Money = DEFAULT_INCENTIVE_CONFIG["streak_bonus_30_days"]
    review_bonus_per_review: Money = DEFAULT_INCENTIVE_CONFIG["review_bonus_per_review"]
    default_monthly_target: Money = DEFAULT_INCENTIVE_CONFIG["default_monthly_target"]
    salary_cap_enabled: bool = True
    penalty_late_arrival: Money = DEFAULT_INCENTIVE_CONFIG["penalty_late_arrival"]
    penalty_unauthorized_absence: Money = DEFAULT_INCENTIVE_CONFIG["penalty_unauthorized_absence"]
    penalty_back_to_back_offs: Money = DEFAULT_INCENTIVE_CONFIG["penalty_back_to_back_offs"]
    penalty_low_compliance: Money = DEFAULT_INCENTIVE_CONFIG["penalty_low_compliance"]
    penalty_high_error_rate: Money = DEFAULT_INCENTIVE_CONFIG["penalty_high_error_rate"]
    penalty_non_escalated_lost_lead: Money = DEFAULT_INCENTIVE_CONFIG["penalty_non_escalated_lost_lead"]
    penalty_missing_documentation: Money = DEFAULT_INCENTIVE_CONFIG["penalty_missing_documentation"]
    penalty_low_team_eval: Money = DEFAULT_INCENTIVE_CONFIG["penalty_low_team_eval"]
    penalty_client_disrespect: Money = DEFAULT_INCENTIVE_CONFIG["penalty_client_disrespect"]
    compliance_threshold: Money = DEFAULT_INCENTIVE_CONFIG["compliance_threshold"]
    error_rate_threshold: Money = DEFAULT_INCENTIVE_CONFIG["error_rate_threshold"]
    team_eval_threshold: Money = DEFAULT_INCENTIVE_CONFIG["team_eval_threshold"]
    team_pool_top_performer: Money = DEFAULT_INCENTIVE_CONFIG["team_pool_top_performer"]
    team_pool_second_performer: Money = DEFAULT_INCENTIVE_CONFIG["team_pool_second_performer"]
    team_pool_third_performer: Money = DEFAULT_INCENTIVE_CONFIG["team_pool_third_performer"]
    team_pool_manager: Money = DEFAULT_INCENTIVE_CONFIG["team_pool_manager"]
    team_pool_support_staff: Money = DEFAULT_INCENTIVE_CONFIG["team_pool_support_staff"]
    team_pool_others: Money = DEFAULT_INCENTIVE_CONFIG["team_pool_others"]

    class Config:
        from_attributes = True


class CommissionRule(BaseModel):
    category_id: Optional[int] = None
    category_name: str
    commission_percentage: Decimal
    multiplier: Decimal = Decimal("1")
    premium_threshold: Decimal = Decimal("50000")

    class Config:
        from_attributes = True


class SaleRecord(BaseModel):
    """A won lead as the calculator needs it."""
    lead_id: int
    invoice_no: Optional[str] = None
    customer_name: Optional[str] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    sale_price: Optional[Decimal] = None
    commission_rate_applied: Optional[Decimal] = None
    commission_amount: Optional[Decimal] = None
    review_status: Optional[str] = None
    created_at: Optional[datetime] = None


class PenaltyRecord(BaseModel):
    id: Optional[int] = None
    penalty_type: str
    penalty_percentage: Decimal
    description: Optional[str] = None
    incident_date: Optional[date] = None


class IncentiveInputs(BaseModel):
    user_id: int
    month: str
    win_leads: List[SaleRecord] = []
    streak_days: int = 0
    penalties: List[PenaltyRecord] = []   # counted penalties only
    target_amount: Optional[Decimal] = None
    monthly_salary: Optional[Decimal] = None


# ---- calculator output ----

class SaleLine(BaseModel):
    lead_id: int
    invoice_no: Optional[str] = None
    customer_name: Optional[str] = None
    category_name: Optional[str] = None
    sale_price: Money
    commission_rate: Money
    commission_amount: Money
    review_qualified: bool
    created_at: Optional[datetime] = None


class StreakLine(BaseModel):
    current_streak: int
    bonus_tier: Optional[str] = None  # "7_days" | "14_days" | "30_days"
    bonus_amount: Money


class ReviewLine(BaseModel):
    reviews_count: int
    bonus_per_review: Money
    total_bonus: Money


class PenaltyLine(BaseModel):
    id: Optional[int] = None
    penalty_type: str
    penalty_percentage: Money
    description: Optional[str] = None
    incident_date: Optional[date] = None


class IncentiveSummary(BaseModel):
    total_sales: Money
    sales_count: int
    qualified_sales_count: int
    target_amount: Money
    qualifies_for_incentive: bool
    gross_commission: Money
    streak_bonus: Money
    review_bonus: Money
    gross_total: Money
    total_penalty_percentage: Money
    penalty_amount: Money
    net_before_cap: Money
    salary_cap: Optional[Money] = None
    cap_applied: bool
    final_amount: Money


class IncentiveBreakdown(BaseModel):
    user_id: int
    month: str
    sales: List[SaleLine]
    streak: StreakLine
    reviews: ReviewLine
    penalties: List[PenaltyLine]
    summary: IncentiveSummary


# ---- persisted record ----

class MonthlyIncentiveResponse(BaseModel):
    id: int
    user_id: int
    organization_id: int
    month: str
    gross_commission: Money
    streak_bonus: Money
    review_bonus: Money
    penalty_count: int
    penalty_percentage: Money
    penalty_amount: Money
    net_incentive: Money
    user_monthly_salary: Optional[Money] = None
    salary_cap_applied: bool
    capped_amount: Optional[Money] = None
    status: str
    final_approved_amount: Optional[Money] = None
    submitted_at: Optional[datetime] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    paid_at: Optional[datetime] = None
    payment_reference: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- requests ----

class MonthField(BaseModel):
    month: Optional[str] = None

    @field_validator("month")
    @classmethod
    def validate_month(cls, v):
        if v is not None and not is_valid_month(v):
            raise ValueError("Invalid month format. Use YYYY-MM")
        return v


class IncentiveCalculateRequest(MonthField):
    user_id: Optional[int] = None


class FinalizeRequest(BaseModel):
    month: str

    @field_validator("month")
    @classmethod
    def validate_month(cls, v):
        if not is_valid_month(v):
            raise ValueError("Invalid month format. Use YYYY-MM")
        return v


class ApproveRequest(BaseModel):
    incentive_id: int
    approved: bool
    review_notes: Optional[str] = None
    final_amount: Optional[Decimal] = Field(None, ge=0)

    @field_validator("approved", mode="before")
    @classmethod
    def approved_must_be_bool(cls, v):
        if not isinstance(v, bool):
            raise ValueError("approved must be a boolean")
        return v


class BulkApproveRequest(BaseModel):
    incentive_ids: List[int] = Field(..., min_length=1)
    review_notes: Optional[str] = None


class MarkPaidRequest(BaseModel):
    incentive_ids: List[int] = Field(..., min_length=1)
    payment_reference: Optional[str] = Field(None, max_length=100)
