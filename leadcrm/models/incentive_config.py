from sqlalchemy import Column, Integer, Boolean, ForeignKey, Numeric
from decimal import Decimal

from .base import Base, TimestampMixin


# Organisation defaults, also used before a config row exists
DEFAULT_INCENTIVE_CONFIG = {
    "streak_bonus_7_days": Decimal("50"),
    "streak_bonus_14_days": Decimal("150"),
    "streak_bonus_30_days": Decimal("700"),
    "review_bonus_per_review": Decimal("10"),
    "default_monthly_target": Decimal("1000000"),
    "salary_cap_enabled": True,
    "penalty_late_arrival": Decimal("5"),
    "penalty_unauthorized_absence": Decimal("10"),
    "penalty_back_to_back_offs": Decimal("10"),
    "penalty_low_compliance": Decimal("10"),
    "penalty_high_error_rate": Decimal("10"),
    "penalty_non_escalated_lost_lead": Decimal("10"),
    "penalty_missing_documentation": Decimal("10"),
    "penalty_low_team_eval": Decimal("15"),
    "penalty_client_disrespect": Decimal("100"),
    "compliance_threshold": Decimal("96"),
    "error_rate_threshold": Decimal("1"),
    "team_eval_threshold": Decimal("4.0"),
    "team_pool_top_performer": Decimal("20"),
    "team_pool_second_performer": Decimal("12"),
    "team_pool_third_performer": Decimal("8"),
    "team_pool_manager": Decimal("20"),
    "team_pool_support_staff": Decimal("20"),
    "team_pool_others": Decimal("20"),
}

TEAM_POOL_FIELDS = (
    "team_pool_top_performer",
    "team_pool_second_performer",
    "team_pool_third_performer",
    "team_pool_manager",
    "team_pool_support_staff",
    "team_pool_others",
)


def _money(name):
    return Column(Numeric(12, 2), default=DEFAULT_INCENTIVE_CONFIG[name], nullable=False)


def _percent(name):
    return Column(Numeric(6, 2), default=DEFAULT_INCENTIVE_CONFIG[name], nullable=False)


class IncentiveConfig(Base, TimestampMixin):
    __tablename__ = "incentive_configs"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, unique=True)

    # streak bonuses (flat amounts)
    streak_bonus_7_days = _money("streak_bonus_7_days")
    streak_bonus_14_days = _money("streak_bonus_14_days")
    streak_bonus_30_days = _money("streak_bonus_30_days")

    review_bonus_per_review = _money("review_bonus_per_review")
    default_monthly_target = _money("default_monthly_target")
    salary_cap_enabled = Column(Boolean, default=True, nullable=False)

    # penalty percentages
    penalty_late_arrival = _percent("penalty_late_arrival")
    penalty_unauthorized_absence = _percent("penalty_unauthorized_absence")
    penalty_back_to_back_offs = _percent("penalty_back_to_back_offs")
    penalty_low_compliance = _percent("penalty_low_compliance")
    penalty_high_error_rate = _percent("penalty_high_error_rate")
    penalty_non_escalated_lost_lead = _percent("penalty_non_escalated_lost_lead")
    penalty_missing_documentation = _percent("penalty_missing_documentation")
    penalty_low_team_eval = _percent("penalty_low_team_eval")
    penalty_client_disrespect = _percent("penalty_client_disrespect")

    # thresholds for the measured penalties
    compliance_threshold = _percent("compliance_threshold")
    error_rate_threshold = _percent("error_rate_threshold")
    team_eval_threshold = _percent("team_eval_threshold")

    # team pool split, must total 100
    team_pool_top_performer = _percent("team_pool_top_performer")
    team_pool_second_performer = _percent("team_pool_second_performer")
    team_pool_third_performer = _percent("team_pool_third_performer")
    team_pool_manager = _percent("team_pool_manager")
    team_pool_support_staff = _percent("team_pool_support_staff")
    team_pool_others = _percent("team_pool_others")
