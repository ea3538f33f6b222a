from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Numeric, JSON, Index
import enum

from .base import Base, TimestampMixin


class IncentiveStatus(str, enum.Enum):
    CALCULATING = "calculating"        # projection saved, may still change
    PENDING_REVIEW = "pending_review"  # finalized, waiting for a manager
    APPROVED = "approved"              # final amount fixed, waiting for payment
    REJECTED = "rejected"              # may be recalculated
    PAID = "paid"                      # terminal


# Allowed status transitions. Recalculation moves a rejected record back into review.
INCENTIVE_TRANSITIONS = {
    IncentiveStatus.CALCULATING: {
        IncentiveStatus.CALCULATING,
        IncentiveStatus.PENDING_REVIEW,
        IncentiveStatus.APPROVED,
        IncentiveStatus.REJECTED,
    },
    IncentiveStatus.PENDING_REVIEW: {
        IncentiveStatus.CALCULATING,
        IncentiveStatus.PENDING_REVIEW,
        IncentiveStatus.APPROVED,
        IncentiveStatus.REJECTED,
    },
    IncentiveStatus.REJECTED: {
        IncentiveStatus.CALCULATING,
        IncentiveStatus.PENDING_REVIEW,
    },
    IncentiveStatus.APPROVED: {IncentiveStatus.PAID},
    IncentiveStatus.PAID: set(),
}

APPROVABLE_STATUSES = (IncentiveStatus.PENDING_REVIEW.value, IncentiveStatus.CALCULATING.value)


class MonthlyIncentive(Base, TimestampMixin):
    __tablename__ = "monthly_incentives"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    month = Column(String(7), nullable=False)  # YYYY-MM

    # calculation
    gross_commission = Column(Numeric(12, 2), default=0, nullable=False)
    streak_bonus = Column(Numeric(12, 2), default=0, nullable=False)
    review_bonus = Column(Numeric(12, 2), default=0, nullable=False)
    penalty_count = Column(Integer, default=0, nullable=False)
    penalty_percentage = Column(Numeric(6, 2), default=0, nullable=False)
    penalty_amount = Column(Numeric(12, 2), default=0, nullable=False)
    net_incentive = Column(Numeric(12, 2), default=0, nullable=False)

    # salary cap
    user_monthly_salary = Column(Numeric(12, 2), nullable=True)
    salary_cap_applied = Column(Boolean, default=False, nullable=False)
    capped_amount = Column(Numeric(12, 2), nullable=True)  # only set when the cap applied

    # approval
    status = Column(String(20), nullable=False, default=IncentiveStatus.CALCULATING.value)
    final_approved_amount = Column(Numeric(12, 2), nullable=True)  # set iff approved or paid
    submitted_at = Column(DateTime, nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    review_notes = Column(Text, nullable=True)

    # payment
    paid_at = Column(DateTime, nullable=True)
    payment_reference = Column(String(100), nullable=True)

    breakdown_json = Column(JSON, nullable=True)

    __table_args__ = (
        Index('idx_incentive_user_month', 'user_id', 'month', unique=True),
        Index('idx_incentive_org_month_status', 'organization_id', 'month', 'status'),
    )

    @property
    def payable_amount(self):
        """Amount owed if approved as calculated."""
        if self.capped_amount is not None:
            return self.capped_amount
        return self.net_incentive

    def __repr__(self):
        return f"<MonthlyIncentive(user_id={self.user_id}, {self.month}, {self.status}, {self.net_incentive})>"
