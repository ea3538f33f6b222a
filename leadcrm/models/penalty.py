from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey, Numeric, Index
import enum

from .base import Base, TimestampMixin


class PenaltyType(str, enum.Enum):
    LATE_ARRIVAL = "late_arrival"
    UNAUTHORIZED_ABSENCE = "unauthorized_absence"
    BACK_TO_BACK_OFFS = "back_to_back_offs"
    LOW_COMPLIANCE = "low_compliance"
    HIGH_ERROR_RATE = "high_error_rate"
    NON_ESCALATED_LOST_LEAD = "non_escalated_lost_lead"
    MISSING_DOCUMENTATION = "missing_documentation"
    LOW_TEAM_EVAL = "low_team_eval"
    CLIENT_DISRESPECT = "client_disrespect"


class PenaltyStatus(str, enum.Enum):
    ACTIVE = "active"        # counted in the month's incentive
    DISPUTED = "disputed"
    RESOLVED = "resolved"    # dispute rejected, counted again
    WAIVED = "waived"


class Penalty(Base, TimestampMixin):
    __tablename__ = "penalties"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    month = Column(String(7), nullable=False)
    penalty_type = Column(String(40), nullable=False)
    penalty_percentage = Column(Numeric(6, 2), nullable=False)
    description = Column(Text, nullable=True)
    incident_date = Column(Date, nullable=True)
    related_lead_id = Column(Integer, ForeignKey("leads.id"), nullable=True)
    status = Column(String(20), nullable=False, default=PenaltyStatus.ACTIVE.value)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # dispute workflow
    disputed_at = Column(DateTime, nullable=True)
    dispute_reason = Column(Text, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    resolved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    resolution_notes = Column(Text, nullable=True)

    __table_args__ = (
        Index('idx_penalty_user_month', 'user_id', 'month'),
    )
