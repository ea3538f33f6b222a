from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Numeric, JSON, Index
import enum

from .base import Base, TimestampMixin


class TeamPoolStatus(str, enum.Enum):
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    DISTRIBUTED = "distributed"


class TeamPoolDistribution(Base, TimestampMixin):
    __tablename__ = "team_pool_distributions"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    month = Column(String(7), nullable=False)
    total_pool_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=TeamPoolStatus.PENDING_APPROVAL.value)
    distribution_json = Column(JSON, nullable=True)
    distribution_notes = Column(Text, nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    distributed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('idx_team_pool_org_month', 'organization_id', 'month', unique=True),
    )
