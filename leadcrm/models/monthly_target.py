from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Index

from .base import Base, TimestampMixin


class MonthlyTarget(Base, TimestampMixin):
    __tablename__ = "monthly_targets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    month = Column(String(7), nullable=False)  # YYYY-MM
    target_amount = Column(Numeric(12, 2), nullable=False)
    achieved_amount = Column(Numeric(12, 2), default=0, nullable=False)
    set_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        Index('idx_target_user_month', 'user_id', 'month', unique=True),
    )
