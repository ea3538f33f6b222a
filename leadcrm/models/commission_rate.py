from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Numeric, UniqueConstraint

from .base import Base, TimestampMixin


class CommissionRate(Base, TimestampMixin):
    __tablename__ = "commission_rates"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    category_name = Column(String(100), nullable=False)

    commission_percentage = Column(Numeric(5, 2), nullable=False)   # % of sale price
    multiplier = Column(Numeric(4, 2), default=1, nullable=False)   # applied at or above premium_threshold
    min_sale_price = Column(Numeric(12, 2), default=0, nullable=False)
    premium_threshold = Column(Numeric(12, 2), default=50000, nullable=False)
    is_active = Column(Boolean, default=True)

    __table_args__ = (
        UniqueConstraint('organization_id', 'category_name', name='uq_commission_org_category'),
    )

    def __repr__(self):
        return f"<CommissionRate(org={self.organization_id}, {self.category_name}={self.commission_percentage}%)>"
