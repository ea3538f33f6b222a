from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint

from .base import Base, TimestampMixin

DEFAULT_CATEGORIES = ["Electric", "Geared", "Premium Geared", "Single Speed", "Kids"]


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)

    __table_args__ = (
        UniqueConstraint('organization_id', 'name', name='uq_category_org_name'),
    )
