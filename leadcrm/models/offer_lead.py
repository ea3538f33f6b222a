from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Index

from .base import Base, TimestampMixin


class OfferLead(Base, TimestampMixin):
    """Walk-in customer captured through a sales rep's offer link."""
    __tablename__ = "offer_leads"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    sales_rep_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    customer_name = Column(String(100), nullable=False)
    phone = Column(String(10), nullable=False)
    locality = Column(String(100), nullable=False)
    address = Column(Text, nullable=True)

    prize_won = Column(String(100), nullable=True)
    coupon_code = Column(String(20), unique=True, nullable=True)
    coupon_expires_at = Column(DateTime, nullable=True)
    redeemed = Column(Boolean, default=False, nullable=False)
    redeemed_at = Column(DateTime, nullable=True)
    redeemed_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    converted_to_lead_id = Column(Integer, ForeignKey("leads.id"), nullable=True)

    __table_args__ = (
        Index('idx_offer_lead_org_phone', 'organization_id', 'phone', unique=True),
    )

    def __repr__(self):
        return f"<OfferLead(id={self.id}, phone=***{self.phone[-4:]}, prize={self.prize_won})>"
