from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Index
import enum

from .base import Base, TimestampMixin


class LeadStatus(str, enum.Enum):
    WIN = "win"
    LOST = "lost"


class PurchaseTimeline(str, enum.Enum):
    TODAY = "today"
    THREE_DAYS = "3_days"
    SEVEN_DAYS = "7_days"
    THIRTY_DAYS = "30_days"


class NotTodayReason(str, enum.Enum):
    NEED_FAMILY_APPROVAL = "need_family_approval"
    PRICE_HIGH = "price_high"
    WANT_MORE_OPTIONS = "want_more_options"
    JUST_BROWSING = "just_browsing"


class ReviewStatus(str, enum.Enum):
    PENDING = "pending"
    YET_TO_REVIEW = "yet_to_review"
    REVIEWED = "reviewed"       # counts toward commission and review bonus


class Lead(Base, TimestampMixin):
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    sales_rep_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)

    customer_name = Column(String(100), nullable=False)
    customer_phone = Column(String(10), nullable=False)
    status = Column(String(10), nullable=False)

    # lost leads
    deal_size = Column(Numeric(12, 2), nullable=True)
    model_name = Column(String(100), nullable=True)
    purchase_timeline = Column(String(20), nullable=True)
    not_today_reason = Column(String(40), nullable=True)

    # won sales
    sale_price = Column(Numeric(12, 2), nullable=True)
    invoice_no = Column(String(50), nullable=True)
    review_status = Column(String(20), nullable=True)
    commission_rate_applied = Column(Numeric(6, 3), nullable=True)
    commission_amount = Column(Numeric(12, 2), nullable=True)

    __table_args__ = (
        Index('idx_lead_org_invoice', 'organization_id', 'invoice_no', unique=True),
        Index('idx_lead_rep_status_created', 'sales_rep_id', 'status', 'created_at'),
    )

    def __repr__(self):
        return f"<Lead(id={self.id}, status={self.status}, rep={self.sales_rep_id})>"
