from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_
from typing import Any, Dict, List, Optional
import logging

from leadcrm.core.exceptions import NotFoundError, ValidationError
from leadcrm.models.category import Category
from leadcrm.models.lead import Lead, LeadStatus, ReviewStatus
from leadcrm.models.offer_lead import OfferLead
from leadcrm.models.penalty import Penalty
from leadcrm.models.user import User
from leadcrm.schemas.lead import LeadCreate
from leadcrm.services.category_service import CategoryService
from leadcrm.services.commission_service import CommissionService
from leadcrm.services.streak_service import StreakService
from leadcrm.services.target_service import TargetService
from leadcrm.utils.date_utils import current_month, month_bounds, utcnow

logger = logging.getLogger(__name__)


def lead_to_dict(lead: Lead, category_name: Optional[str] = None, sales_rep_name: Optional[str] = None) -> Dict[str, Any]:
    data = {column.name: getattr(lead, column.name) for column in Lead.__table__.columns}
    data["category_name"] = category_name
    data["sales_rep_name"] = sales_rep_name
    return data


class LeadService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def invoice_exists(self, organization_id: int, invoice_no: str) -> bool:
        result = await self.db.execute(
            select(Lead.id).where(and_(
                Lead.organization_id == organization_id,
                Lead.invoice_no == invoice_no.strip(),
            )).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def create_lead(self, organization_id: int, sales_rep_id: int, data: LeadCreate) -> Lead:
        """Store a lead and update the rep's streak and target progress."""
        category = await CategoryService(self.db).get_category(organization_id, data.category_id)
        now = utcnow()

        lead = Lead(
            organization_id=organization_id,
            sales_rep_id=sales_rep_id,
            category_id=category.id,
            customer_name=data.customer_name,
            customer_phone=data.customer_phone,
            status=data.status.value,
            created_at=now,
        )

        if data.status == LeadStatus.LOST:
            lead.deal_size = data.deal_size
            lead.model_name = data.model_name
            lead.purchase_timeline = data.purchase_timeline.value
            lead.not_today_reason = data.not_today_reason.value if data.not_today_reason else None
        else:
            if await self.invoice_exists(organization_id, data.invoice_no):
                raise ValidationError("Invoice number already exists")
            rate, amount = await CommissionService(self.db).commission_for_sale(
                organization_id, category.id, category.name, data.sale_price
            )
            lead.invoice_no = data.invoice_no
            lead.sale_price = data.sale_price
            # reviews are confirmed afterwards through the review-status endpoint
            lead.review_status = ReviewStatus.YET_TO_REVIEW.value
            lead.commission_rate_applied = rate
            lead.commission_amount = amount

        self.db.add(lead)
        await self.db.flush()

        await StreakService(self.db).record_activity(sales_rep_id, now.date())
        if lead.status == LeadStatus.WIN.value:
            await TargetService(self.db).refresh_achieved(sales_rep_id, current_month(now.date()))

        await self.db.commit()
        await self.db.refresh(lead)

        logger.info(f"Lead {lead.id} ({lead.status}) created by user {sales_rep_id}")
        return lead

    async def list_leads(
        self,
        organization_id: int,
        sales_rep_id: Optional[int] = None,
        status: Optional[str] = None,
        month: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        query = (
            select(Lead, Category.name, User.name)
            .outerjoin(Category, Category.id == Lead.category_id)
            .outerjoin(User, User.id == Lead.sales_rep_id)
            .where(Lead.organization_id == organization_id)
        )
        if sales_rep_id is not None:
            query = query.where(Lead.sales_rep_id == sales_rep_id)
        if status:
            query = query.where(Lead.status == status)
        if month:
            start, end = month_bounds(month)
            query = query.where(and_(Lead.created_at >= start, Lead.created_at < end))

        result = await self.db.execute(query.order_by(Lead.created_at.desc(), Lead.id.desc()))
        return [lead_to_dict(lead, category_name, rep_name) for lead, category_name, rep_name in result.all()]

    async def get_lead(self, organization_id: int, lead_id: int) -> Lead:
        result = await self.db.execute(
            select(Lead).where(and_(Lead.id == lead_id, Lead.organization_id == organization_id))
        )
        lead = result.scalar_one_or_none()
        if lead is None:
            raise NotFoundError("Lead not found")
        return lead

    async def update_review_status(self, lead: Lead, review_status: str) -> Lead:
        if lead.status != LeadStatus.WIN.value:
            raise ValidationError("Review status applies to won sales only")
        lead.review_status = review_status
        await self.db.commit()
        await self.db.refresh(lead)
        return lead

    async def delete_lead(self, organization_id: int, lead_id: int) -> None:
        lead = await self.get_lead(organization_id, lead_id)
        await self.db.execute(
            update(Penalty).where(Penalty.related_lead_id == lead.id).values(related_lead_id=None)
        )
        # the walk-in goes back to pending
        await self.db.execute(
            update(OfferLead).where(OfferLead.converted_to_lead_id == lead.id).values(converted_to_lead_id=None)
        )
        await self.db.delete(lead)
        await self.db.commit()
        logger.info(f"Lead {lead_id} deleted from organization {organization_id}")
