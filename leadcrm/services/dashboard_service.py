from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func
from sqlalchemy.orm import aliased
from collections import Counter
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional
import enum

from leadcrm.core.config import settings
from leadcrm.models.lead import Lead, LeadStatus, ReviewStatus
from leadcrm.models.offer_lead import OfferLead
from leadcrm.models.user import User
from leadcrm.services.incentive_calculator import quantize_money
from leadcrm.utils.date_utils import local_day_start, local_week_start, to_local_date, utcnow

TOP_PERFORMERS_LIMIT = 3
TREND_DAYS = 7


class DashboardPeriod(str, enum.Enum):
    TODAY = "today"
    WEEK = "week"      # rolling 7 days
    MONTH = "month"    # rolling 30 days


def period_start(period: DashboardPeriod, now: datetime, offset_minutes: int) -> datetime:
    if period == DashboardPeriod.WEEK:
        return now - timedelta(days=7)
    if period == DashboardPeriod.MONTH:
        return now - timedelta(days=30)
    return local_day_start(now, offset_minutes)


class DashboardService:
    """Store owner's at-a-glance numbers for one organisation."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _wins(self, organization_id: int, *conditions):
        return and_(
            Lead.organization_id == organization_id,
            Lead.status == LeadStatus.WIN.value,
            *conditions,
        )

    async def _win_total(self, organization_id: int, *conditions) -> Decimal:
        total = (await self.db.execute(
            select(func.sum(Lead.sale_price)).where(self._wins(organization_id, *conditions))
        )).scalar()
        return quantize_money(total)

    async def owner_stats(
        self,
        organization_id: int,
        period: DashboardPeriod = DashboardPeriod.TODAY,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        now = now or utcnow()
        offset = settings.BUSINESS_UTC_OFFSET_MINUTES
        start = period_start(period, now, offset)

        walk_ins = (await self.db.execute(
            select(func.count(OfferLead.id)).where(and_(
                OfferLead.organization_id == organization_id,
                OfferLead.created_at >= start,
            ))
        )).scalar() or 0

        sales_total, sales_count = (await self.db.execute(
            select(func.sum(Lead.sale_price), func.count(Lead.id))
            .where(self._wins(organization_id, Lead.created_at >= start))
        )).one()

        review_counts = dict((await self.db.execute(
            select(Lead.review_status, func.count(Lead.id))
            .where(self._wins(organization_id, Lead.created_at >= start))
            .group_by(Lead.review_status)
        )).all())
        reviews_submitted = review_counts.get(ReviewStatus.REVIEWED.value, 0)
        reviews_sent = reviews_submitted + review_counts.get(ReviewStatus.PENDING.value, 0)

        # customers who walked away once and came back to buy
        earlier_lost = aliased(Lead)
        retargeted = (await self.db.execute(
            select(func.count(Lead.customer_phone.distinct())).where(self._wins(
                organization_id,
                Lead.created_at >= start,
                select(earlier_lost.id).where(and_(
                    earlier_lost.organization_id == Lead.organization_id,
                    earlier_lost.customer_phone == Lead.customer_phone,
                    earlier_lost.status == LeadStatus.LOST.value,
                    earlier_lost.created_at < Lead.created_at,
                )).exists(),
            ))
        )).scalar() or 0

        trend_rows = (await self.db.execute(
            select(OfferLead.created_at).where(and_(
                OfferLead.organization_id == organization_id,
                OfferLead.created_at >= now - timedelta(days=TREND_DAYS),
            ))
        )).scalars().all()
        by_day = Counter(to_local_date(created_at, offset) for created_at in trend_rows if created_at)

        week_start = local_week_start(now, offset)
        this_week = await self._win_total(organization_id, Lead.created_at >= week_start)
        last_week = await self._win_total(
            organization_id,
            Lead.created_at >= week_start - timedelta(days=7),
            Lead.created_at < week_start,
        )

        revenue = func.sum(Lead.sale_price).label("revenue")
        top_rows = (await self.db.execute(
            select(User.name, revenue, func.count(Lead.id))
            .join(User, User.id == Lead.sales_rep_id)
            .where(self._wins(organization_id, Lead.created_at >= start))
            .group_by(User.id, User.name)
            .order_by(revenue.desc(), User.id)
            .limit(TOP_PERFORMERS_LIMIT)
        )).all()

        return {
            "period": period.value,
            "period_start": start,
            "stats": {
                "walk_ins": walk_ins,
                "sales_total": quantize_money(sales_total),
                "sales_count": sales_count or 0,
                "reviews_submitted": reviews_submitted,
                "reviews_sent": reviews_sent,
                "retargeted_count": retargeted,
            },
            "walk_in_trend": [
                {"day": day.isoformat(), "count": count} for day, count in sorted(by_day.items())
            ],
            "sales_comparison": {"this_week": this_week, "last_week": last_week},
            "top_performers": [
                {"name": name, "revenue": quantize_money(total), "wins": wins}
                for name, total, wins in top_rows
            ],
        }
