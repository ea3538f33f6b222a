from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from leadcrm.models.lead import Lead, LeadStatus
from leadcrm.models.monthly_target import MonthlyTarget
from leadcrm.services.incentive_calculator import quantize_money, to_decimal
from leadcrm.services.incentive_config_service import IncentiveConfigService
from leadcrm.services.user_service import UserService
from leadcrm.utils.date_utils import days_remaining_in_month, month_bounds

MAX_ACHIEVEMENT_PERCENTAGE = Decimal("200")
RECENT_SALES_LIMIT = 5


class TargetService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_targets(
        self,
        organization_id: int,
        user_id: Optional[int] = None,
        month: Optional[str] = None,
    ) -> List[MonthlyTarget]:
        query = select(MonthlyTarget).where(MonthlyTarget.organization_id == organization_id)
        if user_id is not None:
            query = query.where(MonthlyTarget.user_id == user_id)
        if month:
            query = query.where(MonthlyTarget.month == month)
        result = await self.db.execute(query.order_by(MonthlyTarget.month.desc(), MonthlyTarget.user_id))
        return result.scalars().all()

    async def get_target(self, user_id: int, month: str) -> Optional[MonthlyTarget]:
        result = await self.db.execute(
            select(MonthlyTarget).where(and_(MonthlyTarget.user_id == user_id, MonthlyTarget.month == month))
        )
        return result.scalar_one_or_none()

    async def achieved_amount(self, user_id: int, month: str) -> Decimal:
        start, end = month_bounds(month)
        total = (await self.db.execute(
            select(func.sum(Lead.sale_price)).where(and_(
                Lead.sales_rep_id == user_id,
                Lead.status == LeadStatus.WIN.value,
                Lead.created_at >= start,
                Lead.created_at < end,
            ))
        )).scalar()
        return quantize_money(total)

    async def refresh_achieved(self, user_id: int, month: str) -> Optional[MonthlyTarget]:
        """Sync achieved_amount of an existing target row. Caller commits."""
        target = await self.get_target(user_id, month)
        if target is not None:
            target.achieved_amount = await self.achieved_amount(user_id, month)
        return target

    async def set_target(
        self,
        organization_id: int,
        user_id: int,
        month: str,
        target_amount: Optional[Decimal],
        set_by_user_id: int,
    ) -> MonthlyTarget:
        await UserService(self.db).get_org_user(organization_id, user_id)

        if target_amount is None:
            rules = await IncentiveConfigService(self.db).get_rules(organization_id)
            target_amount = rules.default_monthly_target

        target = await self.get_target(user_id, month)
        if target is None:
            target = MonthlyTarget(user_id=user_id, organization_id=organization_id, month=month)
            self.db.add(target)

        target.target_amount = quantize_money(target_amount)
        target.set_by_user_id = set_by_user_id
        target.achieved_amount = await self.achieved_amount(user_id, month)

        await self.db.commit()
        await self.db.refresh(target)
        return target

    async def progress(
        self,
        organization_id: int,
        user_id: int,
        month: str,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        target = await self.get_target(user_id, month)
        target_amount = to_decimal(target.target_amount) if target is not None else Decimal("0")
        # unset or zero targets fall back to the org default, as the calculator does
        if target_amount <= 0:
            rules = await IncentiveConfigService(self.db).get_rules(organization_id)
            target_amount = to_decimal(rules.default_monthly_target)

        start, end = month_bounds(month)
        result = await self.db.execute(
            select(Lead).where(and_(
                Lead.sales_rep_id == user_id,
                Lead.status == LeadStatus.WIN.value,
                Lead.created_at >= start,
                Lead.created_at < end,
            )).order_by(Lead.created_at.desc(), Lead.id.desc())
        )
        sales = result.scalars().all()
        achieved = quantize_money(sum((to_decimal(s.sale_price) for s in sales), Decimal("0")))

        if target_amount > 0:
            percentage = min(achieved / target_amount * 100, MAX_ACHIEVEMENT_PERCENTAGE)
            qualifies = achieved >= target_amount
        else:
            percentage = MAX_ACHIEVEMENT_PERCENTAGE if achieved > 0 else Decimal("0")
            qualifies = True

        remaining = max(target_amount - achieved, Decimal("0"))
        days_remaining = days_remaining_in_month(month, today)
        daily_rate = remaining / days_remaining if days_remaining > 0 else remaining

        return {
            "user_id": user_id,
            "month": month,
            "has_target": target is not None,
            "target_amount": quantize_money(target_amount),
            "achieved_amount": achieved,
            "achievement_percentage": quantize_money(percentage),
            "qualifies_for_incentive": qualifies,
            "remaining_amount": quantize_money(remaining),
            "sales_count": len(sales),
            "days_remaining": days_remaining,
            "daily_rate_needed": quantize_money(daily_rate),
            "recent_sales": [
                {
                    "id": s.id,
                    "invoice_no": s.invoice_no,
                    "customer_name": s.customer_name,
                    "sale_price": to_decimal(s.sale_price),
                    "created_at": s.created_at,
                }
                for s in sales[:RECENT_SALES_LIMIT]
            ],
        }
