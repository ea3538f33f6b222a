from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from decimal import Decimal
from typing import List, Optional, Tuple
import logging

from leadcrm.core.exceptions import NotFoundError
from leadcrm.models.commission_rate import CommissionRate
from leadcrm.schemas.earn import CommissionRateCreate, CommissionRateUpdate
from leadcrm.schemas.incentive import CommissionRule
from leadcrm.services.incentive_calculator import calculate_commission, find_commission_rule

logger = logging.getLogger(__name__)

# (category, percentage, multiplier)
DEFAULT_COMMISSION_RATES = [
    ("Kids", Decimal("1.0"), Decimal("1")),
    ("Single Speed", Decimal("0.8"), Decimal("1")),
    ("Geared", Decimal("0.8"), Decimal("1")),
    ("2nd Hand", Decimal("0.8"), Decimal("1")),
    ("Services", Decimal("0.8"), Decimal("1")),
    ("Premium", Decimal("0.7"), Decimal("1.5")),
    ("Electric", Decimal("0.7"), Decimal("1.5")),
    ("Default", Decimal("0.8"), Decimal("1")),
]
DEFAULT_PREMIUM_THRESHOLD = Decimal("50000")


class CommissionService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_active(self, organization_id: int) -> List[CommissionRate]:
        result = await self.db.execute(
            select(CommissionRate)
            .where(and_(CommissionRate.organization_id == organization_id, CommissionRate.is_active.is_(True)))
            .order_by(CommissionRate.category_name)
        )
        return result.scalars().all()

    async def active_rules(self, organization_id: int) -> List[CommissionRule]:
        return [CommissionRule.model_validate(rate) for rate in await self.list_active(organization_id)]

    async def commission_for_sale(
        self,
        organization_id: int,
        category_id: Optional[int],
        category_name: Optional[str],
        sale_price,
    ) -> Tuple[Decimal, Decimal]:
        """(applied percentage, amount) stored on a win lead at creation."""
        rules = await self.active_rules(organization_id)
        rule = find_commission_rule(rules, category_id, category_name)
        return calculate_commission(sale_price, rule)

    async def upsert_rate(self, organization_id: int, data: CommissionRateCreate) -> CommissionRate:
        rate = await self._find_by_name(organization_id, data.category_name)
        if rate is None:
            rate = CommissionRate(organization_id=organization_id, category_name=data.category_name)
            self.db.add(rate)

        rate.category_id = data.category_id
        rate.commission_percentage = data.commission_percentage
        rate.multiplier = data.multiplier
        rate.min_sale_price = data.min_sale_price
        rate.premium_threshold = data.premium_threshold
        rate.is_active = True

        await self.db.commit()
        await self.db.refresh(rate)
        return rate

    async def update_rate(self, organization_id: int, data: CommissionRateUpdate) -> CommissionRate:
        rate = await self._get(organization_id, data.id)
        for field, value in data.model_dump(exclude_unset=True, exclude={"id"}).items():
            if value is None and field != "category_id":
                continue
            setattr(rate, field, value)
        await self.db.commit()
        await self.db.refresh(rate)
        return rate

    async def deactivate_rate(self, organization_id: int, rate_id: int) -> CommissionRate:
        rate = await self._get(organization_id, rate_id)
        rate.is_active = False
        await self.db.commit()
        await self.db.refresh(rate)
        return rate

    async def seed_defaults(self, organization_id: int) -> List[CommissionRate]:
        """Insert or reset the default rate table."""
        for name, percentage, multiplier in DEFAULT_COMMISSION_RATES:
            rate = await self._find_by_name(organization_id, name)
            if rate is None:
                rate = CommissionRate(organization_id=organization_id, category_name=name)
                self.db.add(rate)
            rate.commission_percentage = percentage
            rate.multiplier = multiplier
            rate.min_sale_price = Decimal("0")
            rate.premium_threshold = DEFAULT_PREMIUM_THRESHOLD
            rate.is_active = True
        await self.db.commit()

        logger.info(f"Seeded default commission rates for organization {organization_id}")
        return await self.list_active(organization_id)

    async def _find_by_name(self, organization_id: int, category_name: str) -> Optional[CommissionRate]:
        result = await self.db.execute(
            select(CommissionRate).where(and_(
                CommissionRate.organization_id == organization_id,
                CommissionRate.category_name == category_name,
            ))
        )
        return result.scalar_one_or_none()

    async def _get(self, organization_id: int, rate_id: int) -> CommissionRate:
        result = await self.db.execute(
            select(CommissionRate).where(and_(
                CommissionRate.organization_id == organization_id,
                CommissionRate.id == rate_id,
            ))
        )
        rate = result.scalar_one_or_none()
        if rate is None:
            raise NotFoundError("Commission rate not found")
        return rate
