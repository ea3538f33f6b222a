from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from decimal import Decimal

from leadcrm.core.exceptions import ValidationError
from leadcrm.models.incentive_config import IncentiveConfig, TEAM_POOL_FIELDS
from leadcrm.schemas.earn import IncentiveConfigUpdate
from leadcrm.schemas.incentive import IncentiveRules

TEAM_POOL_TOLERANCE = Decimal("0.01")


class IncentiveConfigService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_or_create(self, organization_id: int) -> IncentiveConfig:
        result = await self.db.execute(
            select(IncentiveConfig).where(IncentiveConfig.organization_id == organization_id)
        )
        config = result.scalar_one_or_none()
        if config is None:
            config = IncentiveConfig(organization_id=organization_id)
            self.db.add(config)
            await self.db.commit()
            await self.db.refresh(config)
        return config

    async def get_rules(self, organization_id: int) -> IncentiveRules:
        return IncentiveRules.model_validate(await self.get_or_create(organization_id))

    async def update(self, organization_id: int, data: IncentiveConfigUpdate) -> IncentiveConfig:
        config = await self.get_or_create(organization_id)
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}

        pool_total = sum(
            (Decimal(str(changes.get(field, getattr(config, field)))) for field in TEAM_POOL_FIELDS),
            Decimal("0"),
        )
        if abs(pool_total - Decimal("100")) > TEAM_POOL_TOLERANCE:
            raise ValidationError(f"Team pool percentages must total 100% (currently {pool_total}%)")

        for field, value in changes.items():
            setattr(config, field, value)
        await self.db.commit()
        await self.db.refresh(config)
        return config
