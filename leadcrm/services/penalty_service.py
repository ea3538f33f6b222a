from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from typing import List, Optional
import logging

from leadcrm.core.exceptions import NotFoundError, PermissionDeniedError, InvalidStateError, ValidationError
from leadcrm.models.penalty import Penalty, PenaltyStatus
from leadcrm.schemas.earn import PenaltyCreate
from leadcrm.services.incentive_calculator import penalty_percentage_for
from leadcrm.services.incentive_config_service import IncentiveConfigService
from leadcrm.services.user_service import UserService
from leadcrm.utils.date_utils import current_month, utcnow

logger = logging.getLogger(__name__)

# Upheld disputes come back as resolved and still count
COUNTED_STATUSES = (PenaltyStatus.ACTIVE.value, PenaltyStatus.RESOLVED.value)


class PenaltyService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_penalties(
        self,
        organization_id: int,
        user_id: Optional[int] = None,
        month: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Penalty]:
        query = select(Penalty).where(Penalty.organization_id == organization_id)
        if user_id is not None:
            query = query.where(Penalty.user_id == user_id)
        if month:
            query = query.where(Penalty.month == month)
        if status:
            query = query.where(Penalty.status == status)
        result = await self.db.execute(query.order_by(Penalty.created_at.desc(), Penalty.id.desc()))
        return result.scalars().all()

    async def counted_penalties(self, user_id: int, month: str) -> List[Penalty]:
        result = await self.db.execute(
            select(Penalty).where(and_(
                Penalty.user_id == user_id,
                Penalty.month == month,
                Penalty.status.in_(COUNTED_STATUSES),
            )).order_by(Penalty.id)
        )
        return result.scalars().all()

    async def get_penalty(self, organization_id: int, penalty_id: int) -> Penalty:
        result = await self.db.execute(
            select(Penalty).where(and_(Penalty.id == penalty_id, Penalty.organization_id == organization_id))
        )
        penalty = result.scalar_one_or_none()
        if penalty is None:
            raise NotFoundError("Penalty not found")
        return penalty

    async def create_penalty(self, organization_id: int, created_by: int, data: PenaltyCreate) -> Penalty:
        await UserService(self.db).get_org_user(organization_id, data.user_id)

        rules = await IncentiveConfigService(self.db).get_rules(organization_id)
        percentage = penalty_percentage_for(data.penalty_type, rules, data.measured_value)
        if percentage <= 0:
            raise ValidationError("Penalty does not apply: measured value meets the threshold")

        if data.incident_date is not None:
            month = data.incident_date.strftime("%Y-%m")
        else:
            month = current_month()

        penalty = Penalty(
            user_id=data.user_id,
            organization_id=organization_id,
            month=month,
            penalty_type=data.penalty_type.value,
            penalty_percentage=percentage,
            description=data.description,
            incident_date=data.incident_date,
            related_lead_id=data.related_lead_id,
            status=PenaltyStatus.ACTIVE.value,
            created_by=created_by,
        )
        self.db.add(penalty)
        await self.db.commit()
        await self.db.refresh(penalty)

        logger.info(f"Penalty {penalty.id} ({penalty.penalty_type}, {percentage}%) issued to user {data.user_id}")
        return penalty

    async def dispute(self, penalty: Penalty, user_id: int, reason: Optional[str]) -> Penalty:
        if penalty.user_id != user_id:
            raise PermissionDeniedError("You can only dispute your own penalties")
        if penalty.status != PenaltyStatus.ACTIVE.value:
            raise InvalidStateError("Only active penalties can be disputed")
        if not reason or not reason.strip():
            raise ValidationError("Dispute reason is required")

        penalty.status = PenaltyStatus.DISPUTED.value
        penalty.dispute_reason = reason.strip()
        penalty.disputed_at = utcnow()
        await self.db.commit()
        await self.db.refresh(penalty)
        return penalty

    async def resolve(
        self,
        penalty: Penalty,
        resolved_by: int,
        resolution: Optional[str],
        notes: Optional[str],
    ) -> Penalty:
        if penalty.status != PenaltyStatus.DISPUTED.value:
            raise InvalidStateError("Only disputed penalties can be resolved")
        if resolution not in ("active", "waived"):
            raise ValidationError("Resolution must be 'active' or 'waived'")

        penalty.status = PenaltyStatus.WAIVED.value if resolution == "waived" else PenaltyStatus.RESOLVED.value
        penalty.resolved_by = resolved_by
        penalty.resolved_at = utcnow()
        penalty.resolution_notes = notes
        await self.db.commit()
        await self.db.refresh(penalty)
        return penalty

    async def delete_penalty(self, organization_id: int, penalty_id: int) -> None:
        penalty = await self.get_penalty(organization_id, penalty_id)
        await self.db.delete(penalty)
        await self.db.commit()
