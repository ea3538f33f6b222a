from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from leadcrm.api.deps import get_org_user
from leadcrm.core.responses import api_success
from leadcrm.db.database import get_async_db
from leadcrm.schemas.auth import CurrentUser
from leadcrm.services.incentive_calculator import calculate_streak_bonus
from leadcrm.services.incentive_config_service import IncentiveConfigService
from leadcrm.services.streak_service import StreakService
from leadcrm.utils.date_utils import utcnow

router = APIRouter()


@router.get("")
async def get_my_streak(
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(get_org_user),
):
    service = StreakService(db)
    streak = await service.get_streak(current_user.user_id)
    current = await service.current_streak_days(current_user.user_id, utcnow().date())
    rules = await IncentiveConfigService(db).get_rules(current_user.organization_id)
    bonus = calculate_streak_bonus(current, rules)

    return api_success({
        "user_id": current_user.user_id,
        "current_streak": current,
        "longest_streak": streak.longest_streak if streak else 0,
        "last_action_date": streak.last_action_date if streak else None,
        "streak_started_at": streak.streak_started_at if streak and current else None,
        "bonus_tier": bonus.bonus_tier,
        "bonus_amount": bonus.bonus_amount,
    })
