from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from leadcrm.api.deps import get_org_user, require_permission
from leadcrm.core.permissions import Permission
from leadcrm.core.responses import api_success
from leadcrm.db.database import get_async_db
from leadcrm.schemas.auth import CurrentUser
from leadcrm.schemas.earn import IncentiveConfigUpdate
from leadcrm.schemas.incentive import IncentiveRules
from leadcrm.services.incentive_config_service import IncentiveConfigService

router = APIRouter()


@router.get("")
async def get_incentive_config(
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(get_org_user),
):
    config = await IncentiveConfigService(db).get_or_create(current_user.organization_id)
    return api_success(IncentiveRules.model_validate(config))


@router.put("")
async def update_incentive_config(
    payload: IncentiveConfigUpdate,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.APPROVE_INCENTIVES)),
):
    config = await IncentiveConfigService(db).update(current_user.organization_id, payload)
    return api_success(IncentiveRules.model_validate(config), message="Incentive configuration updated")
