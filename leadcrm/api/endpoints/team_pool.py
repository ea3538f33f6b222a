from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from leadcrm.api.deps import get_org_user, require_permission, resolve_month
from leadcrm.core.permissions import Permission
from leadcrm.core.responses import api_success
from leadcrm.db.database import get_async_db
from leadcrm.schemas.auth import CurrentUser
from leadcrm.schemas.earn import TeamPoolAction, TeamPoolCreate, TeamPoolResponse
from leadcrm.services.incentive_config_service import IncentiveConfigService
from leadcrm.services.team_pool_service import TeamPoolService, distribution_rules

router = APIRouter()


@router.get("")
async def get_team_pool(
    month: Optional[str] = Query(None, description="YYYY-MM"),
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(get_org_user),
):
    month = resolve_month(month)
    distribution = await TeamPoolService(db).get_distribution(current_user.organization_id, month)
    rules = await IncentiveConfigService(db).get_rules(current_user.organization_id)
    return api_success({
        "month": month,
        "distribution": TeamPoolResponse.model_validate(distribution) if distribution else None,
        "rules": distribution_rules(rules),
    })


@router.post("")
async def calculate_team_pool(
    payload: TeamPoolCreate,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.APPROVE_INCENTIVES)),
):
    distribution = await TeamPoolService(db).calculate(
        current_user.organization_id,
        payload.month,
        payload.total_pool_amount,
        payload.distribution_notes,
    )
    return api_success(TeamPoolResponse.model_validate(distribution), message="Team pool calculated")


@router.put("")
async def update_team_pool(
    payload: TeamPoolAction,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.APPROVE_INCENTIVES)),
):
    distribution = await TeamPoolService(db).apply_action(
        current_user.organization_id, payload.month, payload.action, current_user.user_id
    )
    message = "Team pool approved" if payload.action == "approve" else "Team pool distributed"
    return api_success(TeamPoolResponse.model_validate(distribution), message=message)
