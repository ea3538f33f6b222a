from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from leadcrm.api.deps import get_org_user, require_permission, resolve_month, resolve_subject_user
from leadcrm.core.permissions import Permission
from leadcrm.core.responses import api_success
from leadcrm.db.database import get_async_db
from leadcrm.schemas.auth import CurrentUser
from leadcrm.schemas.incentive import FinalizeRequest, IncentiveCalculateRequest, MonthlyIncentiveResponse
from leadcrm.services.incentive_service import IncentiveService, DEFAULT_HISTORY_LIMIT
from leadcrm.utils.date_utils import current_month

logger = logging.getLogger(__name__)

router = APIRouter()


def _saved(incentive) -> Optional[MonthlyIncentiveResponse]:
    return MonthlyIncentiveResponse.model_validate(incentive) if incentive is not None else None


@router.get("")
async def get_incentive(
    request: Request,
    user_id: Optional[int] = Query(None),
    month: Optional[str] = Query(None, description="YYYY-MM"),
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.VIEW_OWN_INCENTIVES)),
):
    """Live projection for (user, month) next to whatever has been saved."""
    subject_id = resolve_subject_user(request, current_user, user_id, Permission.VIEW_TEAM_LEADS)
    month = resolve_month(month)

    user, breakdown = await IncentiveService.calculate(db, current_user.organization_id, subject_id, month)
    saved = await IncentiveService.get_incentive(db, user.id, month)
    return api_success({
        "user_id": user.id,
        "user_name": user.name,
        "month": month,
        "breakdown": breakdown,
        "saved": _saved(saved),
    })


@router.post("")
async def calculate_incentive(
    payload: IncentiveCalculateRequest,
    request: Request,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.VIEW_OWN_INCENTIVES)),
):
    subject_id = resolve_subject_user(request, current_user, payload.user_id, Permission.APPROVE_INCENTIVES)
    month = resolve_month(payload.month)

    user, breakdown = await IncentiveService.calculate(db, current_user.organization_id, subject_id, month)
    incentive = await IncentiveService.save_calculation(db, user, month, breakdown)
    logger.info(f"Incentive for user {user.id} ({month}) calculated by user {current_user.user_id}")
    return api_success(
        {"breakdown": breakdown, "saved": _saved(incentive)},
        message="Incentive calculated",
    )


@router.get("/my-current")
async def my_current_incentive(
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.VIEW_OWN_INCENTIVES)),
):
    month = current_month()
    _, breakdown = await IncentiveService.calculate(
        db, current_user.organization_id, current_user.user_id, month
    )
    saved = await IncentiveService.get_incentive(db, current_user.user_id, month)
    return api_success({"month": month, "breakdown": breakdown, "saved": _saved(saved)})


@router.get("/history")
async def incentive_history(
    request: Request,
    user_id: Optional[int] = Query(None),
    limit: int = Query(DEFAULT_HISTORY_LIMIT, ge=1, le=60),
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.VIEW_OWN_INCENTIVES)),
):
    subject_id = resolve_subject_user(request, current_user, user_id, Permission.VIEW_TEAM_LEADS)
    history = await IncentiveService.history(db, current_user.organization_id, subject_id, limit)
    return api_success({
        "records": [MonthlyIncentiveResponse.model_validate(r) for r in history["records"]],
        "totals": history["totals"],
    })


@router.post("/finalize")
async def finalize_month(
    payload: FinalizeRequest,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.APPROVE_INCENTIVES)),
):
    result = await IncentiveService.finalize_month(db, current_user.organization_id, payload.month)
    return api_success(result, message=f"Finalized {result['finalized']} of {result['processed']} incentives")
