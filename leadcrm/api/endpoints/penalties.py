from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from leadcrm.api.deps import ensure_permission, get_org_user, require_permission, resolve_month
from leadcrm.core.permissions import Permission, is_field_role
from leadcrm.core.responses import api_success
from leadcrm.db.database import get_async_db
from leadcrm.models.penalty import PenaltyStatus
from leadcrm.schemas.auth import CurrentUser
from leadcrm.schemas.earn import PenaltyAction, PenaltyCreate, PenaltyResponse
from leadcrm.services.penalty_service import PenaltyService

router = APIRouter()


@router.get("")
async def list_penalties(
    user_id: Optional[int] = Query(None),
    month: Optional[str] = Query(None, description="YYYY-MM"),
    status: Optional[PenaltyStatus] = Query(None),
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(get_org_user),
):
    if is_field_role(current_user.role):
        user_id = current_user.user_id

    penalties = await PenaltyService(db).list_penalties(
        current_user.organization_id,
        user_id=user_id,
        month=resolve_month(month) if month else None,
        status=status.value if status else None,
    )
    return api_success([PenaltyResponse.model_validate(p) for p in penalties])


@router.post("")
async def create_penalty(
    payload: PenaltyCreate,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.APPROVE_INCENTIVES)),
):
    penalty = await PenaltyService(db).create_penalty(
        current_user.organization_id, current_user.user_id, payload
    )
    return api_success(PenaltyResponse.model_validate(penalty), message="Penalty created")


@router.get("/{penalty_id}")
async def get_penalty(
    penalty_id: int,
    request: Request,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(get_org_user),
):
    penalty = await PenaltyService(db).get_penalty(current_user.organization_id, penalty_id)
    if penalty.user_id != current_user.user_id:
        ensure_permission(request, current_user, Permission.VIEW_TEAM_LEADS)
    return api_success(PenaltyResponse.model_validate(penalty))


@router.put("/{penalty_id}")
async def update_penalty(
    penalty_id: int,
    payload: PenaltyAction,
    request: Request,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(get_org_user),
):
    service = PenaltyService(db)
    penalty = await service.get_penalty(current_user.organization_id, penalty_id)

    if payload.action == "dispute":
        penalty = await service.dispute(penalty, current_user.user_id, payload.dispute_reason)
        message = "Penalty disputed"
    else:
        ensure_permission(request, current_user, Permission.APPROVE_INCENTIVES)
        penalty = await service.resolve(
            penalty, current_user.user_id, payload.resolution, payload.resolution_notes
        )
        message = "Dispute resolved"

    return api_success(PenaltyResponse.model_validate(penalty), message=message)


@router.delete("/{penalty_id}")
async def delete_penalty(
    penalty_id: int,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.APPROVE_INCENTIVES)),
):
    await PenaltyService(db).delete_penalty(current_user.organization_id, penalty_id)
    return api_success({"id": penalty_id}, message="Penalty deleted")
