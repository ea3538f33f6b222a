from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from leadcrm.api.deps import get_org_user, require_permission, resolve_month, resolve_subject_user
from leadcrm.core.permissions import Permission, is_field_role
from leadcrm.core.responses import api_success
from leadcrm.db.database import get_async_db
from leadcrm.schemas.auth import CurrentUser
from leadcrm.schemas.earn import TargetCreate, TargetResponse
from leadcrm.services.target_service import TargetService
from leadcrm.services.user_service import UserService

router = APIRouter()


@router.get("")
async def list_targets(
    request: Request,
    user_id: Optional[int] = Query(None),
    month: Optional[str] = Query(None, description="YYYY-MM"),
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(get_org_user),
):
    if user_id is None and is_field_role(current_user.role):
        user_id = current_user.user_id
    elif user_id is not None:
        user_id = resolve_subject_user(request, current_user, user_id, Permission.VIEW_TEAM_LEADS)

    targets = await TargetService(db).list_targets(
        current_user.organization_id,
        user_id=user_id,
        month=resolve_month(month) if month else None,
    )
    return api_success([TargetResponse.model_validate(t) for t in targets])


@router.post("")
async def set_target(
    payload: TargetCreate,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.SET_TARGETS)),
):
    target = await TargetService(db).set_target(
        current_user.organization_id,
        payload.user_id,
        payload.month,
        payload.target_amount,
        current_user.user_id,
    )
    return api_success(TargetResponse.model_validate(target), message="Target saved")


@router.get("/progress")
async def target_progress(
    request: Request,
    user_id: Optional[int] = Query(None),
    month: Optional[str] = Query(None, description="YYYY-MM"),
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(get_org_user),
):
    subject_id = resolve_subject_user(request, current_user, user_id, Permission.VIEW_TEAM_LEADS)
    if subject_id != current_user.user_id:
        await UserService(db).get_org_user(current_user.organization_id, subject_id)

    progress = await TargetService(db).progress(
        current_user.organization_id, subject_id, resolve_month(month)
    )
    return api_success(progress)
