from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from leadcrm.api.deps import require_permission
from leadcrm.core.config import settings
from leadcrm.core.permissions import Permission
from leadcrm.core.responses import api_success
from leadcrm.db.database import get_async_db
from leadcrm.schemas.auth import CurrentUser
from leadcrm.schemas.user import AssignManagerRequest, TeamMemberCreate, TeamMemberUpdate, UserResponse
from leadcrm.services.auth_service import AuthService
from leadcrm.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def list_team(
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.MANAGE_TEAM)),
):
    members = await UserService(db).list_org_users(current_user.organization_id)
    return api_success([UserResponse.model_validate(m) for m in members])


@router.post("")
async def add_team_member(
    payload: TeamMemberCreate,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.MANAGE_TEAM)),
):
    """Add a member and issue a first-login OTP."""
    user = await UserService(db).create_team_member(
        current_user.organization_id, current_user.role, payload
    )
    otp = await AuthService(db).request_otp(user.phone)

    data = {"user": UserResponse.model_validate(user), "otp_expires_at": otp.expires_at}
    if settings.EXPOSE_OTP_IN_RESPONSE:
        data["otp"] = otp.otp
    return api_success(data, message="Team member added")


@router.put("/{user_id}")
async def update_team_member(
    user_id: int,
    payload: TeamMemberUpdate,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.MANAGE_TEAM)),
):
    user = await UserService(db).update_team_member(
        current_user.organization_id, current_user.role, user_id, payload
    )
    return api_success(UserResponse.model_validate(user), message="Team member updated")


@router.post("/assign")
async def assign_manager(
    payload: AssignManagerRequest,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.MANAGE_TEAM)),
):
    user = await UserService(db).assign_manager(
        current_user.organization_id, current_user.role, payload.user_id, payload.manager_id
    )
    return api_success(UserResponse.model_validate(user), message="Manager assigned")
