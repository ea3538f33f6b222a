from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from leadcrm.api.deps import require_permission
from leadcrm.core.logging import security_logger
from leadcrm.core.permissions import Permission
from leadcrm.core.responses import api_success
from leadcrm.db.database import get_async_db
from leadcrm.schemas.auth import CurrentUser
from leadcrm.schemas.organization import OrganizationCreate, OrganizationResponse
from leadcrm.schemas.user import UserResponse
from leadcrm.services.organization_service import OrganizationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/organizations")
async def list_organizations(
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.VIEW_ALL_ORGANIZATIONS, org_scoped=False)),
):
    organizations = await OrganizationService(db).list_with_counts()
    security_logger.log_data_access(str(current_user.user_id), "organizations", "list", len(organizations))
    return api_success(organizations)


@router.post("/organizations")
async def create_organization(
    payload: OrganizationCreate,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.MANAGE_ORGANIZATIONS, org_scoped=False)),
):
    created = await OrganizationService(db).create_with_manager(payload)
    return api_success(
        {
            "organization": OrganizationResponse.model_validate(created["organization"]),
            "manager": UserResponse.model_validate(created["manager"]),
        },
        message="Organization created",
    )


@router.get("/stats")
async def system_stats(
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.VIEW_SYSTEM_REPORTS, org_scoped=False)),
):
    return api_success(await OrganizationService(db).system_stats())
