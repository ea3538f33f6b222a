from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from leadcrm.api.deps import require_permission
from leadcrm.core.permissions import Permission
from leadcrm.core.responses import api_success
from leadcrm.db.database import get_async_db
from leadcrm.schemas.auth import CurrentUser
from leadcrm.schemas.organization import OrganizationResponse, OrganizationUpdate
from leadcrm.services.organization_service import OrganizationService

router = APIRouter()


@router.get("")
async def get_organization(
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.VIEW_ORGANIZATION_SETTINGS)),
):
    organization = await OrganizationService(db).get_organization(current_user.organization_id)
    return api_success(OrganizationResponse.model_validate(organization))


@router.put("")
async def update_organization(
    payload: OrganizationUpdate,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.UPDATE_ORGANIZATION_SETTINGS)),
):
    organization = await OrganizationService(db).update_organization(current_user.organization_id, payload)
    return api_success(OrganizationResponse.model_validate(organization), message="Organization updated")
