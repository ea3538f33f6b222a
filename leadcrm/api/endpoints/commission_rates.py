from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leadcrm.api.deps import get_org_user, require_permission
from leadcrm.core.permissions import Permission
from leadcrm.core.responses import api_success
from leadcrm.db.database import get_async_db
from leadcrm.schemas.auth import CurrentUser
from leadcrm.schemas.earn import CommissionRateCreate, CommissionRateResponse, CommissionRateUpdate
from leadcrm.services.commission_service import CommissionService

router = APIRouter()


@router.get("")
async def list_commission_rates(
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(get_org_user),
):
    rates = await CommissionService(db).list_active(current_user.organization_id)
    return api_success([CommissionRateResponse.model_validate(r) for r in rates])


@router.post("")
async def upsert_commission_rate(
    payload: CommissionRateCreate,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.APPROVE_INCENTIVES)),
):
    rate = await CommissionService(db).upsert_rate(current_user.organization_id, payload)
    return api_success(CommissionRateResponse.model_validate(rate), message="Commission rate saved")


@router.put("")
async def update_commission_rate(
    payload: CommissionRateUpdate,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.APPROVE_INCENTIVES)),
):
    rate = await CommissionService(db).update_rate(current_user.organization_id, payload)
    return api_success(CommissionRateResponse.model_validate(rate), message="Commission rate updated")


@router.delete("")
async def delete_commission_rate(
    id: int = Query(..., description="Commission rate id"),
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.APPROVE_INCENTIVES)),
):
    rate = await CommissionService(db).deactivate_rate(current_user.organization_id, id)
    return api_success({"id": rate.id}, message="Commission rate deactivated")


@router.post("/seed")
async def seed_commission_rates(
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.APPROVE_INCENTIVES)),
):
    rates = await CommissionService(db).seed_defaults(current_user.organization_id)
    return api_success(
        [CommissionRateResponse.model_validate(r) for r in rates],
        message="Default commission rates seeded",
    )
