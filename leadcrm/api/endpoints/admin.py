from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from leadcrm.api.deps import ensure_permission, get_org_user, require_permission, resolve_month
from leadcrm.core.logging import security_logger
from leadcrm.core.permissions import Permission
from leadcrm.core.responses import api_success
from leadcrm.db.database import get_async_db
from leadcrm.models.lead import LeadStatus
from leadcrm.schemas.auth import CurrentUser
from leadcrm.schemas.lead import LeadResponse, ReviewStatusUpdate
from leadcrm.schemas.offer import OfferSettingsUpdate
from leadcrm.services.lead_service import LeadService
from leadcrm.services.offer_service import OfferService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/leads")
async def list_organization_leads(
    status: Optional[LeadStatus] = Query(None, description="win or lost"),
    month: Optional[str] = Query(None, description="YYYY-MM"),
    sales_rep_id: Optional[int] = Query(None, description="Sales rep"),
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.VIEW_TEAM_LEADS)),
):
    leads = await LeadService(db).list_leads(
        current_user.organization_id,
        sales_rep_id=sales_rep_id,
        status=status.value if status else None,
        month=resolve_month(month) if month else None,
    )
    security_logger.log_data_access(str(current_user.user_id), "leads", "list", len(leads))
    return api_success([LeadResponse.model_validate(lead) for lead in leads])


@router.patch("/leads/{lead_id}/review-status")
async def update_review_status(
    lead_id: int,
    payload: ReviewStatusUpdate,
    request: Request,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(get_org_user),
):
    service = LeadService(db)
    lead = await service.get_lead(current_user.organization_id, lead_id)
    if lead.sales_rep_id == current_user.user_id:
        ensure_permission(request, current_user, Permission.UPDATE_OWN_LEADS)
    else:
        ensure_permission(request, current_user, Permission.VIEW_TEAM_LEADS)

    lead = await service.update_review_status(lead, payload.review_status.value)
    return api_success(LeadResponse.model_validate(lead), message="Review status updated")


@router.delete("/leads/{lead_id}")
async def delete_lead(
    lead_id: int,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.MANAGE_TEAM)),
):
    await LeadService(db).delete_lead(current_user.organization_id, lead_id)
    return api_success({"id": lead_id}, message="Lead deleted")


@router.get("/offer-settings")
async def get_offer_settings(
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.VIEW_ORGANIZATION_SETTINGS)),
):
    return api_success(await OfferService(db).get_settings(current_user.organization_id))


@router.put("/offer-settings")
async def update_offer_settings(
    payload: OfferSettingsUpdate,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.UPDATE_ORGANIZATION_SETTINGS)),
):
    data = await OfferService(db).update_settings(current_user.organization_id, payload)
    return api_success(data, message="Offer settings updated successfully")
