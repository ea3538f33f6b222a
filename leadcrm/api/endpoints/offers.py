from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from leadcrm.api.deps import ensure_permission, require_permission
from leadcrm.core.permissions import Permission
from leadcrm.core.responses import api_success
from leadcrm.db.database import get_async_db
from leadcrm.schemas.auth import CurrentUser
from leadcrm.schemas.lead import LeadResponse
from leadcrm.schemas.offer import OfferConvertRequest, OfferLeadCreate, OfferLeadResponse, SpinRequest
from leadcrm.services.offer_service import OfferService

logger = logging.getLogger(__name__)

router = APIRouter()


# Public: reached from the QR code / offer link, no login

@router.get("/settings/{rep_id}")
async def get_public_offer_settings(rep_id: int, db: AsyncSession = Depends(get_async_db)):
    return api_success(await OfferService(db).public_settings(rep_id))


@router.post("/lead")
async def capture_offer_lead(payload: OfferLeadCreate, db: AsyncSession = Depends(get_async_db)):
    data = await OfferService(db).capture_lead(payload)
    if data.get("already_played"):
        message = "You have already claimed your offer!"
    elif data.get("already_submitted"):
        message = "Details already submitted. Ready to spin!"
    else:
        message = "Details saved successfully!"
    return api_success(data, message=message)


@router.post("/spin")
async def spin(payload: SpinRequest, db: AsyncSession = Depends(get_async_db)):
    data = await OfferService(db).spin(payload.offer_lead_id)
    if data["already_spun"]:
        message = "You have already claimed your prize!"
    elif data["is_try_again"]:
        message = "Better luck next time!"
    else:
        message = "Congratulations! You won!"
    return api_success(data, message=message)


# Store side

@router.get("/pending")
async def pending_offer_leads(
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.CREATE_LEADS)),
):
    """Walk-ins of the caller not yet turned into leads."""
    offers = await OfferService(db).pending_for_rep(current_user.organization_id, current_user.user_id)
    return api_success([OfferLeadResponse.model_validate(o) for o in offers])


@router.post("/convert")
async def convert_offer_lead(
    payload: OfferConvertRequest,
    request: Request,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.CREATE_LEADS)),
):
    service = OfferService(db)
    offer = await service.get_org_offer_lead(current_user.organization_id, payload.offer_lead_id)
    if offer.sales_rep_id != current_user.user_id:
        ensure_permission(request, current_user, Permission.VIEW_TEAM_LEADS)

    lead = await service.convert(offer, payload)
    return api_success(LeadResponse.model_validate(lead), message="Offer converted to lead")


@router.get("/validate/{code}")
async def validate_coupon(
    code: str,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.CREATE_LEADS)),
):
    data = await OfferService(db).validate_coupon(current_user.organization_id, code)
    return api_success(data, message="Coupon is valid")


@router.patch("/validate/{code}")
async def redeem_coupon(
    code: str,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.CREATE_LEADS)),
):
    data = await OfferService(db).redeem_coupon(current_user.organization_id, current_user.user_id, code)
    return api_success(data, message="Coupon redeemed successfully!")
