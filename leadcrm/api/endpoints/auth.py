from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from leadcrm.api.deps import get_client_ip, get_current_user
from leadcrm.core.config import settings
from leadcrm.core.responses import api_success
from leadcrm.db.database import get_async_db
from leadcrm.schemas.auth import CurrentUser, OTPVerifyRequest, PhoneRequest
from leadcrm.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/request-otp")
async def request_otp(
    payload: PhoneRequest,
    request: Request,
    db: AsyncSession = Depends(get_async_db),
):
    record = await AuthService(db).request_otp(payload.phone, get_client_ip(request))

    data = {"phone": record.phone, "expires_at": record.expires_at}
    if settings.EXPOSE_OTP_IN_RESPONSE:
        data["otp"] = record.otp
    return api_success(data, message="OTP sent successfully")


@router.post("/verify-otp")
async def verify_otp(
    payload: OTPVerifyRequest,
    request: Request,
    db: AsyncSession = Depends(get_async_db),
):
    result = await AuthService(db).verify_otp(
        payload.phone,
        payload.otp,
        get_client_ip(request),
        request.headers.get("user-agent", ""),
    )
    if result["requires_registration"]:
        return api_success(result, message="OTP verified. Registration required")
    return api_success(result, message="Login successful")


@router.get("/me")
async def read_current_user(current_user: CurrentUser = Depends(get_current_user)):
    return api_success(current_user)
