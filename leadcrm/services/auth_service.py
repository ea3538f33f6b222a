from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func
from datetime import timedelta
from typing import Any, Dict
import logging

from leadcrm.core.config import settings
from leadcrm.core.exceptions import AuthenticationError, RateLimitError
from leadcrm.core.logging import security_logger
from leadcrm.core.security import create_access_token, generate_otp
from leadcrm.models.otp_verification import OTPVerification
from leadcrm.schemas.user import UserResponse
from leadcrm.services.user_service import UserService
from leadcrm.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


class AuthService:
    """Phone + OTP login. Delivery of the code is left to an outside channel."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def request_otp(self, phone: str, ip: str = "unknown") -> OTPVerification:
        now = utcnow()
        window_start = now - timedelta(minutes=settings.OTP_RATE_LIMIT_WINDOW_MINUTES)

        recent_count = (await self.db.execute(
            select(func.count(OTPVerification.id)).where(and_(
                OTPVerification.phone == phone,
                OTPVerification.created_at >= window_start,
            ))
        )).scalar() or 0

        if recent_count >= settings.OTP_RATE_LIMIT_COUNT:
            security_logger.log_otp_request(phone, ip, throttled=True)
            raise RateLimitError("Too many OTP requests. Please try again later.")

        record = OTPVerification(
            phone=phone,
            otp=generate_otp(),
            expires_at=now + timedelta(minutes=settings.OTP_EXPIRE_MINUTES),
            verified=False,
            created_at=now,
        )
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)

        security_logger.log_otp_request(phone, ip)
        if settings.DEBUG:
            logger.debug(f"Development OTP for {phone}: {record.otp}")
        return record

    async def verify_otp(self, phone: str, otp: str, ip: str = "unknown", user_agent: str = "") -> Dict[str, Any]:
        now = utcnow()
        result = await self.db.execute(
            select(OTPVerification).where(and_(
                OTPVerification.phone == phone,
                OTPVerification.otp == otp,
                OTPVerification.verified.is_(False),
                OTPVerification.expires_at > now,
            )).order_by(OTPVerification.created_at.desc(), OTPVerification.id.desc()).limit(1)
        )
        record = result.scalar_one_or_none()
        if record is None:
            security_logger.log_login_attempt(phone, False, ip, user_agent)
            raise AuthenticationError("Invalid or expired OTP")

        record.verified = True

        user = await UserService(self.db).get_user_by_phone(phone)
        if user is None:
            await self.db.commit()
            return {"requires_registration": True, "phone": phone}

        if not user.is_active:
            await self.db.commit()
            security_logger.log_login_attempt(phone, False, ip, user_agent)
            raise AuthenticationError("User account is inactive")

        user.last_login = now
        await self.db.commit()
        await self.db.refresh(user)

        token = create_access_token(
            subject=user.id,
            additional_claims={
                "role": user.role,
                "org": user.organization_id,
                "phone": user.phone,
            },
        )
        security_logger.log_login_attempt(phone, True, ip, user_agent)
        return {
            "requires_registration": False,
            "access_token": token,
            "token_type": "bearer",
            "user": UserResponse.model_validate(user),
        }
