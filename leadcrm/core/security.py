from datetime import datetime, timedelta, timezone
from typing import Optional, Any, Union, Dict
from jose import JWTError, jwt
from passlib.context import CryptContext
import logging
import re
import secrets

from leadcrm.core.config import settings

logger = logging.getLogger(__name__)

# PIN hashing
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=12
)

PHONE_PATTERN = re.compile(r"^[0-9]{10}$")
PIN_PATTERN = re.compile(r"^[0-9]{4}$")


def create_access_token(
    subject: Union[str, Any],
    expires_delta: Optional[timedelta] = None,
    additional_claims: Optional[Dict[str, Any]] = None
) -> str:
    now = datetime.now(timezone.utc)

    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {
        "exp": expire,
        "sub": str(subject),
        "iat": now,
        "nbf": now,
        "jti": secrets.token_urlsafe(32),
        "type": "access"
    }

    if additional_claims:
        to_encode.update(additional_claims)

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode an access token. Returns None for anything invalid or expired."""
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
    except JWTError as e:
        logger.info(f"JWT verification failed: {str(e)}")
        return None

    if not all(key in payload for key in ["sub", "exp", "iat", "jti"]):
        return None

    if payload.get("type") != "access":
        return None

    return payload


def hash_pin(pin: str) -> str:
    if not PIN_PATTERN.match(pin or ""):
        raise ValueError("PIN must be exactly 4 digits")
    return pwd_context.hash(pin)


def verify_pin(plain_pin: str, hashed_pin: str) -> bool:
    return pwd_context.verify(plain_pin, hashed_pin)


def generate_otp(length: int = None) -> str:
    """Numeric one-time code without a leading zero."""
    length = length or settings.OTP_LENGTH
    first = str(secrets.randbelow(9) + 1)
    rest = "".join(str(secrets.randbelow(10)) for _ in range(length - 1))
    return first + rest


def is_valid_phone(phone: Optional[str]) -> bool:
    return bool(phone) and PHONE_PATTERN.match(phone) is not None
