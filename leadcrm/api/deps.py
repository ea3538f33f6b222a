from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional

from leadcrm.core.exceptions import AuthenticationError, PermissionDeniedError, ValidationError
from leadcrm.core.logging import security_logger
from leadcrm.core.permissions import Permission, check_any_permission, check_permission
from leadcrm.core.security import verify_token
from leadcrm.models.user import UserRole
from leadcrm.schemas.auth import CurrentUser
from leadcrm.utils.date_utils import current_month, is_valid_month

security = HTTPBearer(auto_error=False)

VALID_ROLES = {role.value for role in UserRole}


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _user_from_token(request: Request, token: str) -> CurrentUser:
    payload = verify_token(token)
    if payload is None:
        security_logger.log_suspicious_activity(
            "invalid_token_access",
            {"token_length": len(token)},
            get_client_ip(request)
        )
        raise AuthenticationError("Invalid or expired token")

    user_id = _parse_int(payload.get("sub"))
    role = payload.get("role")
    if user_id is None or role not in VALID_ROLES:
        raise AuthenticationError("Invalid or expired token")

    return CurrentUser(
        user_id=user_id,
        role=role,
        organization_id=_parse_int(str(payload["org"])) if payload.get("org") is not None else None,
        phone=payload.get("phone"),
    )


def _user_from_headers(request: Request) -> Optional[CurrentUser]:
    """Identity injected by the gateway in front of the API."""
    raw_user_id = request.headers.get("x-user-id")
    role = request.headers.get("x-user-role")
    if not raw_user_id and not role:
        return None

    user_id = _parse_int(raw_user_id)
    if user_id is None or role not in VALID_ROLES:
        security_logger.log_suspicious_activity(
            "invalid_identity_headers",
            {"user_id": raw_user_id, "role": role},
            get_client_ip(request)
        )
        raise AuthenticationError("Unauthorized")

    raw_org = request.headers.get("x-organization-id")
    organization_id = _parse_int(raw_org)
    if raw_org and organization_id is None:
        raise AuthenticationError("Unauthorized")

    return CurrentUser(
        user_id=user_id,
        role=role,
        organization_id=organization_id,
        phone=request.headers.get("x-user-phone"),
    )


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    """Bearer token first, then gateway headers."""
    if credentials is not None and credentials.credentials:
        return _user_from_token(request, credentials.credentials)

    user = _user_from_headers(request)
    if user is None:
        raise AuthenticationError("Unauthorized")
    return user


async def get_org_user(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Caller that must belong to an organisation."""
    if current_user.organization_id is None:
        raise ValidationError("Organization not found for user")
    return current_user


def require_permission(permission: Permission, org_scoped: bool = True):
    """Dependency factory: the caller's role must hold ``permission``."""
    base = get_org_user if org_scoped else get_current_user

    def permission_checker(
        request: Request,
        current_user: CurrentUser = Depends(base)
    ) -> CurrentUser:
        ensure_permission(request, current_user, permission)
        return current_user
    return permission_checker


def require_any_permission(*permissions: Permission, org_scoped: bool = True):
    """Dependency factory: the caller's role must hold one of ``permissions``."""
    base = get_org_user if org_scoped else get_current_user

    def permission_checker(
        request: Request,
        current_user: CurrentUser = Depends(base)
    ) -> CurrentUser:
        try:
            check_any_permission(current_user.role, permissions)
        except PermissionDeniedError:
            _log_denied(request, current_user, " | ".join(p.value for p in permissions))
            raise
        return current_user
    return permission_checker


def ensure_permission(request: Request, current_user: CurrentUser, permission: Permission) -> None:
    """In-handler variant for checks that depend on the request body."""
    try:
        check_permission(current_user.role, permission)
    except PermissionDeniedError:
        _log_denied(request, current_user, permission.value)
        raise


def _log_denied(request: Request, current_user: CurrentUser, required: str) -> None:
    security_logger.log_permission_denied(
        str(current_user.user_id),
        request.url.path,
        f"required: {required}, role: {current_user.role}",
        get_client_ip(request)
    )


def get_client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"


def resolve_month(month: Optional[str]) -> str:
    """Query ``month`` or the current month."""
    if not month:
        return current_month()
    if not is_valid_month(month):
        raise ValidationError("Invalid month format. Use YYYY-MM")
    return month


def resolve_subject_user(
    request: Request,
    current_user: CurrentUser,
    user_id: Optional[int],
    permission: Permission,
) -> int:
    """Target user of a request; acting on someone else needs ``permission``."""
    if user_id is None or user_id == current_user.user_id:
        return current_user.user_id
    ensure_permission(request, current_user, permission)
    return user_id
