"""
Role based permissions.

Every mutating endpoint names the permission it needs; the role of the
caller decides whether it has it. ``admin`` is a legacy role that carries the
manager's permissions.
"""

import enum
from typing import Iterable, List, Optional

from leadcrm.core.exceptions import PermissionDeniedError
from leadcrm.models.user import UserRole


class Permission(str, enum.Enum):
    # super admin
    VIEW_ALL_ORGANIZATIONS = "view_all_organizations"
    MANAGE_ORGANIZATIONS = "manage_organizations"
    VIEW_SYSTEM_REPORTS = "view_system_reports"
    MANAGE_ALL_USERS = "manage_all_users"
    MANAGE_PERMISSIONS = "manage_permissions"
    VIEW_ALL_LEADS = "view_all_leads"
    EXPORT_SYSTEM_DATA = "export_system_data"
    # manager
    VIEW_TEAM_LEADS = "view_team_leads"
    MANAGE_TEAM = "manage_team"
    SET_TARGETS = "set_targets"
    VIEW_REPORTS = "view_reports"
    EXPORT_DATA = "export_data"
    MANAGE_CATEGORIES = "manage_categories"
    VIEW_ORGANIZATION_SETTINGS = "view_organization_settings"
    UPDATE_ORGANIZATION_SETTINGS = "update_organization_settings"
    RESET_TEAM_PINS = "reset_team_pins"
    APPROVE_INCENTIVES = "approve_incentives"
    # staff
    VIEW_ASSIGNED_LEADS = "view_assigned_leads"
    CREATE_LEADS = "create_leads"
    VIEW_OWN_REPORTS = "view_own_reports"
    UPDATE_OWN_LEADS = "update_own_leads"
    VIEW_CATEGORIES = "view_categories"
    VIEW_TARGETS = "view_targets"
    # sales rep
    VIEW_OWN_LEADS = "view_own_leads"
    VIEW_OWN_INCENTIVES = "view_own_incentives"


ROLE_HIERARCHY = {
    UserRole.SUPER_ADMIN: 4,
    UserRole.ADMIN: 3,
    UserRole.MANAGER: 3,
    UserRole.STAFF: 2,
    UserRole.SALES_REP: 1,
}

_SALES_REP = [
    Permission.CREATE_LEADS,
    Permission.VIEW_OWN_LEADS,
    Permission.UPDATE_OWN_LEADS,
    Permission.VIEW_CATEGORIES,
    Permission.VIEW_TARGETS,
    Permission.VIEW_OWN_INCENTIVES,
]

_STAFF = [
    Permission.VIEW_ASSIGNED_LEADS,
    Permission.CREATE_LEADS,
    Permission.VIEW_OWN_REPORTS,
    Permission.UPDATE_OWN_LEADS,
    Permission.VIEW_CATEGORIES,
    Permission.VIEW_TARGETS,
    Permission.VIEW_OWN_LEADS,
    Permission.VIEW_OWN_INCENTIVES,
]

_MANAGER = [
    Permission.VIEW_TEAM_LEADS,
    Permission.MANAGE_TEAM,
    Permission.SET_TARGETS,
    Permission.VIEW_REPORTS,
    Permission.EXPORT_DATA,
    Permission.MANAGE_CATEGORIES,
    Permission.VIEW_ORGANIZATION_SETTINGS,
    Permission.UPDATE_ORGANIZATION_SETTINGS,
    Permission.RESET_TEAM_PINS,
    Permission.APPROVE_INCENTIVES,
] + _STAFF

ROLE_PERMISSIONS = {
    UserRole.SUPER_ADMIN: frozenset(Permission),
    UserRole.ADMIN: frozenset(_MANAGER),
    UserRole.MANAGER: frozenset(_MANAGER),
    UserRole.STAFF: frozenset(_STAFF),
    UserRole.SALES_REP: frozenset(_SALES_REP),
}

ROLE_NAMES = {
    UserRole.SUPER_ADMIN: "Super Admin",
    UserRole.ADMIN: "Admin",
    UserRole.MANAGER: "Manager",
    UserRole.STAFF: "Staff",
    UserRole.SALES_REP: "Sales Representative",
}


def _as_role(role) -> Optional[UserRole]:
    if role is None or role == "":
        return None
    try:
        return UserRole(role)
    except ValueError:
        return None


def has_permission(role, permission: Permission) -> bool:
    role = _as_role(role)
    if role is None:
        return False
    return Permission(permission) in ROLE_PERMISSIONS[role]


def check_permission(role, permission: Permission) -> None:
    """Raise PermissionDeniedError unless ``role`` holds ``permission``."""
    if _as_role(role) is None:
        raise PermissionDeniedError("User role not provided")
    if not has_permission(role, permission):
        raise PermissionDeniedError(f"Permission denied. Required: {Permission(permission).value}")


def check_any_permission(role, permissions: Iterable[Permission]) -> None:
    permissions = list(permissions)
    if _as_role(role) is None:
        raise PermissionDeniedError("User role not provided")
    if not any(has_permission(role, p) for p in permissions):
        names = ", ".join(Permission(p).value for p in permissions)
        raise PermissionDeniedError(f"Permission denied. Required one of: {names}")


def role_level(role) -> int:
    role = _as_role(role)
    return ROLE_HIERARCHY.get(role, 0) if role else 0


def is_higher_role(role, other) -> bool:
    return role_level(role) > role_level(other)


def can_manage_user(manager_role, target_role) -> bool:
    manager_role, target_role = _as_role(manager_role), _as_role(target_role)
    if manager_role is None or target_role is None:
        return False
    if manager_role == UserRole.SUPER_ADMIN:
        return True
    if manager_role in (UserRole.MANAGER, UserRole.ADMIN):
        return target_role in (UserRole.STAFF, UserRole.SALES_REP)
    return False


def allowed_roles_to_create(creator_role) -> List[UserRole]:
    creator_role = _as_role(creator_role)
    if creator_role == UserRole.SUPER_ADMIN:
        return [UserRole.SUPER_ADMIN, UserRole.MANAGER, UserRole.STAFF, UserRole.SALES_REP]
    if creator_role in (UserRole.MANAGER, UserRole.ADMIN):
        return [UserRole.STAFF, UserRole.SALES_REP]
    return []


def can_create_user_with_role(creator_role, new_role) -> bool:
    new_role = _as_role(new_role)
    return new_role is not None and new_role in allowed_roles_to_create(creator_role)


def requires_manager(role) -> bool:
    return _as_role(role) in (UserRole.STAFF, UserRole.SALES_REP)


def is_field_role(role) -> bool:
    """Staff and sales reps only ever see their own records."""
    return requires_manager(role)


def role_display_name(role) -> str:
    parsed = _as_role(role)
    return ROLE_NAMES.get(parsed, str(role)) if parsed else str(role)
