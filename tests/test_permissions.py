import pytest

from leadcrm.core.exceptions import PermissionDeniedError
from leadcrm.core.permissions import (
    Permission,
    ROLE_PERMISSIONS,
    allowed_roles_to_create,
    can_create_user_with_role,
    can_manage_user,
    check_any_permission,
    check_permission,
    has_permission,
    is_field_role,
    is_higher_role,
    requires_manager,
    role_display_name,
    role_level,
)
from leadcrm.models.user import UserRole


def test_super_admin_holds_every_permission():
    assert all(has_permission("super_admin", p) for p in Permission)


def test_admin_carries_manager_permissions():
    assert ROLE_PERMISSIONS[UserRole.ADMIN] == ROLE_PERMISSIONS[UserRole.MANAGER]


@pytest.mark.parametrize("role,permission,expected", [
    ("manager", Permission.APPROVE_INCENTIVES, True),
    ("manager", Permission.VIEW_ALL_ORGANIZATIONS, False),
    ("staff", Permission.VIEW_ASSIGNED_LEADS, True),
    ("staff", Permission.MANAGE_TEAM, False),
    ("sales_rep", Permission.CREATE_LEADS, True),
    ("sales_rep", Permission.VIEW_ASSIGNED_LEADS, False),
    ("sales_rep", Permission.APPROVE_INCENTIVES, False),
    ("unknown", Permission.CREATE_LEADS, False),
    (None, Permission.CREATE_LEADS, False),
])
def test_has_permission(role, permission, expected):
    assert has_permission(role, permission) is expected


def test_check_permission_messages():
    with pytest.raises(PermissionDeniedError, match="User role not provided"):
        check_permission(None, Permission.CREATE_LEADS)
    with pytest.raises(PermissionDeniedError, match="Required: approve_incentives") as exc_info:
        check_permission("sales_rep", Permission.APPROVE_INCENTIVES)
    assert exc_info.value.status_code == 403
    check_permission("manager", Permission.APPROVE_INCENTIVES)


def test_check_any_permission():
    check_any_permission("staff", [Permission.MANAGE_TEAM, Permission.CREATE_LEADS])
    with pytest.raises(PermissionDeniedError):
        check_any_permission("sales_rep", [Permission.MANAGE_TEAM, Permission.SET_TARGETS])


def test_role_hierarchy():
    assert role_level("super_admin") == 4
    assert role_level("manager") == role_level("admin") == 3
    assert role_level("bogus") == 0
    assert is_higher_role("manager", "staff")
    assert not is_higher_role("staff", "manager")


def test_user_management_rules():
    assert can_manage_user("super_admin", "manager")
    assert can_manage_user("manager", "sales_rep")
    assert not can_manage_user("manager", "manager")
    assert not can_manage_user("staff", "sales_rep")

    assert allowed_roles_to_create("manager") == [UserRole.STAFF, UserRole.SALES_REP]
    assert allowed_roles_to_create("sales_rep") == []
    assert can_create_user_with_role("super_admin", "manager")
    assert not can_create_user_with_role("manager", "manager")


def test_field_roles():
    assert requires_manager("sales_rep") and requires_manager("staff")
    assert not requires_manager("manager")
    assert is_field_role("staff")
    assert not is_field_role("admin")


def test_role_display_name():
    assert role_display_name("sales_rep") == "Sales Representative"
    assert role_display_name("mystery") == "mystery"
