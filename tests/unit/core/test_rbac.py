"""Tests for RBAC permission system."""

import pytest

from gsos.core.rbac.permissions import (
    Permission, Domain, Action,
    PERMISSION_DEFINITIONS, ALL_PERMISSIONS, ACCESS_SENSITIVE_RECORDS,
    is_valid_permission, get_permissions_for_domain, get_all_permissions,
)
from gsos.core.rbac.checker import PermissionChecker, effective_permissions
from gsos.core.rbac.roles import (
    Role, DEFAULT_ROLES, ROLE_PERMISSIONS,
    permissions_for, role_has_permission,
)


class TestPermissionModel:
    """Test permission definitions."""

    def test_permission_string_format(self):
        perm = Permission(Domain.STUDENTS, Action.READ)
        assert str(perm) == "students:read"

    def test_permission_from_string(self):
        perm = Permission.from_string("payments:process")
        assert perm.domain == Domain.PAYMENTS
        assert perm.action == Action.PROCESS

    def test_invalid_permission_format(self):
        with pytest.raises(ValueError):
            Permission.from_string("invalid")

        with pytest.raises(ValueError):
            Permission.from_string("too:many:parts")

    def test_unknown_combination_rejected(self):
        """Domain and action exist, but not together."""
        with pytest.raises(ValueError):
            Permission.from_string("audit_logs:delete")

    def test_is_valid_permission(self):
        assert is_valid_permission("students:read")
        assert is_valid_permission("safeguarding:access_sensitive_records")
        assert not is_valid_permission("invalid:permission")
        assert not is_valid_permission("students:fly")

    def test_all_permissions_generated(self):
        all_perms = get_all_permissions()
        assert len(all_perms) == len(PERMISSION_DEFINITIONS) == len(ALL_PERMISSIONS)
        assert "payments:refund" in all_perms
        assert "audit_logs:export" in all_perms

    def test_permissions_for_domain(self):
        perms = get_permissions_for_domain(Domain.SAFEGUARDING)
        assert "safeguarding:read" in perms
        assert "safeguarding:access_sensitive_records" in perms
        assert "students:read" not in perms


class TestPermissionChecker:
    """Test PermissionChecker class."""

    def test_has_permission_exact_match(self):
        checker = PermissionChecker(["students:read", "classes:read"])
        assert checker.has_permission("students:read")
        assert checker.has_permission(Permission(Domain.CLASSES, Action.READ))
        assert not checker.has_permission("students:write")

    def test_unknown_strings_ignored(self):
        checker = PermissionChecker(["students:read", "nonsense", "students:fly"])
        assert checker.permissions == frozenset([Permission(Domain.STUDENTS, Action.READ)])
        assert not checker.has_permission("nonsense")

    def test_has_any_permission(self):
        checker = PermissionChecker(["students:read"])
        assert checker.has_any_permission(["students:read", "students:write"])
        assert not checker.has_any_permission(["payments:read", "safeguarding:read"])

    def test_has_all_permissions(self):
        checker = PermissionChecker(["students:read", "students:write", "classes:read"])
        assert checker.has_all_permissions(["students:read", "students:write"])
        assert not checker.has_all_permissions(["students:read", "students:delete"])

    def test_can_access_domain(self):
        checker = PermissionChecker(["payments:process", "payments:refund"])
        assert checker.can_access_domain(Domain.PAYMENTS, Action.REFUND)
        assert not checker.can_access_domain(Domain.PAYMENTS, Action.DELETE)

    def test_get_accessible_domains(self):
        checker = PermissionChecker(["students:read", "attendance:read", "reports:read"])
        readable = checker.get_accessible_domains(Action.READ)
        assert Domain.STUDENTS in readable
        assert Domain.ATTENDANCE in readable
        assert Domain.REPORTS in readable
        assert Domain.AUDIT_LOGS not in readable

    def test_for_principal_merges_overrides(self, make_principal):
        principal = make_principal("teacher", permissions=["payments:read"])
        checker = PermissionChecker.for_principal(principal)
        assert checker.has_permission("students:read")
        assert checker.has_permission("payments:read")

    def test_inactive_principal_has_nothing(self, make_principal):
        principal = make_principal("school_admin", active=False)
        assert effective_permissions(principal) == frozenset()
        assert not PermissionChecker.for_principal(principal).has_permission("students:read")


class TestDefaultRoles:
    """Test default role definitions."""

    def test_all_default_roles_defined(self):
        assert len(DEFAULT_ROLES) == 7
        assert set(ROLE_PERMISSIONS) == set(Role)

    def test_role_parsing_accepts_hyphens(self):
        assert Role("super-admin") is Role.SUPER_ADMIN
        assert Role("Safeguarding-Lead") is Role.SAFEGUARDING_LEAD
        with pytest.raises(ValueError):
            Role("janitor")

    def test_super_admin_has_everything(self):
        assert permissions_for(Role.SUPER_ADMIN) == ALL_PERMISSIONS

    def test_role_tables_are_frozen(self):
        for perms in ROLE_PERMISSIONS.values():
            assert isinstance(perms, frozenset)

    def test_school_admin_permissions(self):
        checker = PermissionChecker(permissions_for("school_admin"))
        assert checker.has_permission("students:delete")
        assert checker.has_permission("payments:refund")
        assert checker.has_permission("audit_logs:read")
        assert checker.has_permission("safeguarding:read")

        assert not checker.has_permission(ACCESS_SENSITIVE_RECORDS)
        assert not checker.has_permission("settings:system")
        assert not checker.has_permission("system:admin")

    def test_teacher_permissions(self):
        checker = PermissionChecker(permissions_for(Role.TEACHER))
        assert checker.has_permission("students:read")
        assert checker.has_permission("students:write")
        assert checker.has_permission("attendance:mark")
        assert checker.has_permission("behavior:incident")

        assert not checker.has_permission("students:delete")
        assert not checker.has_permission("safeguarding:read")
        assert not checker.has_permission("payments:read")

    def test_safeguarding_lead_permissions(self):
        checker = PermissionChecker(permissions_for(Role.SAFEGUARDING_LEAD))
        assert checker.has_all_permissions([
            "safeguarding:read",
            "safeguarding:write",
            "safeguarding:access_sensitive_records",
        ])
        assert not checker.has_permission("payments:read")

    def test_finance_admin_permissions(self):
        checker = PermissionChecker(permissions_for(Role.FINANCE_ADMIN))
        assert checker.has_permission("payments:process")
        assert checker.has_permission("payments:refund")
        assert not checker.has_permission("students:read")

    def test_family_roles_are_read_only(self):
        for role in (Role.PARENT, Role.STUDENT):
            for perm in permissions_for(role):
                assert perm.action == Action.READ, f"{role.value} holds {perm}"

    def test_parent_can_read_payments_student_cannot(self):
        assert role_has_permission("parent", "payments:read")
        assert not role_has_permission("student", "payments:read")

    def test_role_has_permission_tolerates_garbage(self):
        assert not role_has_permission("teacher", "not-a-permission")
        assert not role_has_permission("janitor", "students:read")
