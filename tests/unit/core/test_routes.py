"""Tests for route-level role gating."""

from gsos.core.rbac.roles import Role
from gsos.core.rbac.routes import (
    ADMIN_ROLES,
    ALL_AUTHENTICATED,
    allowed_roles_for_route,
    can_access_route,
    find_matching_route,
    is_public_route,
)


class TestRouteMatching:

    def test_exact_match_wins(self):
        assert find_matching_route("/admin/audit-logs") == "/admin/audit-logs"

    def test_wildcard_match(self):
        assert find_matching_route("/admin/users/42") == "/admin/*"
        assert allowed_roles_for_route("/safeguarding/cases/7") == allowed_roles_for_route("/safeguarding")

    def test_parameter_match(self):
        assert find_matching_route("/invoices/inv-9") == "/invoices/:invoice_id"
        assert find_matching_route("/invoices/inv-9/lines") is None

    def test_query_string_and_trailing_slash_ignored(self):
        assert find_matching_route("/dashboard/?tab=1") == "/dashboard"

    def test_longest_pattern_first(self):
        routes = {
            "/a/*": frozenset([Role.TEACHER]),
            "/a/b/*": frozenset([Role.PARENT]),
        }
        assert allowed_roles_for_route("/a/b/c", routes) == frozenset([Role.PARENT])
        assert allowed_roles_for_route("/a/x", routes) == frozenset([Role.TEACHER])

    def test_unmatched_route_falls_back_to_all_authenticated(self):
        assert allowed_roles_for_route("/somewhere/new") == ALL_AUTHENTICATED

    def test_public_routes(self):
        assert is_public_route("/")
        assert is_public_route("/apply/track")
        assert not is_public_route("/dashboard")
        assert not is_public_route("/not-in-table")


class TestCanAccessRoute:

    def test_anonymous_only_public(self):
        assert can_access_route(None, "/apply")
        assert not can_access_route(None, "/dashboard")

    def test_role_gating(self, make_principal):
        assert can_access_route(make_principal("finance_admin"), "/finance-dashboard")
        assert not can_access_route(make_principal("teacher"), "/finance-dashboard")
        assert can_access_route(make_principal("parent"), "/invoices/inv-1")
        assert not can_access_route(make_principal("student"), "/invoices/inv-1")

    def test_admin_routes(self, make_principal):
        for role in ADMIN_ROLES:
            assert can_access_route(make_principal(role.value), "/admin/settings")
        assert not can_access_route(make_principal("teacher"), "/admin/settings")

    def test_inactive_principal_blocked(self, make_principal):
        assert not can_access_route(make_principal("school_admin", active=False), "/dashboard")
        # Public routes stay public
        assert can_access_route(make_principal("school_admin", active=False), "/about")
