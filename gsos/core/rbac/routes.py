"""Route-level role gating.

Maps front-end/API route patterns to the roles allowed to reach them.
Patterns may be exact (``/admin``), wildcard (``/admin/*``) or carry path
parameters (``/students/:student_id``). An empty role set marks a public
route.

When no pattern matches, every authenticated role is allowed. This is the
most permissive point of the authorization model and is kept as-is so that
routes outside this table keep working; narrowing it is a policy decision.
"""

import re
from functools import lru_cache
from typing import Dict, FrozenSet, Optional, Pattern

from .roles import FINANCE_ROLES, Role, SAFEGUARDING_ROLES


ADMIN_ROLES: FrozenSet[Role] = frozenset([Role.SUPER_ADMIN, Role.SCHOOL_ADMIN])
ALL_AUTHENTICATED: FrozenSet[Role] = frozenset(Role)
PUBLIC: FrozenSet[Role] = frozenset()


DEFAULT_ROUTE_PERMISSIONS: Dict[str, FrozenSet[Role]] = {
    # Public routes (no authentication required)
    "/": PUBLIC,
    "/about": PUBLIC,
    "/contact": PUBLIC,
    "/apply": PUBLIC,
    "/apply/track": PUBLIC,
    "/auth/signin": PUBLIC,
    "/auth/signup": PUBLIC,
    "/auth/forgot-password": PUBLIC,
    "/auth/reset-password": PUBLIC,

    # Admin routes
    "/admin": ADMIN_ROLES,
    "/admin/*": ADMIN_ROLES,
    "/admin/audit-logs": ADMIN_ROLES,
    "/admissions": ADMIN_ROLES,
    "/admissions/*": ADMIN_ROLES,

    # Finance routes
    "/finance-dashboard": FINANCE_ROLES,
    "/invoices": FINANCE_ROLES | {Role.PARENT},
    "/invoices/:invoice_id": FINANCE_ROLES | {Role.PARENT},
    "/payments": FINANCE_ROLES,
    "/payments/*": FINANCE_ROLES,

    # Safeguarding routes
    "/safeguarding": SAFEGUARDING_ROLES,
    "/safeguarding/*": SAFEGUARDING_ROLES,

    # Teacher routes
    "/teacher": ADMIN_ROLES | {Role.TEACHER},
    "/teacher/*": ADMIN_ROLES | {Role.TEACHER},
    "/attendance": ADMIN_ROLES | {Role.TEACHER, Role.SAFEGUARDING_LEAD},
    "/students": ADMIN_ROLES | {Role.TEACHER, Role.SAFEGUARDING_LEAD},
    "/students/:student_id": ALL_AUTHENTICATED - {Role.FINANCE_ADMIN},

    # Parent routes
    "/parent": ADMIN_ROLES | {Role.PARENT},
    "/parent/*": ADMIN_ROLES | {Role.PARENT},

    # Student routes
    "/student": ADMIN_ROLES | {Role.STUDENT},
    "/student/*": ADMIN_ROLES | {Role.STUDENT},

    # Shared authenticated routes
    "/dashboard": ALL_AUTHENTICATED,
    "/profile": ALL_AUTHENTICATED,
    "/settings": ALL_AUTHENTICATED,
    "/help": ALL_AUTHENTICATED,
}


@lru_cache(maxsize=None)
def _compile(pattern: str) -> Pattern[str]:
    regex = re.escape(pattern).replace(r"\*", ".*")
    regex = re.sub(r":[A-Za-z_][A-Za-z0-9_]*", "[^/]+", regex)
    return re.compile(f"^{regex}$")


def _is_dynamic(pattern: str) -> bool:
    return "*" in pattern or ":" in pattern


def find_matching_route(
    path: str,
    routes: Optional[Dict[str, FrozenSet[Role]]] = None,
) -> Optional[str]:
    """Find the most specific route pattern for a path.

    Exact matches win; otherwise dynamic patterns are tried longest first.
    """
    routes = DEFAULT_ROUTE_PERMISSIONS if routes is None else routes
    normalized = path.split("?", 1)[0]
    if len(normalized) > 1:
        normalized = normalized.rstrip("/")

    if normalized in routes:
        return normalized

    dynamic = sorted(
        (p for p in routes if _is_dynamic(p)),
        key=len,
        reverse=True,
    )
    for pattern in dynamic:
        if _compile(pattern).match(normalized):
            return pattern
    return None


def allowed_roles_for_route(
    path: str,
    routes: Optional[Dict[str, FrozenSet[Role]]] = None,
) -> FrozenSet[Role]:
    """Get the roles allowed to reach a route.

    Falls back to every authenticated role when nothing matches.
    """
    routes = DEFAULT_ROUTE_PERMISSIONS if routes is None else routes
    pattern = find_matching_route(path, routes)
    if pattern is None:
        return ALL_AUTHENTICATED
    return routes[pattern]


def is_public_route(path: str, routes: Optional[Dict[str, FrozenSet[Role]]] = None) -> bool:
    routes = DEFAULT_ROUTE_PERMISSIONS if routes is None else routes
    pattern = find_matching_route(path, routes)
    return pattern is not None and not routes[pattern]


def can_access_route(principal, path: str, routes: Optional[Dict[str, FrozenSet[Role]]] = None) -> bool:
    """Check if a principal (or an anonymous caller, ``None``) may reach a route."""
    if is_public_route(path, routes):
        return True
    if principal is None or not principal.active:
        return False
    return principal.role in allowed_roles_for_route(path, routes)
