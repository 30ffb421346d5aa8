"""Default role definitions for GSOS.

Defines the 7 standard roles with their permission sets:
1. Super Admin - Full platform access
2. School Admin - Full access within one school, read-only safeguarding
3. Teacher - Teaching, attendance and behaviour for their school
4. Safeguarding Lead - Child-protection records, including sensitive records
5. Finance Admin - Invoices, payments and refunds
6. Parent - Read access to their own children's records
7. Student - Read access to their own records

The table is computed once at import and is immutable afterwards.
"""

from enum import Enum
from typing import Dict, FrozenSet, Union, assert_never

from .permissions import (
    ALL_PERMISSIONS,
    PERMISSION_MATRIX,
    Action,
    Domain,
    Permission,
)


class Role(str, Enum):
    """Closed set of principal roles."""

    SUPER_ADMIN = "super_admin"
    SCHOOL_ADMIN = "school_admin"
    TEACHER = "teacher"
    SAFEGUARDING_LEAD = "safeguarding_lead"
    FINANCE_ADMIN = "finance_admin"
    PARENT = "parent"
    STUDENT = "student"

    @classmethod
    def _missing_(cls, value):
        # Identity providers spell roles "super-admin", "Teacher", ...
        if isinstance(value, str):
            normalized = value.strip().lower().replace("-", "_")
            for member in cls:
                if member.value == normalized:
                    return member
        return None


STAFF_ROLES: FrozenSet[Role] = frozenset([
    Role.SCHOOL_ADMIN,
    Role.TEACHER,
    Role.SAFEGUARDING_LEAD,
    Role.FINANCE_ADMIN,
])

FAMILY_ROLES: FrozenSet[Role] = frozenset([Role.PARENT, Role.STUDENT])

SAFEGUARDING_ROLES: FrozenSet[Role] = frozenset([
    Role.SUPER_ADMIN,
    Role.SCHOOL_ADMIN,
    Role.SAFEGUARDING_LEAD,
])

FINANCE_ROLES: FrozenSet[Role] = frozenset([
    Role.SUPER_ADMIN,
    Role.SCHOOL_ADMIN,
    Role.FINANCE_ADMIN,
])


def _build_permissions(*perms: tuple) -> FrozenSet[Permission]:
    """Build a permission set from (Domain, Action) tuples."""
    return frozenset(Permission(d, a) for d, a in perms)


def _whole_domain(*domains: Domain) -> FrozenSet[Permission]:
    """Every valid action on each of the given domains."""
    return frozenset(
        Permission(domain, action)
        for domain in domains
        for action in PERMISSION_MATRIX[domain]
    )


SCHOOL_ADMIN_PERMISSIONS = _whole_domain(
    Domain.USERS,
    Domain.STUDENTS,
    Domain.TEACHERS,
    Domain.CLASSES,
    Domain.ATTENDANCE,
    Domain.BEHAVIOR,
    Domain.ADMISSIONS,
    Domain.PAYMENTS,
    Domain.REPORTS,
) | _build_permissions(
    (Domain.SETTINGS, Action.READ),
    (Domain.SETTINGS, Action.WRITE),
    (Domain.AUDIT_LOGS, Action.READ),
    (Domain.AUDIT_LOGS, Action.EXPORT),
    # Sensitive records need an explicit grant
    (Domain.SAFEGUARDING, Action.READ),
)

TEACHER_PERMISSIONS = _build_permissions(
    # Students - their school only
    (Domain.STUDENTS, Action.READ),
    (Domain.STUDENTS, Action.WRITE),

    # Classes
    (Domain.CLASSES, Action.READ),
    (Domain.CLASSES, Action.WRITE),
    (Domain.CLASSES, Action.SCHEDULE),

    # Attendance
    (Domain.ATTENDANCE, Action.READ),
    (Domain.ATTENDANCE, Action.WRITE),
    (Domain.ATTENDANCE, Action.MARK),
    (Domain.ATTENDANCE, Action.REPORT),

    # Behaviour
    (Domain.BEHAVIOR, Action.READ),
    (Domain.BEHAVIOR, Action.WRITE),
    (Domain.BEHAVIOR, Action.INCIDENT),
    (Domain.BEHAVIOR, Action.REWARD),

    # Reporting (limited)
    (Domain.REPORTS, Action.READ),
    (Domain.REPORTS, Action.EXPORT),

    # Settings (limited)
    (Domain.SETTINGS, Action.READ),
)

SAFEGUARDING_LEAD_PERMISSIONS = _build_permissions(
    (Domain.STUDENTS, Action.READ),
    (Domain.STUDENTS, Action.WRITE),

    (Domain.SAFEGUARDING, Action.READ),
    (Domain.SAFEGUARDING, Action.WRITE),
    (Domain.SAFEGUARDING, Action.DELETE),
    (Domain.SAFEGUARDING, Action.ACCESS_SENSITIVE_RECORDS),

    (Domain.BEHAVIOR, Action.READ),
    (Domain.ATTENDANCE, Action.READ),
    (Domain.REPORTS, Action.READ),
)

FINANCE_ADMIN_PERMISSIONS = _whole_domain(Domain.PAYMENTS) | _build_permissions(
    (Domain.REPORTS, Action.READ),
    (Domain.REPORTS, Action.EXPORT),
    (Domain.SETTINGS, Action.READ),
)

PARENT_PERMISSIONS = _build_permissions(
    # Their children only (enforced by the access engine)
    (Domain.STUDENTS, Action.READ),
    (Domain.ATTENDANCE, Action.READ),
    (Domain.BEHAVIOR, Action.READ),
    (Domain.PAYMENTS, Action.READ),
    (Domain.REPORTS, Action.READ),
    (Domain.SETTINGS, Action.READ),
)

STUDENT_PERMISSIONS = _build_permissions(
    # Own data only
    (Domain.STUDENTS, Action.READ),
    (Domain.ATTENDANCE, Action.READ),
    (Domain.BEHAVIOR, Action.READ),
    (Domain.REPORTS, Action.READ),
    (Domain.SETTINGS, Action.READ),
)


def _default_permissions(role: Role) -> FrozenSet[Permission]:
    match role:
        case Role.SUPER_ADMIN:
            return ALL_PERMISSIONS
        case Role.SCHOOL_ADMIN:
            return SCHOOL_ADMIN_PERMISSIONS
        case Role.TEACHER:
            return TEACHER_PERMISSIONS
        case Role.SAFEGUARDING_LEAD:
            return SAFEGUARDING_LEAD_PERMISSIONS
        case Role.FINANCE_ADMIN:
            return FINANCE_ADMIN_PERMISSIONS
        case Role.PARENT:
            return PARENT_PERMISSIONS
        case Role.STUDENT:
            return STUDENT_PERMISSIONS
        case _:
            assert_never(role)


ROLE_PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    role: _default_permissions(role) for role in Role
}


DEFAULT_ROLES: Dict[Role, dict] = {
    Role.SUPER_ADMIN: {
        "name": "Super Admin",
        "description": "Platform-wide access across every school",
    },
    Role.SCHOOL_ADMIN: {
        "name": "School Admin",
        "description": "Manages one school; safeguarding records need an explicit grant",
    },
    Role.TEACHER: {
        "name": "Teacher",
        "description": "Students, classes, attendance and behaviour in their school",
    },
    Role.SAFEGUARDING_LEAD: {
        "name": "Designated Safeguarding Lead",
        "description": "Child-protection and welfare records, including sensitive records",
    },
    Role.FINANCE_ADMIN: {
        "name": "Finance Admin",
        "description": "Invoices, payments and refunds",
    },
    Role.PARENT: {
        "name": "Parent",
        "description": "Read access to their own children's records and invoices",
    },
    Role.STUDENT: {
        "name": "Student",
        "description": "Read access to their own records",
    },
}


def permissions_for(role: Union[Role, str]) -> FrozenSet[Permission]:
    """Get the default permission set for a role."""
    return ROLE_PERMISSIONS[Role(role)]


def role_has_permission(role: Union[Role, str], permission: Union[Permission, str]) -> bool:
    """Check if a role grants a permission by default."""
    try:
        perm = Permission.coerce(permission)
        return perm in ROLE_PERMISSIONS[Role(role)]
    except ValueError:
        return False
