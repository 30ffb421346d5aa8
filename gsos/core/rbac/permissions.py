"""Permission model for GSOS RBAC.

Defines all permission domains, actions, and permission combinations.
Uses a matrix approach: permissions = actions × domains.

Permission string format: "domain:action"
Examples:
  - students:read
  - payments:process
  - safeguarding:access_sensitive_records
  - audit_logs:export
"""

from enum import Enum
from typing import NamedTuple, FrozenSet, Union


class Domain(str, Enum):
    """Data domains that can be protected by permissions."""

    # People
    USERS = "users"                 # Staff and family accounts
    STUDENTS = "students"           # Student profiles and records
    TEACHERS = "teachers"           # Teacher records and assignments

    # Teaching and pastoral
    CLASSES = "classes"             # Class lists and timetables
    ATTENDANCE = "attendance"       # Registers and absence records
    BEHAVIOR = "behavior"           # Behaviour incidents and rewards
    ADMISSIONS = "admissions"       # Applications and enrolment
    SAFEGUARDING = "safeguarding"   # Child-protection and welfare records

    # Finance
    PAYMENTS = "payments"           # Invoices, payments, refunds

    # Reporting and administration
    REPORTS = "reports"             # Generated reports
    SETTINGS = "settings"           # School settings
    AUDIT_LOGS = "audit_logs"       # Compliance audit trail
    SYSTEM = "system"               # Platform-wide administration


class Action(str, Enum):
    """Actions that can be performed within a domain."""

    # Standard actions
    READ = "read"
    WRITE = "write"
    DELETE = "delete"

    # People
    INVITE = "invite"
    SUSPEND = "suspend"
    ENROLL = "enroll"
    TRANSFER = "transfer"
    ASSIGN = "assign"

    # Teaching and pastoral
    SCHEDULE = "schedule"
    MARK = "mark"
    REPORT = "report"
    INCIDENT = "incident"
    REWARD = "reward"
    REVIEW = "review"
    APPROVE = "approve"

    # Finance
    PROCESS = "process"
    REFUND = "refund"

    # Data handling
    EXPORT = "export"
    BULK_OPERATIONS = "bulk_operations"
    ACCESS_SENSITIVE_RECORDS = "access_sensitive_records"

    # Administration
    SYSTEM = "system"
    ADMIN = "admin"


class Permission(NamedTuple):
    """A permission is a combination of domain and action."""
    domain: Domain
    action: Action

    def __str__(self) -> str:
        return f"{self.domain.value}:{self.action.value}"

    @classmethod
    def from_string(cls, perm_str: str) -> "Permission":
        """Parse a permission string like 'students:read'."""
        parts = perm_str.split(":")
        if len(parts) != 2:
            raise ValueError(f"Invalid permission format: {perm_str}")
        perm = cls(Domain(parts[0]), Action(parts[1]))
        if perm.action not in PERMISSION_MATRIX.get(perm.domain, frozenset()):
            raise ValueError(f"Unknown permission: {perm_str}")
        return perm

    @classmethod
    def coerce(cls, value: Union[str, "Permission"]) -> "Permission":
        """Accept a Permission or its string form."""
        if isinstance(value, Permission):
            return value
        if isinstance(value, str):
            return cls.from_string(value)
        raise ValueError(f"Invalid permission value: {value!r}")


# Permission definitions matrix
# Maps each domain to its valid actions
PERMISSION_MATRIX: dict[Domain, FrozenSet[Action]] = {
    Domain.USERS: frozenset([
        Action.READ, Action.WRITE, Action.DELETE, Action.INVITE, Action.SUSPEND,
    ]),
    Domain.STUDENTS: frozenset([
        Action.READ, Action.WRITE, Action.DELETE, Action.ENROLL, Action.TRANSFER,
    ]),
    Domain.TEACHERS: frozenset([
        Action.READ, Action.WRITE, Action.DELETE, Action.ASSIGN,
    ]),
    Domain.CLASSES: frozenset([
        Action.READ, Action.WRITE, Action.DELETE, Action.SCHEDULE,
    ]),
    Domain.ATTENDANCE: frozenset([
        Action.READ, Action.WRITE, Action.DELETE, Action.MARK, Action.REPORT,
    ]),
    Domain.BEHAVIOR: frozenset([
        Action.READ, Action.WRITE, Action.DELETE, Action.INCIDENT, Action.REWARD,
    ]),
    Domain.ADMISSIONS: frozenset([
        Action.READ, Action.WRITE, Action.DELETE, Action.REVIEW, Action.APPROVE,
    ]),
    Domain.SAFEGUARDING: frozenset([
        Action.READ, Action.WRITE, Action.DELETE, Action.ACCESS_SENSITIVE_RECORDS,
    ]),
    Domain.PAYMENTS: frozenset([
        Action.READ, Action.WRITE, Action.DELETE, Action.PROCESS, Action.REFUND,
    ]),
    Domain.REPORTS: frozenset([
        Action.READ, Action.WRITE, Action.EXPORT, Action.SCHEDULE,
    ]),
    Domain.SETTINGS: frozenset([
        Action.READ, Action.WRITE, Action.SYSTEM,
    ]),
    Domain.AUDIT_LOGS: frozenset([
        Action.READ, Action.EXPORT,
    ]),
    Domain.SYSTEM: frozenset([
        Action.ADMIN, Action.EXPORT, Action.BULK_OPERATIONS,
    ]),
}


def _generate_permission_definitions() -> dict[str, Permission]:
    """Generate all valid permission combinations from the matrix."""
    permissions = {}
    for domain, actions in PERMISSION_MATRIX.items():
        for action in actions:
            perm = Permission(domain, action)
            permissions[str(perm)] = perm
    return permissions


# All valid permissions as a dictionary: "domain:action" -> Permission
PERMISSION_DEFINITIONS = _generate_permission_definitions()

ALL_PERMISSIONS: FrozenSet[Permission] = frozenset(PERMISSION_DEFINITIONS.values())

# Second gate for child-protection records
ACCESS_SENSITIVE_RECORDS = Permission(Domain.SAFEGUARDING, Action.ACCESS_SENSITIVE_RECORDS)


def is_valid_permission(perm_str: str) -> bool:
    """Check if a permission string is valid."""
    return perm_str in PERMISSION_DEFINITIONS


def get_permissions_for_domain(domain: Domain) -> list[str]:
    """Get all valid permission strings for a domain."""
    return [
        str(Permission(domain, action))
        for action in PERMISSION_MATRIX.get(domain, set())
    ]


def get_all_permissions() -> list[str]:
    """Get all valid permission strings."""
    return list(PERMISSION_DEFINITIONS.keys())
