"""Access decision engine.

``evaluate_access`` is the pure decision function: given a principal, a
resource descriptor and an operation it returns an ``AccessDecision`` and
never raises. ``AccessDecisionEngine`` wraps it and records exactly one
audit entry per call, denials included.

Evaluation order:
1. malformed input is denied
2. inactive principals are denied
3. super admins are allowed
4. the role (defaults plus overrides) must hold the domain permission for
   the resource type and operation; safeguarding data is gated by role first
5. resource-type refinements (family ownership, school scope, the
   sensitive-records gate for safeguarding, finance roles for financial data)
"""

import logging
from typing import Any, Mapping, Optional, Union, assert_never

from gsos.core.access.models import (
    AccessDecision,
    Operation,
    Principal,
    ResourceDescriptor,
    ResourceType,
)
from gsos.core.audit.logger import AuditLogger
from gsos.core.audit.models import AuditEntryInput
from gsos.core.exceptions import InvalidResourceError
from gsos.core.rbac.checker import effective_permissions
from gsos.core.rbac.permissions import ACCESS_SENSITIVE_RECORDS, Action, Domain, Permission
from gsos.core.rbac.roles import FINANCE_ROLES, SAFEGUARDING_ROLES, STAFF_ROLES, Role

logger = logging.getLogger(__name__)


INVALID_PRINCIPAL = "invalid principal"
INVALID_RESOURCE = "invalid resource descriptor"
INVALID_OPERATION = "invalid operation"
INACTIVE_PRINCIPAL = "inactive principal"
SUPER_ADMIN_OVERRIDE = "super-admin override"
ACCESS_GRANTED = "access granted"
INSUFFICIENT_PERMISSION = "insufficient role permission"

_OPERATION_ACTIONS = {
    Operation.READ: Action.READ,
    Operation.WRITE: Action.WRITE,
    Operation.DELETE: Action.DELETE,
}


def required_permission(resource_type: ResourceType, operation: Operation) -> Permission:
    """The domain permission an operation on a resource type needs."""
    action = _OPERATION_ACTIONS[operation]
    match resource_type:
        case ResourceType.STUDENT_DATA:
            return Permission(Domain.STUDENTS, action)
        case ResourceType.SAFEGUARDING_DATA:
            return Permission(Domain.SAFEGUARDING, action)
        case ResourceType.FINANCIAL_DATA:
            return Permission(Domain.PAYMENTS, action)
        case ResourceType.BEHAVIOUR_DATA:
            return Permission(Domain.BEHAVIOR, action)
        case ResourceType.ATTENDANCE_DATA:
            return Permission(Domain.ATTENDANCE, action)
        case ResourceType.SYSTEM_SETTING:
            # Deleting settings is a system-level change
            if operation is Operation.DELETE:
                return Permission(Domain.SETTINGS, Action.SYSTEM)
            return Permission(Domain.SETTINGS, action)
        case _:
            assert_never(resource_type)


def _deny(reason: str, permission: Optional[Permission] = None) -> AccessDecision:
    return AccessDecision(granted=False, reason=reason, permission=permission)


def _parse_operation(operation) -> Optional[Operation]:
    try:
        return Operation(operation)
    except (ValueError, TypeError):
        return None


def _parse_resource(resource) -> Optional[ResourceDescriptor]:
    if isinstance(resource, ResourceDescriptor):
        return resource
    try:
        return ResourceDescriptor.from_mapping(resource)
    except InvalidResourceError:
        return None


def _school_scope(principal: Principal, resource: ResourceDescriptor) -> Optional[str]:
    """Staff may only touch resources of their own school."""
    if principal.role in STAFF_ROLES and resource.school_id is not None:
        if principal.school_id != resource.school_id:
            return "resource belongs to another school"
    return None


def _family_scope(
    principal: Principal,
    resource: ResourceDescriptor,
    operation: Operation,
    label: str,
) -> Optional[str]:
    """Parents and students: read only, and only their own child or self."""
    match principal.role:
        case Role.PARENT:
            if operation is not Operation.READ:
                return f"parents may only read {label}"
            if resource.owner_student_id is None or resource.owner_student_id not in principal.guardian_of:
                return f"parent is not a guardian of the student owning this {label}"
        case Role.STUDENT:
            if operation is not Operation.READ:
                return f"students may only read {label}"
            if resource.owner_student_id is None or resource.owner_student_id != principal.student_id:
                return f"students may only access their own {label}"
    return None


def _refine(
    principal: Principal,
    resource: ResourceDescriptor,
    operation: Operation,
    granted,
) -> Optional[str]:
    """Resource-type specific checks; returns a denial reason or None."""
    match resource.resource_type:
        case ResourceType.STUDENT_DATA | ResourceType.BEHAVIOUR_DATA | ResourceType.ATTENDANCE_DATA:
            label = resource.resource_type.value.replace("_", " ")
            if principal.role in (Role.PARENT, Role.STUDENT):
                return _family_scope(principal, resource, operation, label)
            return _school_scope(principal, resource)
        case ResourceType.SAFEGUARDING_DATA:
            if ACCESS_SENSITIVE_RECORDS not in granted:
                return f"safeguarding data requires {ACCESS_SENSITIVE_RECORDS}"
            return _school_scope(principal, resource)
        case ResourceType.FINANCIAL_DATA:
            if principal.role is Role.PARENT:
                return _family_scope(principal, resource, operation, "financial data")
            if principal.role not in FINANCE_ROLES:
                return "financial data restricted to finance roles"
            return _school_scope(principal, resource)
        case ResourceType.SYSTEM_SETTING:
            return _school_scope(principal, resource)
        case _:
            assert_never(resource.resource_type)


def evaluate_access(
    principal: Principal,
    resource: Union[ResourceDescriptor, Mapping[str, Any]],
    operation: Union[Operation, str],
) -> AccessDecision:
    """Decide whether a principal may perform an operation on a resource.

    Malformed input is denied rather than raised.
    """
    if not isinstance(principal, Principal):
        return _deny(INVALID_PRINCIPAL)

    op = _parse_operation(operation)
    if op is None:
        return _deny(INVALID_OPERATION)

    descriptor = _parse_resource(resource)
    if descriptor is None or descriptor.resource_type is None:
        return _deny(INVALID_RESOURCE)

    if not principal.active:
        return _deny(INACTIVE_PRINCIPAL)

    if principal.role is Role.SUPER_ADMIN:
        return AccessDecision(granted=True, reason=SUPER_ADMIN_OVERRIDE)

    permission = required_permission(descriptor.resource_type, op)
    granted = effective_permissions(principal)

    if descriptor.resource_type is ResourceType.SAFEGUARDING_DATA:
        # Role gate: an explicit sensitive-records grant is the only way in for other roles
        if principal.role not in SAFEGUARDING_ROLES and ACCESS_SENSITIVE_RECORDS not in principal.permissions:
            return _deny("safeguarding data restricted to safeguarding roles", permission)

    if permission not in granted:
        return _deny(f"{INSUFFICIENT_PERMISSION}: {permission}", permission)

    refusal = _refine(principal, descriptor, op, granted)
    if refusal is not None:
        return _deny(refusal, permission)

    return AccessDecision(granted=True, reason=ACCESS_GRANTED, permission=permission)


_SALVAGE_ALIASES = {
    "resource_type": ("resource_type", "type", "resourceType"),
    "resource_id": ("resource_id", "resourceId", "id"),
    "owner_student_id": ("owner_student_id", "ownerStudentId", "student_id", "studentId"),
}


def _salvage_resource_fields(resource) -> dict:
    """Best-effort identifiers from a descriptor that failed validation."""
    if not isinstance(resource, Mapping):
        return {}
    salvaged = {}
    for name, aliases in _SALVAGE_ALIASES.items():
        for alias in aliases:
            if resource.get(alias) is not None:
                salvaged[name] = resource[alias]
                break
    return salvaged


class AccessDecisionEngine:
    """Evaluates access and writes one audit entry per decision."""

    def __init__(self, audit_logger: AuditLogger):
        self.audit_logger = audit_logger

    def decide(
        self,
        principal: Principal,
        resource: Union[ResourceDescriptor, Mapping[str, Any]],
        operation: Union[Operation, str],
        *,
        ip_address: Optional[str] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> AccessDecision:
        """Decide and audit.

        Raises:
            AuditPersistenceFailure: if the audit entry for a sensitive
                resource cannot be persisted. The operation must not proceed.
        """
        decision = evaluate_access(principal, resource, operation)

        descriptor = _parse_resource(resource)
        op = _parse_operation(operation)
        is_principal = isinstance(principal, Principal)

        if not decision.granted:
            logger.debug("Access denied: %s", decision.reason)

        self.audit_logger.record(AuditEntryInput.from_decision(
            decision,
            operation=op.value if op else str(operation),
            resource=descriptor,
            resource_fields=None if descriptor else _salvage_resource_fields(resource),
            principal_id=principal.id if is_principal else None,
            principal_role=principal.role.value if is_principal else None,
            ip_address=ip_address,
            metadata=metadata,
        ))
        return decision
