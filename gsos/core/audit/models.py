"""Audit entry types.

An ``AuditEntryInput`` is what a caller hands to the audit logger; an
``AuditEntry`` is the immutable record the logger produces after redaction
and classification. Entries are never updated or deleted once written.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from gsos.core.access.models import (
    AccessDecision,
    DataClassification,
    ResourceDescriptor,
    STUDENT_LINKED_TYPES,
)


class AuditSeverity(str, Enum):
    """Severity levels for audit log entries."""
    DEBUG = "debug"       # Low-level debugging info
    INFO = "info"         # Standard operations
    WARNING = "warning"   # Potentially concerning actions
    ERROR = "error"       # Failed operations
    CRITICAL = "critical" # Security-relevant events (lockouts, permission denials)


STUDENT_LINKED_TYPE_NAMES = frozenset(t.value for t in STUDENT_LINKED_TYPES)


@dataclass(frozen=True)
class AuditEntryInput:
    """Raw material for one audit entry, before redaction."""
    operation: str
    resource_type: Optional[str]
    principal_id: Optional[str]
    principal_role: Optional[str]
    granted: bool
    reason: str
    resource_id: Optional[str] = None
    owner_student_id: Optional[str] = None
    ip_address: Optional[str] = None
    data_classification: Optional[DataClassification] = None
    permission: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    severity: Optional[AuditSeverity] = None

    @property
    def is_student_linked(self) -> bool:
        return (
            self.resource_type in STUDENT_LINKED_TYPE_NAMES
            or self.owner_student_id is not None
        )

    @classmethod
    def from_decision(
        cls,
        decision: AccessDecision,
        *,
        operation: str,
        resource: Optional[ResourceDescriptor] = None,
        principal_id: Optional[str] = None,
        principal_role: Optional[str] = None,
        ip_address: Optional[str] = None,
        metadata: Optional[Mapping[str, Any]] = None,
        resource_fields: Optional[Mapping[str, Any]] = None,
    ) -> "AuditEntryInput":
        """Build the audit input for one access decision.

        ``resource_fields`` carries whatever could be salvaged from a
        descriptor that failed validation.
        """
        if resource is not None:
            resource_type = resource.resource_type.value if resource.resource_type else None
            resource_id = resource.resource_id
            owner_student_id = resource.owner_student_id
        else:
            salvaged = resource_fields or {}
            resource_type = _optional_str(salvaged.get("resource_type"))
            resource_id = _optional_str(salvaged.get("resource_id"))
            owner_student_id = _optional_str(salvaged.get("owner_student_id"))

        return cls(
            operation=operation,
            resource_type=resource_type,
            resource_id=resource_id,
            owner_student_id=owner_student_id,
            principal_id=principal_id,
            principal_role=principal_role,
            granted=decision.granted,
            reason=decision.reason,
            permission=str(decision.permission) if decision.permission else None,
            ip_address=ip_address,
            metadata=dict(metadata or {}),
        )


def _optional_str(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


@dataclass(frozen=True)
class AuditEntry:
    """A redacted, classified audit record.

    ``resource_id`` holds a placeholder for student-linked resources; the
    real identifier lives only in ``subject_id``, which is written to the
    compliance sink and never to general logs.
    """
    id: str
    timestamp: str
    operation: str
    resource_type: str
    resource_id: Optional[str]
    subject_id: Optional[str]
    principal_id: Optional[str]
    principal_role: Optional[str]
    granted: bool
    reason: str
    ip_address: Optional[str]
    data_classification: DataClassification
    permission: Optional[str]
    metadata: Dict[str, Any]
    severity: AuditSeverity
    retention_days: int
    retain_until: str

    def to_compliance_record(self) -> Dict[str, Any]:
        """Flat JSON-serializable record for the durable audit store."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "operation": self.operation,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "subject_id": self.subject_id,
            "principal_id": self.principal_id,
            "principal_role": self.principal_role,
            "granted": self.granted,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "data_classification": self.data_classification.value,
            "permission": self.permission,
            "metadata": dict(self.metadata),
            "severity": self.severity.value,
            "retention_days": self.retention_days,
            "retain_until": self.retain_until,
        }

    def to_log_record(self) -> Dict[str, Any]:
        """Record for general-purpose logs: no protected subject id."""
        record = self.to_compliance_record()
        del record["subject_id"]
        return record
