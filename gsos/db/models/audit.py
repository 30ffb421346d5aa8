"""Audit log model for the GSOS compliance store.

This table is IMMUTABLE - mapper events reject UPDATE and DELETE flushes,
and an engine hook rejects bulk and Core UPDATE/DELETE statements.
All audit entries are permanent for compliance; expiry is handled by an
external retention job, never by this application.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import Boolean, Column, DateTime, Delete, Integer, JSON, String, Text, Update, event
from sqlalchemy.engine import Engine

from gsos.core.exceptions import ImmutableAuditLogError
from gsos.db.base import Base


def _parse_timestamp(value):
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


class AuditLog(Base):
    """
    Immutable audit log entry.

    Stores the compliance record of one access decision or security event,
    including the protected ``subject_id`` that general logs never see.
    """
    __tablename__ = "audit_logs"

    # Primary key
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Actor information
    principal_id = Column(String(255), nullable=True, index=True)
    principal_role = Column(String(50), nullable=True, index=True)
    ip_address = Column(String(64), nullable=True)  # already truncated

    # Decision details
    operation = Column(String(100), nullable=False, index=True)
    resource_type = Column(String(100), nullable=False, index=True)
    resource_id = Column(String(255), nullable=True)
    subject_id = Column(String(255), nullable=True, index=True)  # real student-linked id
    granted = Column(Boolean, nullable=False, index=True)
    reason = Column(Text, nullable=False)
    permission = Column(String(100), nullable=True)
    details = Column("metadata", JSON, nullable=True)  # redacted context

    # Classification and retention
    data_classification = Column(String(20), nullable=False, index=True)
    severity = Column(String(20), nullable=False, default="info", index=True)
    retention_days = Column(Integer, nullable=False)
    retain_until = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)

    def __repr__(self) -> str:
        verdict = "granted" if self.granted else "denied"
        return f"<AuditLog {self.operation} on {self.resource_type} by {self.principal_id} ({verdict})>"

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "AuditLog":
        """Build a row from a compliance record produced by the audit logger."""
        return cls(
            id=record["id"],
            created_at=_parse_timestamp(record["timestamp"]),
            operation=record["operation"],
            resource_type=record["resource_type"],
            resource_id=record.get("resource_id"),
            subject_id=record.get("subject_id"),
            principal_id=record.get("principal_id"),
            principal_role=record.get("principal_role"),
            granted=record["granted"],
            reason=record["reason"],
            permission=record.get("permission"),
            ip_address=record.get("ip_address"),
            details=record.get("metadata"),
            data_classification=record["data_classification"],
            severity=record.get("severity", "info"),
            retention_days=record["retention_days"],
            retain_until=_parse_timestamp(record["retain_until"]),
        )

    def to_record(self) -> Dict[str, Any]:
        """Inverse of ``from_record``."""
        return {
            "id": self.id,
            "timestamp": self.created_at.isoformat() if self.created_at else None,
            "operation": self.operation,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "subject_id": self.subject_id,
            "principal_id": self.principal_id,
            "principal_role": self.principal_role,
            "granted": self.granted,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "data_classification": self.data_classification,
            "permission": self.permission,
            "metadata": self.details or {},
            "severity": self.severity,
            "retention_days": self.retention_days,
            "retain_until": self.retain_until.isoformat() if self.retain_until else None,
        }


@event.listens_for(AuditLog, "before_update")
def _reject_update(mapper, connection, target):
    raise ImmutableAuditLogError(f"Audit log entries cannot be modified (id={target.id})")


@event.listens_for(AuditLog, "before_delete")
def _reject_delete(mapper, connection, target):
    raise ImmutableAuditLogError(f"Audit log entries cannot be deleted (id={target.id})")


@event.listens_for(Engine, "before_execute")
def _reject_bulk_dml(conn, clauseelement, multiparams, params, execution_options):
    """Reject UPDATE/DELETE statements against the audit table.

    Covers ORM bulk ``update(AuditLog)``/``delete(AuditLog)`` and Core
    statements, which never reach the mapper events above.
    """
    if isinstance(clauseelement, (Update, Delete)):
        table = getattr(clauseelement, "table", None)
        if getattr(table, "name", None) == AuditLog.__tablename__:
            verb = "modified" if isinstance(clauseelement, Update) else "deleted"
            raise ImmutableAuditLogError(f"Audit log entries cannot be {verb}")
