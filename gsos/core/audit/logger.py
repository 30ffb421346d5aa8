"""Compliance audit logger.

Turns ``AuditEntryInput`` values into redacted, classified ``AuditEntry``
records and writes them to two tiers:

- the compliance sink (durable store) receives the full record including the
  protected ``subject_id``
- the optional log sink (general-purpose logs) receives a record where
  student-linked identifiers are replaced by a placeholder

Writes are synchronous. If the compliance write fails for an entry whose
classification requires synchronous persistence, ``AuditPersistenceFailure``
is raised and the triggering operation must be aborted. Other failures are
reported to the fallback logger.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from gsos.core.access.models import DataClassification, ResourceType
from gsos.core.audit.models import AuditEntry, AuditEntryInput, AuditSeverity
from gsos.core.audit.sinks import AuditSink
from gsos.core.config import Settings, get_settings
from gsos.core.exceptions import AuditPersistenceFailure
from gsos.core.redaction import classify_resource, redact_object, redact_text, sanitize_ip
from gsos.core.retention import calculate_retention_expiry, retention_policy_for

UNKNOWN_RESOURCE = "unknown"
SECURITY_EVENT_RESOURCE = "security_event"


class AuditLogger:
    """Records access decisions and security events."""

    def __init__(
        self,
        compliance_sink: AuditSink,
        log_sink: Optional[AuditSink] = None,
        *,
        retention_days: Optional[int] = None,
        sync_classifications: Optional[Iterable[DataClassification]] = None,
        classification_overrides: Optional[Mapping[ResourceType, DataClassification]] = None,
        placeholder: Optional[str] = None,
        fallback_logger: Optional[logging.Logger] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.compliance_sink = compliance_sink
        self.log_sink = log_sink
        # Explicit value: flat period for every entry. Otherwise the longer of
        # the audit minimum and the retention policy of the audited data.
        self.retention_days = retention_days
        self.minimum_retention_days = settings.audit_retention_days
        if sync_classifications is None:
            sync_classifications = settings.audit_sync_classifications_list
        self.sync_classifications = frozenset(
            DataClassification(c) for c in sync_classifications
        )
        self.classification_overrides = {
            ResourceType(k): DataClassification(v)
            for k, v in (classification_overrides or {}).items()
        }
        self.placeholder = placeholder or settings.redacted_resource_placeholder
        self.fallback_logger = fallback_logger or logging.getLogger("gsos.audit.fallback")

    def classify(self, entry_input: AuditEntryInput) -> DataClassification:
        """Classification for an entry; callers may only make it stricter."""
        try:
            resource_type = ResourceType(entry_input.resource_type) if entry_input.resource_type else None
        except ValueError:
            resource_type = None

        if resource_type in self.classification_overrides:
            classification = self.classification_overrides[resource_type]
        else:
            classification = classify_resource(resource_type)

        requested = entry_input.data_classification
        if requested is not None:
            requested = DataClassification(requested)
            if requested.rank > classification.rank:
                classification = requested
        return classification

    def retention_for(self, entry_input: AuditEntryInput) -> int:
        """Days an entry must be kept."""
        if self.retention_days is not None:
            return self.retention_days
        try:
            policy = retention_policy_for(entry_input.resource_type)
        except (KeyError, ValueError):
            return self.minimum_retention_days
        return max(self.minimum_retention_days, policy.retention_period_days)

    def build_entry(self, entry_input: AuditEntryInput) -> AuditEntry:
        now = datetime.now(timezone.utc)
        retention_days = self.retention_for(entry_input)
        if entry_input.is_student_linked:
            resource_id = self.placeholder
            subject_id = entry_input.resource_id
        else:
            resource_id = entry_input.resource_id
            subject_id = None

        if entry_input.severity is not None:
            severity = AuditSeverity(entry_input.severity)
        else:
            severity = AuditSeverity.INFO if entry_input.granted else AuditSeverity.CRITICAL

        return AuditEntry(
            id=str(uuid.uuid4()),
            timestamp=now.isoformat(),
            operation=entry_input.operation,
            resource_type=entry_input.resource_type or UNKNOWN_RESOURCE,
            resource_id=resource_id,
            subject_id=subject_id,
            principal_id=entry_input.principal_id,
            principal_role=entry_input.principal_role,
            granted=entry_input.granted,
            reason=redact_text(entry_input.reason),
            ip_address=sanitize_ip(entry_input.ip_address),
            data_classification=self.classify(entry_input),
            permission=entry_input.permission,
            metadata=redact_object(dict(entry_input.metadata)),
            severity=severity,
            retention_days=retention_days,
            retain_until=calculate_retention_expiry(now, retention_days).isoformat(),
        )

    def record(self, entry_input: AuditEntryInput) -> AuditEntry:
        """Write one audit entry to both tiers.

        Raises:
            AuditPersistenceFailure: if the compliance write fails and the
                entry's classification requires synchronous persistence.
        """
        entry = self.build_entry(entry_input)

        try:
            self.compliance_sink.write(entry.to_compliance_record())
        except Exception as e:
            if entry.data_classification in self.sync_classifications:
                raise AuditPersistenceFailure(
                    f"Audit entry could not be persisted: {type(e).__name__}",
                    classification=entry.data_classification.value,
                    entry_id=entry.id,
                ) from e
            self.fallback_logger.error(
                "Audit entry %s (%s) not persisted: %s",
                entry.id,
                entry.data_classification.value,
                type(e).__name__,
            )

        if self.log_sink is not None:
            try:
                self.log_sink.write(entry.to_log_record())
            except Exception as e:
                self.fallback_logger.warning(
                    "Audit log line for %s not written: %s", entry.id, type(e).__name__
                )

        return entry

    def record_security_event(
        self,
        event: str,
        severity: AuditSeverity = AuditSeverity.WARNING,
        *,
        principal_id: Optional[str] = None,
        principal_role: Optional[str] = None,
        ip_address: Optional[str] = None,
        reason: Optional[str] = None,
        **metadata: Any,
    ) -> AuditEntry:
        """Record a security event that is not an access decision (e.g. lockouts)."""
        return self.record(AuditEntryInput(
            operation=event,
            resource_type=SECURITY_EVENT_RESOURCE,
            principal_id=principal_id,
            principal_role=principal_role,
            granted=False,
            reason=reason or event,
            ip_address=ip_address,
            metadata=metadata,
            severity=AuditSeverity(severity),
        ))
