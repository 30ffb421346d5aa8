"""Append-only destinations for audit records.

A sink accepts flat, JSON-serializable records and offers no update or
delete operation. Write failures propagate to the audit logger, which
decides whether they are fatal for the triggering request.
"""

import json
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gsos.core.redaction import redact_text
from gsos.db.models.audit import AuditLog

logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    def write(self, record: Dict[str, Any]) -> None:
        ...


class InMemoryAuditSink:
    """Thread-safe in-process store, queryable by the audit-log viewer."""

    def __init__(self):
        self._records: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def write(self, record: Dict[str, Any]) -> None:
        with self._lock:
            self._records.append(dict(record))

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    @property
    def records(self) -> List[Dict[str, Any]]:
        """Snapshot of stored records, oldest first."""
        with self._lock:
            return [dict(r) for r in self._records]

    def query(
        self,
        *,
        principal_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        granted: Optional[bool] = None,
        data_classification: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Stored records matching every given filter, newest first."""
        results = self._matching(principal_id, resource_type, granted, data_classification)
        end = None if limit is None else offset + limit
        return results[offset:end]

    def count(
        self,
        *,
        principal_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        granted: Optional[bool] = None,
        data_classification: Optional[str] = None,
    ) -> int:
        return len(self._matching(principal_id, resource_type, granted, data_classification))

    def get(self, entry_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            for record in self._records:
                if record.get("id") == entry_id:
                    return dict(record)
        return None

    def _matching(self, principal_id, resource_type, granted, data_classification):
        results = []
        for record in reversed(self.records):
            if principal_id is not None and record.get("principal_id") != principal_id:
                continue
            if resource_type is not None and record.get("resource_type") != resource_type:
                continue
            if granted is not None and record.get("granted") is not granted:
                continue
            if data_classification is not None and record.get("data_classification") != data_classification:
                continue
            results.append(record)
        return results


# Audit severity -> stdlib logging level
_SEVERITY_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class LoggingAuditSink:
    """Writes each record as one JSON line through stdlib logging.

    String fields are scanned here, and the line is flagged ``preredacted``
    so a ``RedactingFormatter`` does not scan the JSON a second time.
    """

    def __init__(self, logger_name: str = "gsos.audit"):
        self.logger = logging.getLogger(logger_name)

    def write(self, record: Dict[str, Any]) -> None:
        level = _SEVERITY_LEVELS.get(str(record.get("severity", "info")), logging.INFO)
        scanned = {k: redact_text(v) if isinstance(v, str) else v for k, v in record.items()}
        self.logger.log(
            level, json.dumps(scanned, default=str, sort_keys=True), extra={"preredacted": True}
        )


class DatabaseAuditSink:
    """Inserts records into the immutable ``audit_logs`` table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def write(self, record: Dict[str, Any]) -> None:
        db = self.session_factory()
        try:
            db.add(AuditLog.from_record(record))
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to persist audit entry %s", record.get("id"))
            raise
        finally:
            db.close()

    def query(
        self,
        *,
        principal_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        granted: Optional[bool] = None,
        data_classification: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Stored records matching every given filter, newest first."""
        db = self.session_factory()
        try:
            query = self._filtered(db, principal_id, resource_type, granted, data_classification)
            query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            if offset:
                query = query.offset(offset)
            if limit is not None:
                query = query.limit(limit)
            return [log.to_record() for log in query.all()]
        finally:
            db.close()

    def count(
        self,
        *,
        principal_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        granted: Optional[bool] = None,
        data_classification: Optional[str] = None,
    ) -> int:
        db = self.session_factory()
        try:
            return self._filtered(db, principal_id, resource_type, granted, data_classification).count()
        finally:
            db.close()

    def get(self, entry_id: str) -> Optional[Dict[str, Any]]:
        db = self.session_factory()
        try:
            log = db.get(AuditLog, entry_id)
            return log.to_record() if log is not None else None
        finally:
            db.close()

    @staticmethod
    def _filtered(db: Session, principal_id, resource_type, granted, data_classification):
        query = db.query(AuditLog)
        if principal_id is not None:
            query = query.filter(AuditLog.principal_id == principal_id)
        if resource_type is not None:
            query = query.filter(AuditLog.resource_type == resource_type)
        if granted is not None:
            query = query.filter(AuditLog.granted == granted)
        if data_classification is not None:
            query = query.filter(AuditLog.data_classification == data_classification)
        return query
