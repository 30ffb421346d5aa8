"""Audit trail: entry types, sinks and the compliance logger."""

from .models import AuditEntry, AuditEntryInput, AuditSeverity
from .sinks import AuditSink, DatabaseAuditSink, InMemoryAuditSink, LoggingAuditSink
from .logger import AuditLogger

__all__ = [
    "AuditEntry",
    "AuditEntryInput",
    "AuditSeverity",
    "AuditSink",
    "DatabaseAuditSink",
    "InMemoryAuditSink",
    "LoggingAuditSink",
    "AuditLogger",
]
