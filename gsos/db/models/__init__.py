"""Database models for the GSOS audit store."""

from gsos.db.models.audit import AuditLog

__all__ = ["AuditLog"]
