"""Error taxonomy for the GSOS access-control layer.

Authorization denials are never exceptions: they are returned as
``AccessDecision(granted=False)``. The classes here cover malformed input at
the boundary, audit persistence failures, and redaction failures.
"""

from typing import Optional


class GsosError(Exception):
    """Base class for access-control errors."""


class InvalidInputError(GsosError, ValueError):
    """Raised when a principal or resource cannot be built from raw input."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidPrincipalError(InvalidInputError):
    """Raised when identity claims do not describe a valid principal."""


class InvalidResourceError(InvalidInputError):
    """Raised when a resource descriptor cannot be constructed."""


class AuditPersistenceFailure(GsosError, RuntimeError):
    """Raised when a durable audit write fails for a high-classification entry.

    The triggering operation must be aborted: sensitive access is never
    allowed to complete without its audit trail.
    """

    def __init__(self, message: str, classification: str, entry_id: Optional[str] = None):
        super().__init__(message)
        self.classification = classification
        self.entry_id = entry_id


class RedactionProcessingError(GsosError):
    """Raised internally when a subtree cannot be walked safely."""


class ImmutableAuditLogError(GsosError, RuntimeError):
    """Raised when something attempts to update or delete a stored audit entry."""


class InvalidTransitionError(GsosError, ValueError):
    """Raised when a data subject request is moved to a status it cannot reach."""
