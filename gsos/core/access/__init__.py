"""Access decision value types.

The engine lives in ``gsos.core.access.engine``.
"""

from .models import (
    AccessDecision,
    DataClassification,
    Operation,
    Principal,
    ResourceDescriptor,
    ResourceType,
    STUDENT_LINKED_TYPES,
)

__all__ = [
    "AccessDecision",
    "DataClassification",
    "Operation",
    "Principal",
    "ResourceDescriptor",
    "ResourceType",
    "STUDENT_LINKED_TYPES",
]
