"""Security classification and redaction for GSOS.

Identifies PII and credential fields by name, scrubs sensitive content out
of free text, and produces redacted copies of arbitrary structured records.
Used both for filtering data returned to principals without elevated
clearance and for everything written to logs or the audit trail.

Redaction never mutates its input and errs toward over-redaction: a subtree
that cannot be walked safely (cycles, excessive depth, unexpected errors) is
replaced wholesale.
"""

import ipaddress
import logging
import re
from collections.abc import Mapping
from typing import Any, Iterable, List, Optional, Pattern, Tuple

from pydantic import BaseModel

from gsos.core.access.models import (
    DataClassification,
    Principal,
    ResourceType,
)
from gsos.core.exceptions import RedactionProcessingError
from gsos.core.rbac.checker import effective_permissions
from gsos.core.rbac.permissions import ACCESS_SENSITIVE_RECORDS, Permission
from gsos.core.rbac.roles import Role

logger = logging.getLogger(__name__)


PII_MARKER = "[REDACTED_PII]"
CREDENTIAL_MARKER = "[REDACTED_CREDENTIAL]"
SUBTREE_MARKER = "[REDACTED]"
IP_MARKER = "[REDACTED_IP]"

MAX_DEPTH = 64

# Field names that indicate personal data (compared without case or separators)
PII_FIELD_INDICATORS = (
    "email",
    "phone",
    "address",
    "dob",
    "dateofbirth",
    "ssn",
    "nationalid",
    "passportnumber",
    "medicalinfo",
    "bankdetails",
    "paymentinfo",
    "name",
    "parentcontact",
    "emergencycontact",
)

# Field names that indicate authentication secrets
CREDENTIAL_FIELD_INDICATORS = (
    "token",
    "password",
    "secret",
    "key",
    "authorization",
    "cookie",
)

# Keys that flag a record as safeguarding-classified
SAFEGUARDING_FLAG_KEYS = (
    "safeguarding",
    "is_safeguarding",
    "isSafeguarding",
    "safeguarding_flag",
    "safeguardingFlag",
    "safeguarding_concern",
    "safeguardingConcern",
)

# Content patterns, applied in order. Whole-token patterns come before their
# fragments (bearer header before JWT, card number before phone).
SENSITIVE_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    # Authentication tokens
    ("BEARER_TOKEN", re.compile(r"Bearer\s+[A-Za-z0-9\-._~+/]+=*")),
    ("JWT", re.compile(r"eyJ[A-Za-z0-9\-_=]+\.[A-Za-z0-9\-_=]+\.?[A-Za-z0-9\-_.+/=]*")),
    ("API_KEY", re.compile(r"(?:api[_-]?key|apikey)[\"\s:=]+[A-Za-z0-9\-._~+/]{20,}", re.IGNORECASE)),

    # Personal identifiers
    ("EMAIL", re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}")),

    # Financial information
    ("CREDIT_CARD", re.compile(r"\b(?:\d{4}[\-\s]?){3}\d{4}\b")),
    ("SSN", re.compile(r"\b\d{3}-\d{2}-\d{4}\b")),
    # Not inside a longer token, so clock times and dotted numbers survive
    ("PHONE", re.compile(
        r"(?<![\w:.+\-/])(?:\+\d{1,3}[\s.\-]?)?\(?\d{2,5}\)?[\s.\-]?\d{3,4}[\s.\-]?\d{3,4}(?![\w:+])"
    )),
    ("BANK_ACCOUNT", re.compile(r"\b\d{8,17}\b")),

    # Student identifiers
    ("STUDENT_ID", re.compile(r"(?:student[_-]?id|studentid)[\"\s:=]+[A-Za-z0-9\-]{6,}", re.IGNORECASE)),

    # Passwords and secrets
    ("PASSWORD", re.compile(r"(?:password|passwd|pwd)[\"\s:=]+[^\s\"',}]+", re.IGNORECASE)),
    ("SECRET", re.compile(r"(?:secret|key)[\"\s:=]+[A-Za-z0-9+/=]{16,}", re.IGNORECASE)),
)

# Fixed-point guard for redact_text
_MAX_TEXT_PASSES = 8


def _normalize_field_name(field_name: str) -> str:
    return re.sub(r"[\s_\-.]", "", str(field_name)).lower()


def is_sensitive_field(field_name: str) -> bool:
    """Check if a field name indicates personal data."""
    normalized = _normalize_field_name(field_name)
    return any(indicator in normalized for indicator in PII_FIELD_INDICATORS)


def is_credential_field(field_name: str) -> bool:
    """Check if a field name indicates an authentication secret."""
    normalized = _normalize_field_name(field_name)
    return any(indicator in normalized for indicator in CREDENTIAL_FIELD_INDICATORS)


def redact_text(text: str) -> str:
    """Replace sensitive spans in free text with ``[REDACTED_<KIND>]`` markers.

    Patterns are re-applied until the text stops changing, so redacting an
    already redacted string is a no-op.
    """
    redacted = text
    for _ in range(_MAX_TEXT_PASSES):
        previous = redacted
        for kind, pattern in SENSITIVE_PATTERNS:
            redacted = pattern.sub(f"[REDACTED_{kind}]", redacted)
        if redacted == previous:
            break
    return redacted


def redact_object(value: Any) -> Any:
    """Return a redacted copy of an arbitrary nested structure.

    - strings are scanned with the content patterns
    - mapping keys naming PII are replaced with ``[REDACTED_PII]``
    - mapping keys naming credentials are replaced with ``[REDACTED_CREDENTIAL]``
    - string keys are themselves scanned; two keys that redact alike are
      kept apart with a numeric suffix
    - lists and tuples are walked element by element
    - other scalars pass through unchanged
    """
    try:
        return _redact(value, depth=0, path=())
    except RedactionProcessingError:
        return SUBTREE_MARKER


def _redact(value: Any, depth: int, path: tuple) -> Any:
    if isinstance(value, str):
        return redact_text(value)
    if value is None or isinstance(value, (bool, int, float)):
        return value

    if depth >= MAX_DEPTH:
        raise RedactionProcessingError("Maximum redaction depth exceeded")

    marker = id(value)
    if marker in path:
        raise RedactionProcessingError("Circular reference")
    path = path + (marker,)

    if isinstance(value, BaseModel):
        return _redact_child(value.model_dump(mode="json"), depth, path)

    if isinstance(value, Mapping):
        redacted = {}
        for key, item in value.items():
            if is_sensitive_field(key):
                child = PII_MARKER
            elif is_credential_field(key):
                child = CREDENTIAL_MARKER
            else:
                child = _redact_child(item, depth, path)
            redacted[_redact_key(key, redacted)] = child
        return redacted

    if isinstance(value, (list, tuple, set, frozenset)):
        items = [_redact_child(item, depth, path) for item in value]
        return tuple(items) if isinstance(value, tuple) else items

    # Unknown objects: redact their text form rather than leak attributes
    return redact_text(str(value))


def _redact_key(key: Any, taken: Mapping) -> Any:
    """Scan a string key, suffixing ``_2``, ``_3``... if its redacted form is already taken."""
    if not isinstance(key, str):
        return key
    redacted = redact_text(key)
    if redacted == key or redacted not in taken:
        return redacted
    n = 2
    while f"{redacted}_{n}" in taken:
        n += 1
    return f"{redacted}_{n}"


def _redact_child(value: Any, depth: int, path: tuple) -> Any:
    """Redact one child, replacing it wholesale if it cannot be processed."""
    try:
        return _redact(value, depth + 1, path)
    except RedactionProcessingError as e:
        logger.warning("Redacting subtree wholesale: %s", e)
        return SUBTREE_MARKER
    except Exception as e:  # degrade to over-redaction, never crash
        logger.warning("Unexpected error while redacting (%s); subtree replaced", type(e).__name__)
        return SUBTREE_MARKER


def sanitize_ip(ip: Optional[str]) -> Optional[str]:
    """Truncate an IP address for logging.

    IPv4 keeps the first three octets (``203.0.113.xxx``); IPv6 keeps the
    first four groups of the exploded address (``2001:0db8:0000:0000::xxxx``).
    Anything unrecognized becomes ``[REDACTED_IP]``.
    """
    if not ip:
        return None
    try:
        address = ipaddress.ip_address(ip.strip())
    except ValueError:
        return IP_MARKER

    if isinstance(address, ipaddress.IPv4Address):
        octets = str(address).split(".")
        return f"{octets[0]}.{octets[1]}.{octets[2]}.xxx"

    groups = address.exploded.split(":")
    return f"{':'.join(groups[:4])}::xxxx"


# Base read permission per data type
READ_PERMISSIONS = {
    ResourceType.STUDENT_DATA: Permission.from_string("students:read"),
    ResourceType.SAFEGUARDING_DATA: Permission.from_string("safeguarding:read"),
    ResourceType.FINANCIAL_DATA: Permission.from_string("payments:read"),
    ResourceType.BEHAVIOUR_DATA: Permission.from_string("behavior:read"),
    ResourceType.ATTENDANCE_DATA: Permission.from_string("attendance:read"),
    ResourceType.SYSTEM_SETTING: Permission.from_string("settings:read"),
}

RESOURCE_CLASSIFICATIONS = {
    ResourceType.SAFEGUARDING_DATA: DataClassification.RESTRICTED,
    ResourceType.FINANCIAL_DATA: DataClassification.RESTRICTED,
    ResourceType.STUDENT_DATA: DataClassification.CONFIDENTIAL,
    ResourceType.BEHAVIOUR_DATA: DataClassification.CONFIDENTIAL,
    ResourceType.ATTENDANCE_DATA: DataClassification.CONFIDENTIAL,
    ResourceType.SYSTEM_SETTING: DataClassification.INTERNAL,
}


def classify_resource(resource_type: Optional[ResourceType]) -> DataClassification:
    """Default data classification for a resource type."""
    if resource_type is None:
        return DataClassification.INTERNAL
    return RESOURCE_CLASSIFICATIONS.get(resource_type, DataClassification.INTERNAL)


def is_safeguarding_record(record: Any, data_type: ResourceType) -> bool:
    if data_type is ResourceType.SAFEGUARDING_DATA:
        return True
    if isinstance(record, Mapping):
        return any(bool(record.get(key)) for key in SAFEGUARDING_FLAG_KEYS)
    return False


def filter_by_permission(
    principal: Principal,
    records: Iterable[Any],
    data_type: ResourceType,
) -> List[Any]:
    """Filter already-authorized records down to what the principal may see.

    Super admins see everything unchanged. Principals without the base read
    permission for the data type get nothing. Safeguarding-classified records
    are redacted unless the principal holds
    ``safeguarding:access_sensitive_records``.
    """
    records = list(records)
    if principal.active and principal.role is Role.SUPER_ADMIN:
        return records

    granted = effective_permissions(principal)
    if READ_PERMISSIONS[ResourceType(data_type)] not in granted:
        return []

    can_see_sensitive = ACCESS_SENSITIVE_RECORDS in granted
    return [
        record
        if can_see_sensitive or not is_safeguarding_record(record, ResourceType(data_type))
        else redact_object(record)
        for record in records
    ]


__all__ = [
    "is_sensitive_field",
    "is_credential_field",
    "redact_text",
    "redact_object",
    "sanitize_ip",
    "classify_resource",
    "filter_by_permission",
]
