"""Anonymization and GDPR data subject requests.

``ANONYMIZATION_PATTERNS`` maps a kind of identifier to a replacement
function. ``anonymize_data`` applies a field -> function rule set to a
record; the named anonymization rule sets bundle the common ones.

Data subject requests follow a small state machine:

    PENDING ──► IN_PROGRESS ──► COMPLETED
       │             │
       └─────────────┴────────► REJECTED
"""

import logging
import secrets
import time
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from gsos.core.access.models import ResourceType
from gsos.core.audit.models import AuditEntryInput, AuditSeverity
from gsos.core.exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)

AnonymizationRule = Callable[[Any], Any]


def _last4(value: Any) -> str:
    return str(value)[-4:]


def _year_only(value: Any) -> str:
    if isinstance(value, (date, datetime)):
        year = value.year
    else:
        year = datetime.fromisoformat(str(value).replace("Z", "+00:00")).year
    return f"{year}-XX-XX"


def _postcode_district(value: Any) -> str:
    return f"{str(value)[:2]}X XXX"


ANONYMIZATION_PATTERNS: Dict[str, AnonymizationRule] = {
    # Anonymous but still distinguishable identifiers
    "STUDENT_ID": lambda value: f"ANON_STUDENT_{_last4(value)}",
    "STAFF_ID": lambda value: f"ANON_STAFF_{_last4(value)}",

    # Personal identifiers
    "NAME": lambda value: "[REDACTED_NAME]",
    "EMAIL": lambda value: "[REDACTED_EMAIL]",
    "PHONE": lambda value: "[REDACTED_PHONE]",
    "ADDRESS": lambda value: "[REDACTED_ADDRESS]",

    # Statistical detail kept, identity removed
    "DATE_OF_BIRTH": _year_only,
    "POSTCODE": _postcode_district,
}

STUDENT_RECORD_RULES: Dict[str, AnonymizationRule] = {
    "student_id": ANONYMIZATION_PATTERNS["STUDENT_ID"],
    "first_name": ANONYMIZATION_PATTERNS["NAME"],
    "last_name": ANONYMIZATION_PATTERNS["NAME"],
    "email": ANONYMIZATION_PATTERNS["EMAIL"],
    "phone": ANONYMIZATION_PATTERNS["PHONE"],
    "address": ANONYMIZATION_PATTERNS["ADDRESS"],
    "date_of_birth": ANONYMIZATION_PATTERNS["DATE_OF_BIRTH"],
    "postcode": ANONYMIZATION_PATTERNS["POSTCODE"],
}

STAFF_RECORD_RULES: Dict[str, AnonymizationRule] = {
    "staff_id": ANONYMIZATION_PATTERNS["STAFF_ID"],
    "first_name": ANONYMIZATION_PATTERNS["NAME"],
    "last_name": ANONYMIZATION_PATTERNS["NAME"],
    "email": ANONYMIZATION_PATTERNS["EMAIL"],
    "phone": ANONYMIZATION_PATTERNS["PHONE"],
    "address": ANONYMIZATION_PATTERNS["ADDRESS"],
}


def anonymize_data(data: Mapping[str, Any], rules: Mapping[str, AnonymizationRule]) -> Dict[str, Any]:
    """Return a copy of ``data`` with each ruled field replaced.

    Fields absent from ``data`` or holding ``None`` are left alone, as are
    fields no rule names.
    """
    anonymized = dict(data)
    for field_name, rule in rules.items():
        if anonymized.get(field_name) is not None:
            anonymized[field_name] = rule(anonymized[field_name])
    return anonymized


class DataSubjectRequestType(str, Enum):
    """GDPR rights a data subject can exercise."""

    ACCESS = "access"
    RECTIFICATION = "rectification"
    ERASURE = "erasure"  # right to be forgotten
    RESTRICT_PROCESSING = "restrict_processing"
    DATA_PORTABILITY = "data_portability"
    OBJECT = "object"


class DataSubjectRequestStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"


VALID_STATUS_TRANSITIONS: Dict[DataSubjectRequestStatus, Tuple[DataSubjectRequestStatus, ...]] = {
    DataSubjectRequestStatus.PENDING: (DataSubjectRequestStatus.IN_PROGRESS, DataSubjectRequestStatus.REJECTED),
    DataSubjectRequestStatus.IN_PROGRESS: (DataSubjectRequestStatus.COMPLETED, DataSubjectRequestStatus.REJECTED),
}


def can_transition(from_status: DataSubjectRequestStatus, to_status: DataSubjectRequestStatus) -> bool:
    return to_status in VALID_STATUS_TRANSITIONS.get(from_status, ())


def _request_id() -> str:
    return f"dsr_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


class DataSubjectRequest(BaseModel):
    """One GDPR request about a student or staff member."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_request_id)
    request_type: DataSubjectRequestType
    data_subject_id: str = Field(..., min_length=1)
    requested_by: str = Field(..., min_length=1)
    request_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    description: str = ""
    status: DataSubjectRequestStatus = DataSubjectRequestStatus.PENDING
    data_types: List[str] = Field(default_factory=list)
    completion_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    legal_basis: Optional[str] = None

    def transition(
        self,
        to_status: DataSubjectRequestStatus,
        *,
        rejection_reason: Optional[str] = None,
    ) -> "DataSubjectRequest":
        """Return a copy moved to ``to_status``.

        Raises:
            InvalidTransitionError: if the move is not allowed from the
                current status, or a rejection has no reason.
        """
        to_status = DataSubjectRequestStatus(to_status)
        if not can_transition(self.status, to_status):
            raise InvalidTransitionError(
                f"Cannot move data subject request from {self.status.value} to {to_status.value}"
            )
        if to_status is DataSubjectRequestStatus.REJECTED and not rejection_reason:
            raise InvalidTransitionError("Rejecting a data subject request requires a reason")

        update: Dict[str, Any] = {"status": to_status}
        if to_status in (DataSubjectRequestStatus.COMPLETED, DataSubjectRequestStatus.REJECTED):
            update["completion_date"] = datetime.now(timezone.utc)
        if rejection_reason:
            update["rejection_reason"] = rejection_reason
        return self.model_copy(update=update)


def create_data_subject_request(
    request_type: DataSubjectRequestType,
    data_subject_id: str,
    requested_by: str,
    description: str,
    data_types: List[str],
    *,
    audit_logger=None,
    legal_basis: Optional[str] = None,
) -> DataSubjectRequest:
    """Open a new pending request.

    The subject id is never logged. With an ``audit_logger`` the request is
    also written to the audit trail as a student-linked write, so the
    compliance tier alone sees whose data it concerns.
    """
    request = DataSubjectRequest(
        request_type=DataSubjectRequestType(request_type),
        data_subject_id=data_subject_id,
        requested_by=requested_by,
        description=description,
        data_types=list(data_types),
        legal_basis=legal_basis,
    )

    logger.info(
        "Data subject request %s created (%s, %d data types)",
        request.id, request.request_type.value, len(request.data_types),
    )

    if audit_logger is not None:
        audit_logger.record(AuditEntryInput(
            operation=f"data_subject_request:{request.request_type.value}",
            resource_type=ResourceType.STUDENT_DATA.value,
            resource_id=data_subject_id,
            principal_id=requested_by,
            principal_role=None,
            granted=True,
            reason="data subject request created",
            metadata={"request_id": request.id, "data_types": request.data_types},
            severity=AuditSeverity.INFO,
        ))

    return request
