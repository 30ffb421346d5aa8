"""Data retention policies.

Retention periods for each category of school data, and helpers for working
out when a record may be archived or becomes eligible for deletion. Deletion
itself is performed elsewhere; audit entries only carry their ``retain_until``
date computed from these policies.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Optional

from gsos.core.access.models import ResourceType


YEAR = 365

# Retention periods in days
RETENTION_PERIODS: Dict[str, Dict[str, int]] = {
    "student_records": {
        "active_student": YEAR * 7,  # after leaving
        "graduated_student": YEAR * 25,  # academic records
        "withdrawn_student": YEAR * 7,
    },
    "safeguarding": {
        "child_protection_records": YEAR * 25,
        "incident_reports": YEAR * 7,
        "welfare_concerns": YEAR * 7,
    },
    "financial": {
        "invoices": YEAR * 6,  # tax
        "payments": YEAR * 6,
        "financial_reports": YEAR * 6,
    },
    "operational": {
        "attendance_records": YEAR * 3,
        "behaviour_logs": YEAR * 3,
        "communication_logs": YEAR * 1,
        "system_logs": 90,
        "audit_logs": YEAR * 7,
    },
    "temporary": {
        "session_data": 1,
        "cache_data": 7,
        "temp_files": 30,
        "backup_files": YEAR,
    },
}


class RetentionClass(str, Enum):
    """Data classes for retention purposes."""
    PERSONAL_DATA = "personal_data"
    SENSITIVE_PERSONAL_DATA = "sensitive_personal_data"
    CHILD_DATA = "child_data"
    SAFEGUARDING_DATA = "safeguarding_data"
    FINANCIAL_DATA = "financial_data"
    OPERATIONAL_DATA = "operational_data"
    SYSTEM_DATA = "system_data"


@dataclass(frozen=True)
class RetentionPolicy:
    data_type: str
    classification: RetentionClass
    retention_period_days: int
    legal_basis: str
    description: str
    requires_manual_review: bool = False
    archive_after_days: Optional[int] = None


RETENTION_POLICIES: Dict[str, RetentionPolicy] = {
    "student_records": RetentionPolicy(
        data_type="student_records",
        classification=RetentionClass.CHILD_DATA,
        retention_period_days=RETENTION_PERIODS["student_records"]["active_student"],
        archive_after_days=YEAR * 2,
        requires_manual_review=True,
        legal_basis="Education Act 2002, GDPR Article 6(1)(c)",
        description="Student academic and personal records",
    ),
    "safeguarding_records": RetentionPolicy(
        data_type="safeguarding_records",
        classification=RetentionClass.SAFEGUARDING_DATA,
        retention_period_days=RETENTION_PERIODS["safeguarding"]["child_protection_records"],
        requires_manual_review=True,
        legal_basis="Children Act 2004, GDPR Article 6(1)(c)",
        description="Child protection and safeguarding records",
    ),
    "financial_records": RetentionPolicy(
        data_type="financial_records",
        classification=RetentionClass.FINANCIAL_DATA,
        retention_period_days=RETENTION_PERIODS["financial"]["invoices"],
        archive_after_days=YEAR * 2,
        legal_basis="Companies Act 2006, GDPR Article 6(1)(c)",
        description="Financial transactions and records",
    ),
    "attendance_records": RetentionPolicy(
        data_type="attendance_records",
        classification=RetentionClass.OPERATIONAL_DATA,
        retention_period_days=RETENTION_PERIODS["operational"]["attendance_records"],
        archive_after_days=YEAR,
        legal_basis="Education Act 2002, GDPR Article 6(1)(c)",
        description="Student attendance tracking",
    ),
    "behaviour_records": RetentionPolicy(
        data_type="behaviour_records",
        classification=RetentionClass.OPERATIONAL_DATA,
        retention_period_days=RETENTION_PERIODS["operational"]["behaviour_logs"],
        archive_after_days=YEAR,
        legal_basis="Education Act 2002, GDPR Article 6(1)(c)",
        description="Behaviour incidents and rewards",
    ),
    "system_logs": RetentionPolicy(
        data_type="system_logs",
        classification=RetentionClass.SYSTEM_DATA,
        retention_period_days=RETENTION_PERIODS["operational"]["system_logs"],
        legal_basis="GDPR Article 6(1)(f) - Legitimate interests",
        description="System operation and security logs",
    ),
    "audit_logs": RetentionPolicy(
        data_type="audit_logs",
        classification=RetentionClass.SYSTEM_DATA,
        retention_period_days=RETENTION_PERIODS["operational"]["audit_logs"],
        legal_basis="GDPR Article 6(1)(c) - Legal obligation",
        description="Audit trail and compliance logs",
    ),
}

_POLICY_BY_RESOURCE = {
    ResourceType.STUDENT_DATA: "student_records",
    ResourceType.SAFEGUARDING_DATA: "safeguarding_records",
    ResourceType.FINANCIAL_DATA: "financial_records",
    ResourceType.ATTENDANCE_DATA: "attendance_records",
    ResourceType.BEHAVIOUR_DATA: "behaviour_records",
    ResourceType.SYSTEM_SETTING: "system_logs",
}


def get_retention_policy(data_type: str) -> Optional[RetentionPolicy]:
    """Look up a policy by data type name; None if there is none."""
    return RETENTION_POLICIES.get(data_type)


def retention_policy_for(resource_type: ResourceType) -> RetentionPolicy:
    """The retention policy governing records of a resource type."""
    return RETENTION_POLICIES[_POLICY_BY_RESOURCE[ResourceType(resource_type)]]


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def calculate_retention_expiry(created: datetime, retention_period_days: int) -> datetime:
    return _utc(created) + timedelta(days=retention_period_days)


def has_data_expired(
    created: datetime,
    retention_period_days: int,
    now: Optional[datetime] = None,
) -> bool:
    """True once the retention period has fully elapsed."""
    now = _utc(now) if now else datetime.now(timezone.utc)
    return now >= calculate_retention_expiry(created, retention_period_days)


def should_archive(
    created: datetime,
    archive_after_days: Optional[int],
    now: Optional[datetime] = None,
) -> bool:
    """True when a record is old enough to move to archive storage."""
    if not archive_after_days:
        return False
    now = _utc(now) if now else datetime.now(timezone.utc)
    return now >= _utc(created) + timedelta(days=archive_after_days)
