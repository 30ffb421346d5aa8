"""Tests for anonymization and data subject requests."""

import logging
from datetime import date

import pytest

from gsos.core.anonymization import (
    ANONYMIZATION_PATTERNS,
    STUDENT_RECORD_RULES,
    DataSubjectRequestStatus,
    DataSubjectRequestType,
    anonymize_data,
    create_data_subject_request,
)
from gsos.core.exceptions import InvalidTransitionError


class TestPatterns:

    def test_identifiers_keep_last_four(self):
        assert ANONYMIZATION_PATTERNS["STUDENT_ID"]("STU-2024-0042") == "ANON_STUDENT_0042"
        assert ANONYMIZATION_PATTERNS["STAFF_ID"]("staff-9187") == "ANON_STAFF_9187"

    def test_personal_fields_replaced(self):
        assert ANONYMIZATION_PATTERNS["NAME"]("Ada") == "[REDACTED_NAME]"
        assert ANONYMIZATION_PATTERNS["EMAIL"]("a@b.io") == "[REDACTED_EMAIL]"
        assert ANONYMIZATION_PATTERNS["PHONE"]("07700 900123") == "[REDACTED_PHONE]"
        assert ANONYMIZATION_PATTERNS["ADDRESS"]("1 High St") == "[REDACTED_ADDRESS]"

    @pytest.mark.parametrize("dob", ["2012-05-17", "2012-05-17T00:00:00Z", date(2012, 5, 17)])
    def test_date_of_birth_keeps_year(self, dob):
        assert ANONYMIZATION_PATTERNS["DATE_OF_BIRTH"](dob) == "2012-XX-XX"

    def test_postcode_keeps_area(self):
        assert ANONYMIZATION_PATTERNS["POSTCODE"]("SW1A 1AA") == "SWX XXX"


class TestAnonymizeData:

    def test_student_record(self):
        record = {
            "student_id": "STU-2024-0042",
            "first_name": "Ada",
            "email": "ada@example.org",
            "date_of_birth": "2012-05-17",
            "postcode": "SW1A 1AA",
            "year_group": 8,
            "phone": None,
        }
        result = anonymize_data(record, STUDENT_RECORD_RULES)
        assert result == {
            "student_id": "ANON_STUDENT_0042",
            "first_name": "[REDACTED_NAME]",
            "email": "[REDACTED_EMAIL]",
            "date_of_birth": "2012-XX-XX",
            "postcode": "SWX XXX",
            "year_group": 8,
            "phone": None,
        }

    def test_input_untouched(self):
        record = {"first_name": "Ada"}
        anonymize_data(record, STUDENT_RECORD_RULES)
        assert record == {"first_name": "Ada"}

    def test_custom_rules(self):
        assert anonymize_data({"nickname": "Ace"}, {"nickname": ANONYMIZATION_PATTERNS["NAME"]}) == {
            "nickname": "[REDACTED_NAME]"
        }


class TestDataSubjectRequests:

    def _create(self, **kwargs):
        return create_data_subject_request(
            DataSubjectRequestType.ERASURE, "stu-42", "parent-7", "Please delete", ["student_records"], **kwargs,
        )

    def test_created_pending(self):
        request = self._create()
        assert request.status is DataSubjectRequestStatus.PENDING
        assert request.id.startswith("dsr_")
        assert request.data_types == ["student_records"]
        assert self._create().id != request.id

    def test_subject_id_not_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="gsos.core.anonymization"):
            request = self._create()
        assert request.id in caplog.text
        assert "stu-42" not in caplog.text

    def test_audited_with_placeholder(self, audit_logger, audit_sink, log_sink):
        request = self._create(audit_logger=audit_logger)

        (record,) = audit_sink.records
        assert record["operation"] == "data_subject_request:erasure"
        assert record["subject_id"] == "stu-42"
        assert record["resource_id"] == "[REDACTED_STUDENT_RESOURCE]"
        assert record["metadata"]["request_id"] == request.id
        assert "stu-42" not in str(log_sink.records)

    def test_lifecycle(self):
        request = self._create()
        started = request.transition(DataSubjectRequestStatus.IN_PROGRESS)
        done = started.transition(DataSubjectRequestStatus.COMPLETED)

        assert request.status is DataSubjectRequestStatus.PENDING
        assert done.status is DataSubjectRequestStatus.COMPLETED
        assert done.completion_date is not None

    def test_rejection_needs_reason(self):
        request = self._create()
        with pytest.raises(InvalidTransitionError):
            request.transition(DataSubjectRequestStatus.REJECTED)
        rejected = request.transition(DataSubjectRequestStatus.REJECTED, rejection_reason="identity not verified")
        assert rejected.rejection_reason == "identity not verified"

    def test_invalid_transition(self):
        request = self._create()
        with pytest.raises(InvalidTransitionError):
            request.transition(DataSubjectRequestStatus.COMPLETED)
        done = request.transition("in_progress").transition("completed")
        with pytest.raises(InvalidTransitionError):
            done.transition(DataSubjectRequestStatus.IN_PROGRESS)
