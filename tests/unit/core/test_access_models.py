"""Tests for principal and resource value types."""

import pytest
from pydantic import ValidationError

from gsos.core.access.models import (
    AccessDecision,
    DataClassification,
    Principal,
    ResourceDescriptor,
    ResourceType,
)
from gsos.core.exceptions import InvalidPrincipalError, InvalidResourceError
from gsos.core.rbac.permissions import ACCESS_SENSITIVE_RECORDS, Permission
from gsos.core.rbac.roles import Role


class TestPrincipal:

    def test_permissions_parsed_from_strings(self):
        principal = Principal(id="u1", role="teacher", permissions=["safeguarding:read"])
        assert principal.permissions == frozenset([Permission.from_string("safeguarding:read")])

    def test_unknown_permission_rejected(self):
        with pytest.raises(ValidationError):
            Principal(id="u1", role="teacher", permissions=["students:fly"])

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError):
            Principal(id="u1", role="janitor")

    def test_hyphenated_role(self):
        assert Principal(id="u1", role="super-admin").role is Role.SUPER_ADMIN

    def test_is_immutable(self):
        principal = Principal(id="u1", role="teacher")
        with pytest.raises(ValidationError):
            principal.role = Role.SUPER_ADMIN

    def test_aliases(self):
        principal = Principal.model_validate({
            "user_id": "p1",
            "role": "parent",
            "guardianOf": ["stu1", "stu2"],
            "isActive": False,
        })
        assert principal.id == "p1"
        assert principal.guardian_of == frozenset(["stu1", "stu2"])
        assert principal.active is False


class TestPrincipalFromClaims:

    def test_cognito_style_claims(self):
        principal = Principal.from_claims({
            "sub": "abc-123",
            "custom:role": "parent",
            "custom:school_id": "sch1",
            "custom:parent_of": '["stu1", "stu2"]',
            "cognito:groups": ["parents"],
        })
        assert principal.id == "abc-123"
        assert principal.role is Role.PARENT
        assert principal.school_id == "sch1"
        assert principal.guardian_of == frozenset(["stu1", "stu2"])
        assert principal.groups == frozenset(["parents"])

    def test_role_from_groups(self):
        principal = Principal.from_claims({"sub": "u1", "cognito:groups": ["staff", "safeguarding-lead"]})
        assert principal.role is Role.SAFEGUARDING_LEAD

    def test_permission_overrides_and_active_flag(self):
        principal = Principal.from_claims({
            "sub": "u1",
            "custom:role": "teacher",
            "custom:permissions": "safeguarding:read,safeguarding:access_sensitive_records",
            "custom:active": "false",
        })
        assert ACCESS_SENSITIVE_RECORDS in principal.permissions
        assert principal.active is False

    def test_missing_role(self):
        with pytest.raises(InvalidPrincipalError):
            Principal.from_claims({"sub": "u1"})

    def test_missing_subject(self):
        with pytest.raises(InvalidPrincipalError):
            Principal.from_claims({"custom:role": "teacher"})

    def test_malformed_parent_of(self):
        with pytest.raises(InvalidPrincipalError):
            Principal.from_claims({"sub": "u1", "custom:role": "parent", "custom:parent_of": "[not json"})

    def test_invalid_principal_error_is_value_error(self):
        with pytest.raises(ValueError):
            Principal.from_claims("not a mapping")


class TestResourceDescriptor:

    def test_safeguarding_forced_sensitive(self):
        resource = ResourceDescriptor(resource_type="safeguarding_data", is_sensitive=False)
        assert resource.is_sensitive is True

    def test_other_types_keep_flag(self):
        assert ResourceDescriptor(resource_type="student_data").is_sensitive is False
        assert ResourceDescriptor(resource_type="student_data", is_sensitive=True).is_sensitive is True

    def test_from_mapping_accepts_hyphens_and_camel_case(self):
        resource = ResourceDescriptor.from_mapping({
            "type": "financial-data",
            "ownerStudentId": "stu1",
            "schoolId": "sch1",
        })
        assert resource.resource_type is ResourceType.FINANCIAL_DATA
        assert resource.owner_student_id == "stu1"
        assert resource.school_id == "sch1"

    def test_from_mapping_rejects_unknown_type(self):
        with pytest.raises(InvalidResourceError):
            ResourceDescriptor.from_mapping({"type": "cafeteria_menu"})

    def test_missing_type_allowed_at_construction(self):
        assert ResourceDescriptor.from_mapping({"resource_id": "x"}).resource_type is None

    def test_student_linked(self):
        assert ResourceDescriptor(resource_type="attendance_data").is_student_linked
        assert ResourceDescriptor(resource_type="financial_data", owner_student_id="stu1").is_student_linked
        assert not ResourceDescriptor(resource_type="system_setting").is_student_linked


class TestMisc:

    def test_classification_ordering(self):
        ranks = [c.rank for c in DataClassification]
        assert ranks == sorted(ranks)
        assert DataClassification.RESTRICTED.rank > DataClassification.CONFIDENTIAL.rank

    def test_decision_truthiness(self):
        assert AccessDecision(granted=True, reason="access granted")
        assert not AccessDecision(granted=False, reason="inactive principal")

    def test_decision_to_dict(self):
        data = AccessDecision(
            granted=False,
            reason="nope",
            permission=Permission.from_string("students:read"),
        ).to_dict()
        assert data["permission"] == "students:read"
        assert data["timestamp"].endswith("+00:00")
