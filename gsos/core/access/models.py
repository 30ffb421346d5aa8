"""Value types for access decisions.

``Principal`` and ``ResourceDescriptor`` are validated once at the boundary
(from verified identity claims and from the domain object being accessed)
and are immutable afterwards. ``AccessDecision`` is the transient output of
one evaluation.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, FrozenSet, Mapping, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    PlainValidator,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from gsos.core.exceptions import InvalidPrincipalError, InvalidResourceError
from gsos.core.rbac.permissions import Permission
from gsos.core.rbac.roles import Role


class _NormalizedEnum(str, Enum):
    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().lower().replace("-", "_")
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class ResourceType(_NormalizedEnum):
    """Kinds of protected data."""

    STUDENT_DATA = "student_data"
    SAFEGUARDING_DATA = "safeguarding_data"
    FINANCIAL_DATA = "financial_data"
    BEHAVIOUR_DATA = "behaviour_data"
    ATTENDANCE_DATA = "attendance_data"
    SYSTEM_SETTING = "system_setting"


class Operation(_NormalizedEnum):
    READ = "read"
    WRITE = "write"
    DELETE = "delete"


class DataClassification(_NormalizedEnum):
    """Sensitivity tiers, lowest first."""

    PUBLIC = "public"
    INTERNAL = "internal"
    CONFIDENTIAL = "confidential"
    RESTRICTED = "restricted"

    @property
    def rank(self) -> int:
        return list(DataClassification).index(self)


# Records tied to an individual child
STUDENT_LINKED_TYPES: FrozenSet[ResourceType] = frozenset([
    ResourceType.STUDENT_DATA,
    ResourceType.SAFEGUARDING_DATA,
    ResourceType.BEHAVIOUR_DATA,
    ResourceType.ATTENDANCE_DATA,
])


PermissionField = Annotated[
    Permission,
    PlainValidator(Permission.coerce),
    PlainSerializer(str, return_type=str),
]


def _coerce_enum(enum_cls, value):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ValueError(f"Invalid {enum_cls.__name__}: {value!r}")


class Principal(BaseModel):
    """The authenticated actor performing an operation."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1, validation_alias=AliasChoices("id", "user_id", "sub"))
    role: Role
    school_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("school_id", "schoolId"))
    permissions: FrozenSet[PermissionField] = Field(default_factory=frozenset)
    active: bool = Field(default=True, validation_alias=AliasChoices("active", "is_active", "isActive"))
    guardian_of: FrozenSet[str] = Field(
        default_factory=frozenset,
        validation_alias=AliasChoices("guardian_of", "guardianOf", "parent_of", "parentOf"),
    )
    student_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("student_id", "studentId"))
    groups: FrozenSet[str] = Field(default_factory=frozenset)

    @field_validator("role", mode="before")
    @classmethod
    def _parse_role(cls, value):
        return _coerce_enum(Role, value)

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "Principal":
        """Build a principal from already-verified identity token claims.

        Understands the Cognito-style custom attributes used by the
        platform (``custom:role``, ``custom:school_id``,
        ``custom:student_id``, ``custom:parent_of`` as a JSON array,
        ``custom:permissions`` and ``cognito:groups``).

        Raises:
            InvalidPrincipalError: if the claims do not describe a principal.
        """
        if not isinstance(claims, Mapping):
            raise InvalidPrincipalError("Claims must be a mapping")

        groups = _as_list(claims.get("cognito:groups") or claims.get("groups"))
        role = claims.get("custom:role") or claims.get("role")
        if not role:
            # Fall back to the first group that names a role
            for group in groups:
                try:
                    role = Role(group)
                    break
                except ValueError:
                    continue
        if not role:
            raise InvalidPrincipalError("Claims carry no role", field="role")

        try:
            guardian_of = _as_list(claims.get("custom:parent_of") or claims.get("parent_of"))
            permissions = _as_list(claims.get("custom:permissions") or claims.get("permissions"))
        except ValueError as e:
            raise InvalidPrincipalError(str(e)) from e

        active = claims.get("custom:active", claims.get("active", True))
        if isinstance(active, str):
            active = active.strip().lower() in ("true", "1", "yes")

        try:
            return cls(
                id=claims.get("sub") or claims.get("user_id") or "",
                role=role,
                school_id=claims.get("custom:school_id") or claims.get("school_id"),
                student_id=claims.get("custom:student_id") or claims.get("student_id"),
                guardian_of=guardian_of,
                permissions=permissions,
                active=active,
                groups=groups,
            )
        except ValidationError as e:
            raise InvalidPrincipalError(f"Invalid principal claims: {e.error_count()} error(s)") from e


def _as_list(value) -> list:
    """Normalize a claim that may be a list, JSON array string or CSV string."""
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("["):
            try:
                parsed = json.loads(stripped)
            except json.JSONDecodeError as e:
                raise ValueError(f"Malformed JSON claim: {e.msg}") from e
            if not isinstance(parsed, list):
                raise ValueError("JSON claim must be an array")
            return parsed
        return [part.strip() for part in stripped.split(",") if part.strip()]
    raise ValueError(f"Unsupported claim value: {type(value).__name__}")


class ResourceDescriptor(BaseModel):
    """A typed reference to the data being accessed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    resource_type: Optional[ResourceType] = Field(
        default=None,
        validation_alias=AliasChoices("resource_type", "type", "resourceType"),
    )
    resource_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("resource_id", "resourceId", "id"),
    )
    owner_student_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("owner_student_id", "ownerStudentId", "student_id", "studentId"),
    )
    school_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("school_id", "schoolId"),
    )
    is_sensitive: bool = Field(
        default=False,
        validate_default=True,
        validation_alias=AliasChoices("is_sensitive", "isSensitive"),
    )

    @field_validator("resource_type", mode="before")
    @classmethod
    def _parse_type(cls, value):
        return _coerce_enum(ResourceType, value)

    @field_validator("is_sensitive")
    @classmethod
    def _safeguarding_is_always_sensitive(cls, value: bool, info: ValidationInfo) -> bool:
        if info.data.get("resource_type") is ResourceType.SAFEGUARDING_DATA:
            return True
        return value

    @property
    def is_student_linked(self) -> bool:
        return self.resource_type in STUDENT_LINKED_TYPES or self.owner_student_id is not None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ResourceDescriptor":
        """Build a descriptor from a loosely-typed mapping.

        Raises:
            InvalidResourceError: if the mapping cannot be validated.
        """
        if isinstance(data, ResourceDescriptor):
            return data
        if not isinstance(data, Mapping):
            raise InvalidResourceError("Resource descriptor must be a mapping")
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            raise InvalidResourceError(
                f"Invalid resource descriptor: {e.error_count()} error(s)",
                field="resource_type",
            ) from e


@dataclass(frozen=True)
class AccessDecision:
    """Result of evaluating one access request."""
    granted: bool
    reason: str
    permission: Optional[Permission] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __bool__(self) -> bool:
        return self.granted

    def to_dict(self) -> Dict[str, Any]:
        return {
            "granted": self.granted,
            "reason": self.reason,
            "permission": str(self.permission) if self.permission else None,
            "timestamp": self.timestamp.isoformat(),
        }
