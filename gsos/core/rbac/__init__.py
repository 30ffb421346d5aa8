"""RBAC (Role-Based Access Control) module for GSOS.

This module defines the permission model, role definitions, route gating and
permission checking utilities.
"""

from .permissions import (
    Permission,
    Domain,
    Action,
    PERMISSION_DEFINITIONS,
    ACCESS_SENSITIVE_RECORDS,
    is_valid_permission,
)
from .roles import Role, ROLE_PERMISSIONS, permissions_for, role_has_permission
from .routes import allowed_roles_for_route, can_access_route
from .checker import PermissionChecker, effective_permissions

__all__ = [
    "Permission",
    "Domain",
    "Action",
    "PERMISSION_DEFINITIONS",
    "ACCESS_SENSITIVE_RECORDS",
    "is_valid_permission",
    "Role",
    "ROLE_PERMISSIONS",
    "permissions_for",
    "role_has_permission",
    "allowed_roles_for_route",
    "can_access_route",
    "PermissionChecker",
    "effective_permissions",
]
