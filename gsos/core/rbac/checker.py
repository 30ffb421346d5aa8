"""Permission checking utilities for GSOS.

A principal's effective permissions are its role defaults plus any explicit
overrides. Inactive principals hold no permissions at all.
"""

from typing import FrozenSet, Iterable, List, Union

from .permissions import Action, Domain, Permission, PERMISSION_MATRIX
from .roles import ROLE_PERMISSIONS


def effective_permissions(principal) -> FrozenSet[Permission]:
    """Role defaults ∪ explicit overrides; empty for inactive principals."""
    if principal is None or not principal.active:
        return frozenset()
    return ROLE_PERMISSIONS[principal.role] | principal.permissions


class PermissionChecker:
    """Checks if a principal holds specific permissions."""

    def __init__(self, permissions: Iterable[Union[str, Permission]]):
        """
        Initialize with a permissions collection.

        Args:
            permissions: Permission objects or "domain:action" strings.
                Unknown strings are ignored.
        """
        resolved = set()
        for perm in permissions:
            try:
                resolved.add(Permission.coerce(perm))
            except ValueError:
                continue
        self.permissions: FrozenSet[Permission] = frozenset(resolved)

    @classmethod
    def for_principal(cls, principal) -> "PermissionChecker":
        return cls(effective_permissions(principal))

    def has_permission(self, permission: Union[str, Permission]) -> bool:
        """Check if a specific permission is held."""
        try:
            return Permission.coerce(permission) in self.permissions
        except ValueError:
            return False

    def has_any_permission(self, permissions: List[Union[str, Permission]]) -> bool:
        """Check if any of the given permissions is held."""
        return any(self.has_permission(p) for p in permissions)

    def has_all_permissions(self, permissions: List[Union[str, Permission]]) -> bool:
        """Check if all of the given permissions are held."""
        return all(self.has_permission(p) for p in permissions)

    def can_access_domain(self, domain: Domain, action: Action) -> bool:
        """Check if the action is allowed on the domain."""
        return Permission(domain, action) in self.permissions

    def get_accessible_domains(self, action: Action) -> list[Domain]:
        """Get the domains on which the action is allowed."""
        return [
            domain
            for domain in Domain
            if action in PERMISSION_MATRIX[domain] and self.can_access_domain(domain, action)
        ]
