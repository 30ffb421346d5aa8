"""GSOS access control: RBAC, access decisions and the compliance audit trail."""

__version__ = "0.1.0"
