"""Database layer - per-tenant engine handles and base classes."""

from approval_kernel.db.base import Base, TrackedBase, UTCDateTime, UUIDString
from approval_kernel.db.engine import Database, TenantDatabases

__all__ = [
    "Base",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
    "Database",
    "TenantDatabases",
]
