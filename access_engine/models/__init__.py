"""Models package: import all models so metadata.create_all sees them."""

from access_engine.models.permission import Permission
from access_engine.models.role import Role, RolePermission
from access_engine.models.user import User, UserRole
from access_engine.models.override import OverrideType, UserPermissionOverride
from access_engine.models.audit_log import AuditLog

__all__ = [
    "Permission", "Role", "RolePermission",
    "User", "UserRole",
    "OverrideType", "UserPermissionOverride",
    "AuditLog",
]
