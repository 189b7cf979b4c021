"""Role and RolePermission models for RBAC."""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from access_engine.db.base import Base, generate_id
from access_engine.models.permission import Permission

DEFAULT_ROLE_PRIORITY = 100


class Role(Base):
    """Named, priority-ordered bundle of permissions assignable to users."""
    __tablename__ = "roles"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(50), unique=True, nullable=False, index=True)
    display_name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    priority = Column(Integer, nullable=False, default=DEFAULT_ROLE_PRIORITY)
    is_system_role = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    # Rows are managed through RolePermission; this side is read-only.
    permissions = relationship(
        "Permission",
        secondary="role_permissions",
        lazy="selectin",
        order_by=[Permission.resource, Permission.action],
        viewonly=True,
    )

    @property
    def permission_keys(self) -> list[str]:
        return [p.key for p in self.permissions]

    def __repr__(self) -> str:
        return f"<Role {self.name} priority={self.priority}>"


class RolePermission(Base):
    """Join row between a role and one of its permissions."""
    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", name="uq_role_permissions_pair"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_id = Column(String(36), ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False)
