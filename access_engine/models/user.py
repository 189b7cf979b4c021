"""User and UserRole models.

Both tables belong to the user-management side of the platform; the engine
reads them to resolve permissions and to guard role deletion.
"""

from sqlalchemy import (
    Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from access_engine.db.base import Base, generate_id


class User(Base):
    """Platform user."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    role_assignments = relationship(
        "UserRole",
        back_populates="user",
        lazy="selectin",
        foreign_keys="[UserRole.user_id]",
        cascade="all, delete-orphan",
    )


class UserRole(Base):
    """Association between a user and a role."""
    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_user_roles_pair"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role_id = Column(String(36), ForeignKey("roles.id"), nullable=False, index=True)
    assigned_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="role_assignments", foreign_keys=[user_id])
    role = relationship("Role", lazy="joined")
