"""Per-user direct permission overrides."""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, DateTime, ForeignKey, Enum, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from access_engine.db.base import Base, generate_id


class OverrideType(str, enum.Enum):
    grant = "grant"
    deny = "deny"


class UserPermissionOverride(Base):
    """A grant or deny of one permission for one user, optionally expiring.

    At most one row exists per ``(user_id, permission_id)``; setting an
    override of the other type replaces the existing row.
    """
    __tablename__ = "user_permission_overrides"
    __table_args__ = (
        UniqueConstraint("user_id", "permission_id", name="uq_user_permission_overrides_pair"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_id = Column(String(36), ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False)
    override_type = Column(Enum(OverrideType), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)  # NULL = never expires
    reason = Column(String(500), nullable=True)
    granted_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    permission = relationship("Permission", lazy="joined")


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite/MySQL) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
