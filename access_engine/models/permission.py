"""Permission catalog model."""

from sqlalchemy import Column, String, DateTime, UniqueConstraint, func
from access_engine.db.base import Base, generate_id


class Permission(Base):
    """An atomic ``(resource, action)`` capability, e.g. ``roles:read``.

    Rows are reference data provisioned out-of-band; the engine only reads them.
    """
    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint("resource", "action", name="uq_permissions_resource_action"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    resource = Column(String(50), nullable=False, index=True)
    action = Column(String(50), nullable=False)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    @property
    def key(self) -> str:
        return f"{self.resource}:{self.action}"

    def __repr__(self) -> str:
        return f"<Permission {self.key}>"
