"""Seed the super-admin user from env vars."""

import logging
from typing import Optional
from sqlalchemy.orm import Session
from access_engine.models.role import Role
from access_engine.models.user import User, UserRole
from access_engine.core.config import settings

logger = logging.getLogger("access_engine")


def seed_super_admin(db: Session) -> Optional[User]:
    """Create the super-admin user and give it the super_admin role."""
    super_admin_role = db.query(Role).filter(Role.name == "super_admin").first()
    if not super_admin_role:
        logger.warning("super_admin role not found. Run seed_roles first.")
        return None

    existing = db.query(User).filter(User.email == settings.SUPER_ADMIN_EMAIL).first()
    if existing:
        logger.info("Super admin '%s' already exists, skipping.", settings.SUPER_ADMIN_EMAIL)
        return existing

    admin = User(
        email=settings.SUPER_ADMIN_EMAIL,
        full_name="Super Admin",
        is_active=True,
    )
    db.add(admin)
    db.flush()
    db.add(UserRole(user_id=admin.id, role_id=super_admin_role.id))
    db.commit()
    logger.info("Created super admin: %s", settings.SUPER_ADMIN_EMAIL)
    return admin
