"""Seed system roles into the database."""

import logging
from sqlalchemy.orm import Session
from access_engine.models.permission import Permission
from access_engine.models.role import Role, RolePermission

logger = logging.getLogger("access_engine")

ALL_PERMISSIONS = "*"

SYSTEM_ROLES = [
    {
        "name": "super_admin",
        "display_name": "Super Admin",
        "description": "Full platform access",
        "priority": 999,
        "is_system_role": True,
        "permissions": ALL_PERMISSIONS,
    },
    {
        "name": "property_admin",
        "display_name": "Property Admin",
        "description": "Manage properties, bookings, staff and their access",
        "priority": 900,
        "is_system_role": True,
        "permissions": [
            "bookings:read", "bookings:write", "bookings:delete",
            "properties:read", "properties:write",
            "refunds:read", "refunds:manage", "payments:read",
            "users:read", "users:manage", "users:manage_roles",
            "roles:read",
        ],
    },
    {
        "name": "property_manager",
        "display_name": "Property Manager",
        "description": "Day-to-day booking operations",
        "priority": 500,
        "is_system_role": False,
        "permissions": [
            "bookings:read", "bookings:write",
            "properties:read", "refunds:read", "payments:read",
        ],
    },
]


def seed_roles(db: Session) -> int:
    """Insert default roles if they don't already exist.

    Seeding is the only path that creates system roles. Run after
    ``seed_permissions``; unknown permission keys are skipped. A role
    seeded with every permission is brought up to date with the catalog
    on each run, so permissions added later reach it too.
    """
    by_key = {p.key: p for p in db.query(Permission).all()}
    added = 0
    for role_data in SYSTEM_ROLES:
        data = dict(role_data)
        keys = data.pop("permissions")
        role = db.query(Role).filter(Role.name == data["name"]).first()
        if role is not None:
            if keys == ALL_PERMISSIONS:
                _sync_all_permissions(db, role, by_key)
            continue

        role = Role(**data)
        db.add(role)
        db.flush()
        wanted = sorted(by_key) if keys == ALL_PERMISSIONS else keys
        for key in wanted:
            perm = by_key.get(key)
            if perm is None:
                logger.warning("Skipping unknown permission %s for role %s", key, role.name)
                continue
            db.add(RolePermission(role_id=role.id, permission_id=perm.id))
        added += 1

    db.commit()
    logger.info("Seeded %d roles", added)
    return added


def _sync_all_permissions(db: Session, role: Role, by_key: dict) -> None:
    held = {
        rp.permission_id
        for rp in db.query(RolePermission.permission_id).filter(RolePermission.role_id == role.id)
    }
    missing = [p for key, p in sorted(by_key.items()) if p.id not in held]
    for perm in missing:
        db.add(RolePermission(role_id=role.id, permission_id=perm.id))
    if missing:
        logger.info("Granted %d new permissions to role %s", len(missing), role.name)
