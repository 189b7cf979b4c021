"""Seed the permission catalog."""

import logging
from sqlalchemy.orm import Session
from access_engine.models.permission import Permission

logger = logging.getLogger("access_engine")

# (resource, action, description)
PERMISSION_CATALOG = [
    ("audit", "read", "View the RBAC audit trail"),
    ("bookings", "delete", "Cancel and delete bookings"),
    ("bookings", "read", "View bookings"),
    ("bookings", "write", "Create and modify bookings"),
    ("payments", "read", "View payments and invoices"),
    ("properties", "read", "View properties and rooms"),
    ("properties", "write", "Create and modify properties and rooms"),
    ("refunds", "manage", "Approve and process refunds"),
    ("refunds", "read", "View refund requests"),
    ("roles", "delete", "Delete custom roles"),
    ("roles", "read", "View roles and the permission catalog"),
    ("roles", "write", "Create and update custom roles"),
    ("users", "delete", "Delete user accounts"),
    ("users", "manage", "Create and update user accounts"),
    ("users", "manage_permissions", "Grant or deny direct permission overrides"),
    ("users", "manage_roles", "Assign and remove user roles"),
    ("users", "read", "View users and their access"),
]


def seed_permissions(db: Session) -> int:
    """Insert catalog permissions that don't already exist. Returns the count added."""
    existing = {(p.resource, p.action) for p in db.query(Permission).all()}
    added = 0
    for resource, action, description in PERMISSION_CATALOG:
        if (resource, action) not in existing:
            db.add(Permission(resource=resource, action=action, description=description))
            added += 1
    db.commit()
    logger.info("Seeded %d permissions (%d already present)", added, len(existing))
    return added
