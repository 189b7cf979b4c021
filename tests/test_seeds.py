from access_engine.db.seeds.seed_permissions import seed_permissions
from access_engine.db.seeds.seed_roles import seed_roles
from access_engine.models.permission import Permission
from access_engine.models.role import Role
from access_engine.services.authorization_service import AuthorizationService
from access_engine.services.permission_service import PermissionCatalog


def test_seeding_is_idempotent(db, system_roles) -> None:
    assert seed_permissions(db) == 0
    assert seed_roles(db) == 0
    assert db.query(Role).count() == len(system_roles)


def test_super_admin_holds_the_whole_catalog(db, permissions, system_roles) -> None:
    assert sorted(system_roles["super_admin"].permission_keys) == sorted(permissions)


def test_super_admin_gains_permissions_added_later(db, system_roles, make_user) -> None:
    admin = make_user(system_roles["super_admin"])
    manager = make_user(system_roles["property_manager"])
    db.add(Permission(resource="reports", action="read", description="View reports"))
    db.commit()

    seed_roles(db)

    auth = AuthorizationService(db)
    assert auth.has_permission(admin.id, "reports", "read") is True
    assert auth.has_permission(manager.id, "reports", "read") is False


def test_get_by_key(db, permissions) -> None:
    catalog = PermissionCatalog(db)
    assert catalog.get_by_key("refunds", "manage").id == permissions["refunds:manage"].id
    assert catalog.get_by_key("refunds", "approve") is None
