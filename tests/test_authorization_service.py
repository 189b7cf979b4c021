from datetime import datetime, timedelta, timezone

import pytest

from access_engine.core.exceptions import ResourceNotFoundError
from access_engine.models.override import OverrideType
from access_engine.services.authorization_service import AuthorizationService
from access_engine.services.override_service import OverrideService
from access_engine.services.role_service import RoleService
from access_engine.services.user_role_service import UserRoleService


def test_user_without_roles_or_overrides_has_nothing(db, make_user) -> None:
    user = make_user()
    assert AuthorizationService(db).resolve_effective_permissions(user.id) == frozenset()


def test_unknown_user_resolves_to_empty_set(db) -> None:
    assert AuthorizationService(db).resolve_effective_permissions("nobody") == frozenset()


def test_manager_auditor_scenario(db, permissions, make_user) -> None:
    roles = RoleService(db)
    manager = roles.create(
        name="manager", display_name="Manager", priority=50,
        permission_ids=[permissions["bookings:read"].id, permissions["bookings:write"].id],
    )
    auditor = roles.create(
        name="auditor", display_name="Auditor", priority=90,
        permission_ids=[permissions["bookings:read"].id],
    )
    user = make_user(manager, auditor)
    OverrideService(db).set_override(user.id, permissions["bookings:write"].id, OverrideType.deny)

    auth = AuthorizationService(db)
    assert auth.resolve_effective_permissions(user.id) == {"bookings:read"}
    assert auth.has_permission(user.id, "bookings", "read") is True
    assert auth.has_permission(user.id, "bookings", "write") is False


def test_effective_set_covers_every_assigned_role(db, system_roles, make_user) -> None:
    manager = system_roles["property_manager"]
    admin = system_roles["property_admin"]
    user = make_user(manager, admin)

    resolved = AuthorizationService(db).resolve_effective_permissions(user.id)

    assert set(manager.permission_keys) | set(admin.permission_keys) <= resolved


def test_deny_expires(db, permissions, system_roles, make_user) -> None:
    user = make_user(system_roles["property_manager"])
    expires = datetime.now(timezone.utc) + timedelta(minutes=10)
    OverrideService(db).set_override(
        user.id, permissions["bookings:write"].id, OverrideType.deny, expires_at=expires,
    )
    auth = AuthorizationService(db)

    assert "bookings:write" not in auth.resolve_effective_permissions(user.id)
    later = expires + timedelta(minutes=1)
    assert "bookings:write" in auth.resolve_effective_permissions(user.id, now=later)


def test_role_count(db, system_roles, make_user) -> None:
    manager = system_roles["property_manager"]
    make_user(manager)
    make_user(manager)
    assert AuthorizationService(db).get_user_role_count(manager.id) == 2
    assert AuthorizationService(db).get_user_role_count(system_roles["super_admin"].id) == 0


def test_access_profile(db, permissions, system_roles, make_user) -> None:
    user = make_user(system_roles["property_manager"], system_roles["super_admin"])
    OverrideService(db).set_override(user.id, permissions["audit:read"].id, OverrideType.deny)

    profile = AuthorizationService(db).get_access_profile(user.id)

    assert [r.name for r in profile["roles"]] == ["super_admin", "property_manager"]
    assert [o.permission.key for o in profile["overrides"]] == ["audit:read"]
    assert "audit:read" not in profile["effective_permissions"]
    assert profile["effective_permissions"] == sorted(profile["effective_permissions"])


def test_access_profile_unknown_user(db) -> None:
    with pytest.raises(ResourceNotFoundError):
        AuthorizationService(db).get_access_profile("missing")


def test_assign_roles_replace_existing(db, system_roles, make_user) -> None:
    user = make_user(system_roles["property_manager"])
    service = UserRoleService(db)

    roles = service.assign_roles(user.id, [system_roles["property_admin"].id], replace_existing=True)

    assert [r.name for r in roles] == ["property_admin"]


def test_assign_roles_is_idempotent(db, system_roles, make_user) -> None:
    manager = system_roles["property_manager"]
    user = make_user(manager)

    roles = UserRoleService(db).assign_roles(user.id, [manager.id, manager.id])

    assert [r.name for r in roles] == ["property_manager"]


def test_assign_unknown_role(db, make_user) -> None:
    user = make_user()
    with pytest.raises(ResourceNotFoundError):
        UserRoleService(db).assign_roles(user.id, ["missing"])
