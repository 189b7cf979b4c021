import logging

import pytest
from sqlalchemy.exc import OperationalError

from access_engine.core.exceptions import (
    ForbiddenError,
    ResourceConflictError,
    ResourceNotFoundError,
    StorageError,
    ValidationError,
)
from access_engine.models.role import Role
from access_engine.services.role_service import RoleService
from access_engine.services.user_role_service import UserRoleService


def _ids(permissions, *keys):
    return [permissions[k].id for k in keys]


def test_create_role_with_permissions(db, permissions) -> None:
    role = RoleService(db).create(
        name="front_desk",
        display_name="Front Desk",
        description="Check-in staff",
        permission_ids=_ids(permissions, "bookings:read", "bookings:write"),
    )

    assert role.name == "front_desk"
    assert role.priority == 100
    assert role.is_system_role is False
    assert sorted(role.permission_keys) == ["bookings:read", "bookings:write"]


def test_create_collapses_duplicate_permission_ids(db, permissions) -> None:
    role = RoleService(db).create(
        name="reader",
        display_name="Reader",
        permission_ids=_ids(permissions, "bookings:read", "bookings:read"),
    )
    assert role.permission_keys == ["bookings:read"]


@pytest.mark.parametrize("name", ["Property_Admin", "property-admin", "admin2", "", "a" * 51])
def test_create_rejects_invalid_names(db, name) -> None:
    with pytest.raises(ValidationError):
        RoleService(db).create(name=name, display_name="Invalid")
    assert db.query(Role).count() == 0


def test_create_accepts_lowercase_underscore_name(db) -> None:
    assert RoleService(db).create(name="property_admin", display_name="Admin").id


@pytest.mark.parametrize("priority", [0, 1000, -5])
def test_create_rejects_out_of_range_priority(db, priority) -> None:
    with pytest.raises(ValidationError):
        RoleService(db).create(name="ops", display_name="Ops", priority=priority)


@pytest.mark.parametrize("display_name", ["", "x" * 101])
def test_create_rejects_bad_display_name(db, display_name) -> None:
    with pytest.raises(ValidationError):
        RoleService(db).create(name="ops", display_name=display_name)


def test_create_rejects_long_description(db) -> None:
    with pytest.raises(ValidationError):
        RoleService(db).create(name="ops", display_name="Ops", description="d" * 501)


def test_create_duplicate_name_conflicts(db) -> None:
    service = RoleService(db)
    service.create(name="ops", display_name="Ops")
    with pytest.raises(ResourceConflictError):
        service.create(name="ops", display_name="Ops again")


def test_create_removes_role_when_permission_assignment_fails(db, permissions) -> None:
    service = RoleService(db)
    with pytest.raises(StorageError):
        service.create(
            name="broken",
            display_name="Broken",
            permission_ids=[permissions["bookings:read"].id, "no-such-permission"],
        )

    assert service.get_by_name("broken") is None
    assert db.query(Role).count() == 0


def test_failed_compensation_is_logged_and_original_error_raised(
    db, permissions, monkeypatch, caplog
) -> None:
    service = RoleService(db)
    insert_error = OperationalError("INSERT INTO role_permissions", {}, Exception("disk full"))

    def failing_insert(role_id, permission_ids):
        def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("connection lost"))

        monkeypatch.setattr(db, "commit", failing_commit)
        raise insert_error

    monkeypatch.setattr(service, "_insert_permissions", failing_insert)

    with caplog.at_level(logging.ERROR, logger="access_engine"):
        with pytest.raises(StorageError) as exc_info:
            service.create(
                name="broken",
                display_name="Broken",
                permission_ids=[permissions["bookings:read"].id],
            )

    assert exc_info.value.__cause__ is insert_error
    assert "Compensating delete failed" in caplog.text


def test_update_replaces_permission_set(db, permissions) -> None:
    service = RoleService(db)
    role = service.create(
        name="clerk",
        display_name="Clerk",
        permission_ids=_ids(permissions, "bookings:read", "bookings:write"),
    )

    service.update(role.id, permission_ids=_ids(permissions, "bookings:write", "payments:read"))
    db.expire_all()

    assert sorted(service.get(role.id).permission_keys) == ["bookings:write", "payments:read"]


def test_update_with_empty_list_clears_permissions(db, permissions) -> None:
    service = RoleService(db)
    role = service.create(
        name="clerk", display_name="Clerk", permission_ids=_ids(permissions, "bookings:read"),
    )
    assert service.update(role.id, permission_ids=[]).permissions == []


def test_update_fields_keeps_permissions(db, permissions) -> None:
    service = RoleService(db)
    role = service.create(
        name="clerk", display_name="Clerk", permission_ids=_ids(permissions, "bookings:read"),
    )

    updated = service.update(role.id, display_name="Senior Clerk", priority=300, description="")

    assert updated.display_name == "Senior Clerk"
    assert updated.priority == 300
    assert updated.description is None
    assert updated.name == "clerk"
    assert updated.permission_keys == ["bookings:read"]


def test_update_unknown_permission_keeps_previous_set(db, permissions) -> None:
    service = RoleService(db)
    role = service.create(
        name="clerk", display_name="Clerk", permission_ids=_ids(permissions, "bookings:read"),
    )

    with pytest.raises(StorageError):
        service.update(role.id, permission_ids=["no-such-permission"])
    db.expire_all()

    assert service.get(role.id).permission_keys == ["bookings:read"]


def test_update_missing_role(db) -> None:
    with pytest.raises(ResourceNotFoundError):
        RoleService(db).update("missing", display_name="Nope")


def test_update_validates_before_lookup(db) -> None:
    with pytest.raises(ValidationError):
        RoleService(db).update("missing", priority=0)


def test_system_roles_cannot_be_updated_or_deleted(db, system_roles) -> None:
    service = RoleService(db)
    super_admin = system_roles["super_admin"]

    with pytest.raises(ForbiddenError):
        service.update(super_admin.id, display_name="Renamed")
    with pytest.raises(ForbiddenError):
        service.update(super_admin.id, permission_ids=[])
    with pytest.raises(ForbiddenError):
        service.delete(super_admin.id)

    db.expire_all()
    assert service.get(super_admin.id).display_name == "Super Admin"


def test_delete_blocked_while_assigned(db, permissions, make_user) -> None:
    service = RoleService(db)
    role = service.create(
        name="night_audit", display_name="Night Audit",
        permission_ids=_ids(permissions, "payments:read"),
    )
    user = make_user(role)

    with pytest.raises(ResourceConflictError):
        service.delete(role.id)

    assert UserRoleService(db).remove_role(user.id, role.id) is True
    service.delete(role.id)

    with pytest.raises(ResourceNotFoundError):
        service.get(role.id)


def test_delete_missing_role(db) -> None:
    with pytest.raises(ResourceNotFoundError):
        RoleService(db).delete("missing")


def test_list_all_orders_by_priority(db, system_roles) -> None:
    service = RoleService(db)
    service.create(name="low", display_name="Low", priority=1)
    service.create(name="mid", display_name="Mid", priority=600)

    names = [r.name for r in service.list_all()]

    assert names == ["super_admin", "property_admin", "mid", "property_manager", "low"]


def test_snapshot_describes_role(db, permissions) -> None:
    service = RoleService(db)
    role = service.create(
        name="clerk", display_name="Clerk",
        permission_ids=_ids(permissions, "bookings:write", "bookings:read"),
    )

    snapshot = service.snapshot(role)

    assert snapshot["name"] == "clerk"
    assert snapshot["permissions"] == ["bookings:read", "bookings:write"]
    assert snapshot["is_system_role"] is False
