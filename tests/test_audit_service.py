import json

from access_engine.models.audit_log import AuditLog
from access_engine.services.audit_service import audit_service, diff_snapshots


def test_diff_keeps_only_changed_keys() -> None:
    before = {"name": "clerk", "priority": 100, "permissions": ["bookings:read"]}
    after = {"name": "clerk", "priority": 200, "permissions": ["bookings:read"]}

    assert diff_snapshots(before, after) == ({"priority": 100}, {"priority": 200})


def test_diff_records_creations_and_lists_whole() -> None:
    assert diff_snapshots(None, {"name": "clerk"}) == (None, {"name": "clerk"})
    assert diff_snapshots([{"a": 1}], []) == ([{"a": 1}], [])


def test_record_change_without_request(db) -> None:
    entry = audit_service.record_change(
        db, None, "cli", "role.updated", "role", "r1",
        before={"priority": 100, "name": "x"}, after={"priority": 5, "name": "x"},
    )

    stored = db.get(AuditLog, entry.id)
    assert json.loads(stored.old_value_json) == {"priority": 100}
    assert stored.ip_address is None


def test_history_filters_and_pages(db) -> None:
    for n in range(3):
        audit_service.record_change(db, None, "a1", "role.created", "role", f"r{n}", after={"n": n})
    audit_service.record_change(db, None, "a2", "user_role.assigned", "user_role", "u1", after={"roles": []})

    entries, total = audit_service.history(db, resource_type="role", page=1, page_size=2)

    assert total == 3
    assert [e.resource_id for e in entries] == ["r2", "r1"]
    assert audit_service.history(db, actor_id="a2")[1] == 1
