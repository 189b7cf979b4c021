import pytest
from typer.testing import CliRunner

from access_engine.cli import app
from access_engine.db import session as db_session

runner = CliRunner()


@pytest.fixture()
def cli_db(monkeypatch, session_factory):
    monkeypatch.setattr(db_session, "SessionLocal", session_factory)


def test_users_check_exit_codes(cli_db, system_roles, make_user) -> None:
    manager = make_user(system_roles["property_manager"])

    allowed = runner.invoke(app, ["users", "check", manager.id, "bookings", "write"])
    assert allowed.exit_code == 0
    assert "bookings:write allowed" in allowed.output

    denied = runner.invoke(app, ["users", "check", manager.id, "roles", "delete"])
    assert denied.exit_code == 1

    unknown = runner.invoke(app, ["users", "check", manager.id, "reports", "read"])
    assert unknown.exit_code == 2


def test_users_permissions_lists_effective_set(cli_db, system_roles, make_user) -> None:
    manager = make_user(system_roles["property_manager"])

    result = runner.invoke(app, ["users", "permissions", manager.id])

    assert result.exit_code == 0
    assert result.output.split() == sorted(system_roles["property_manager"].permission_keys)
