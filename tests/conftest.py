"""Shared fixtures: an in-memory database per test and an API client bound to it."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PERMISSION_CACHE_ENABLED", "false")

from typing import Dict

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import access_engine.models  # noqa: F401  (registers tables)
from access_engine.core.security import create_access_token
from access_engine.db.base import Base
from access_engine.db.session import build_engine, get_db
from access_engine.db.seeds.seed_permissions import seed_permissions
from access_engine.db.seeds.seed_roles import seed_roles
from access_engine.models.permission import Permission
from access_engine.models.role import Role
from access_engine.models.user import User, UserRole


@pytest.fixture()
def session_factory():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def permissions(db: Session) -> Dict[str, Permission]:
    """The seeded catalog keyed by ``resource:action``."""
    seed_permissions(db)
    return {p.key: p for p in db.query(Permission).all()}


@pytest.fixture()
def system_roles(db: Session, permissions) -> Dict[str, Role]:
    seed_roles(db)
    return {r.name: r for r in db.query(Role).all()}


@pytest.fixture()
def make_user(db: Session):
    counter = {"n": 0}

    def _make_user(*roles: Role, email: str = None) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            full_name=f"User {counter['n']}",
        )
        db.add(user)
        db.flush()
        for role in roles:
            db.add(UserRole(user_id=user.id, role_id=role.id))
        db.commit()
        return user

    return _make_user


@pytest.fixture()
def client(session_factory):
    from access_engine.main import app

    def _get_test_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_test_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers():
    def _auth_headers(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}

    return _auth_headers
