import os
import uuid
from datetime import date

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite:///./var/test-unused.db")
os.environ.setdefault("AUTO_CREATE_DB", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from soundright.db import Base, build_engine, get_db, request_session
from soundright.main import app
from soundright.models.models import Equipment, Project, User
from soundright.auth.security import Principal, create_access_token, get_password_hash


@pytest.fixture
def engine(tmp_path):
    eng = build_engine(f"sqlite:///{tmp_path / 'soundright-test.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def client(session_factory):
    def _get_db(request: Request):
        yield from request_session(session_factory, request)

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory):
    """Insert a user directly; returns (user_id, auth headers)."""
    counter = {"n": 0}

    def _make(role: str = "user", password: str = "secret123", is_active: bool = True, **fields):
        counter["n"] += 1
        n = counter["n"]
        session = session_factory()
        try:
            user = User(
                username=fields.get("username", f"{role}{n}"),
                email=fields.get("email", f"{role}{n}@example.com"),
                password_hash=get_password_hash(password),
                first_name=fields.get("first_name", "Test"),
                last_name=fields.get("last_name", role.capitalize()),
                role=role,
                is_active=is_active,
            )
            session.add(user)
            session.commit()
            token = create_access_token(str(user.id), user.role)
            return user.id, {"Authorization": f"Bearer {token}"}
        finally:
            session.close()

    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin")


@pytest.fixture
def manager(make_user):
    return make_user("manager")


@pytest.fixture
def staff(make_user):
    return make_user("user")


@pytest.fixture
def principal(make_user, session_factory):
    user_id, _ = make_user("manager")
    with session_factory() as session:
        return Principal.from_user(session.get(User, user_id))


@pytest.fixture
def make_equipment(session_factory):
    """Insert an equipment unit; returns its id."""
    def _make(name: str = "Mackie SRM450", category: str = "Speakers", **fields):
        equipment_id = uuid.uuid4()
        with session_factory() as session:
            session.add(Equipment(id=equipment_id, name=name, category=category, **fields))
            session.commit()
        return equipment_id

    return _make


@pytest.fixture
def make_project(session_factory, principal):
    """Insert a project owned by ``principal``; returns its id."""
    def _make(name: str = "Summer Festival", status: str = "planning", created_by=None):
        project_id = uuid.uuid4()
        with session_factory() as session:
            session.add(
                Project(
                    id=project_id,
                    name=name,
                    client_name="Acme Events",
                    start_date=date(2026, 7, 1),
                    end_date=date(2026, 7, 3),
                    status=status,
                    created_by=created_by or principal.id,
                )
            )
            session.commit()
        return project_id

    return _make
