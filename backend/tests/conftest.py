"""
Shared fixtures: a fresh SQLite file database per test, sessions, users and an API client.

Settings are read at import time, so the environment is set before gymslots is imported.
Each SQLite transaction holds the write lock (BEGIN IMMEDIATE), so tests that call the API
or spawn threads must not keep a session transaction open meanwhile.
"""
import os

os.environ.setdefault("AUTH_JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from gymslots.core.security import issue_token  # noqa: E402
from gymslots.db.session import get_db, init_db, make_engine, make_sessionmaker  # noqa: E402
from gymslots.main import app  # noqa: E402
from gymslots.services.slot_service import ensure_slots_exist  # noqa: E402
from gymslots.services.user_service import get_or_create_profile, set_admin  # noqa: E402

MONDAY = date(2025, 9, 1)
MORNING = "5:00 - 6:00 AM"
EVENING = "6:00 - 7:00 PM"


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'gymslots.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_sessionmaker(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(session_factory):
    """Create a profile in its own committed session and return its id."""

    def _make(user_id: str, admin: bool = False, name: str | None = None) -> str:
        with session_factory() as s:
            get_or_create_profile(s, user_id, f"{user_id}@example.com", name=name)
            if admin:
                set_admin(s, user_id, True)
        return user_id

    return _make


@pytest.fixture
def make_slots(session_factory):
    """Materialize the catalog for [start, end] (default: one day) with the given capacity."""

    def _make(start: date = MONDAY, end: date | None = None, capacity: int | None = None) -> int:
        with session_factory() as s:
            return ensure_slots_exist(s, start, end or start, capacity=capacity)

    return _make


@pytest.fixture
def client(session_factory):
    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user_id: str, name: str | None = None) -> dict[str, str]:
        token = issue_token(user_id, f"{user_id}@example.com", name=name)
        return {"Authorization": f"Bearer {token}"}

    return _headers
