"""
backend/conftest.py

Shared fixtures: an isolated SQLite database per test, user factories, a
frozen clock for timestamp ordering, a recording media store and
bearer-token helpers for the HTTP tests.
"""

import itertools
import os
from datetime import datetime

# Keep password hashing cheap under test; must be set before backend.config loads
os.environ.setdefault("ENV", "dev")
os.environ["PASSWORD_HASH_ITERATIONS"] = "1000"

import pytest
from fastapi.testclient import TestClient

from backend import db, users
from backend.auth_context import create_access_token
from backend.main import app
from backend.membership import membership_violations
from backend.storage import MediaStorage, get_media_storage


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    path = str(tmp_path / "studio_test.db")
    monkeypatch.setattr(db, "DB_PATH", path)
    db.init_db()
    return path


@pytest.fixture
def conn(db_path):
    c = db.get_db()
    yield c
    c.close()


@pytest.fixture
def make_user(conn):
    counter = itertools.count(1)

    def _make(username=None, full_name=None, password="secret-pass"):
        n = next(counter)
        username = username or f"user{n}"
        return users.create_user(
            conn,
            username,
            f"{username}@example.com",
            full_name or username.title(),
            password,
        )

    return _make


class FrozenClock:
    """Stands in for datetime in backend.db; utcnow() returns the set moment."""

    def __init__(self, moment):
        self.moment = moment

    def utcnow(self):
        return self.moment


@pytest.fixture
def clock(monkeypatch):
    """Freeze now_iso() at a whole second; tests move it via clock.moment."""
    frozen = FrozenClock(datetime(2026, 1, 1, 12, 0, 0))
    monkeypatch.setattr(db, "datetime", frozen)
    return frozen


@pytest.fixture
def consistent(conn):
    """Callable asserting the membership ledger has no violations."""
    def _check():
        assert membership_violations(conn) == []
    return _check


class RecordingStorage(MediaStorage):
    """Storage backend that remembers every released key."""

    def __init__(self):
        self.released = []

    def destroy(self, public_id):
        super().destroy(public_id)
        self.released.append(public_id)


@pytest.fixture
def storage():
    recorder = RecordingStorage()
    app.dependency_overrides[get_media_storage] = lambda: recorder
    yield recorder
    app.dependency_overrides.pop(get_media_storage, None)


@pytest.fixture
def client(db_path, storage):
    return TestClient(app)


@pytest.fixture
def auth_headers():
    def _headers(user_id):
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}
    return _headers
