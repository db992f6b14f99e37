"""
backend/test_users.py

User directory: registration rules, login by username or email, profile
settings and the users-table upgrade for older database files.

Run:
    pytest backend/test_users.py -v
"""

import sqlite3

import pytest

from backend import db, users
from backend.errors import InvalidInput, NotFound
from backend.models import DEFAULT_THEME_MODE, DEFAULT_WALLPAPER


class TestRegistration:
    def test_email_normalized_and_hash_hidden(self, conn):
        user = users.create_user(conn, "  alice ", " Alice@Example.COM ", "Alice", "pw")
        assert (user.username, user.email) == ("alice", "alice@example.com")
        assert "password_hash" not in user.dict()

    def test_defaults_for_new_account(self, conn, make_user):
        user = make_user("alice")
        assert user.theme_mode == DEFAULT_THEME_MODE
        assert user.wallpaper == DEFAULT_WALLPAPER
        assert user.gender is None

    @pytest.mark.parametrize("username, email", [("alice", "new@example.com"), ("new", "alice@example.com")])
    def test_taken_username_or_email(self, conn, make_user, username, email):
        make_user("alice")
        with pytest.raises(InvalidInput):
            users.create_user(conn, username, email, "X", "pw")

    def test_login_by_username_or_email(self, conn, make_user):
        alice = make_user("alice", password="pw-1")
        assert users.authenticate(conn, "alice", "pw-1").id == alice.id
        assert users.authenticate(conn, "ALICE@example.com", "pw-1").id == alice.id
        assert users.authenticate(conn, "alice", "wrong") is None
        assert users.authenticate(conn, "nobody", "pw-1") is None


class TestProfile:
    def test_updates_only_sent_fields(self, conn, make_user):
        alice = make_user("alice", "Alice A")
        updated = users.update_profile(
            conn,
            alice.id,
            {"birth_month": "March", "birth_day": "14", "birth_year": "1999", "theme_mode": "dark"},
        )
        assert (updated.birth_month, updated.birth_day, updated.birth_year) == ("March", "14", "1999")
        assert updated.theme_mode == "dark"
        assert updated.full_name == "Alice A"
        assert updated.username == "alice"

    def test_new_email_normalized_and_usable_for_login(self, conn, make_user):
        alice = make_user("alice", password="pw-1")
        updated = users.update_profile(conn, alice.id, {"email": " Alice.New@Example.com "})
        assert updated.email == "alice.new@example.com"
        assert users.authenticate(conn, "alice.new@example.com", "pw-1").id == alice.id

    def test_email_used_by_another_account(self, conn, make_user):
        alice, bob = make_user("alice"), make_user("bob")
        with pytest.raises(InvalidInput) as exc_info:
            users.update_profile(conn, alice.id, {"email": bob.email, "full_name": "Changed"})
        assert exc_info.value.reason == "Email already used"
        assert users.get_user(conn, alice.id).full_name == "Alice"

    def test_keeping_own_email_is_allowed(self, conn, make_user):
        alice = make_user("alice")
        assert users.update_profile(conn, alice.id, {"email": alice.email}).email == alice.email

    def test_cleared_settings_fall_back_to_defaults(self, conn, make_user):
        alice = make_user("alice")
        users.update_profile(conn, alice.id, {"theme_mode": "dark", "gender": "female", "wallpaper": "walls/1"})
        cleared = users.update_profile(conn, alice.id, {"theme_mode": None, "gender": "", "wallpaper": None})
        assert cleared.theme_mode == DEFAULT_THEME_MODE
        assert cleared.gender is None
        assert cleared.wallpaper == DEFAULT_WALLPAPER

    @pytest.mark.parametrize(
        "fields",
        [
            {"username": "mallory"},
            {"password_hash": "x"},
            {"email": ""},
            {"full_name": None},
            {"theme_mode": 5},
        ],
    )
    def test_rejected_fields(self, conn, make_user, fields):
        alice = make_user("alice")
        with pytest.raises(InvalidInput):
            users.update_profile(conn, alice.id, fields)
        assert users.get_user(conn, alice.id) == alice

    def test_missing_user(self, conn):
        with pytest.raises(NotFound):
            users.update_profile(conn, 999, {"gender": "male"})


class TestSchemaUpgrade:
    def test_older_users_table_gains_profile_columns(self, tmp_path, monkeypatch):
        path = str(tmp_path / "old.db")
        raw = sqlite3.connect(path)
        raw.execute(
            """
            CREATE TABLE users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT UNIQUE NOT NULL,
                email TEXT UNIQUE NOT NULL,
                full_name TEXT NOT NULL DEFAULT '',
                password_hash TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        raw.execute(
            "INSERT INTO users (username, email, full_name, password_hash, created_at) "
            "VALUES ('old', 'old@example.com', 'Old Timer', 'x', '2025-01-01T00:00:00.000000Z')"
        )
        raw.commit()
        raw.close()

        monkeypatch.setattr(db, "DB_PATH", path)
        db.init_db()
        db.init_db()

        conn = db.get_db()
        try:
            user = users.get_user_by_username(conn, "old")
        finally:
            conn.close()
        assert user.theme_mode == DEFAULT_THEME_MODE
        assert user.wallpaper == DEFAULT_WALLPAPER
        assert user.birth_year is None
