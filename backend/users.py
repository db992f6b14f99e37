"""
backend/users.py

User directory: registration, credential check, profile settings and lookups.

Password hashes never leave this module; lookups return models.User, which
has no hash field.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import sqlite3
from typing import Any, Dict, List, Optional

from backend.config import PASSWORD_HASH_ITERATIONS
from backend.db import now_iso, transaction
from backend.errors import Conflict, InvalidInput, NotFound
from backend.models import (
    DEFAULT_PROFILE_PICTURE,
    DEFAULT_SIDE_MENU_COLOR,
    DEFAULT_THEME_MODE,
    DEFAULT_WALLPAPER,
    User,
)

SEARCH_LIMIT = 25

# Settings a user may change on their own profile
PROFILE_FIELDS = (
    "email",
    "full_name",
    "birth_month",
    "birth_day",
    "birth_year",
    "gender",
    "profile_picture",
    "wallpaper",
    "side_menu_color",
    "theme_mode",
)
REQUIRED_PROFILE_FIELDS = ("email", "full_name")

# What a cleared setting falls back to (None for plain profile facts)
PROFILE_RESETS = {
    "profile_picture": DEFAULT_PROFILE_PICTURE,
    "wallpaper": DEFAULT_WALLPAPER,
    "side_menu_color": DEFAULT_SIDE_MENU_COLOR,
    "theme_mode": DEFAULT_THEME_MODE,
}


# ---------------------------------------------------------
# Password hashing (PBKDF2-SHA256, stored as "pbkdf2$iterations$salt$hash")
# ---------------------------------------------------------
def hash_password(password: str, iterations: int = PASSWORD_HASH_ITERATIONS) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations).hex()
    return f"pbkdf2${iterations}${salt}${digest}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        scheme, iterations, salt, digest = password_hash.split("$")
    except ValueError:
        return False
    if scheme != "pbkdf2":
        return False
    candidate = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations)).hex()
    return hmac.compare_digest(candidate, digest)


# ---------------------------------------------------------
# Registration / login
# ---------------------------------------------------------
def create_user(conn: sqlite3.Connection, username: str, email: str, full_name: str, password: str) -> User:
    """
    Raises:
        InvalidInput: Missing field, username or email already registered
        Conflict: A concurrent registration won the same username/email
    """
    username = (username or "").strip()
    email_norm = (email or "").strip().lower()
    if not username or not email_norm or not password:
        raise InvalidInput("Missing fields")

    if conn.execute("SELECT 1 FROM users WHERE username = ?", (username,)).fetchone():
        raise InvalidInput("Username already taken")
    if conn.execute("SELECT 1 FROM users WHERE email = ?", (email_norm,)).fetchone():
        raise InvalidInput("Email already used")

    try:
        cur = conn.execute(
            "INSERT INTO users (username, email, full_name, password_hash, created_at) VALUES (?, ?, ?, ?, ?)",
            (username, email_norm, (full_name or "").strip(), hash_password(password), now_iso()),
        )
    except sqlite3.IntegrityError as e:
        print(f"[REGISTER] IntegrityError caught: {e}")
        raise Conflict("Username or email was just registered")

    print(f"[REGISTER] User created with id={cur.lastrowid}")
    return get_user(conn, cur.lastrowid)


def authenticate(conn: sqlite3.Connection, identifier: str, password: str) -> Optional[User]:
    """Resolve username-or-email + password to a user, or None."""
    ident = (identifier or "").strip()
    row = conn.execute(
        "SELECT * FROM users WHERE username = ? OR email = ?",
        (ident, ident.lower()),
    ).fetchone()
    if not row:
        print("[LOGIN] User not found by identifier")
        return None
    if not verify_password(password or "", row["password_hash"]):
        print(f"[LOGIN] Password mismatch for user_id={row['id']}")
        return None
    return User.from_row(row)


# ---------------------------------------------------------
# Lookups
# ---------------------------------------------------------
def find_user(conn: sqlite3.Connection, user_id: int) -> Optional[User]:
    row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    return User.from_row(row) if row else None


def get_user(conn: sqlite3.Connection, user_id: int) -> User:
    user = find_user(conn, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def get_user_by_username(conn: sqlite3.Connection, username: str) -> User:
    row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
    if not row:
        raise NotFound("User not found")
    return User.from_row(row)


def search_users(conn: sqlite3.Connection, query: str, limit: int = SEARCH_LIMIT) -> List[User]:
    """Case-insensitive substring match on username or full name."""
    query = (query or "").strip()
    if not query:
        return []
    pattern = f"%{query}%"
    rows = conn.execute(
        """
        SELECT * FROM users
        WHERE username LIKE ? COLLATE NOCASE OR full_name LIKE ? COLLATE NOCASE
        ORDER BY username
        LIMIT ?
        """,
        (pattern, pattern, limit),
    ).fetchall()
    return [User.from_row(r) for r in rows]


# ---------------------------------------------------------
# Profile
# ---------------------------------------------------------
def _profile_columns(fields: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(fields) - set(PROFILE_FIELDS))
    if unknown:
        raise InvalidInput(f"Fields cannot be updated: {', '.join(unknown)}")

    columns: Dict[str, Any] = {}
    for key, value in fields.items():
        if value is not None and not isinstance(value, str):
            raise InvalidInput(f"{key} must be a string")
        value = (value or "").strip()
        if key == "email":
            value = value.lower()
        if not value:
            if key in REQUIRED_PROFILE_FIELDS:
                raise InvalidInput(f"{key} is required")
            columns[key] = PROFILE_RESETS.get(key)
        else:
            columns[key] = value
    return columns


def update_profile(conn: sqlite3.Connection, user_id: int, fields: Dict[str, Any]) -> User:
    """
    Change the caller's own profile and appearance settings.

    Only fields present in `fields` change. An empty or null value clears a
    setting back to its default; email and full_name cannot be cleared.
    Username and password are not editable here.

    Raises:
        InvalidInput: Unknown field, bad value, email used by another account
        NotFound: User does not exist
        Conflict: A concurrent registration took the email
    """
    columns = _profile_columns(dict(fields or {}))

    with transaction(conn):
        get_user(conn, user_id)
        if "email" in columns and conn.execute(
            "SELECT 1 FROM users WHERE email = ? AND id != ?", (columns["email"], user_id)
        ).fetchone():
            raise InvalidInput("Email already used")

        if columns:
            assignments = ", ".join(f"{col} = ?" for col in columns)
            try:
                conn.execute(f"UPDATE users SET {assignments} WHERE id = ?", (*columns.values(), user_id))
            except sqlite3.IntegrityError as e:
                print(f"[PROFILE] IntegrityError caught: {e}")
                raise Conflict("Email was just registered by another account")
        user = get_user(conn, user_id)

    print(f"[PROFILE] Updated user_id={user_id}: {sorted(columns)}")
    return user
