# backend/db.py
# SQLite connection, transaction and schema helpers

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path as FsPath
from typing import Generator

from backend.config import DATABASE_PATH, IS_DEV
from backend.models import (
    DEFAULT_PROFILE_PICTURE,
    DEFAULT_SIDE_MENU_COLOR,
    DEFAULT_THEME_MODE,
    DEFAULT_WALLPAPER,
)

# Canonical absolute path (absolute DATABASE_PATH values are kept as-is)
DB_PATH = str(FsPath(__file__).resolve().parent / DATABASE_PATH)

# Seconds a writer waits on a locked database before failing
BUSY_TIMEOUT = 10.0


# ---------------------------------------------------------
# Connections
# ---------------------------------------------------------
def get_db() -> sqlite3.Connection:
    """
    Create and return a SQLite connection with Row factory.

    The connection runs in autocommit mode; multi-statement writes must go
    through transaction() so they commit or roll back as one unit.
    """
    conn = sqlite3.connect(DB_PATH, timeout=BUSY_TIMEOUT, isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
    """
    Run a block of statements as one atomic write.

    BEGIN IMMEDIATE takes the database write lock up front, so reads made
    inside the block (current collaborators, max task order, slug lookups) are
    not invalidated by another writer before COMMIT. Any exception rolls the
    whole block back and is re-raised.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    else:
        conn.execute("COMMIT")


def now_iso() -> str:
    # Fixed-width so ISO strings sort chronologically
    return datetime.utcnow().isoformat(timespec="microseconds") + "Z"


# ---------------------------------------------------------
# Schema
# ---------------------------------------------------------
def get_table_columns(conn: sqlite3.Connection, table_name: str) -> set:
    """Return set of column names for a table using PRAGMA table_info."""
    return {row["name"] for row in conn.execute(f"PRAGMA table_info({table_name})").fetchall()}


def ensure_column(conn: sqlite3.Connection, table_name: str, column_name: str, ddl_fragment: str) -> bool:
    """
    Add column to table if missing. Returns True if the column was added.

    Used for columns introduced after a table was first shipped, so older
    database files pick them up on startup.
    """
    if column_name in get_table_columns(conn, table_name):
        return False
    conn.execute(f"ALTER TABLE {table_name} ADD COLUMN {column_name} {ddl_fragment}")
    print(f"[MIGRATION] Added column {table_name}.{column_name} ({ddl_fragment})")
    return True


def init_db() -> None:
    conn = get_db()
    cur = conn.cursor()

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT UNIQUE NOT NULL,
            email TEXT UNIQUE NOT NULL,
            full_name TEXT NOT NULL DEFAULT '',
            password_hash TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
        """
    )

    # Profile and appearance settings
    ensure_column(conn, "users", "birth_month", "TEXT")
    ensure_column(conn, "users", "birth_day", "TEXT")
    ensure_column(conn, "users", "birth_year", "TEXT")
    ensure_column(conn, "users", "gender", "TEXT")
    ensure_column(conn, "users", "profile_picture", f"TEXT NOT NULL DEFAULT '{DEFAULT_PROFILE_PICTURE}'")
    ensure_column(conn, "users", "wallpaper", f"TEXT NOT NULL DEFAULT '{DEFAULT_WALLPAPER}'")
    ensure_column(conn, "users", "side_menu_color", f"TEXT NOT NULL DEFAULT '{DEFAULT_SIDE_MENU_COLOR}'")
    ensure_column(conn, "users", "theme_mode", f"TEXT NOT NULL DEFAULT '{DEFAULT_THEME_MODE}'")

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS projects (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            slug TEXT NOT NULL UNIQUE,
            icon TEXT NOT NULL DEFAULT '🚀',
            visibility TEXT NOT NULL DEFAULT 'private' CHECK (visibility IN ('private', 'public')),
            subject TEXT,
            deadline TEXT,
            priority TEXT NOT NULL DEFAULT 'medium' CHECK (priority IN ('low', 'medium', 'high')),
            links_json TEXT NOT NULL DEFAULT '[]',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )

    # Membership ledger: one row per member, role tags owner vs collaborator.
    # UNIQUE(project_id, user_id) keeps the owner out of the collaborator set.
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS project_members (
            project_id INTEGER NOT NULL,
            user_id INTEGER NOT NULL,
            role TEXT NOT NULL CHECK (role IN ('owner', 'collaborator')),
            position INTEGER NOT NULL,
            created_at TEXT NOT NULL,
            FOREIGN KEY (project_id) REFERENCES projects (id),
            FOREIGN KEY (user_id) REFERENCES users (id),
            UNIQUE (project_id, user_id)
        )
        """
    )
    cur.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_project_members_one_owner "
        "ON project_members(project_id) WHERE role = 'owner'"
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_project_members_user ON project_members(user_id)")

    # Denormalized User.projects back-reference, written explicitly alongside
    # project_members (no cascade).
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS user_projects (
            user_id INTEGER NOT NULL,
            project_id INTEGER NOT NULL,
            added_at TEXT NOT NULL,
            PRIMARY KEY (user_id, project_id),
            FOREIGN KEY (user_id) REFERENCES users (id)
        )
        """
    )

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_id INTEGER NOT NULL,
            creator_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            completed INTEGER NOT NULL DEFAULT 0,
            priority TEXT NOT NULL DEFAULT 'medium' CHECK (priority IN ('low', 'medium', 'high')),
            due TEXT,
            sort_order INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY (project_id) REFERENCES projects (id),
            FOREIGN KEY (creator_id) REFERENCES users (id)
        )
        """
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_project_order ON tasks(project_id, sort_order, created_at)")

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS notes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_id INTEGER NOT NULL UNIQUE,
            content TEXT NOT NULL DEFAULT '',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY (project_id) REFERENCES projects (id)
        )
        """
    )

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS board_images (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_id INTEGER NOT NULL,
            url TEXT NOT NULL,
            public_id TEXT NOT NULL,
            uploaded_by INTEGER NOT NULL,
            created_at TEXT NOT NULL,
            FOREIGN KEY (project_id) REFERENCES projects (id),
            FOREIGN KEY (uploaded_by) REFERENCES users (id)
        )
        """
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_board_images_project ON board_images(project_id)")

    conn.close()

    if IS_DEV:
        print(f"[DB] Schema ensured at {DB_PATH}")
