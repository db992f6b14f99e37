"""
backend/notes.py

One free-form note per project.

Reading follows the project's read policy (public projects are readable by
anyone signed in) and creates an empty note on first access. Saving needs
membership. Deleting is owner-only, unlike tasks which any member may delete.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Optional

from backend.authz import Operation, require_access
from backend.config import IS_DEV
from backend.db import now_iso, transaction
from backend.errors import InvalidInput, NotFound
from backend.models import Note
from backend.projects import load_project


def _row_to_note(row) -> Note:
    return Note(
        id=row["id"],
        project_id=row["project_id"],
        content=row["content"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _find_note(conn: sqlite3.Connection, project_id: int) -> Optional[Note]:
    row = conn.execute("SELECT * FROM notes WHERE project_id = ?", (project_id,)).fetchone()
    return _row_to_note(row) if row else None


def get_note(conn: sqlite3.Connection, project_id: int, caller_id: int) -> Note:
    with transaction(conn):
        project = load_project(conn, project_id)
        require_access(project, caller_id, Operation.READ)

        note = _find_note(conn, project_id)
        if note is None:
            now = now_iso()
            conn.execute(
                "INSERT INTO notes (project_id, content, created_at, updated_at) VALUES (?, '', ?, ?)",
                (project_id, now, now),
            )
            note = _find_note(conn, project_id)
        return note


def save_note(conn: sqlite3.Connection, project_id: int, caller_id: int, content: Any) -> Note:
    if content is None:
        content = ""
    if not isinstance(content, str):
        raise InvalidInput("content must be a string")

    with transaction(conn):
        project = load_project(conn, project_id)
        require_access(project, caller_id, Operation.WRITE)

        now = now_iso()
        conn.execute(
            """
            INSERT INTO notes (project_id, content, created_at, updated_at) VALUES (?, ?, ?, ?)
            ON CONFLICT(project_id) DO UPDATE SET content = excluded.content, updated_at = excluded.updated_at
            """,
            (project_id, content, now, now),
        )
        note = _find_note(conn, project_id)

    if IS_DEV:
        print(f"[NOTES] Saved note for project_id={project_id} by user_id={caller_id} ({len(content)} chars)")
    return note


def delete_note(conn: sqlite3.Connection, note_id: int, caller_id: int) -> None:
    """
    Raises:
        NotFound: Note or its project is missing
        AccessDenied: Caller is not the project owner
    """
    with transaction(conn):
        row = conn.execute("SELECT * FROM notes WHERE id = ?", (note_id,)).fetchone()
        if not row:
            raise NotFound("Note not found")
        project = load_project(conn, row["project_id"])
        require_access(project, caller_id, Operation.ADMIN)
        conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))

    print(f"[NOTES] Deleted note_id={note_id} of project_id={row['project_id']}")
