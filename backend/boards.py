"""
backend/boards.py

Project media board: an ordered list of image references.

Images are stored elsewhere; rows here hold the public url and the storage
key (public_id) so a removal can be forwarded to MediaStorage.
"""

from __future__ import annotations

import sqlite3
from typing import Any, List

from backend.authz import Operation, require_access
from backend.config import IS_DEV
from backend.db import now_iso, transaction
from backend.errors import InvalidInput, NotFound
from backend.models import BoardImage
from backend.projects import load_project


def _row_to_image(row) -> BoardImage:
    return BoardImage(
        id=row["id"],
        project_id=row["project_id"],
        url=row["url"],
        public_id=row["public_id"],
        uploaded_by=row["uploaded_by"],
        created_at=row["created_at"],
    )


def list_board(conn: sqlite3.Connection, project_id: int, caller_id: int) -> List[BoardImage]:
    project = load_project(conn, project_id)
    require_access(project, caller_id, Operation.READ)
    rows = conn.execute(
        "SELECT * FROM board_images WHERE project_id = ? ORDER BY created_at ASC, id ASC",
        (project_id,),
    ).fetchall()
    return [_row_to_image(r) for r in rows]


def add_image(conn: sqlite3.Connection, project_id: int, caller_id: int, url: Any, public_id: Any) -> BoardImage:
    if not isinstance(url, str) or not url.strip():
        raise InvalidInput("url is required")
    if not isinstance(public_id, str) or not public_id.strip():
        raise InvalidInput("public_id is required")

    with transaction(conn):
        project = load_project(conn, project_id)
        require_access(project, caller_id, Operation.WRITE)
        cur = conn.execute(
            "INSERT INTO board_images (project_id, url, public_id, uploaded_by, created_at) VALUES (?, ?, ?, ?, ?)",
            (project_id, url.strip(), public_id.strip(), caller_id, now_iso()),
        )
        row = conn.execute("SELECT * FROM board_images WHERE id = ?", (cur.lastrowid,)).fetchone()

    if IS_DEV:
        print(f"[BOARDS] Added image_id={row['id']} to project_id={project_id}")
    return _row_to_image(row)


def remove_image(conn: sqlite3.Connection, image_id: int, caller_id: int) -> BoardImage:
    """
    Delete an image reference. The caller releases the returned public_id.

    Raises:
        NotFound, AccessDenied
    """
    with transaction(conn):
        row = conn.execute("SELECT * FROM board_images WHERE id = ?", (image_id,)).fetchone()
        if not row:
            raise NotFound("Image not found")
        project = load_project(conn, row["project_id"])
        require_access(project, caller_id, Operation.WRITE)
        conn.execute("DELETE FROM board_images WHERE id = ?", (image_id,))

    print(f"[BOARDS] Removed image_id={image_id} from project_id={row['project_id']}")
    return _row_to_image(row)
