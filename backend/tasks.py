"""
backend/tasks.py

Per-project task sequence.

`order` is assigned at creation as (max order in project) + 1, or 0 for the
first task. Listing sorts by order, then creation time, then id, so two tasks
that ever end up sharing an order value still come back in a stable sequence.

Any project member may create, edit, complete or delete any task in the
project; there is no creator-only restriction.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Dict, List, Optional

from backend.authz import Operation, require_access
from backend.config import IS_DEV
from backend.db import now_iso, transaction
from backend.errors import InvalidInput, NotFound
from backend.models import Priority, Task
from backend.projects import clean_date, load_project

TASK_UPDATABLE_FIELDS = ("name", "completed", "priority", "due", "order")


def _clean_task_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidInput("Task name required")
    return name.strip()


def _clean_priority(value: Any) -> str:
    if value is None:
        return Priority.medium.value
    try:
        return Priority(value).value
    except ValueError:
        raise InvalidInput("priority must be 'low', 'medium' or 'high'")


def next_order(conn: sqlite3.Connection, project_id: int) -> int:
    row = conn.execute(
        "SELECT MAX(sort_order) AS max_order FROM tasks WHERE project_id = ?",
        (project_id,),
    ).fetchone()
    if row is None or row["max_order"] is None:
        return 0
    return row["max_order"] + 1


def load_task(conn: sqlite3.Connection, task_id: int) -> Task:
    row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
    if not row:
        raise NotFound("Task not found")
    return Task.from_row(row)


def _load_task_for_write(conn: sqlite3.Connection, task_id: int, caller_id: int) -> Task:
    task = load_task(conn, task_id)
    project = load_project(conn, task.project_id)
    require_access(project, caller_id, Operation.WRITE)
    return task


# ---------------------------------------------------------
# Operations
# ---------------------------------------------------------
def append_task(
    conn: sqlite3.Connection,
    project_id: int,
    caller_id: int,
    name: Any,
    priority: Any = None,
    due: Any = None,
) -> Task:
    """
    Add a task at the end of the project's sequence.

    Membership is required; a public project does not let outsiders add tasks.

    Raises:
        InvalidInput, NotFound, AccessDenied
    """
    clean_name = _clean_task_name(name)
    clean_priority = _clean_priority(priority)
    clean_due = clean_date(due, "due")

    with transaction(conn):
        project = load_project(conn, project_id)
        require_access(project, caller_id, Operation.WRITE)

        order = next_order(conn, project_id)
        now = now_iso()
        cur = conn.execute(
            """
            INSERT INTO tasks (project_id, creator_id, name, completed, priority, due, sort_order, created_at, updated_at)
            VALUES (?, ?, ?, 0, ?, ?, ?, ?, ?)
            """,
            (project_id, caller_id, clean_name, clean_priority, clean_due, order, now, now),
        )
        task = load_task(conn, cur.lastrowid)

    if IS_DEV:
        print(f"[TASKS] Appended task_id={task.id}, project_id={project_id}, order={order}")
    return task


def list_tasks(conn: sqlite3.Connection, project_id: int, caller_id: Optional[int]) -> List[Task]:
    """
    Tasks of a project in sequence order.

    Raises:
        NotFound, AccessDenied (private project, caller not a member)
    """
    project = load_project(conn, project_id)
    require_access(project, caller_id, Operation.READ)
    rows = conn.execute(
        "SELECT * FROM tasks WHERE project_id = ? ORDER BY sort_order ASC, created_at ASC, id ASC",
        (project_id,),
    ).fetchall()
    return [Task.from_row(r) for r in rows]


def toggle_complete(conn: sqlite3.Connection, task_id: int, caller_id: int) -> Task:
    with transaction(conn):
        task = _load_task_for_write(conn, task_id, caller_id)
        conn.execute(
            "UPDATE tasks SET completed = ?, updated_at = ? WHERE id = ?",
            (0 if task.completed else 1, now_iso(), task_id),
        )
        return load_task(conn, task_id)


def update_task(conn: sqlite3.Connection, task_id: int, caller_id: int, fields: Dict[str, Any]) -> Task:
    """
    Edit allow-listed task fields (name, completed, priority, due, order).

    Raises:
        NotFound, AccessDenied, InvalidInput
    """
    fields = dict(fields or {})
    unknown = sorted(set(fields) - set(TASK_UPDATABLE_FIELDS))
    if unknown:
        raise InvalidInput(f"Fields cannot be updated: {', '.join(unknown)}")

    columns: Dict[str, Any] = {}
    if "name" in fields:
        columns["name"] = _clean_task_name(fields["name"])
    if "completed" in fields:
        if not isinstance(fields["completed"], bool):
            raise InvalidInput("completed must be true or false")
        columns["completed"] = 1 if fields["completed"] else 0
    if "priority" in fields:
        if fields["priority"] is None:
            raise InvalidInput("priority must be 'low', 'medium' or 'high'")
        columns["priority"] = _clean_priority(fields["priority"])
    if "due" in fields:
        columns["due"] = clean_date(fields["due"], "due")
    if "order" in fields:
        order = fields["order"]
        if isinstance(order, bool) or not isinstance(order, int):
            raise InvalidInput("order must be an integer")
        columns["sort_order"] = order

    with transaction(conn):
        _load_task_for_write(conn, task_id, caller_id)
        if columns:
            columns["updated_at"] = now_iso()
            assignments = ", ".join(f"{col} = ?" for col in columns)
            conn.execute(f"UPDATE tasks SET {assignments} WHERE id = ?", (*columns.values(), task_id))
        return load_task(conn, task_id)


def delete_task(conn: sqlite3.Connection, task_id: int, caller_id: int) -> int:
    with transaction(conn):
        task = _load_task_for_write(conn, task_id, caller_id)
        conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))

    if IS_DEV:
        print(f"[TASKS] Deleted task_id={task_id} from project_id={task.project_id} by user_id={caller_id}")
    return task_id
