"""
backend/membership.py

Membership ledger: who belongs to which project, and in what role.

Two tables hold the same fact from opposite directions:
- project_members  (project_id, user_id, role, position) - source of truth
- user_projects    (user_id, project_id)                 - User.projects mirror

Every helper here writes both sides in the same call. Helpers never open or
commit a transaction themselves; callers wrap them in db.transaction() so the
pair of writes lands or rolls back together.

Guard helpers (assert_project_consistent) run inside the transaction right
before COMMIT, so an inconsistent state is rolled back instead of persisted.
"""

from __future__ import annotations

import sqlite3
from typing import Iterable, List, Optional, Sequence

from backend.config import IS_DEV
from backend.db import now_iso
from backend.errors import Internal
from backend.models import MemberRole, Membership


# ---------------------------------------------------------
# Reads
# ---------------------------------------------------------
def load_members(conn: sqlite3.Connection, project_id: int) -> List[Membership]:
    """Owner first, then collaborators in stored order."""
    rows = conn.execute(
        """
        SELECT user_id, role, position
        FROM project_members
        WHERE project_id = ?
        ORDER BY CASE role WHEN 'owner' THEN 0 ELSE 1 END, position, rowid
        """,
        (project_id,),
    ).fetchall()
    return [Membership(user_id=r["user_id"], role=r["role"], position=r["position"]) for r in rows]


def user_project_ids(conn: sqlite3.Connection, user_id: int) -> List[int]:
    """The denormalized User.projects list."""
    rows = conn.execute(
        "SELECT project_id FROM user_projects WHERE user_id = ? ORDER BY added_at, project_id",
        (user_id,),
    ).fetchall()
    return [r["project_id"] for r in rows]


def missing_user_ids(conn: sqlite3.Connection, user_ids: Iterable[int]) -> List[int]:
    """Return the ids that do not resolve to an existing user (input order kept)."""
    ids = list(user_ids)
    if not ids:
        return []
    placeholders = ",".join("?" for _ in ids)
    rows = conn.execute(f"SELECT id FROM users WHERE id IN ({placeholders})", ids).fetchall()
    found = {r["id"] for r in rows}
    return [i for i in ids if i not in found]


def _next_position(conn: sqlite3.Connection, project_id: int) -> int:
    row = conn.execute(
        "SELECT MAX(position) AS p FROM project_members WHERE project_id = ?",
        (project_id,),
    ).fetchone()
    return 0 if row is None or row["p"] is None else row["p"] + 1


# ---------------------------------------------------------
# Back-reference writes (User.projects)
# ---------------------------------------------------------
def link_user(conn: sqlite3.Connection, user_id: int, project_id: int) -> None:
    conn.execute(
        "INSERT OR IGNORE INTO user_projects (user_id, project_id, added_at) VALUES (?, ?, ?)",
        (user_id, project_id, now_iso()),
    )


def unlink_user(conn: sqlite3.Connection, user_id: int, project_id: int) -> None:
    conn.execute(
        "DELETE FROM user_projects WHERE user_id = ? AND project_id = ?",
        (user_id, project_id),
    )


# ---------------------------------------------------------
# Ledger writes (both sides)
# ---------------------------------------------------------
def add_owner(conn: sqlite3.Connection, project_id: int, user_id: int) -> None:
    conn.execute(
        "INSERT INTO project_members (project_id, user_id, role, position, created_at) VALUES (?, ?, 'owner', 0, ?)",
        (project_id, user_id, now_iso()),
    )
    link_user(conn, user_id, project_id)


def add_collaborators(conn: sqlite3.Connection, project_id: int, user_ids: Sequence[int]) -> None:
    """Append collaborators after the existing ones, in the given order."""
    position = _next_position(conn, project_id)
    now = now_iso()
    for user_id in user_ids:
        conn.execute(
            "INSERT INTO project_members (project_id, user_id, role, position, created_at) "
            "VALUES (?, ?, 'collaborator', ?, ?)",
            (project_id, user_id, position, now),
        )
        link_user(conn, user_id, project_id)
        position += 1


def remove_collaborators(conn: sqlite3.Connection, project_id: int, user_ids: Sequence[int]) -> int:
    """Remove collaborator rows (never the owner). Returns rows removed."""
    removed = 0
    for user_id in user_ids:
        cur = conn.execute(
            "DELETE FROM project_members WHERE project_id = ? AND user_id = ? AND role = 'collaborator'",
            (project_id, user_id),
        )
        if cur.rowcount:
            unlink_user(conn, user_id, project_id)
            removed += cur.rowcount
    return removed


def transfer_ownership(conn: sqlite3.Connection, project_id: int, old_owner_id: int, new_owner_id: int) -> None:
    """
    Drop the departing owner and promote an existing collaborator.

    The old owner row goes first so the one-owner index never sees two owners.
    """
    conn.execute(
        "DELETE FROM project_members WHERE project_id = ? AND user_id = ? AND role = 'owner'",
        (project_id, old_owner_id),
    )
    unlink_user(conn, old_owner_id, project_id)
    cur = conn.execute(
        "UPDATE project_members SET role = 'owner', position = 0 "
        "WHERE project_id = ? AND user_id = ? AND role = 'collaborator'",
        (project_id, new_owner_id),
    )
    if cur.rowcount != 1:
        raise Internal("Ownership transfer failed")


def clear_project(conn: sqlite3.Connection, project_id: int) -> List[int]:
    """Remove every membership row and back-reference for a project. Returns former member ids."""
    rows = conn.execute("SELECT user_id FROM project_members WHERE project_id = ?", (project_id,)).fetchall()
    member_ids = [r["user_id"] for r in rows]
    conn.execute("DELETE FROM project_members WHERE project_id = ?", (project_id,))
    # Also sweep stray back-references so none can dangle after deletion
    conn.execute("DELETE FROM user_projects WHERE project_id = ?", (project_id,))
    return member_ids


# ---------------------------------------------------------
# Invariant guards
# ---------------------------------------------------------
def membership_violations(conn: sqlite3.Connection, project_id: Optional[int] = None) -> List[str]:
    """
    List ledger inconsistencies (empty list = consistent).

    Checks, for one project or for the whole database:
    - each existing project has exactly one owner
    - every member has a user_projects row
    - every user_projects row matches a member of an existing project
    """
    scope = "" if project_id is None else " AND p.id = ?"
    params: tuple = () if project_id is None else (project_id,)
    problems: List[str] = []

    rows = conn.execute(
        f"""
        SELECT p.id AS project_id,
               (SELECT COUNT(*) FROM project_members m WHERE m.project_id = p.id AND m.role = 'owner') AS owners
        FROM projects p
        WHERE 1 = 1{scope}
        """,
        params,
    ).fetchall()
    for r in rows:
        if r["owners"] != 1:
            problems.append(f"project {r['project_id']} has {r['owners']} owners")

    m_scope = "" if project_id is None else " AND m.project_id = ?"
    rows = conn.execute(
        f"""
        SELECT m.project_id, m.user_id
        FROM project_members m
        LEFT JOIN user_projects up ON up.user_id = m.user_id AND up.project_id = m.project_id
        WHERE up.user_id IS NULL{m_scope}
        """,
        params,
    ).fetchall()
    for r in rows:
        problems.append(f"user {r['user_id']} is a member of project {r['project_id']} but not linked")

    u_scope = "" if project_id is None else " AND up.project_id = ?"
    rows = conn.execute(
        f"""
        SELECT up.project_id, up.user_id
        FROM user_projects up
        LEFT JOIN project_members m ON m.user_id = up.user_id AND m.project_id = up.project_id
        WHERE m.user_id IS NULL{u_scope}
        """,
        params,
    ).fetchall()
    for r in rows:
        problems.append(f"user {r['user_id']} links project {r['project_id']} without membership")

    return problems


def assert_project_consistent(conn: sqlite3.Connection, project_id: int, label: str = "") -> None:
    """
    Guardrail: call inside a transaction before COMMIT.

    Raises:
        Internal: If the ledger would be left inconsistent (caller's
            transaction then rolls back to the before-state)
    """
    problems = membership_violations(conn, project_id)
    if problems:
        print(f"[LEDGER] Membership invariant violated{f' in {label}' if label else ''}: {problems[:3]}")
        raise Internal("Membership update could not be applied")
    if IS_DEV:
        print(f"[LEDGER] Consistent: project_id={project_id}{f' ({label})' if label else ''}")
