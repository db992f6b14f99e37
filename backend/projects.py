"""
backend/projects.py

Project lifecycle: create, edit, collaborator reconciliation, leave /
ownership transfer, member removal and deletion.

Every mutating operation follows the same shape:

    with transaction(conn):
        project = load_project(conn, project_id)      # NotFound
        require_access(project, caller_id, op)         # AccessDenied
        ...validate input...                           # InvalidInput
        ...write project_members + user_projects...
        assert_project_consistent(conn, project_id)    # Internal -> rollback

so validation and permission failures never leave partial writes, and a
failure midway through the dual write rolls back to the before-state.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from backend.authz import Operation, require_access
from backend.config import IS_DEV
from backend.db import now_iso, transaction
from backend.errors import AccessDenied, InvalidCollaborator, InvalidInput, NotFound
from backend import membership
from backend.models import LeaveOutcome, Priority, Project, Visibility
from backend.slugs import insert_with_unique_slug

# Fields a member may change directly; collaborators go through
# reconcile_collaborators() because they have cross-entity side effects.
UPDATABLE_FIELDS = ("name", "icon", "visibility", "subject", "deadline", "priority", "links")
METADATA_FIELDS = tuple(f for f in UPDATABLE_FIELDS if f != "name")


@dataclass
class LeaveResult:
    outcome: LeaveOutcome
    project: Optional[Project] = None
    new_owner_id: Optional[int] = None
    removed_media: List[str] = field(default_factory=list)


# ---------------------------------------------------------
# Loading
# ---------------------------------------------------------
def load_project(conn: sqlite3.Connection, project_id: int) -> Project:
    row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
    if not row:
        raise NotFound("Project not found")
    return Project.from_row(row, membership.load_members(conn, project_id))


def find_project_by_slug(conn: sqlite3.Connection, slug: str) -> Project:
    row = conn.execute("SELECT * FROM projects WHERE slug = ?", (slug,)).fetchone()
    if not row:
        raise NotFound("Project not found")
    return Project.from_row(row, membership.load_members(conn, row["id"]))


def get_project_by_slug(conn: sqlite3.Connection, slug: str, caller_id: int) -> Project:
    project = find_project_by_slug(conn, slug)
    require_access(project, caller_id, Operation.READ)
    return project


def list_projects_for_user(conn: sqlite3.Connection, user_id: int) -> List[Project]:
    """Projects where user_id is owner or collaborator, most recently updated first."""
    rows = conn.execute(
        """
        SELECT p.*
        FROM projects p
        JOIN project_members m ON m.project_id = p.id
        WHERE m.user_id = ?
        ORDER BY p.updated_at DESC, p.id DESC
        """,
        (user_id,),
    ).fetchall()
    return [Project.from_row(r, membership.load_members(conn, r["id"])) for r in rows]


def member_summaries(conn: sqlite3.Connection, project: Project) -> List[Dict[str, Any]]:
    """Owner then collaborators, populated with public user fields."""
    ids = [m.user_id for m in project.members]
    if not ids:
        return []
    placeholders = ",".join("?" for _ in ids)
    rows = conn.execute(
        f"SELECT id, username, full_name FROM users WHERE id IN ({placeholders})", ids
    ).fetchall()
    by_id = {r["id"]: r for r in rows}
    summaries = []
    for m in project.members:
        user = by_id.get(m.user_id)
        summaries.append({
            "id": m.user_id,
            "username": user["username"] if user else None,
            "full_name": user["full_name"] if user else None,
            "role": m.role.value,
        })
    return summaries


# ---------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------
def _clean_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidInput("Project name is required")
    return name.strip()


def _clean_collaborator_ids(raw: Any, owner_id: Optional[int]) -> List[int]:
    """Dedupe (first occurrence wins) and drop the owner."""
    if raw is None:
        return []
    if not isinstance(raw, (list, tuple)):
        raise InvalidInput("Collaborators must be a list of user ids")
    cleaned: List[int] = []
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidInput("Collaborators must be a list of user ids")
        if value == owner_id or value in cleaned:
            continue
        cleaned.append(value)
    return cleaned


def clean_date(value: Any, label: str) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, str):
        try:
            datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise InvalidInput(f"{label} must be an ISO date")
        return value
    raise InvalidInput(f"{label} must be an ISO date")


def _field_columns(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate an update/metadata dict and map it to column values.

    Raises:
        InvalidInput: Unknown field or bad value
    """
    unknown = sorted(set(fields) - set(UPDATABLE_FIELDS))
    if unknown:
        if "collaborators" in unknown:
            raise InvalidInput("Collaborators are changed through the collaborators endpoint")
        raise InvalidInput(f"Fields cannot be updated: {', '.join(unknown)}")

    columns: Dict[str, Any] = {}
    for key, value in fields.items():
        if key == "name":
            columns["name"] = _clean_name(value)
        elif key == "icon":
            if not isinstance(value, str) or not value:
                raise InvalidInput("icon must be a non-empty string")
            columns["icon"] = value
        elif key == "visibility":
            try:
                columns["visibility"] = Visibility(value).value
            except ValueError:
                raise InvalidInput("visibility must be 'private' or 'public'")
        elif key == "priority":
            try:
                columns["priority"] = Priority(value).value
            except ValueError:
                raise InvalidInput("priority must be 'low', 'medium' or 'high'")
        elif key == "subject":
            if value is not None and not isinstance(value, str):
                raise InvalidInput("subject must be a string")
            columns["subject"] = value.strip() if isinstance(value, str) else None
        elif key == "deadline":
            columns["deadline"] = clean_date(value, "deadline")
        elif key == "links":
            if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
                raise InvalidInput("links must be a list of strings")
            columns["links_json"] = json.dumps(list(value))
    return columns


def _touch(conn: sqlite3.Connection, project_id: int) -> None:
    conn.execute("UPDATE projects SET updated_at = ? WHERE id = ?", (now_iso(), project_id))


def _require_existing_users(conn: sqlite3.Connection, user_ids: Iterable[int]) -> None:
    missing = membership.missing_user_ids(conn, user_ids)
    if missing:
        print(f"[PROJECTS] Unknown collaborator ids: {missing}")
        raise InvalidCollaborator("Invalid collaborator detected")


# ---------------------------------------------------------
# Create / update
# ---------------------------------------------------------
def create_project(
    conn: sqlite3.Connection,
    owner_id: int,
    name: Any,
    collaborator_ids: Any = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Project:
    """
    Create a project owned by owner_id.

    The project row, its slug, the owner and collaborator memberships and
    every member's User.projects entry are written in one transaction.

    Raises:
        InvalidInput: Empty name, malformed collaborator list or metadata
        InvalidCollaborator: A collaborator id does not exist
        Internal: Slug allocation kept losing races
    """
    clean_name = _clean_name(name)
    collaborators = _clean_collaborator_ids(collaborator_ids, owner_id)
    metadata = dict(metadata or {})
    if "name" in metadata:
        raise InvalidInput(f"Metadata fields are: {', '.join(METADATA_FIELDS)}")
    columns = _field_columns(metadata)

    with transaction(conn):
        _require_existing_users(conn, collaborators)

        now = now_iso()
        values = {
            "name": clean_name,
            "icon": "🚀",
            "visibility": Visibility.private.value,
            "priority": Priority.medium.value,
            "links_json": "[]",
            "created_at": now,
            "updated_at": now,
        }
        values.update(columns)

        def _insert(slug: str) -> int:
            row = dict(values, slug=slug)
            names = ", ".join(row)
            placeholders = ", ".join("?" for _ in row)
            cur = conn.execute(f"INSERT INTO projects ({names}) VALUES ({placeholders})", tuple(row.values()))
            return cur.lastrowid

        project_id, slug = insert_with_unique_slug(conn, clean_name, _insert)

        membership.add_owner(conn, project_id, owner_id)
        membership.add_collaborators(conn, project_id, collaborators)
        membership.assert_project_consistent(conn, project_id, label="create_project")

        project = load_project(conn, project_id)

    print(f"[PROJECTS] Created project_id={project.id}, slug={slug!r}, owner={owner_id}, "
          f"collaborators={len(collaborators)}")
    return project


def update_project(conn: sqlite3.Connection, project_id: int, caller_id: int, fields: Dict[str, Any]) -> Project:
    """
    Change allow-listed fields. Slug is kept on rename so shared links stay valid.

    Raises:
        NotFound, AccessDenied, InvalidInput
    """
    with transaction(conn):
        project = load_project(conn, project_id)
        require_access(project, caller_id, Operation.WRITE)
        columns = _field_columns(dict(fields or {}))
        if not columns:
            return project

        columns["updated_at"] = now_iso()
        assignments = ", ".join(f"{col} = ?" for col in columns)
        conn.execute(
            f"UPDATE projects SET {assignments} WHERE id = ?",
            (*columns.values(), project_id),
        )
        project = load_project(conn, project_id)

    if IS_DEV:
        print(f"[PROJECTS] Updated project_id={project_id} by user_id={caller_id}: {sorted(columns)}")
    return project


# ---------------------------------------------------------
# Membership changes
# ---------------------------------------------------------
def reconcile_collaborators(conn: sqlite3.Connection, project_id: int, caller_id: int, new_ids: Any) -> Project:
    """
    Make the collaborator set equal to new_ids (owner always excluded).

    Added users get the project in their User.projects, removed users lose it,
    and the collaborator rows change, all in one transaction.

    Raises:
        NotFound, AccessDenied, InvalidInput / InvalidCollaborator
    """
    with transaction(conn):
        project = load_project(conn, project_id)
        require_access(project, caller_id, Operation.WRITE)

        target = _clean_collaborator_ids(new_ids, project.owner_id)
        current = project.collaborator_ids
        added = [uid for uid in target if uid not in current]
        removed = [uid for uid in current if uid not in target]

        _require_existing_users(conn, added)

        if not added and not removed:
            return project

        membership.remove_collaborators(conn, project_id, removed)
        membership.add_collaborators(conn, project_id, added)
        _touch(conn, project_id)
        membership.assert_project_consistent(conn, project_id, label="reconcile_collaborators")

        project = load_project(conn, project_id)

    print(f"[PROJECTS] Reconciled collaborators project_id={project_id}: +{added} -{removed}")
    return project


def leave_project(conn: sqlite3.Connection, project_id: int, caller_id: int) -> LeaveResult:
    """
    Remove the caller from the project.

    1. collaborator -> removed; project persists            (left)
    2. owner with collaborators -> first one promoted       (transferred)
    3. owner alone -> project deleted                       (deleted)

    Raises:
        NotFound: Project does not exist
        AccessDenied: Caller is not a member
    """
    with transaction(conn):
        project = load_project(conn, project_id)
        if not project.is_member(caller_id):
            print(f"[AUTHZ] Denied: project_id={project_id}, user_id={caller_id}, op=leave")
            raise AccessDenied("You are not a member of this project")

        if project.owner_id != caller_id:
            membership.remove_collaborators(conn, project_id, [caller_id])
            _touch(conn, project_id)
            membership.assert_project_consistent(conn, project_id, label="leave_project")
            result = LeaveResult(LeaveOutcome.left, load_project(conn, project_id))

        elif project.collaborator_ids:
            new_owner_id = project.collaborator_ids[0]
            membership.transfer_ownership(conn, project_id, caller_id, new_owner_id)
            _touch(conn, project_id)
            membership.assert_project_consistent(conn, project_id, label="leave_project")
            result = LeaveResult(LeaveOutcome.transferred, load_project(conn, project_id), new_owner_id)

        else:
            removed_media = _delete_project_rows(conn, project_id)
            membership.assert_project_consistent(conn, project_id, label="leave_project")
            result = LeaveResult(LeaveOutcome.deleted, None, removed_media=removed_media)

    print(f"[PROJECTS] user_id={caller_id} left project_id={project_id}: {result.outcome.value}"
          f"{f', new_owner={result.new_owner_id}' if result.new_owner_id else ''}")
    return result


def remove_member(conn: sqlite3.Connection, project_id: int, caller_id: int, target_id: int) -> Project:
    """
    Owner removes a collaborator. Removing a non-collaborator is a no-op.

    Raises:
        NotFound, AccessDenied (caller is not the owner)
    """
    with transaction(conn):
        project = load_project(conn, project_id)
        require_access(project, caller_id, Operation.ADMIN)

        if target_id not in project.collaborator_ids:
            if IS_DEV:
                print(f"[PROJECTS] remove_member no-op: project_id={project_id}, target={target_id}")
            return project

        membership.remove_collaborators(conn, project_id, [target_id])
        _touch(conn, project_id)
        membership.assert_project_consistent(conn, project_id, label="remove_member")
        project = load_project(conn, project_id)

    print(f"[PROJECTS] Removed user_id={target_id} from project_id={project_id} by owner={caller_id}")
    return project


# ---------------------------------------------------------
# Deletion
# ---------------------------------------------------------
def _delete_project_rows(conn: sqlite3.Connection, project_id: int) -> List[str]:
    """Delete the project and everything hanging off it. Returns board media keys to release."""
    media = [
        r["public_id"]
        for r in conn.execute("SELECT public_id FROM board_images WHERE project_id = ?", (project_id,)).fetchall()
    ]
    conn.execute("DELETE FROM board_images WHERE project_id = ?", (project_id,))
    conn.execute("DELETE FROM notes WHERE project_id = ?", (project_id,))
    conn.execute("DELETE FROM tasks WHERE project_id = ?", (project_id,))
    membership.clear_project(conn, project_id)
    conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
    return media


def delete_project(conn: sqlite3.Connection, project_id: int, caller_id: int) -> List[str]:
    """
    Owner deletes the project outright.

    Returns:
        Object-storage keys of board media that no longer have a project

    Raises:
        NotFound, AccessDenied
    """
    with transaction(conn):
        project = load_project(conn, project_id)
        require_access(project, caller_id, Operation.ADMIN)
        media = _delete_project_rows(conn, project_id)
        membership.assert_project_consistent(conn, project_id, label="delete_project")

    print(f"[PROJECTS] Deleted project_id={project_id} by owner={caller_id} ({len(media)} media)")
    return media
