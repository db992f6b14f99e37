"""
backend/routes_notes.py

Project note endpoints (one note per project).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from backend.auth_context import AuthContext, require_auth_context
from backend.db import get_db
from backend.schemas import NoteResponse, NoteSaveRequest
from backend import notes

router = APIRouter(
    prefix="/api/notes",
    tags=["notes"],
)


@router.get("/project/{project_id}", response_model=NoteResponse)
def get_note(
    project_id: int = Path(..., ge=1),
    ctx: AuthContext = Depends(require_auth_context),
) -> NoteResponse:
    conn = get_db()
    try:
        note = notes.get_note(conn, project_id, ctx.user_id)
    finally:
        conn.close()
    return NoteResponse.from_note(note)


@router.post("", response_model=NoteResponse)
def save_note(
    request: NoteSaveRequest,
    ctx: AuthContext = Depends(require_auth_context),
) -> NoteResponse:
    conn = get_db()
    try:
        note = notes.save_note(conn, request.project_id, ctx.user_id, request.content)
    finally:
        conn.close()
    return NoteResponse.from_note(note)


@router.delete("/{note_id}")
def delete_note(
    note_id: int = Path(..., ge=1),
    ctx: AuthContext = Depends(require_auth_context),
) -> dict:
    """Owner only."""
    conn = get_db()
    try:
        notes.delete_note(conn, note_id, ctx.user_id)
    finally:
        conn.close()
    return {"deleted": True, "note_id": note_id}
