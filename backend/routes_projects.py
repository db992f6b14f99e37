"""
backend/routes_projects.py

Project endpoints.

Security guarantees:
- All endpoints require authentication (require_auth_context)
- The caller id comes from the token only, never from the body
- Access decisions are made in the service layer (authz.require_access)
- Board media of deleted projects is released through MediaStorage
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Path

from backend.auth_context import AuthContext, require_auth_context
from backend.config import IS_DEV
from backend.db import get_db
from backend.models import LeaveOutcome
from backend.schemas import (
    CollaboratorsRequest,
    LeaveResponse,
    ProjectCreateRequest,
    ProjectResponse,
    ProjectUpdateRequest,
)
from backend.storage import MediaStorage, get_media_storage
from backend import projects

router = APIRouter(
    prefix="/api/projects",
    tags=["projects"],
)


def _response(conn, project) -> ProjectResponse:
    return ProjectResponse.from_project(project, projects.member_summaries(conn, project))


@router.post("", response_model=ProjectResponse, status_code=201)
def create_project(
    request: ProjectCreateRequest,
    ctx: AuthContext = Depends(require_auth_context),
) -> ProjectResponse:
    """
    Create a project owned by the caller.

    Raises:
        InvalidInput (400): Empty name
        InvalidCollaborator (400): Unknown collaborator id
    """
    conn = get_db()
    try:
        project = projects.create_project(
            conn,
            owner_id=ctx.user_id,
            name=request.name,
            collaborator_ids=request.collaborators,
            metadata=request.metadata(),
        )
        return _response(conn, project)
    finally:
        conn.close()


@router.get("", response_model=List[ProjectResponse])
def list_projects(ctx: AuthContext = Depends(require_auth_context)) -> List[ProjectResponse]:
    conn = get_db()
    try:
        found = projects.list_projects_for_user(conn, ctx.user_id)
        if IS_DEV:
            print(f"[PROJECTS] Listed {len(found)} projects for user_id={ctx.user_id}")
        return [_response(conn, p) for p in found]
    finally:
        conn.close()


@router.get("/{slug}", response_model=ProjectResponse)
def get_project(slug: str, ctx: AuthContext = Depends(require_auth_context)) -> ProjectResponse:
    conn = get_db()
    try:
        project = projects.get_project_by_slug(conn, slug, ctx.user_id)
        return _response(conn, project)
    finally:
        conn.close()


@router.patch("/{project_id}", response_model=ProjectResponse)
def update_project(
    request: ProjectUpdateRequest,
    project_id: int = Path(..., ge=1),
    ctx: AuthContext = Depends(require_auth_context),
) -> ProjectResponse:
    conn = get_db()
    try:
        project = projects.update_project(conn, project_id, ctx.user_id, request.fields())
        return _response(conn, project)
    finally:
        conn.close()


@router.put("/{project_id}/collaborators", response_model=ProjectResponse)
def set_collaborators(
    request: CollaboratorsRequest,
    project_id: int = Path(..., ge=1),
    ctx: AuthContext = Depends(require_auth_context),
) -> ProjectResponse:
    conn = get_db()
    try:
        project = projects.reconcile_collaborators(conn, project_id, ctx.user_id, request.collaborators)
        return _response(conn, project)
    finally:
        conn.close()


@router.post("/{project_id}/leave", response_model=LeaveResponse)
def leave_project(
    project_id: int = Path(..., ge=1),
    ctx: AuthContext = Depends(require_auth_context),
    storage: MediaStorage = Depends(get_media_storage),
) -> LeaveResponse:
    """
    Leave a project. outcome is one of left / transferred / deleted;
    project is null when the project was deleted.
    """
    conn = get_db()
    try:
        result = projects.leave_project(conn, project_id, ctx.user_id)
        project = _response(conn, result.project) if result.project is not None else None
    finally:
        conn.close()

    if result.outcome == LeaveOutcome.deleted:
        storage.destroy_many(result.removed_media)

    return LeaveResponse(outcome=result.outcome, project=project, new_owner_id=result.new_owner_id)


@router.delete("/{project_id}/members/{user_id}", response_model=ProjectResponse)
def remove_member(
    project_id: int = Path(..., ge=1),
    user_id: int = Path(..., ge=1),
    ctx: AuthContext = Depends(require_auth_context),
) -> ProjectResponse:
    conn = get_db()
    try:
        project = projects.remove_member(conn, project_id, ctx.user_id, user_id)
        return _response(conn, project)
    finally:
        conn.close()


@router.delete("/{project_id}")
def delete_project(
    project_id: int = Path(..., ge=1),
    ctx: AuthContext = Depends(require_auth_context),
    storage: MediaStorage = Depends(get_media_storage),
) -> dict:
    conn = get_db()
    try:
        media = projects.delete_project(conn, project_id, ctx.user_id)
    finally:
        conn.close()

    storage.destroy_many(media)
    return {"deleted": True, "project_id": project_id}
