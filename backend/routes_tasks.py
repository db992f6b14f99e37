"""
backend/routes_tasks.py

Task endpoints. Any project member may create, edit, complete or delete
tasks; listing follows the project's read policy.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Path

from backend.auth_context import AuthContext, require_auth_context
from backend.db import get_db
from backend.schemas import TaskCreateRequest, TaskResponse, TaskUpdateRequest
from backend import tasks

router = APIRouter(
    prefix="/api/tasks",
    tags=["tasks"],
)


@router.post("", response_model=TaskResponse, status_code=201)
def create_task(
    request: TaskCreateRequest,
    ctx: AuthContext = Depends(require_auth_context),
) -> TaskResponse:
    conn = get_db()
    try:
        task = tasks.append_task(
            conn,
            request.project_id,
            ctx.user_id,
            request.name,
            priority=request.priority.value if request.priority else None,
            due=request.due,
        )
    finally:
        conn.close()
    return TaskResponse.from_task(task)


@router.get("/project/{project_id}", response_model=List[TaskResponse])
def list_tasks(
    project_id: int = Path(..., ge=1),
    ctx: AuthContext = Depends(require_auth_context),
) -> List[TaskResponse]:
    conn = get_db()
    try:
        found = tasks.list_tasks(conn, project_id, ctx.user_id)
    finally:
        conn.close()
    return [TaskResponse.from_task(t) for t in found]


@router.patch("/{task_id}/complete", response_model=TaskResponse)
def toggle_complete(
    task_id: int = Path(..., ge=1),
    ctx: AuthContext = Depends(require_auth_context),
) -> TaskResponse:
    conn = get_db()
    try:
        task = tasks.toggle_complete(conn, task_id, ctx.user_id)
    finally:
        conn.close()
    return TaskResponse.from_task(task)


@router.patch("/{task_id}", response_model=TaskResponse)
def update_task(
    request: TaskUpdateRequest,
    task_id: int = Path(..., ge=1),
    ctx: AuthContext = Depends(require_auth_context),
) -> TaskResponse:
    conn = get_db()
    try:
        task = tasks.update_task(conn, task_id, ctx.user_id, request.fields())
    finally:
        conn.close()
    return TaskResponse.from_task(task)


@router.delete("/{task_id}")
def delete_task(
    task_id: int = Path(..., ge=1),
    ctx: AuthContext = Depends(require_auth_context),
) -> dict:
    conn = get_db()
    try:
        deleted_id = tasks.delete_task(conn, task_id, ctx.user_id)
    finally:
        conn.close()
    return {"deleted": True, "task_id": deleted_id}
