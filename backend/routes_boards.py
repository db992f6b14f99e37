"""
backend/routes_boards.py

Media board endpoints. Uploads go straight to object storage from the client;
this API only records and forgets (url, public_id) pairs.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from backend.auth_context import AuthContext, require_auth_context
from backend.db import get_db
from backend.schemas import BoardImageCreateRequest, BoardImageResponse, BoardResponse
from backend.storage import MediaStorage, get_media_storage
from backend import boards

router = APIRouter(
    prefix="/api/boards",
    tags=["boards"],
)


@router.get("/project/{project_id}", response_model=BoardResponse)
def get_board(
    project_id: int = Path(..., ge=1),
    ctx: AuthContext = Depends(require_auth_context),
) -> BoardResponse:
    conn = get_db()
    try:
        images = boards.list_board(conn, project_id, ctx.user_id)
    finally:
        conn.close()
    return BoardResponse(project_id=project_id, images=[BoardImageResponse.from_image(i) for i in images])


@router.post("/project/{project_id}/images", response_model=BoardImageResponse, status_code=201)
def add_image(
    request: BoardImageCreateRequest,
    project_id: int = Path(..., ge=1),
    ctx: AuthContext = Depends(require_auth_context),
) -> BoardImageResponse:
    conn = get_db()
    try:
        image = boards.add_image(conn, project_id, ctx.user_id, request.url, request.public_id)
    finally:
        conn.close()
    return BoardImageResponse.from_image(image)


@router.delete("/images/{image_id}")
def delete_image(
    image_id: int = Path(..., ge=1),
    ctx: AuthContext = Depends(require_auth_context),
    storage: MediaStorage = Depends(get_media_storage),
) -> dict:
    conn = get_db()
    try:
        image = boards.remove_image(conn, image_id, ctx.user_id)
    finally:
        conn.close()

    storage.destroy(image.public_id)
    return {"deleted": True, "image_id": image_id}
