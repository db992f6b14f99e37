"""
backend/routes_users.py

User lookup for the collaborator picker and the caller's own profile
settings. Authenticated callers only.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query

from backend.auth_context import AuthContext, require_auth_context
from backend.db import get_db
from backend.schemas import ProfileUpdateRequest, UserResponse
from backend import users

router = APIRouter(
    prefix="/api/users",
    tags=["users"],
)


@router.put("/me", response_model=UserResponse)
def update_my_profile(
    request: ProfileUpdateRequest,
    ctx: AuthContext = Depends(require_auth_context),
) -> UserResponse:
    """
    Update the caller's profile and appearance settings.

    Raises:
        InvalidInput (400): Unknown field, cleared email/full_name, email in use
    """
    conn = get_db()
    try:
        user = users.update_profile(conn, ctx.user_id, request.fields())
    finally:
        conn.close()
    return UserResponse.from_user(user)


# Declared before /{username} so "search" is not taken as a username.
@router.get("/search", response_model=List[UserResponse])
def search_users(
    query: str = Query("", max_length=100),
    ctx: AuthContext = Depends(require_auth_context),
) -> List[UserResponse]:
    conn = get_db()
    try:
        found = users.search_users(conn, query)
    finally:
        conn.close()
    return [UserResponse.from_user(u) for u in found]


@router.get("/{username}", response_model=UserResponse)
def get_user(username: str, ctx: AuthContext = Depends(require_auth_context)) -> UserResponse:
    conn = get_db()
    try:
        user = users.get_user_by_username(conn, username)
    finally:
        conn.close()
    return UserResponse.from_user(user)
