"""
backend/routes_auth.py

Registration, login and current-user endpoints.

Login accepts username OR email as the identifier and returns a bearer token
whose `sub` is the user id; every other router resolves the caller from that
token through require_auth_context.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from backend.auth_context import AuthContext, create_access_token, require_auth_context
from backend.db import get_db
from backend.schemas import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from backend import users

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)


@router.post("/register", response_model=TokenResponse, status_code=201)
def register(request: RegisterRequest) -> TokenResponse:
    """
    Create an account and return a token for it.

    Raises:
        InvalidInput (400): Missing fields, username or email already used
        Conflict (409): Lost a race against a concurrent registration
    """
    conn = get_db()
    try:
        user = users.create_user(conn, request.username, request.email, request.full_name, request.password)
    finally:
        conn.close()

    return TokenResponse(access_token=create_access_token(user.id), user=UserResponse.from_user(user))


@router.post("/login", response_model=TokenResponse)
def login(request: LoginRequest) -> TokenResponse:
    conn = get_db()
    try:
        user = users.authenticate(conn, request.identifier, request.password)
    finally:
        conn.close()

    if user is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    print(f"[LOGIN] Login successful for user_id={user.id}")
    return TokenResponse(access_token=create_access_token(user.id), user=UserResponse.from_user(user))


@router.get("/me", response_model=UserResponse)
def me(ctx: AuthContext = Depends(require_auth_context)) -> UserResponse:
    conn = get_db()
    try:
        user = users.get_user(conn, ctx.user_id)
    finally:
        conn.close()
    return UserResponse.from_user(user)
