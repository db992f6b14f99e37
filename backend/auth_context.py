"""
backend/auth_context.py

Authentication context primitives for FastAPI dependency injection.

Contains:
- create_access_token / verify_token: JWT issue + verification
- AuthContext: immutable caller identity for a request
- require_auth_context: FastAPI dependency for auth enforcement

This module MUST NOT import backend.main to avoid circular dependencies.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel

from backend.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_MINUTES, IS_DEV
from backend.db import get_db
from backend.users import find_user

# Security scheme for HTTPBearer
security = HTTPBearer()


# ---------------------------------------------------------
# JWT Tokens
# ---------------------------------------------------------
def create_access_token(user_id: int, minutes: int = ACCESS_TOKEN_MINUTES) -> str:
    now = datetime.utcnow()
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> dict:
    """
    Verify JWT access token and return decoded payload.

    Raises:
        HTTPException(401): If token is expired or invalid
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


# ---------------------------------------------------------
# AuthContext
# ---------------------------------------------------------
class AuthContext(BaseModel):
    """
    Caller identity derived from the JWT and confirmed against the users table.
    This is the ONLY source of truth for the caller id in protected endpoints.
    Never trust user ids for the caller taken from request bodies.
    """
    user_id: int
    username: str
    email: str


def require_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> AuthContext:
    """
    Auth dependency for FastAPI routes.

    Usage:
        @router.get("/protected")
        def protected_route(ctx: AuthContext = Depends(require_auth_context)):
            ...

    Raises:
        HTTPException(401): If token is invalid, expired, or user not found
    """
    payload = verify_token(credentials.credentials)
    user_id = payload.get("sub")

    if not user_id or not str(user_id).isdigit():
        print("[AUTH] Missing user_id in token payload")
        raise HTTPException(status_code=401, detail="Invalid token payload")

    conn = get_db()
    try:
        user = find_user(conn, int(user_id))
    finally:
        conn.close()

    if user is None:
        print(f"[AUTH] User not found: user_id={user_id}")
        raise HTTPException(status_code=401, detail="User not found")

    ctx = AuthContext(user_id=user.id, username=user.username, email=user.email)

    if IS_DEV:
        print(f"[AUTH] Authenticated: user_id={ctx.user_id}, username={ctx.username}")

    return ctx
