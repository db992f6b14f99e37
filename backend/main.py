# ---------------------------------------------------------
# backend/main.py
# Studio - Collaborative Project Workspace Backend
#
# Run: uvicorn backend.main:app --reload (from repo root)
#
# - FastAPI + SQLite
# - /auth/*          : register / login / me
# - /api/users/*     : user lookup for the collaborator picker
# - /api/projects/*  : projects, collaborators, leave / transfer, delete
# - /api/tasks/*     : per-project ordered tasks
# - /api/notes/*     : one note per project
# - /api/boards/*    : media board image references
# ---------------------------------------------------------

from __future__ import annotations

import sqlite3
from contextlib import asynccontextmanager
from typing import Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.config import CORS_ORIGINS, ENV, IS_PROD
from backend.db import init_db
from backend.errors import ErrorCategory, StudioError
from backend.routes_auth import router as auth_router
from backend.routes_boards import router as boards_router
from backend.routes_notes import router as notes_router
from backend.routes_projects import router as projects_router
from backend.routes_tasks import router as tasks_router
from backend.routes_users import router as users_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    print(f"[STARTUP] Studio backend ready (ENV={ENV})")
    yield


# ---------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------
app = FastAPI(title="Studio Backend", version="0.1", lifespan=lifespan)

# CORS configuration from config module
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS if IS_PROD else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------
# Error mapping
# ---------------------------------------------------------
@app.exception_handler(StudioError)
async def studio_error_handler(request: Request, exc: StudioError) -> JSONResponse:
    if exc.status_code >= 500:
        print(f"[ERROR] {request.method} {request.url.path}: {exc.category.value}: {exc.reason}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(sqlite3.Error)
async def database_error_handler(request: Request, exc: sqlite3.Error) -> JSONResponse:
    # Log the driver message server-side only.
    print(f"[ERROR] {request.method} {request.url.path}: sqlite3 {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": ErrorCategory.INTERNAL.value, "detail": "Database error"},
    )


# ---------------------------------------------------------
# Routes
# ---------------------------------------------------------
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(projects_router)
app.include_router(tasks_router)
app.include_router(notes_router)
app.include_router(boards_router)


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}
