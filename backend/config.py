# backend/config.py
# Environment-aware configuration for the Studio backend

import os
from typing import Literal

# Environment detection
ENV: Literal["dev", "staging", "prod"] = os.environ.get("ENV", "dev")  # type: ignore
IS_DEV = (ENV == "dev")
IS_STAGING = (ENV == "staging")
IS_PROD = (ENV == "prod")

# JWT configuration
SECRET_KEY = os.environ.get("SECRET_KEY", "dev-only-secret-change-me")
ALGORITHM = "HS256"

# Token lifetime (7 days by default, matching the web client's session length)
ACCESS_TOKEN_MINUTES = int(os.environ.get("ACCESS_TOKEN_MINUTES", str(7 * 24 * 60)))

# Password hashing work factor (PBKDF2-SHA256)
PASSWORD_HASH_ITERATIONS = int(os.environ.get("PASSWORD_HASH_ITERATIONS", "200000"))

# Database configuration
# Relative paths resolve against the backend/ directory
DATABASE_PATH = os.environ.get("DATABASE_PATH", "studio.db")

# Slug allocation: how many suffixes to try after losing an insert race
SLUG_MAX_ATTEMPTS = int(os.environ.get("SLUG_MAX_ATTEMPTS", "5"))

# CORS origins (expand for staging/prod)
CORS_ORIGINS = [
    "http://localhost:3000",  # React dev server
    "http://127.0.0.1:3000",
]

if IS_STAGING:
    staging_origins = os.environ.get("CORS_ORIGINS", "")
    if staging_origins:
        CORS_ORIGINS.extend(staging_origins.split(","))

if IS_PROD:
    prod_origins = os.environ.get("CORS_ORIGINS", "")
    if prod_origins:
        CORS_ORIGINS.extend(prod_origins.split(","))
    if SECRET_KEY == "dev-only-secret-change-me":
        raise RuntimeError("SECRET_KEY must be set in production")

print(f"[CONFIG] Environment: {ENV}")
print(f"[CONFIG] Database: SQLite ({DATABASE_PATH})")
print(f"[CONFIG] Access token: {ACCESS_TOKEN_MINUTES} minutes")
print(f"[CONFIG] Slug allocation attempts: {SLUG_MAX_ATTEMPTS}")
