"""
backend/slugs.py

URL-safe unique project slugs.

Allocation is optimistic: look up the first unused candidate, try the
insert, and let the UNIQUE constraint on projects.slug be the final word.
Losing that race is a transient conflict; we move on to the next suffix and
give up after SLUG_MAX_ATTEMPTS inserts.
"""

from __future__ import annotations

import re
import sqlite3
from typing import Callable

from backend.config import IS_DEV, SLUG_MAX_ATTEMPTS
from backend.errors import Internal

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """
    Derive the base slug for a display name.

    Example:
        slugify("My Plan!!") -> "my-plan"
        slugify("  Año 2024 ") -> "a-o-2024"
        slugify("!!!") -> "-"
    """
    base = _NON_ALNUM.sub("-", (name or "").lower().strip()).strip("-")
    return base or "-"


def candidate(base: str, n: int) -> str:
    """n-th candidate: base, base-1, base-2, ..."""
    return base if n == 0 else f"{base}-{n}"


def slug_exists(conn: sqlite3.Connection, slug: str) -> bool:
    return conn.execute("SELECT 1 FROM projects WHERE slug = ?", (slug,)).fetchone() is not None


def first_free_suffix(conn: sqlite3.Connection, base: str, start: int = 0) -> int:
    n = start
    while slug_exists(conn, candidate(base, n)):
        n += 1
    return n


def _is_slug_conflict(exc: sqlite3.IntegrityError) -> bool:
    return "slug" in str(exc).lower()


def insert_with_unique_slug(conn: sqlite3.Connection, name: str, insert: Callable[[str], int]) -> tuple:
    """
    Allocate a slug for `name` and run `insert(slug)` until one sticks.

    Args:
        conn: Open connection (normally inside db.transaction)
        name: Project display name
        insert: Performs the INSERT with the given slug, returns the new row id

    Returns:
        (row_id, slug)

    Raises:
        Internal: If every attempt lost a uniqueness race
        sqlite3.IntegrityError: For constraint failures unrelated to slug
    """
    base = slugify(name)
    n = 0
    for attempt in range(1, SLUG_MAX_ATTEMPTS + 1):
        n = first_free_suffix(conn, base, n)
        slug = candidate(base, n)
        try:
            row_id = insert(slug)
        except sqlite3.IntegrityError as e:
            if not _is_slug_conflict(e):
                raise
            print(f"[SLUG] Conflict: {slug!r} was taken concurrently (attempt {attempt}/{SLUG_MAX_ATTEMPTS})")
            n += 1
            continue
        if IS_DEV:
            print(f"[SLUG] Allocated {slug!r} for name={name!r} (attempt {attempt})")
        return row_id, slug

    print(f"[SLUG] Giving up on base={base!r} after {SLUG_MAX_ATTEMPTS} attempts")
    raise Internal("Could not allocate a unique project slug")
