"""
backend/storage.py

Object-storage seam for board media.

Uploads happen outside this service; we only keep (url, public_id) pairs and
ask the storage backend to release a public_id once nothing references it.
Routes receive the backend through the get_media_storage() dependency, so a
deployment (or a test) can swap it with app.dependency_overrides.
"""

from __future__ import annotations

from typing import Iterable


class MediaStorage:
    """Release hook for stored media. The default only logs the request."""

    def destroy(self, public_id: str) -> None:
        print(f"[STORAGE] Release requested: public_id={public_id}")

    def destroy_many(self, public_ids: Iterable[str]) -> None:
        for public_id in public_ids:
            self.destroy(public_id)


_default_storage = MediaStorage()


def get_media_storage() -> MediaStorage:
    """FastAPI dependency returning the configured storage backend."""
    return _default_storage
