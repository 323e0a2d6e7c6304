"""Playlist persistence on top of the key-value store.

The whole ordered track list is written under one fixed key after every
playlist mutation.  Missing or malformed data restores as an empty list.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from app.config import get_settings
from app.db import kv_get, kv_set
from core.models import Track
from core.persistence import PersistenceReadError, dump_playlist, load_playlist

logger = logging.getLogger(__name__)


class PlaylistStore:
    def __init__(self, key: str | None = None) -> None:
        self.key = key or get_settings().playlist_storage_key

    async def save(self, tracks: Sequence[Track]) -> None:
        await kv_set(self.key, dump_playlist(tracks))
        logger.debug("Saved playlist snapshot (%d tracks)", len(tracks))

    async def load(self) -> List[Track]:
        raw = await kv_get(self.key)
        if not raw:
            return []
        try:
            tracks = load_playlist(raw)
        except PersistenceReadError as exc:
            logger.warning("Ignoring stored playlist: %s", exc)
            return []
        logger.info("Restored %d tracks from storage", len(tracks))
        return tracks
