"""Playlist serialization — the stored value is a bare JSON array of track records."""

from __future__ import annotations

from typing import List, Sequence

from pydantic import TypeAdapter, ValidationError

from core.models import Track

_TRACK_LIST = TypeAdapter(List[Track])


class PersistenceReadError(ValueError):
    """Stored playlist data could not be parsed."""


def dump_playlist(tracks: Sequence[Track]) -> str:
    """Serialize the ordered track list (fields only, no playback state)."""
    return _TRACK_LIST.dump_json(list(tracks)).decode("utf-8")


def load_playlist(raw: str) -> List[Track]:
    """Parse a stored playlist.

    Raises ``PersistenceReadError`` if the data is not a JSON array of
    track records.
    """
    try:
        return _TRACK_LIST.validate_json(raw)
    except ValidationError as exc:
        raise PersistenceReadError(f"Invalid playlist data: {exc.error_count()} error(s)") from exc
