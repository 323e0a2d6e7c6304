"""Pydantic models shared across the application."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

PLACEHOLDER_ART = "assets/placeholder.png"


class RepeatMode(str, Enum):
    OFF = "off"
    ALL = "all"
    ONE = "one"

    def cycled(self) -> RepeatMode:
        """Next mode in the Off → All → One → Off rotation."""
        order = list(RepeatMode)
        return order[(order.index(self) + 1) % len(order)]


class PlaybackState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


class Track(BaseModel):
    """One playlist entry, identified by its source path.

    Tag and duration updates replace fields in place; ``path`` never changes.
    """

    path: str
    name: str = ""
    title: str = ""
    artist: str = ""
    album: str = ""
    duration: int = 0  # whole seconds, 0 = unknown
    art: str = PLACEHOLDER_ART

    @classmethod
    def from_path(cls, path: str, *, art: str = PLACEHOLDER_ART) -> Track:
        name = path.rstrip("/").split("/")[-1]
        return cls(path=path, name=name, title=name, art=art)

    @property
    def display_name(self) -> str:
        return self.title or self.name

    def apply_tags(
        self,
        *,
        title: str | None = None,
        artist: str | None = None,
        album: str | None = None,
        art: str | None = None,
    ) -> bool:
        """Copy non-empty tag values onto the track.  Returns True if anything changed."""
        changed = False
        for field, value in (("title", title), ("artist", artist), ("album", album), ("art", art)):
            if value and getattr(self, field) != value:
                setattr(self, field, value)
                changed = True
        return changed


class ProgressEvent(BaseModel):
    """Normalized progress readout for the current track."""

    elapsed_seconds: int = 0
    percent: int = 0
