"""Playback engine contract.

An engine turns a file path into a *binding*: a live handle that plays
exactly one track.  Readiness, completion and failure are reported through
the callbacks handed to ``construct``; callbacks may fire at any time until
the binding is released.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from app.config import Settings


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class EngineError(Exception):
    """Base class for failures reported by a playback engine."""


class EngineConstructionError(EngineError):
    """The engine could not create a binding for the requested file."""


class EngineRuntimeError(EngineError):
    """The engine failed while a binding was live."""


class SeekUnsupportedError(EngineError):
    """The active binding cannot seek."""


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EngineCallbacks:
    on_ready: Callable[[], None]
    on_complete: Callable[[], None]
    on_error: Callable[[EngineError], None]


class EngineBinding(Protocol):
    async def play(self) -> None: ...

    async def pause(self) -> None: ...

    async def stop(self) -> None: ...

    async def release(self) -> None: ...

    async def get_current_position(self) -> Optional[float]:
        """Seconds into the track, or None while unknown."""

    async def get_duration(self) -> Optional[float]:
        """Track length in seconds, or None while unknown."""

    # Optional: ``async def seek_to(self, milliseconds: int) -> None``


class PlaybackEngine(Protocol):
    async def construct(self, path: str, callbacks: EngineCallbacks) -> EngineBinding: ...


def build_engine(settings: Settings) -> PlaybackEngine:
    """Engine used by the running service."""
    from app.mpv_engine import MpvEngine

    return MpvEngine(
        mpv_path=settings.mpv_path,
        ipc_dir=settings.mpv_ipc_dir or None,
        timeout=settings.engine_timeout,
    )
