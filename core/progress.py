"""Progress arithmetic for the poller and seek bar."""

from __future__ import annotations

import math
from typing import Optional

from core.models import ProgressEvent


def compute_progress(position: float, duration: int) -> ProgressEvent:
    """Whole elapsed seconds plus a percentage clamped to ``[0, 100]``.

    An unknown (zero) *duration* yields 0 percent.
    """
    elapsed = max(0, math.floor(position))
    if duration <= 0:
        return ProgressEvent(elapsed_seconds=elapsed, percent=0)
    percent = math.floor(elapsed / duration * 100)
    return ProgressEvent(elapsed_seconds=elapsed, percent=min(100, max(0, percent)))


def seek_target_seconds(percent: float, duration: int) -> int:
    percent = min(100.0, max(0.0, float(percent)))
    return math.floor(percent / 100 * max(0, duration))


def resolve_duration(raw: Optional[float]) -> int:
    """Whole seconds from an engine duration readout; 0 while still unknown."""
    if raw is None or raw <= 0:
        return 0
    return math.floor(raw)


def format_time(seconds: Optional[float]) -> str:
    """``m:ss`` for display, e.g. 125 → ``2:05``."""
    s = max(0, int(seconds or 0))
    return f"{s // 60}:{s % 60:02d}"
