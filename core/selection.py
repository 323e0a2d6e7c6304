"""Track selection policy — pure functions, no I/O.

Provides:
- Manual next/previous selection (cyclic, or random when shuffling)
- Completion-driven advance governed by the repeat mode
"""

from __future__ import annotations

import random
from typing import Optional

from core.models import RepeatMode

NEXT = 1
PREVIOUS = -1


# ---------------------------------------------------------------------------
# Shuffle
# ---------------------------------------------------------------------------

def random_index(
    length: int,
    current: Optional[int] = None,
    *,
    avoid_repeat: bool = False,
    rng: Optional[random.Random] = None,
) -> int:
    """Uniformly random index in ``[0, length)``.

    With *avoid_repeat* and more than one track, *current* is never returned.
    """
    rng = rng or random.Random()
    if avoid_repeat and current is not None and length > 1:
        pick = rng.randrange(length - 1)
        return pick + 1 if pick >= current else pick
    return rng.randrange(length)


# ---------------------------------------------------------------------------
# User-initiated next / previous
# ---------------------------------------------------------------------------

def select_next(
    length: int,
    current: int,
    *,
    shuffle: bool = False,
    direction: int = NEXT,
    avoid_repeat: bool = False,
    rng: Optional[random.Random] = None,
) -> int:
    """Index to play for a next/previous command.

    Parameters
    ----------
    length:
        Playlist length, must be positive.
    current:
        Index of the current track.
    shuffle:
        Pick uniformly at random, ignoring *direction*.
    direction:
        ``NEXT`` (+1) or ``PREVIOUS`` (-1); wraps around at both ends.
    """
    if length <= 0:
        raise ValueError("Cannot select from an empty playlist")
    if shuffle:
        return random_index(length, current, avoid_repeat=avoid_repeat, rng=rng)
    return (current + direction + length) % length


# ---------------------------------------------------------------------------
# Completion-driven advance
# ---------------------------------------------------------------------------

def select_after_completion(
    length: int,
    current: int,
    *,
    repeat: RepeatMode = RepeatMode.OFF,
    shuffle: bool = False,
    avoid_repeat: bool = False,
    rng: Optional[random.Random] = None,
) -> Optional[int]:
    """Index to play once the current track ends on its own.

    Returns None at the end of the playlist with repeat off, meaning
    playback should stop rather than wrap.
    """
    if length <= 0:
        return None
    if repeat == RepeatMode.ONE:
        return current
    if repeat == RepeatMode.OFF and current >= length - 1:
        return None
    return select_next(
        length, current, shuffle=shuffle, direction=NEXT, avoid_repeat=avoid_repeat, rng=rng
    )
