"""Ordered track collection with a current-index cursor — pure logic, no I/O.

Invariant: ``0 <= current_index < len(playlist)`` whenever the playlist is
non-empty; ``current_index is None`` when it is empty.
"""

from __future__ import annotations

from typing import Iterator, List, Optional, Sequence

from core.models import Track


class Playlist:
    def __init__(self, tracks: Optional[Sequence[Track]] = None) -> None:
        self._tracks: List[Track] = list(tracks or [])
        self.current_index: Optional[int] = 0 if self._tracks else None

    def __len__(self) -> int:
        return len(self._tracks)

    def __iter__(self) -> Iterator[Track]:
        return iter(self._tracks)

    def __getitem__(self, index: int) -> Track:
        return self._tracks[index]

    @property
    def tracks(self) -> List[Track]:
        """Shallow copy of the ordered track list."""
        return list(self._tracks)

    @property
    def current(self) -> Optional[Track]:
        if self.current_index is None:
            return None
        return self._tracks[self.current_index]

    def in_range(self, index: int) -> bool:
        return 0 <= index < len(self._tracks)

    def contains(self, track: Track) -> bool:
        """Identity check — two tracks with the same path are still distinct entries."""
        return any(t is track for t in self._tracks)

    def select(self, index: int) -> Track:
        if not self.in_range(index):
            raise IndexError(f"Track index {index} out of range")
        self.current_index = index
        return self._tracks[index]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def append(self, track: Track) -> int:
        """Insert at the end and return the new track's index."""
        self._tracks.append(track)
        if self.current_index is None:
            self.current_index = 0
        return len(self._tracks) - 1

    def remove(self, index: int) -> Optional[Track]:
        """Remove the track at *index*; out-of-range is a no-op returning None."""
        if not self.in_range(index):
            return None
        removed = self._tracks.pop(index)

        if not self._tracks:
            self.current_index = None
            return removed
        if self.current_index is None:
            self.current_index = 0
            return removed

        if self.current_index > index:
            self.current_index -= 1
        if self.current_index >= len(self._tracks):
            self.current_index = len(self._tracks) - 1
        return removed

    def move(self, from_index: int, to_index: int) -> bool:
        """Relocate one track, keeping ``current_index`` on the same track.

        Returns False (and changes nothing) if either index is out of range.
        """
        if not self.in_range(from_index) or not self.in_range(to_index):
            return False
        current = self.current
        item = self._tracks.pop(from_index)
        self._tracks.insert(to_index, item)
        if current is not None:
            self.current_index = next(i for i, t in enumerate(self._tracks) if t is current)
        return True
