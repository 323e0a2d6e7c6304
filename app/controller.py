"""Playback controller — playlist, selection policy and engine lifecycle.

Owns the single engine binding and runs the play / pause / seek / stop
state machine.  Keeps the progress poller and the now-playing surface in
step with playback, and snapshots the playlist after every mutation.

Engine results never touch state directly: callbacks are queued and
consumed by one dispatcher task, poll results are handed over by the
progress monitor, and both go through ``handle_event``, which drops
anything tagged with a superseded session token.
"""

from __future__ import annotations

import asyncio
import logging
import random
from enum import Enum
from functools import partial
from typing import Any, Optional, Protocol, Sequence

from app.engine import EngineCallbacks, EngineError, PlaybackEngine, SeekUnsupportedError
from app.metadata import MutagenMetadataReader, apply_tag_info
from app.monitor import ProgressMonitor
from app.now_playing import NowPlayingSurface
from core.models import PLACEHOLDER_ART, PlaybackState, ProgressEvent, RepeatMode, Track
from core.playlist import Playlist
from core.progress import compute_progress, format_time, resolve_duration, seek_target_seconds
from core.selection import NEXT, PREVIOUS, select_after_completion, select_next

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Events & session
# ---------------------------------------------------------------------------

class EngineEvent(str, Enum):
    READY = "ready"
    COMPLETED = "completed"
    FAILED = "failed"
    POSITION = "position"
    DURATION = "duration"


class PlaylistSaver(Protocol):
    async def save(self, tracks: Sequence[Track]) -> None: ...


class PlaybackSession:
    """One engine binding for one track, identified by its token."""

    __slots__ = ("token", "track", "binding", "position")

    def __init__(self, token: int, track: Track):
        self.token = token
        self.track = track
        self.binding: Any = None
        self.position: float = 0.0


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class PlaybackController:
    def __init__(
        self,
        engine: PlaybackEngine,
        *,
        playlist: Optional[Playlist] = None,
        store: Optional[PlaylistSaver] = None,
        metadata_reader: Optional[MutagenMetadataReader] = None,
        now_playing: Optional[NowPlayingSurface] = None,
        poll_interval: float = 0.8,
        avoid_repeat: bool = False,
        placeholder_art: str = PLACEHOLDER_ART,
        rng: Optional[random.Random] = None,
    ):
        self.engine = engine
        self.playlist = playlist if playlist is not None else Playlist()
        self.store = store
        self.metadata_reader = metadata_reader
        self.now_playing = now_playing or NowPlayingSurface(placeholder_art)
        self.placeholder_art = placeholder_art
        self.avoid_repeat = avoid_repeat
        self.rng = rng or random.Random()

        self.shuffle = False
        self.repeat = RepeatMode.OFF
        self.state = PlaybackState.IDLE
        self.session: PlaybackSession | None = None
        self.progress = ProgressEvent()
        self.error_message: str | None = None
        self.revision = 0

        self.monitor = ProgressMonitor(self._poll_progress, poll_interval)
        self._token = 0
        self._lock = asyncio.Lock()
        self._events: asyncio.Queue = asyncio.Queue()
        self._dispatcher: asyncio.Task | None = None
        self._metadata_tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start consuming engine events."""
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.create_task(self._dispatch_loop())

    async def shutdown(self) -> None:
        """Stop background work and release the engine binding."""
        if self._dispatcher and not self._dispatcher.done():
            self._dispatcher.cancel()
            try:
                await self._dispatcher
            except asyncio.CancelledError:
                pass
        self._dispatcher = None

        for task in list(self._metadata_tasks):
            task.cancel()
        if self._metadata_tasks:
            await asyncio.gather(*self._metadata_tasks, return_exceptions=True)

        async with self._lock:
            await self._teardown()
            self.state = PlaybackState.IDLE
        logger.info("Playback controller shut down")

    async def wait_idle(self) -> None:
        """Block until every queued engine event has been handled."""
        await self._events.join()

    def refresh_metadata(self) -> None:
        """Request a background tag read for every track (e.g. after restore)."""
        for track in self.playlist:
            self._request_metadata(track)

    # ------------------------------------------------------------------
    # Event dispatch
    # ------------------------------------------------------------------

    def post_event(self, token: int, event: EngineEvent, payload: Any = None) -> None:
        """Queue an engine result for the dispatcher (safe from engine callbacks)."""
        self._events.put_nowait((token, event, payload))

    def _callbacks(self, token: int) -> EngineCallbacks:
        return EngineCallbacks(
            on_ready=partial(self.post_event, token, EngineEvent.READY),
            on_complete=partial(self.post_event, token, EngineEvent.COMPLETED),
            on_error=partial(self.post_event, token, EngineEvent.FAILED),
        )

    async def _dispatch_loop(self) -> None:
        while True:
            token, event, payload = await self._events.get()
            try:
                await self.handle_event(token, event, payload)
            except Exception:
                logger.exception("Error handling %s event", event.value)
            finally:
                self._events.task_done()

    async def handle_event(self, token: int, event: EngineEvent, payload: Any = None) -> bool:
        """Apply one engine result.  Returns False if it was stale and dropped."""
        async with self._lock:
            session = self.session
            if session is None or token != session.token:
                logger.debug(
                    "Dropping stale %s event (token %d, live %s)",
                    event.value,
                    token,
                    session.token if session else None,
                )
                return False

            if event is EngineEvent.READY:
                self._on_ready(session)
            elif event is EngineEvent.COMPLETED:
                await self._on_completed()
            elif event is EngineEvent.FAILED:
                await self._fail(payload)
            elif event is EngineEvent.POSITION:
                self._on_position(session, payload)
            elif event is EngineEvent.DURATION:
                await self._on_duration(session, payload)
            return True

    def _on_ready(self, session: PlaybackSession) -> None:
        if self.state is not PlaybackState.LOADING:
            return
        self.state = PlaybackState.PLAYING
        self.monitor.start()
        self._push_now_playing(session.track)
        logger.info("Playing %s", session.track.path)

    async def _on_completed(self) -> None:
        if self.state is not PlaybackState.PLAYING:
            logger.debug("Ignoring completion in state %s", self.state.value)
            return
        self.state = PlaybackState.COMPLETED
        self.monitor.stop()

        current_index = self.playlist.current_index
        next_index = None
        if current_index is not None:
            next_index = select_after_completion(
                len(self.playlist),
                current_index,
                repeat=self.repeat,
                shuffle=self.shuffle,
                avoid_repeat=self.avoid_repeat,
                rng=self.rng,
            )
        if next_index is None:
            logger.info("End of playlist reached")
            await self._teardown()
            self.state = PlaybackState.IDLE
            self.now_playing.update_is_playing(False)
            return
        await self._play_index(next_index)

    def _on_position(self, session: PlaybackSession, position: Optional[float]) -> None:
        if position is None:
            return
        session.position = position
        self.progress = compute_progress(position, session.track.duration)

    async def _on_duration(self, session: PlaybackSession, raw: Optional[float]) -> None:
        seconds = resolve_duration(raw)
        if not seconds:
            return
        if session.track.duration == 0:
            session.track.duration = seconds
            logger.debug("Resolved duration %ds for %s", seconds, session.track.path)
            await self._snapshot()

    # ------------------------------------------------------------------
    # Progress polling
    # ------------------------------------------------------------------

    async def _poll_progress(self) -> None:
        """Single poll cycle: read position, then resolve the duration if unknown."""
        session = self.session
        if session is None or session.binding is None:
            return
        token, binding = session.token, session.binding
        try:
            position = await binding.get_current_position()
            if position is not None:
                await self.handle_event(token, EngineEvent.POSITION, position)
            if session.track.duration == 0:
                duration = await binding.get_duration()
                await self.handle_event(token, EngineEvent.DURATION, duration)
        except EngineError as exc:
            self.post_event(token, EngineEvent.FAILED, exc)

    # ------------------------------------------------------------------
    # Session management (lock held)
    # ------------------------------------------------------------------

    async def _play_index(self, index: int) -> bool:
        if not self.playlist.in_range(index):
            logger.warning("Track index %d out of range (%d tracks)", index, len(self.playlist))
            return False

        await self._teardown()
        track = self.playlist.select(index)
        self._token += 1
        session = PlaybackSession(self._token, track)
        self.session = session
        self.state = PlaybackState.LOADING
        self.error_message = None
        self.progress = ProgressEvent()
        logger.info("Loading track %d: %s (token %d)", index, track.path, session.token)

        try:
            session.binding = await self.engine.construct(track.path, self._callbacks(session.token))
            await session.binding.play()
        except EngineError as exc:
            await self._fail(exc)
            return False
        return True

    async def _teardown(self) -> None:
        """Stop polling, then stop and release the binding.  Invalidates the token."""
        self.monitor.stop()
        session, self.session = self.session, None
        if session is None or session.binding is None:
            return
        binding, session.binding = session.binding, None
        try:
            await binding.stop()
        except EngineError as exc:
            logger.debug("Engine stop failed during teardown: %s", exc)
        try:
            await binding.release()
        except EngineError as exc:
            logger.warning("Engine release failed: %s", exc)

    async def _fail(self, exc: Optional[BaseException]) -> None:
        message = str(exc) if exc else ""
        logger.error("Playback error: %s", message or "unknown engine failure")
        await self._teardown()
        self.state = PlaybackState.ERROR
        self.error_message = message or "Playback failed"
        self.now_playing.update_is_playing(False)

    def _push_now_playing(self, track: Track) -> None:
        self.now_playing.update_metadata(
            title=track.display_name,
            artist=track.artist,
            cover=track.art or self.placeholder_art,
        )
        self.now_playing.update_is_playing(True)

    # ------------------------------------------------------------------
    # Playback commands
    # ------------------------------------------------------------------

    async def play_index(self, index: int) -> bool:
        async with self._lock:
            return await self._play_index(index)

    async def play(self) -> None:
        """Resume when paused, otherwise start the current track."""
        async with self._lock:
            session = self.session
            if session is not None:
                if self.state is not PlaybackState.PAUSED:
                    return
                try:
                    await session.binding.play()
                except EngineError as exc:
                    await self._fail(exc)
                    return
                self.state = PlaybackState.PLAYING
                self.monitor.start()
                self.now_playing.update_is_playing(True)
                return

            if not len(self.playlist):
                return
            await self._play_index(self.playlist.current_index or 0)

    async def pause(self) -> None:
        async with self._lock:
            session = self.session
            if session is None or self.state is not PlaybackState.PLAYING:
                return
            try:
                await session.binding.pause()
            except EngineError as exc:
                await self._fail(exc)
                return
            self.state = PlaybackState.PAUSED
            self.monitor.stop()
            self.now_playing.update_is_playing(False)

    async def stop(self) -> None:
        """Release the binding and return to idle; also clears a failed session."""
        async with self._lock:
            if self.session is None and self.state is not PlaybackState.ERROR:
                return
            await self._teardown()
            self.state = PlaybackState.IDLE
            self.error_message = None
            self.progress = ProgressEvent()
            self.now_playing.update_is_playing(False)

    async def next(self) -> None:
        await self._skip(NEXT)

    async def prev(self) -> None:
        await self._skip(PREVIOUS)

    async def _skip(self, direction: int) -> None:
        async with self._lock:
            if not len(self.playlist):
                return
            index = select_next(
                len(self.playlist),
                self.playlist.current_index or 0,
                shuffle=self.shuffle,
                direction=direction,
                avoid_repeat=self.avoid_repeat,
                rng=self.rng,
            )
            await self._play_index(index)

    def seek_preview(self, percent: float) -> int:
        """Target second for *percent* of the playing track, without seeking."""
        session = self.session
        duration = session.track.duration if session is not None else 0
        return seek_target_seconds(percent, duration)

    async def seek(self, percent: float) -> Optional[int]:
        """Seek to *percent* of the cached duration.

        Returns the absolute offset (ms) sent to the engine, or None when
        nothing is loaded.  Raises ``SeekUnsupportedError`` if the binding
        cannot seek; engine errors propagate.  Playback state is unchanged
        on failure.
        """
        async with self._lock:
            session = self.session
            if session is None or session.binding is None:
                return None
            seek_to = getattr(session.binding, "seek_to", None)
            if not callable(seek_to):
                raise SeekUnsupportedError("The playback engine cannot seek")

            seconds = seek_target_seconds(percent, session.track.duration)
            await seek_to(seconds * 1000)
            session.position = seconds
            self.progress = compute_progress(seconds, session.track.duration)
            return seconds * 1000

    # ------------------------------------------------------------------
    # Selection policy
    # ------------------------------------------------------------------

    def toggle_shuffle(self) -> bool:
        self.shuffle = not self.shuffle
        return self.shuffle

    def cycle_repeat(self) -> RepeatMode:
        self.repeat = self.repeat.cycled()
        return self.repeat

    def set_repeat(self, mode: RepeatMode) -> None:
        self.repeat = mode

    # ------------------------------------------------------------------
    # Playlist mutations
    # ------------------------------------------------------------------

    async def append(self, track: Track) -> int:
        """Add a track at the end; the first track added starts playing."""
        async with self._lock:
            index = self.playlist.append(track)
            await self._playlist_changed()
            self._request_metadata(track)
            if len(self.playlist) == 1:
                await self._play_index(0)
            return index

    async def append_path(self, path: str) -> int:
        return await self.append(Track.from_path(path, art=self.placeholder_art))

    async def remove(self, index: int) -> bool:
        async with self._lock:
            if not self.playlist.in_range(index):
                return False
            if index == self.playlist.current_index:
                await self._teardown()
                self.state = PlaybackState.IDLE
                self.error_message = None
                self.progress = ProgressEvent()
                self.now_playing.update_is_playing(False)
            self.playlist.remove(index)
            await self._playlist_changed()
            return True

    async def move(self, from_index: int, to_index: int) -> bool:
        async with self._lock:
            if not self.playlist.move(from_index, to_index):
                return False
            await self._playlist_changed()
            return True

    async def save(self) -> None:
        """Write the playlist to storage now."""
        async with self._lock:
            await self._snapshot()
        logger.info("Playlist saved (%d tracks)", len(self.playlist))

    async def _playlist_changed(self) -> None:
        self.revision += 1
        await self._snapshot()

    async def _snapshot(self) -> None:
        if self.store is not None:
            await self.store.save(self.playlist.tracks)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def _request_metadata(self, track: Track) -> None:
        if self.metadata_reader is None:
            return
        task = asyncio.create_task(self._resolve_metadata(track))
        self._metadata_tasks.add(task)
        task.add_done_callback(self._metadata_tasks.discard)

    async def _resolve_metadata(self, track: Track) -> None:
        if self.metadata_reader is None:
            return
        tags = await self.metadata_reader.read(track.path)
        if tags is None:
            return
        async with self._lock:
            if not self.playlist.contains(track) or not apply_tag_info(track, tags):
                return
            self.revision += 1
            await self._snapshot()
            session = self.session
            if session is not None and session.track is track and self.state is PlaybackState.PLAYING:
                self._push_now_playing(track)

    # ------------------------------------------------------------------
    # Read model
    # ------------------------------------------------------------------

    def to_status_dict(self) -> dict[str, Any]:
        """Serialize for the status API."""
        current_index = self.playlist.current_index
        track = self.playlist.current
        duration = track.duration if track else 0
        return {
            "state": self.state.value,
            "current_index": current_index,
            "total_tracks": len(self.playlist),
            "current_track": track.model_dump() if track else None,
            "shuffle": self.shuffle,
            "repeat": self.repeat.value,
            "elapsed_seconds": self.progress.elapsed_seconds,
            "percent": self.progress.percent,
            "elapsed": format_time(self.progress.elapsed_seconds),
            "duration": format_time(duration),
            "error_message": self.error_message,
            "revision": self.revision,
            "tracks": [
                {
                    "index": i,
                    "path": t.path,
                    "title": t.display_name,
                    "artist": t.artist,
                    "duration": t.duration,
                    "is_current": i == current_index,
                    "is_playing": i == current_index and self.state is PlaybackState.PLAYING,
                }
                for i, t in enumerate(self.playlist)
            ],
        }
