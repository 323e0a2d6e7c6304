"""Shared fixtures: isolated settings/DB and an in-memory playback engine."""

from __future__ import annotations

import random
from typing import List, Optional, Sequence

import pytest

from app.controller import PlaybackController
from app.engine import EngineCallbacks, EngineConstructionError, EngineRuntimeError
from core.models import Track


@pytest.fixture(autouse=True)
def _env_setup(monkeypatch, tmp_path):
    """Use temp DB and clear settings cache for every test."""
    monkeypatch.setenv("DB_PATH", str(tmp_path / "test.db"))
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    from app.config import get_settings
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Fake engine
# ---------------------------------------------------------------------------

class FakeBinding:
    """Records calls; tests fire engine callbacks with ready()/finish()/fail()."""

    def __init__(self, path: str, callbacks: EngineCallbacks):
        self.path = path
        self.callbacks = callbacks
        self.calls: List[str] = []
        self.seeks: List[int] = []
        self.fail_on: set[str] = set()
        self.position: Optional[float] = None
        self.duration: Optional[float] = None
        self.position_error: Optional[Exception] = None
        self.released = False

    async def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise EngineRuntimeError(f"{name} failed")

    async def play(self) -> None:
        await self._record("play")

    async def pause(self) -> None:
        await self._record("pause")

    async def stop(self) -> None:
        await self._record("stop")

    async def release(self) -> None:
        await self._record("release")
        self.released = True

    async def get_current_position(self) -> Optional[float]:
        if self.position_error is not None:
            raise self.position_error
        return self.position

    async def get_duration(self) -> Optional[float]:
        return self.duration

    async def seek_to(self, milliseconds: int) -> None:
        await self._record("seek")
        self.seeks.append(milliseconds)

    # engine-side events
    def ready(self) -> None:
        self.callbacks.on_ready()

    def finish(self) -> None:
        self.callbacks.on_complete()

    def fail(self, message: str = "decoder crashed") -> None:
        self.callbacks.on_error(EngineRuntimeError(message))


class UnseekableBinding(FakeBinding):
    seek_to = None  # type: ignore[assignment]


class FakeEngine:
    def __init__(self):
        self.bindings: List[FakeBinding] = []
        self.fail_paths: set[str] = set()
        self.binding_cls = FakeBinding

    async def construct(self, path: str, callbacks: EngineCallbacks) -> FakeBinding:
        if path in self.fail_paths:
            raise EngineConstructionError(f"cannot open {path}")
        binding = self.binding_cls(path, callbacks)
        self.bindings.append(binding)
        return binding

    @property
    def last(self) -> FakeBinding:
        return self.bindings[-1]


class MemoryStore:
    def __init__(self):
        self.snapshots: List[List[Track]] = []

    async def save(self, tracks: Sequence[Track]) -> None:
        self.snapshots.append([t.model_copy() for t in tracks])


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def unseekable_engine() -> FakeEngine:
    fake = FakeEngine()
    fake.binding_cls = UnseekableBinding
    return fake


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
async def controller(engine, store):
    """Controller with a fake engine; polling is driven manually by tests."""
    c = PlaybackController(engine, store=store, poll_interval=3600, rng=random.Random(7))
    await c.start()
    yield c
    await c.shutdown()
