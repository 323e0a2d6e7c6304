"""Tests for progress arithmetic (core/progress.py) and the poller (app/monitor.py)."""

from __future__ import annotations

import asyncio

import pytest

from app.monitor import ProgressMonitor
from core.progress import compute_progress, format_time, resolve_duration, seek_target_seconds


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------

class TestComputeProgress:
    def test_floors_elapsed_and_percent(self):
        p = compute_progress(59.9, 200)
        assert p.elapsed_seconds == 59
        assert p.percent == 29

    def test_unknown_duration(self):
        p = compute_progress(42.0, 0)
        assert p.elapsed_seconds == 42
        assert p.percent == 0

    def test_clamped_to_100(self):
        assert compute_progress(250.0, 200).percent == 100

    def test_negative_position(self):
        p = compute_progress(-1.0, 100)
        assert p.elapsed_seconds == 0
        assert p.percent == 0


class TestSeekTarget:
    def test_half_of_200(self):
        assert seek_target_seconds(50, 200) == 100

    def test_clamps_percent(self):
        assert seek_target_seconds(150, 200) == 200
        assert seek_target_seconds(-5, 200) == 0

    def test_unknown_duration_seeks_to_start(self):
        assert seek_target_seconds(50, 0) == 0


def test_resolve_duration():
    assert resolve_duration(None) == 0
    assert resolve_duration(-1) == 0
    assert resolve_duration(181.9) == 181


def test_format_time():
    assert format_time(0) == "0:00"
    assert format_time(65) == "1:05"
    assert format_time(None) == "0:00"
    assert format_time(3600) == "60:00"


# ---------------------------------------------------------------------------
# ProgressMonitor
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_monitor_ticks_until_stopped():
    ticks = 0

    async def tick():
        nonlocal ticks
        ticks += 1

    monitor = ProgressMonitor(tick, interval=0.01)
    monitor.start()
    await asyncio.sleep(0.08)
    monitor.stop()
    seen = ticks
    await asyncio.sleep(0.05)

    assert seen > 0
    assert ticks == seen
    assert not monitor.running


@pytest.mark.asyncio
async def test_monitor_restart_cancels_previous_task():
    async def tick():
        pass

    monitor = ProgressMonitor(tick, interval=10)
    monitor.start()
    first = monitor._task
    monitor.start()
    await asyncio.sleep(0)

    assert first.cancelled() or first.done()
    assert monitor.running
    monitor.stop()


@pytest.mark.asyncio
async def test_monitor_stop_is_idempotent():
    async def tick():
        pass

    monitor = ProgressMonitor(tick, interval=10)
    monitor.stop()
    monitor.start()
    monitor.stop()
    monitor.stop()
    assert not monitor.running


@pytest.mark.asyncio
async def test_monitor_survives_tick_errors():
    calls = 0

    async def tick():
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("boom")

    monitor = ProgressMonitor(tick, interval=0.01)
    monitor.start()
    await asyncio.sleep(0.08)
    monitor.stop()

    assert calls > 1
