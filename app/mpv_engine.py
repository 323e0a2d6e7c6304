"""Playback engine backed by mpv's JSON IPC.

Each binding owns one ``mpv --idle`` process and talks to it over a unix
socket.  mpv events map onto the engine callbacks:

  - ``file-loaded``           → ready
  - ``end-file`` reason eof   → complete
  - ``end-file`` reason error → error
  - IPC connection lost       → error
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from typing import Any, Optional

from app.engine import (
    EngineCallbacks,
    EngineConstructionError,
    EngineError,
    EngineRuntimeError,
)

logger = logging.getLogger(__name__)

_CONNECT_RETRY_DELAY = 0.05  # seconds
_TERMINATE_GRACE = 2.0  # seconds


def _remove_socket(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


class MpvBinding:
    """Live handle on one mpv process playing one file."""

    def __init__(
        self,
        path: str,
        proc: asyncio.subprocess.Process,
        endpoint: str,
        callbacks: EngineCallbacks,
        *,
        timeout: float = 3.0,
    ) -> None:
        self.path = path
        self._proc = proc
        self._endpoint = endpoint
        self._callbacks = callbacks
        self._timeout = timeout
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._reader_task: asyncio.Task | None = None
        self._pending: dict[int, asyncio.Future] = {}
        self._req_id = 0
        self._released = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Connect to the IPC socket, retrying until mpv has created it."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout
        while True:
            try:
                self._reader, self._writer = await asyncio.open_unix_connection(self._endpoint)
                break
            except OSError as exc:
                if self._proc.returncode is not None or loop.time() >= deadline:
                    raise EngineConstructionError(
                        f"Could not connect to mpv IPC at {self._endpoint}: {exc}"
                    ) from exc
                await asyncio.sleep(_CONNECT_RETRY_DELAY)
        self._reader_task = asyncio.create_task(self._read_loop(self._reader))

    async def load(self) -> None:
        self._check(await self._command("loadfile", self.path, "replace"))

    async def release(self) -> None:
        """Tear down IPC and the mpv process.  Safe to call more than once."""
        if self._released:
            return
        self._released = True

        if self._reader_task and not self._reader_task.done():
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
        self._reader_task = None

        for fut in self._pending.values():
            if not fut.done():
                fut.cancel()
        self._pending.clear()

        if self._writer is not None:
            self._writer.close()
            self._writer = None

        if self._proc.returncode is None:
            self._proc.terminate()
            try:
                await asyncio.wait_for(self._proc.wait(), _TERMINATE_GRACE)
            except asyncio.TimeoutError:
                logger.warning("mpv did not exit in %.1fs — killing", _TERMINATE_GRACE)
                self._proc.kill()
                await self._proc.wait()

        _remove_socket(self._endpoint)
        logger.debug("Released mpv binding for %s", self.path)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _command(self, *args: Any) -> dict[str, Any]:
        if self._writer is None or self._released:
            raise EngineRuntimeError("mpv binding is not connected")

        self._req_id += 1
        rid = self._req_id
        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[rid] = fut

        line = json.dumps({"command": list(args), "request_id": rid}) + "\n"
        try:
            self._writer.write(line.encode("utf-8"))
            await self._writer.drain()
            return await asyncio.wait_for(fut, self._timeout)
        except (OSError, asyncio.TimeoutError) as exc:
            raise EngineRuntimeError(f"mpv command {args[0]!r} failed: {exc!r}") from exc
        finally:
            self._pending.pop(rid, None)

    @staticmethod
    def _check(reply: dict[str, Any]) -> None:
        if reply.get("error") != "success":
            raise EngineRuntimeError(f"mpv error: {reply.get('error')}")

    async def _read_loop(self, reader: asyncio.StreamReader) -> None:
        while True:
            try:
                line = await reader.readline()
            except OSError:
                break
            if not line:
                break
            try:
                msg = json.loads(line.decode("utf-8", errors="replace"))
            except ValueError:
                continue
            if isinstance(msg, dict):
                self._handle_message(msg)

        if not self._released:
            self._callbacks.on_error(EngineRuntimeError("mpv exited unexpectedly"))

    def _handle_message(self, msg: dict[str, Any]) -> None:
        """Route one IPC message: command replies first, then events."""
        if "event" not in msg:
            fut = self._pending.get(msg.get("request_id"))  # type: ignore[arg-type]
            if fut is not None and not fut.done():
                fut.set_result(msg)
            return

        event = msg["event"]
        if event == "file-loaded":
            self._callbacks.on_ready()
        elif event == "end-file":
            reason = msg.get("reason")
            if reason == "eof":
                self._callbacks.on_complete()
            elif reason == "error":
                detail = msg.get("file_error") or "playback error"
                self._callbacks.on_error(EngineRuntimeError(f"mpv could not play {self.path}: {detail}"))

    # ------------------------------------------------------------------
    # Binding API
    # ------------------------------------------------------------------

    async def play(self) -> None:
        self._check(await self._command("set_property", "pause", False))

    async def pause(self) -> None:
        self._check(await self._command("set_property", "pause", True))

    async def stop(self) -> None:
        self._check(await self._command("stop"))

    async def seek_to(self, milliseconds: int) -> None:
        self._check(await self._command("seek", max(0, milliseconds) / 1000.0, "absolute"))

    async def get_current_position(self) -> Optional[float]:
        return await self._get_float("time-pos")

    async def get_duration(self) -> Optional[float]:
        return await self._get_float("duration")

    async def _get_float(self, name: str) -> Optional[float]:
        reply = await self._command("get_property", name)
        if reply.get("error") != "success":
            # "property unavailable" until the file is loaded
            return None
        try:
            return float(reply.get("data"))
        except (TypeError, ValueError):
            return None


class MpvEngine:
    """Spawns one mpv process per binding."""

    def __init__(
        self,
        mpv_path: str = "mpv",
        *,
        ipc_dir: Optional[str] = None,
        timeout: float = 3.0,
    ) -> None:
        self.mpv_path = mpv_path
        self.ipc_dir = ipc_dir or tempfile.gettempdir()
        self.timeout = timeout
        self._count = 0

    def _endpoint(self) -> str:
        self._count += 1
        return os.path.join(self.ipc_dir, f"playlist-player-{os.getpid()}-{self._count}.sock")

    async def construct(self, path: str, callbacks: EngineCallbacks) -> MpvBinding:
        endpoint = self._endpoint()
        _remove_socket(endpoint)

        args = [
            self.mpv_path,
            "--idle=yes",
            "--pause=yes",
            "--no-video",
            "--audio-display=no",
            "--keep-open=no",
            f"--input-ipc-server={endpoint}",
            "--terminal=no",
            "--msg-level=all=warn",
        ]
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            raise EngineConstructionError(f"Could not start mpv ({self.mpv_path}): {exc}") from exc

        binding = MpvBinding(path, proc, endpoint, callbacks, timeout=self.timeout)
        try:
            await binding.connect()
            await binding.load()
        except EngineError as exc:
            await binding.release()
            if isinstance(exc, EngineConstructionError):
                raise
            raise EngineConstructionError(str(exc)) from exc
        except BaseException:
            # cancelled mid-load: nobody else holds the binding yet
            await binding.release()
            raise

        logger.info("mpv binding ready for %s (pid %s)", path, proc.pid)
        return binding
