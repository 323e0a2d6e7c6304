"""Player REST API routes.

Endpoints for playlist editing, transport commands, selection policy,
the status read model and now-playing control actions.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.controller import PlaybackController
from app.engine import EngineError, SeekUnsupportedError
from app.files import PermissionDeniedError, check_read_permission, resolve_native_path
from app.now_playing import ControlAction, dispatch_control_action
from core.models import RepeatMode
from core.progress import format_time

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/player", tags=["player"])
now_playing_router = APIRouter(prefix="/now-playing", tags=["now-playing"])


def _get_controller(request: Request) -> PlaybackController:
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        raise HTTPException(status_code=503, detail="Player not initialised")
    return controller


class AddTrackRequest(BaseModel):
    path: str = ""


class MoveRequest(BaseModel):
    from_index: int
    to_index: int


class SeekRequest(BaseModel):
    percent: float = Field(ge=0, le=100)


class RepeatRequest(BaseModel):
    mode: RepeatMode


# ---------------------------------------------------------------------------
# Read model
# ---------------------------------------------------------------------------


@router.get("/status")
async def status(request: Request):
    """Return playlist and playback state."""
    controller = _get_controller(request)
    return JSONResponse(controller.to_status_dict())


# ---------------------------------------------------------------------------
# Playlist
# ---------------------------------------------------------------------------


@router.post("/tracks")
async def add_track(request: Request, body: AddTrackRequest):
    """Append a picked file; the first track starts playing."""
    controller = _get_controller(request)
    path = resolve_native_path(body.path)
    if path is None:
        raise HTTPException(status_code=400, detail="No file selected")
    try:
        check_read_permission(path)
    except PermissionDeniedError as exc:
        logger.warning("%s — adding anyway", exc)
    await controller.append_path(path)
    return JSONResponse(controller.to_status_dict(), status_code=201)


@router.delete("/tracks/{index}")
async def remove_track(request: Request, index: int):
    controller = _get_controller(request)
    await controller.remove(index)
    return JSONResponse(controller.to_status_dict())


@router.post("/tracks/move")
async def move_track(request: Request, body: MoveRequest):
    controller = _get_controller(request)
    await controller.move(body.from_index, body.to_index)
    return JSONResponse(controller.to_status_dict())


@router.post("/save")
async def save_playlist(request: Request):
    """Persist the playlist now (it is also saved after every change)."""
    controller = _get_controller(request)
    await controller.save()
    return JSONResponse(controller.to_status_dict())


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


@router.post("/play")
async def play(request: Request):
    controller = _get_controller(request)
    await controller.play()
    return JSONResponse(controller.to_status_dict())


@router.post("/play/{index}")
async def play_index(request: Request, index: int):
    controller = _get_controller(request)
    if not controller.playlist.in_range(index):
        raise HTTPException(status_code=404, detail=f"No track at index {index}")
    await controller.play_index(index)
    return JSONResponse(controller.to_status_dict())


@router.post("/pause")
async def pause(request: Request):
    controller = _get_controller(request)
    await controller.pause()
    return JSONResponse(controller.to_status_dict())


@router.post("/stop")
async def stop(request: Request):
    controller = _get_controller(request)
    await controller.stop()
    return JSONResponse(controller.to_status_dict())


@router.post("/next")
async def next_track(request: Request):
    controller = _get_controller(request)
    await controller.next()
    return JSONResponse(controller.to_status_dict())


@router.post("/prev")
async def prev_track(request: Request):
    controller = _get_controller(request)
    await controller.prev()
    return JSONResponse(controller.to_status_dict())


@router.post("/seek")
async def seek(request: Request, body: SeekRequest):
    """Seek to a percentage of the current track."""
    controller = _get_controller(request)
    try:
        offset_ms = await controller.seek(body.percent)
    except SeekUnsupportedError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except EngineError as exc:
        raise HTTPException(status_code=502, detail=f"Seek failed: {exc}")
    data = controller.to_status_dict()
    data["seek_ms"] = offset_ms
    return JSONResponse(data)


@router.get("/seek/preview")
async def seek_preview(request: Request, percent: float = Query(ge=0, le=100)):
    """Time a seek to *percent* would land on, while the slider is dragged."""
    controller = _get_controller(request)
    seconds = controller.seek_preview(percent)
    return JSONResponse({"percent": percent, "target_seconds": seconds, "target": format_time(seconds)})


# ---------------------------------------------------------------------------
# Selection policy
# ---------------------------------------------------------------------------


@router.post("/shuffle")
async def toggle_shuffle(request: Request):
    controller = _get_controller(request)
    controller.toggle_shuffle()
    return JSONResponse(controller.to_status_dict())


@router.post("/repeat")
async def cycle_repeat(request: Request):
    """Cycle repeat Off → All → One."""
    controller = _get_controller(request)
    controller.cycle_repeat()
    return JSONResponse(controller.to_status_dict())


@router.put("/repeat")
async def set_repeat(request: Request, body: RepeatRequest):
    controller = _get_controller(request)
    controller.set_repeat(body.mode)
    return JSONResponse(controller.to_status_dict())


# ---------------------------------------------------------------------------
# Now-playing surface
# ---------------------------------------------------------------------------


@now_playing_router.get("")
async def now_playing(request: Request):
    controller = _get_controller(request)
    return JSONResponse(controller.now_playing.to_dict())


@now_playing_router.post("/{action}")
async def now_playing_action(request: Request, action: ControlAction):
    """Handle a notification control button."""
    controller = _get_controller(request)
    await dispatch_control_action(controller, action)
    return JSONResponse(controller.now_playing.to_dict())
