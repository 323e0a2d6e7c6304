"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from app import engine as engine_module
from app.config import get_settings
from app.controller import PlaybackController
from app.db import close_db, init_db
from app.metadata import MutagenMetadataReader
from app.now_playing import NowPlayingSurface
from app.storage import PlaylistStore
from core.playlist import Playlist


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hook."""
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    await init_db()
    print(f"[startup] DB ready at {settings.db_abs_path}")

    store = PlaylistStore(settings.playlist_storage_key)
    playlist = Playlist(await store.load())
    controller = PlaybackController(
        engine_module.build_engine(settings),
        playlist=playlist,
        store=store,
        metadata_reader=MutagenMetadataReader(),
        now_playing=NowPlayingSurface(settings.placeholder_art),
        poll_interval=settings.poll_interval,
        avoid_repeat=settings.shuffle_avoid_repeat,
        placeholder_art=settings.placeholder_art,
    )
    await controller.start()
    controller.refresh_metadata()
    app.state.controller = controller
    print(f"[startup] Player ready with {len(playlist)} tracks")
    yield
    await controller.shutdown()
    app.state.controller = None
    await close_db()
    print("[shutdown] DB closed")


app = FastAPI(
    title="playlist-player",
    version="0.1.0",
    lifespan=lifespan,
)

# Routers
from app.routes_player import now_playing_router, router as player_router  # noqa: E402

app.include_router(player_router)
app.include_router(now_playing_router)


@app.get("/health")
async def health():
    """Simple health-check endpoint."""
    return JSONResponse({"status": "ok", "version": app.version})
