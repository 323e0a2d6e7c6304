"""Application settings loaded from .env via pydantic-settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration — values come from environment / .env file."""

    # Database
    db_path: str = "./data/playlist_player.db"
    playlist_storage_key: str = "my_music_playlist"

    # Playlist
    placeholder_art: str = "assets/placeholder.png"

    # Playback
    poll_interval: float = 0.8  # seconds
    shuffle_avoid_repeat: bool = False

    # mpv engine
    mpv_path: str = "mpv"
    mpv_ipc_dir: str = ""
    engine_timeout: float = 3.0  # seconds

    # Logging
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def db_abs_path(self) -> Path:
        """Return the database path as an absolute Path, creating parents if needed."""
        p = Path(self.db_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        return p.resolve()


@lru_cache
def get_settings() -> Settings:
    """Cached singleton so .env is read only once."""
    return Settings()
