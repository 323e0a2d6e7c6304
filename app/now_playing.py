"""Now-playing notification surface.

Holds what a media notification would show (title, artist, cover,
playing flag) and maps its control buttons onto controller commands.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from core.models import PLACEHOLDER_ART

if TYPE_CHECKING:
    from app.controller import PlaybackController

logger = logging.getLogger(__name__)


class ControlAction(str, Enum):
    NEXT = "next"
    PREVIOUS = "previous"
    PLAY = "play"
    PAUSE = "pause"
    DISMISS = "dismiss"


class NowPlayingSurface:
    def __init__(self, placeholder_art: str = PLACEHOLDER_ART) -> None:
        self.placeholder_art = placeholder_art
        self.title = "No track playing"
        self.artist = ""
        self.cover = placeholder_art
        self.is_playing = False

    def update_metadata(self, *, title: str, artist: str, cover: str) -> None:
        self.title = title
        self.artist = artist
        self.cover = cover or self.placeholder_art

    def update_is_playing(self, is_playing: bool) -> None:
        self.is_playing = is_playing

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "artist": self.artist,
            "cover": self.cover,
            "is_playing": self.is_playing,
        }


async def dispatch_control_action(controller: PlaybackController, action: ControlAction) -> None:
    """Run a notification control button as if it were a local command."""
    logger.info("Now-playing control: %s", action.value)
    if action is ControlAction.NEXT:
        await controller.next()
    elif action is ControlAction.PREVIOUS:
        await controller.prev()
    elif action is ControlAction.PLAY:
        await controller.play()
    elif action is ControlAction.PAUSE:
        await controller.pause()
    elif action is ControlAction.DISMISS:
        await controller.stop()
