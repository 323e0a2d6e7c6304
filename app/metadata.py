"""Tag and artwork reading via mutagen.

Reading is best effort: unreadable files, unsupported formats and missing
tags all come back as ``None`` and never block playlist use.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any, Optional, Tuple

from mutagen import File as MutagenFile
from mutagen import MutagenError
from mutagen.mp4 import MP4Cover
from pydantic import BaseModel

from core.models import Track

logger = logging.getLogger(__name__)


class MetadataReadError(Exception):
    """Tags could not be read from a file."""


class TagInfo(BaseModel):
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    picture_bytes: Optional[bytes] = None
    picture_format: Optional[str] = None


# ---------------------------------------------------------------------------
# mutagen helpers
# ---------------------------------------------------------------------------

def _first(audio: Any, key: str) -> Optional[str]:
    values = audio.get(key)
    if not values:
        return None
    return str(values[0]).strip() or None


def _read_picture(path: str) -> Optional[Tuple[bytes, str]]:
    """Embedded cover art as (bytes, mime type), if the file carries one."""
    audio = MutagenFile(path)
    if audio is None:
        return None

    # FLAC
    pictures = getattr(audio, "pictures", None)
    if pictures:
        return pictures[0].data, pictures[0].mime

    tags = audio.tags
    if tags is None:
        return None

    # ID3 (mp3)
    if hasattr(tags, "getall"):
        apic = tags.getall("APIC")
        if apic:
            return apic[0].data, apic[0].mime
        return None

    # MP4 / m4a
    covr = tags.get("covr")
    if covr:
        fmt = "image/png" if covr[0].imageformat == MP4Cover.FORMAT_PNG else "image/jpeg"
        return bytes(covr[0]), fmt
    return None


def read_tags(path: str) -> TagInfo:
    """Blocking tag read.  Raises ``MetadataReadError`` on any failure."""
    try:
        audio = MutagenFile(path, easy=True)
        picture = _read_picture(path) if audio is not None else None
    except (MutagenError, OSError) as exc:
        raise MetadataReadError(f"{path}: {exc}") from exc
    if audio is None:
        raise MetadataReadError(f"Unsupported or unreadable file: {path}")

    info = TagInfo(
        title=_first(audio, "title"),
        artist=_first(audio, "artist"),
        album=_first(audio, "album"),
    )
    if picture:
        info.picture_bytes, info.picture_format = picture
    return info


def picture_data_uri(data: bytes, fmt: str) -> str:
    mime = fmt if "/" in fmt else f"image/{fmt.lower()}"
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def apply_tag_info(track: Track, tags: TagInfo) -> bool:
    """Copy whatever the tags provide onto *track*.  Returns True if it changed."""
    art = None
    if tags.picture_bytes and tags.picture_format:
        art = picture_data_uri(tags.picture_bytes, tags.picture_format)
    return track.apply_tags(title=tags.title, artist=tags.artist, album=tags.album, art=art)


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------

class MutagenMetadataReader:
    async def read(self, path: str) -> Optional[TagInfo]:
        """Read tags off the event loop; failures are logged and return None."""
        try:
            return await asyncio.to_thread(read_tags, path)
        except MetadataReadError as exc:
            logger.debug("Tag read failed: %s", exc)
            return None
