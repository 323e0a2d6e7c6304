"""File selection helpers: native path resolution and read-permission checks."""

from __future__ import annotations

import os
from typing import Optional
from urllib.parse import unquote, urlparse


class PermissionDeniedError(Exception):
    """The process is not allowed to read the selected file."""


def resolve_native_path(raw: Optional[str]) -> Optional[str]:
    """Turn a picked path or ``file://`` URI into a native filesystem path.

    Returns None when nothing was picked (empty input = user cancelled).
    """
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    if raw.startswith("file://"):
        parsed = urlparse(raw)
        raw = unquote(parsed.path)
    return os.path.expanduser(raw)


def check_read_permission(path: str) -> None:
    if not os.access(path, os.R_OK):
        raise PermissionDeniedError(f"No read permission for {path}")
