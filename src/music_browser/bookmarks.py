"""Opaque bookmarks for directories chosen in an earlier session.

A bookmark records where a directory was and which filesystem object it was
(device and inode). Resolving it later tells the caller whether the
directory is still the same object or has been replaced at the same path,
in which case the bookmark is stale and should be recreated.
"""

from __future__ import annotations

import base64
import binascii
import json
import os
import stat
from dataclasses import dataclass
from pathlib import Path

from .errors import InvalidOperationError, NotDirectoryError, NotFoundError, translate_os_error


BOOKMARK_VERSION = 1


@dataclass(frozen=True)
class ResolvedBookmark:
    path: Path
    is_stale: bool


def _stat_directory(path: Path) -> os.stat_result:
    try:
        st = os.stat(path)
    except OSError as exc:
        raise translate_os_error(exc, path) from exc
    if not stat.S_ISDIR(st.st_mode):
        raise NotDirectoryError(f"not a directory: {path}", path)
    return st


def create_bookmark(path: Path) -> bytes:
    path = Path(path).expanduser().resolve()
    st = _stat_directory(path)
    payload = {
        "v": BOOKMARK_VERSION,
        "path": str(path),
        "dev": st.st_dev,
        "ino": st.st_ino,
    }
    return base64.urlsafe_b64encode(json.dumps(payload, sort_keys=True).encode("utf-8"))


def _decode(blob: bytes) -> dict:
    try:
        payload = json.loads(base64.urlsafe_b64decode(blob).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        raise InvalidOperationError(f"unreadable bookmark: {exc}") from exc
    if not isinstance(payload, dict) or payload.get("v") != BOOKMARK_VERSION:
        raise InvalidOperationError("unsupported bookmark format")
    for name in ("path", "dev", "ino"):
        if name not in payload:
            raise InvalidOperationError(f"bookmark is missing {name!r}")
    return payload


def resolve_bookmark(blob: bytes) -> ResolvedBookmark:
    payload = _decode(blob)
    path = Path(payload["path"])
    try:
        st = _stat_directory(path)
    except NotFoundError as exc:
        raise NotFoundError(f"bookmarked directory no longer exists: {path}", path) from exc
    is_stale = (st.st_dev, st.st_ino) != (payload["dev"], payload["ino"])
    return ResolvedBookmark(path=path, is_stale=is_stale)
