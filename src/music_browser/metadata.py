from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from mutagen import File
from mutagen.id3 import ID3

from .config import AUDIO_EXTENSIONS
from .models import TrackTags


logger = logging.getLogger(__name__)

KEY_TAGS = (
    "TKEY",
    "initialkey",
    "INITIALKEY",
    "key",
    "KEY",
    "----:com.apple.iTunes:initialkey",
    "----:com.apple.iTunes:KEY",
)
BPM_TAGS = (
    "TBPM",
    "bpm",
    "BPM",
    "tmpo",
    "----:com.apple.iTunes:BPM",
)
# Containers that may carry a bare ID3 tag in front of a stream mutagen cannot sync on.
ID3_PREFIX_EXTENSIONS = {".mp3", ".aac"}


def is_audio_path(path: Path, extensions: Iterable[str] = AUDIO_EXTENSIONS) -> bool:
    # macOS AppleDouble sidecar files (._*) are metadata blobs, not audio.
    if path.name.startswith("._"):
        return False
    return path.suffix.lower() in extensions


def _first(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        if not value:
            return ""
        value = value[0]
    elif hasattr(value, "text"):
        text = getattr(value, "text")
        if not text:
            return ""
        value = text[0]
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return str(value).strip()


def _tag_value(tags: object, *keys: str) -> str:
    if tags is None:
        return ""

    for key in keys:
        value = None
        try:
            value = tags.get(key)
        except Exception:
            value = None
        if value:
            text = _first(value)
            if text:
                return text

    return ""


def normalize_bpm(value: str) -> Optional[str]:
    value = value.strip()
    if not value:
        return None
    try:
        number = float(value)
    except ValueError:
        return value
    if number <= 0:
        return None
    if number.is_integer():
        return str(int(number))
    return f"{number:g}"


def _bare_id3(path: Path) -> Optional[ID3]:
    try:
        return ID3(path)
    except Exception as exc:
        logger.debug("no bare ID3 tag in %s: %s", path, exc)
        return None


def read_tags(path: Path) -> TrackTags:
    """Return the musical key and BPM stored in ``path``'s tags.

    Unsupported, corrupt or unreadable files yield ``TrackTags.empty()``;
    this function never raises.
    """
    try:
        audio = File(path)
    except Exception as exc:
        logger.debug("mutagen could not open %s: %s", path, exc)
        audio = None

    tags = getattr(audio, "tags", None)
    if not tags and path.suffix.lower() in ID3_PREFIX_EXTENSIONS:
        tags = _bare_id3(path)
    if not tags:
        return TrackTags.empty()

    key = _tag_value(tags, *KEY_TAGS)
    bpm = normalize_bpm(_tag_value(tags, *BPM_TAGS))
    return TrackTags(key=key or None, bpm=bpm)
