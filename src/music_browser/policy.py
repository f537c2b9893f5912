"""Inclusion and ordering rules applied to every materialized listing.

Hidden entries are dropped, files must carry an allowed audio extension
(directories are always kept), and the survivors are ordered directories
first, then by a locale-aware, case-insensitive natural-order name key.
"""

from __future__ import annotations

import locale
import re
from typing import Iterable

from .config import BrowserConfig
from .metadata import is_audio_path
from .models import DirectoryEntry


_DIGITS = re.compile(r"(\d+)")


def natural_key(name: str) -> tuple[object, ...]:
    # re.split with a capture group alternates text/number, starting with text,
    # so positions always hold comparable types.
    parts: list[object] = []
    for idx, chunk in enumerate(_DIGITS.split(name.casefold())):
        if idx % 2:
            parts.append(int(chunk))
        else:
            parts.append(locale.strxfrm(chunk))
    return tuple(parts)


def sort_key(entry: DirectoryEntry) -> tuple[object, ...]:
    return (not entry.is_directory, natural_key(entry.name), str(entry.path))


def is_visible(entry: DirectoryEntry, config: BrowserConfig) -> bool:
    if entry.is_hidden and not config.show_hidden:
        return False
    if entry.is_directory:
        return True
    return is_audio_path(entry.path, config.audio_extensions)


def apply_policy(entries: Iterable[DirectoryEntry], config: BrowserConfig) -> list[DirectoryEntry]:
    return sorted((e for e in entries if is_visible(e, config)), key=sort_key)
