from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping


AUDIO_EXTENSIONS = frozenset(
    {
        ".mp3",
        ".wav",
        ".aiff",
        ".flac",
        ".aac",
        ".m4a",
        ".ogg",
    }
)

DEFAULT_CHILD_LIMIT = 100


def normalize_extension(value: str) -> str:
    value = value.strip().lower()
    if not value:
        raise ValueError("empty audio extension")
    return value if value.startswith(".") else f".{value}"


@dataclass(frozen=True)
class BrowserConfig:
    child_limit: int = DEFAULT_CHILD_LIMIT
    audio_extensions: frozenset[str] = field(default_factory=lambda: AUDIO_EXTENSIONS)
    show_hidden: bool = False
    max_workers: int = 4
    refresh_stale_bookmarks: bool = True

    def __post_init__(self) -> None:
        if self.child_limit < 0:
            raise ValueError(f"child_limit must be >= 0, got {self.child_limit}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        object.__setattr__(
            self,
            "audio_extensions",
            frozenset(normalize_extension(ext) for ext in self.audio_extensions),
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> BrowserConfig:
        known = {f.name for f in fields(cls)}
        values = {name: value for name, value in data.items() if name in known}
        if "audio_extensions" in values:
            extensions = values["audio_extensions"]
            if isinstance(extensions, str):
                raise ValueError("audio_extensions must be a list of extensions")
            values["audio_extensions"] = frozenset(extensions)
        for name in ("child_limit", "max_workers"):
            if name in values and (isinstance(values[name], bool) or not isinstance(values[name], int)):
                raise ValueError(f"{name} must be an integer")
        return cls(**values)

    def with_overrides(self, **overrides: Any) -> BrowserConfig:
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def load_config(path: Path) -> BrowserConfig:
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"config file must contain a JSON object: {path}")
    return BrowserConfig.from_mapping(data)
