from __future__ import annotations

from pathlib import Path
from typing import Optional


class BrowserError(Exception):
    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


class AccessDeniedError(BrowserError):
    pass


class NotFoundError(BrowserError):
    pass


class NodeNotFoundError(NotFoundError):
    def __init__(self, node_id: int, reason: str = "unknown node") -> None:
        super().__init__(f"{reason}: {node_id}")
        self.node_id = node_id


class NotDirectoryError(BrowserError):
    pass


class InvalidOperationError(BrowserError):
    pass


class StaleCredentialError(BrowserError):
    """The bookmark for a directory still resolves but must be recreated."""


def translate_os_error(exc: OSError, path: Path) -> BrowserError:
    if isinstance(exc, PermissionError):
        return AccessDeniedError(f"access denied: {path}", path)
    if isinstance(exc, FileNotFoundError):
        return NotFoundError(f"no such file or directory: {path}", path)
    if isinstance(exc, NotADirectoryError):
        return NotDirectoryError(f"not a directory: {path}", path)
    return BrowserError(f"{path}: {exc.strerror or exc}", path)
