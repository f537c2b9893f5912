from __future__ import annotations

import logging
import os
import stat
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .bookmarks import resolve_bookmark
from .errors import NotDirectoryError, StaleCredentialError, translate_os_error
from .models import DirectoryEntry


logger = logging.getLogger(__name__)


def is_hidden(name: str, st: os.stat_result) -> bool:
    if name.startswith("."):
        return True
    if getattr(st, "st_file_attributes", 0) & stat.FILE_ATTRIBUTE_HIDDEN:
        return True
    return bool(getattr(st, "st_flags", 0) & stat.UF_HIDDEN)


def _entry_from_stat(path: Path, st: os.stat_result) -> DirectoryEntry:
    is_directory = stat.S_ISDIR(st.st_mode)
    return DirectoryEntry(
        path=path,
        is_directory=is_directory,
        size=0 if is_directory else st.st_size,
        modified=st.st_mtime,
        is_hidden=is_hidden(path.name, st),
    )


class FilesystemAccessor:
    """Lists one directory level at a time.

    Directories opened through a bookmark are registered with :meth:`grant`;
    every listing under such a directory re-validates the bookmark and holds
    an access scope only for the duration of that single listing.
    """

    def __init__(self) -> None:
        self._grants: dict[Path, bytes] = {}
        self._lock = threading.Lock()
        self._active_scopes = 0

    @property
    def active_scopes(self) -> int:
        with self._lock:
            return self._active_scopes

    def grant(self, root: Path, bookmark: bytes) -> None:
        with self._lock:
            self._grants[Path(root)] = bookmark

    def revoke(self, root: Path) -> None:
        with self._lock:
            self._grants.pop(Path(root), None)

    def credential_for(self, path: Path) -> Optional[tuple[Path, bytes]]:
        path = Path(path)
        with self._lock:
            matches = [
                (root, blob)
                for root, blob in self._grants.items()
                if root == path or root in path.parents
            ]
        if not matches:
            return None
        return max(matches, key=lambda item: len(item[0].parts))

    @contextmanager
    def access_scope(self, path: Path) -> Iterator[None]:
        credential = self.credential_for(path)
        if credential is not None:
            root, blob = credential
            resolved = resolve_bookmark(blob)
            if resolved.is_stale:
                raise StaleCredentialError(f"bookmark for {root} is stale and needs refresh", root)

        with self._lock:
            self._active_scopes += 1
        try:
            yield
        finally:
            with self._lock:
                self._active_scopes -= 1

    def describe(self, path: Path) -> DirectoryEntry:
        path = Path(path)
        try:
            st = os.stat(path)
        except OSError as exc:
            raise translate_os_error(exc, path) from exc
        return _entry_from_stat(path, st)

    def list_children(self, path: Path) -> list[DirectoryEntry]:
        path = Path(path)
        entries: list[DirectoryEntry] = []
        with self.access_scope(path):
            try:
                with os.scandir(path) as it:
                    dirents = list(it)
            except OSError as exc:
                raise translate_os_error(exc, path) from exc

            for dirent in dirents:
                child = path / dirent.name
                try:
                    entries.append(_entry_from_stat(child, dirent.stat()))
                except (FileNotFoundError, PermissionError, OSError) as exc:
                    logger.warning("entry skipped: %s: %s", child, exc.strerror or exc)

        logger.debug("listed %s: %d entries", path, len(entries))
        return entries


def require_directory(entry: DirectoryEntry) -> DirectoryEntry:
    if not entry.is_directory:
        raise NotDirectoryError(f"not a directory: {entry.path}", entry.path)
    return entry
