from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .bookmarks import create_bookmark, resolve_bookmark
from .controller import ExpansionController
from .errors import BrowserError, StaleCredentialError
from .models import NodeView, TreeSnapshot


logger = logging.getLogger(__name__)


class BrowserSession:
    """Entry points used by a front end: root selection, row expand/collapse.

    Errors from user-initiated expansion are reported through ``last_error``
    instead of being raised, so one unreadable folder never takes the rest of
    the tree down with it. ``last_bookmark`` holds the credential for the
    current root; persisting it between runs is up to the caller.
    """

    def __init__(self, controller: Optional[ExpansionController] = None) -> None:
        self.controller = controller or ExpansionController()
        self.last_bookmark: Optional[bytes] = None
        self.last_error: Optional[str] = None
        self._root_path: Optional[Path] = None

    def __enter__(self) -> BrowserSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def root_path(self) -> Optional[Path]:
        return self._root_path

    def _adopt(self, path: Path, bookmark: bytes) -> int:
        if self._root_path is not None:
            self.controller.accessor.revoke(self._root_path)
        self.controller.accessor.grant(path, bookmark)
        root_id = self.controller.select_root(path)
        self._root_path = path
        self.last_bookmark = bookmark
        self.last_error = None
        return root_id

    def on_root_selected(self, path: Path) -> int:
        path = Path(path).expanduser().resolve()
        return self._adopt(path, create_bookmark(path))

    def restore(self, bookmark: bytes) -> int:
        resolved = resolve_bookmark(bookmark)
        if resolved.is_stale:
            if not self.controller.config.refresh_stale_bookmarks:
                raise StaleCredentialError(f"bookmark for {resolved.path} is stale", resolved.path)
            logger.info("bookmark for %s is stale; recreating it", resolved.path)
            bookmark = create_bookmark(resolved.path)
        return self._adopt(resolved.path, bookmark)

    def refresh_credential(self) -> bytes:
        if self._root_path is None:
            raise StaleCredentialError("no directory has been selected")
        bookmark = create_bookmark(self._root_path)
        self.controller.accessor.grant(self._root_path, bookmark)
        self.last_bookmark = bookmark
        return bookmark

    def on_expand_requested(self, node_id: int) -> list[NodeView]:
        try:
            children = self.controller.expand(node_id)
        except StaleCredentialError as exc:
            self.last_error = str(exc)
            if self.controller.config.refresh_stale_bookmarks:
                self.refresh_credential()
            return []
        except BrowserError as exc:
            self.last_error = str(exc)
            return []
        self.last_error = None
        return children

    def on_collapse_requested(self, node_id: int) -> None:
        try:
            self.controller.collapse(node_id)
        except BrowserError as exc:
            self.last_error = str(exc)
            return
        self.last_error = None

    def snapshot(self) -> TreeSnapshot:
        return self.controller.snapshot()

    def close(self, wait: bool = True) -> None:
        self.controller.close(wait=wait)
