from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional

from .config import BrowserConfig
from .errors import BrowserError, InvalidOperationError, NodeNotFoundError
from .filesystem import FilesystemAccessor, require_directory
from .metadata import read_tags
from .models import ExpansionState, FileItem, MetadataUpdate, NodeView, TrackTags, TreeSnapshot
from .policy import apply_policy
from .store import TreeStore


logger = logging.getLogger(__name__)

TagReader = Callable[[Path], TrackTags]
Listener = Callable[[str, int], None]
ProgressCallback = Callable[[int, int], None]


class ExpansionController:
    """Materializes directory children on demand and enriches audio files.

    Each directory node moves ``COLLAPSED -> EXPANDING -> EXPANDED``. Only
    the caller that performs the ``COLLAPSED -> EXPANDING`` transition lists
    the directory; concurrent callers for the same node wait for that
    listing instead of starting their own. Tag reads run on a thread pool and
    report back as :class:`MetadataUpdate` messages committed through the
    store, tagged with the generation that was current when they started so
    results for a replaced tree are dropped.
    """

    def __init__(
        self,
        config: Optional[BrowserConfig] = None,
        accessor: Optional[FilesystemAccessor] = None,
        tag_reader: TagReader = read_tags,
        store: Optional[TreeStore] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        self.config = config or BrowserConfig()
        self.accessor = accessor or FilesystemAccessor()
        self.store = store or TreeStore()
        self._read_tags = tag_reader
        self._progress_callback = progress_callback
        self._lock = threading.RLock()
        self._changed = threading.Condition(self._lock)
        self._states: dict[int, ExpansionState] = {}
        self._inflight: dict[int, Future] = {}
        self._tasks: set[Future] = set()
        self._listeners: list[Listener] = []
        self._scheduled = 0
        self._completed = 0
        self._closed = False
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="enrich",
        )

    def __enter__(self) -> ExpansionController:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- observation -------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, event: str, node_id: int) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event, node_id)
            except Exception:
                logger.exception("listener failed for %s event on node %d", event, node_id)

    @property
    def root_id(self) -> Optional[int]:
        return self.store.root_id

    @property
    def generation(self) -> int:
        return self.store.generation

    @property
    def pending_enrichments(self) -> int:
        with self._lock:
            return len(self._tasks)

    def state(self, node_id: int) -> ExpansionState:
        with self._lock:
            self.store.get(node_id)
            return self._states.get(node_id, ExpansionState.COLLAPSED)

    def get(self, node_id: int) -> NodeView:
        with self._lock:
            return self.store.get(node_id, self._states.get(node_id, ExpansionState.COLLAPSED))

    def children(self, node_id: int) -> Optional[list[NodeView]]:
        with self._lock:
            return self.store.children(node_id, self._states)

    def snapshot(self) -> TreeSnapshot:
        with self._lock:
            return self.store.snapshot(dict(self._states))

    # -- root selection ----------------------------------------------------

    def _check_open(self) -> None:
        if self._closed:
            raise InvalidOperationError("controller is closed")

    def select_root(self, path: Path) -> int:
        self._check_open()
        path = Path(path).expanduser().resolve()
        entry = require_directory(self.accessor.describe(path))
        with self._lock:
            queued = list(self._tasks)
            self._tasks.clear()
            self._states = {}
            self._inflight = {}
            self._scheduled = 0
            self._completed = 0
            root_id = self.store.set_root(entry)
            self._changed.notify_all()
        for task in queued:
            task.cancel()
        logger.info("selected root %s", path)
        self._notify("root", root_id)
        return root_id

    # -- expansion ---------------------------------------------------------

    def expand(self, node_id: int) -> list[NodeView]:
        self._check_open()
        with self._lock:
            node = self.store.get(node_id)
            if not node.is_directory:
                raise InvalidOperationError(f"cannot expand a file: {node.path}", node.path)
            state = self._states.get(node_id, ExpansionState.COLLAPSED)
            if state is ExpansionState.EXPANDING:
                pending = self._inflight[node_id]
                owner = False
            elif state is ExpansionState.EXPANDED or node.children is not None:
                self._states[node_id] = ExpansionState.EXPANDED
                return self.store.children(node_id, self._states) or []
            else:
                pending = Future()
                self._inflight[node_id] = pending
                self._states[node_id] = ExpansionState.EXPANDING
                generation = self.store.generation
                owner = True

        if not owner:
            logger.debug("node %d is already expanding; waiting for it", node_id)
            return pending.result()

        try:
            children = self._materialize(node_id, node.path, generation, pending)
        except Exception as exc:
            with self._lock:
                if self._inflight.get(node_id) is pending:
                    del self._inflight[node_id]
                    self._states[node_id] = ExpansionState.COLLAPSED
            pending.set_exception(exc)
            if isinstance(exc, BrowserError):
                logger.warning("could not expand %s: %s", node.path, exc)
            raise
        pending.set_result(children)
        return children

    def _materialize(self, node_id: int, path: Path, generation: int, pending: Future) -> list[NodeView]:
        entries = apply_policy(self.accessor.list_children(path), self.config)
        limit = self.config.child_limit
        if len(entries) > limit:
            logger.info("%s: keeping %d of %d entries", path, limit, len(entries))
            entries = entries[:limit]
        items = [FileItem.from_entry(entry, generation) for entry in entries]

        with self._lock:
            try:
                self.store.commit_children(node_id, items, generation)
            except NodeNotFoundError as exc:
                logger.debug("discarding listing of %s: %s", path, exc)
                if self._inflight.get(node_id) is pending:
                    del self._inflight[node_id]
                    self._states.pop(node_id, None)
                return []
            for item in items:
                if not item.is_directory:
                    self._schedule(item, generation)
            if self._inflight.get(node_id) is pending:
                del self._inflight[node_id]
                self._states[node_id] = ExpansionState.EXPANDED
            views = self.store.children(node_id, self._states) or []

        self._notify("children", node_id)
        return views

    def collapse(self, node_id: int) -> None:
        with self._lock:
            node = self.store.get(node_id)
            if not node.is_directory:
                raise InvalidOperationError(f"cannot collapse a file: {node.path}", node.path)
            state = self._states.get(node_id, ExpansionState.COLLAPSED)
            if state is ExpansionState.EXPANDING:
                raise InvalidOperationError(f"expansion still in progress: {node.path}", node.path)
            if state is ExpansionState.COLLAPSED:
                return
            self._states[node_id] = ExpansionState.COLLAPSED
        self._notify("collapse", node_id)

    def refresh(self, node_id: int) -> list[NodeView]:
        """List ``node_id`` again, replacing its materialized subtree."""
        self._check_open()
        with self._lock:
            node = self.store.get(node_id)
            if not node.is_directory:
                raise InvalidOperationError(f"cannot refresh a file: {node.path}", node.path)
            if self._states.get(node_id) is not ExpansionState.EXPANDING:
                for removed in self.store.discard_children(node_id):
                    self._states.pop(removed, None)
                self._states[node_id] = ExpansionState.COLLAPSED
        return self.expand(node_id)

    # -- enrichment --------------------------------------------------------

    def _schedule(self, item: FileItem, generation: int) -> None:
        future = self._executor.submit(self._enrich, item.id, item.path, generation)
        self._tasks.add(future)
        self._scheduled += 1
        future.add_done_callback(self._on_enriched)

    def _enrich(self, node_id: int, path: Path, generation: int) -> MetadataUpdate:
        try:
            tags = self._read_tags(path)
        except Exception as exc:
            logger.warning("tag read failed for %s: %s", path, exc)
            tags = TrackTags.empty()
        logger.debug("tags for %s: key=%s bpm=%s", path, tags.key, tags.bpm)
        return MetadataUpdate(node_id=node_id, key=tags.key, bpm=tags.bpm, generation=generation)

    def _on_enriched(self, future: Future) -> None:
        if future.cancelled():
            with self._lock:
                self._tasks.discard(future)
                self._changed.notify_all()
            return

        update: MetadataUpdate = future.result()
        applied = False
        try:
            applied = self.store.commit_metadata(update)
        except NodeNotFoundError as exc:
            logger.debug("discarding tags for node %d: %s", update.node_id, exc)

        progress = None
        with self._lock:
            if future in self._tasks:
                self._tasks.discard(future)
                self._completed += 1
                progress = (self._completed, self._scheduled)
            self._changed.notify_all()

        if progress is not None and self._progress_callback:
            self._progress_callback(*progress)
        if applied:
            self._notify("metadata", update.node_id)

    def wait_for_enrichment(self, timeout: Optional[float] = None) -> bool:
        with self._changed:
            return self._changed.wait_for(lambda: not self._tasks, timeout)

    def close(self, wait: bool = True) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=True)
