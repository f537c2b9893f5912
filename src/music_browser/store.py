"""Id-indexed arena that owns every node of the current tree.

Nodes are kept in a flat ``id -> FileItem`` index; each node records its
parent id and the ordered ids of its children. All mutation goes through
:class:`TreeStore` methods, which serialize on a single lock, so a commit
never interleaves with another and never touches a node that has already
been discarded.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Iterable, Mapping, Optional

from .errors import InvalidOperationError, NodeNotFoundError
from .models import DirectoryEntry, ExpansionState, FileItem, MetadataUpdate, NodeView, TreeSnapshot


logger = logging.getLogger(__name__)


class TreeStore:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._nodes: dict[int, FileItem] = {}
        self._root_id: Optional[int] = None
        self._generation = 0

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def root_id(self) -> Optional[int]:
        with self._lock:
            return self._root_id

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        with self._lock:
            return node_id in self._nodes

    def set_root(self, entry: DirectoryEntry) -> int:
        with self._lock:
            self._generation += 1
            self._nodes.clear()
            root = FileItem.from_entry(entry, self._generation)
            self._nodes[root.id] = root
            self._root_id = root.id
            logger.debug("root %s -> node %d (generation %d)", entry.path, root.id, self._generation)
            return root.id

    def _node(self, node_id: int) -> FileItem:
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def get(self, node_id: int, state: ExpansionState = ExpansionState.COLLAPSED) -> NodeView:
        with self._lock:
            return NodeView.of(self._node(node_id), state)

    def path_of(self, node_id: int) -> Path:
        with self._lock:
            return self._node(node_id).path

    def children(
        self,
        node_id: int,
        states: Optional[Mapping[int, ExpansionState]] = None,
    ) -> Optional[list[NodeView]]:
        states = states or {}
        with self._lock:
            node = self._node(node_id)
            if node.children is None:
                return None
            return [
                NodeView.of(self._nodes[child_id], states.get(child_id, ExpansionState.COLLAPSED))
                for child_id in node.children
            ]

    def path_to_root(self, node_id: int) -> list[int]:
        with self._lock:
            chain = [node_id]
            node = self._node(node_id)
            while node.parent_id is not None:
                chain.append(node.parent_id)
                node = self._node(node.parent_id)
            chain.reverse()
            return chain

    def _discard_descendants(self, node: FileItem) -> list[int]:
        removed: list[int] = []
        stack = list(node.children or ())
        while stack:
            child = self._nodes.pop(stack.pop(), None)
            if child is None:
                continue
            removed.append(child.id)
            if child.children:
                stack.extend(child.children)
        node.children = None
        return removed

    def _check_generation(self, node_id: int, generation: int) -> None:
        if generation != self._generation:
            raise NodeNotFoundError(node_id, f"stale generation {generation} (current {self._generation})")

    def commit_children(self, node_id: int, children: Iterable[FileItem], generation: int) -> list[int]:
        with self._lock:
            self._check_generation(node_id, generation)
            node = self._node(node_id)
            if not node.is_directory:
                raise InvalidOperationError(f"cannot add children to a file: {node.path}", node.path)
            if node.children is not None:
                removed = self._discard_descendants(node)
                logger.debug("replaced subtree of node %d (%d nodes discarded)", node_id, len(removed))

            child_ids: list[int] = []
            for child in children:
                child.parent_id = node_id
                child.generation = generation
                self._nodes[child.id] = child
                child_ids.append(child.id)
            node.children = child_ids
            return list(child_ids)

    def discard_children(self, node_id: int) -> list[int]:
        with self._lock:
            return self._discard_descendants(self._node(node_id))

    def commit_metadata(self, update: MetadataUpdate) -> bool:
        with self._lock:
            self._check_generation(update.node_id, update.generation)
            node = self._node(update.node_id)
            if node.is_directory:
                raise InvalidOperationError(f"directories carry no tags: {node.path}", node.path)
            if node.enriched:
                return False
            node.key = update.key
            node.bpm = update.bpm
            node.enriched = True
            return True

    def snapshot(self, states: Optional[Mapping[int, ExpansionState]] = None) -> TreeSnapshot:
        states = states or {}
        with self._lock:
            nodes = {
                node_id: NodeView.of(node, states.get(node_id, ExpansionState.COLLAPSED))
                for node_id, node in self._nodes.items()
            }
            return TreeSnapshot(root_id=self._root_id, generation=self._generation, nodes=nodes)
