from __future__ import annotations

import enum
import itertools
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Mapping, Optional


_node_ids = itertools.count(1)


def next_node_id() -> int:
    return next(_node_ids)


class ExpansionState(enum.Enum):
    COLLAPSED = "collapsed"
    EXPANDING = "expanding"
    EXPANDED = "expanded"


@dataclass(frozen=True)
class DirectoryEntry:
    path: Path
    is_directory: bool
    size: int
    modified: float
    is_hidden: bool = False

    @property
    def name(self) -> str:
        return self.path.name or str(self.path)


@dataclass(frozen=True)
class TrackTags:
    key: Optional[str] = None
    bpm: Optional[str] = None

    @classmethod
    def empty(cls) -> TrackTags:
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.key is None and self.bpm is None


@dataclass(frozen=True)
class MetadataUpdate:
    node_id: int
    key: Optional[str]
    bpm: Optional[str]
    generation: int


@dataclass
class FileItem:
    path: Path
    is_directory: bool
    name: str
    size: int
    modified: float
    generation: int
    id: int = field(default_factory=next_node_id)
    parent_id: Optional[int] = None
    key: Optional[str] = None
    bpm: Optional[str] = None
    enriched: bool = False
    children: Optional[list[int]] = None

    @classmethod
    def from_entry(cls, entry: DirectoryEntry, generation: int) -> FileItem:
        return cls(
            path=entry.path,
            is_directory=entry.is_directory,
            name=entry.name,
            size=0 if entry.is_directory else entry.size,
            modified=entry.modified,
            generation=generation,
        )


@dataclass(frozen=True)
class NodeView:
    id: int
    path: Path
    name: str
    is_directory: bool
    size: int
    modified: float
    key: Optional[str]
    bpm: Optional[str]
    enriched: bool
    children: Optional[tuple[int, ...]]
    state: ExpansionState
    parent_id: Optional[int] = None

    @classmethod
    def of(cls, item: FileItem, state: ExpansionState = ExpansionState.COLLAPSED) -> NodeView:
        return cls(
            id=item.id,
            path=item.path,
            name=item.name,
            is_directory=item.is_directory,
            size=item.size,
            modified=item.modified,
            key=item.key,
            bpm=item.bpm,
            enriched=item.enriched,
            children=None if item.children is None else tuple(item.children),
            state=state,
            parent_id=item.parent_id,
        )


@dataclass(frozen=True)
class TreeSnapshot:
    root_id: Optional[int]
    generation: int
    nodes: Mapping[int, NodeView]

    @property
    def root(self) -> Optional[NodeView]:
        if self.root_id is None:
            return None
        return self.nodes.get(self.root_id)

    def children_of(self, node_id: int) -> list[NodeView]:
        node = self.nodes[node_id]
        if node.children is None:
            return []
        return [self.nodes[child_id] for child_id in node.children]

    def walk(self) -> Iterator[tuple[int, NodeView]]:
        """Yield ``(depth, node)`` pairs depth-first in committed child order."""
        if self.root_id is None:
            return
        stack = [(0, self.nodes[self.root_id])]
        while stack:
            depth, node = stack.pop()
            yield depth, node
            stack.extend((depth + 1, child) for child in reversed(self.children_of(node.id)))
