"""
Unified Query - an ordered collection of query nodes routed to camera and
folder dispatchers.

Node order is insertion order. It does not affect execution (nodes run
independently and results are concatenated) but it does affect equality.
"""

import copy
import dataclasses
from datetime import datetime
from typing import Callable, Iterable

from media_query.models import (
    EventQuery,
    FolderQuery,
    MediaQuery,
    QueryNode,
    QueryType,
    is_folder_query,
    is_media_query,
)


def _boundary_covers(
    compare: Callable[[datetime, datetime], bool],
    source_bound: datetime | None,
    target_bound: datetime | None,
) -> bool:
    if target_bound is None:
        # Unbounded target requires unbounded source
        return source_bound is None
    # Bounded target: source must be unbounded or extend at least as far
    return source_bound is None or compare(source_bound, target_bound)


def time_range_covers(source: MediaQuery, target: MediaQuery) -> bool:
    """True if source's [start, end] window contains target's window."""
    return _boundary_covers(
        lambda s, t: s <= t, source.start, target.start
    ) and _boundary_covers(lambda s, t: s >= t, source.end, target.end)


def node_covers(this_node: QueryNode, that_node: QueryNode) -> bool:
    """True if this_node's results are enough to answer that_node.

    Media nodes must be equal on every field except start/end and have a
    time range at least as wide; everything else needs exact equality.
    """
    if is_media_query(this_node) and is_media_query(that_node):
        return dataclasses.replace(
            this_node, start=None, end=None
        ) == dataclasses.replace(
            that_node, start=None, end=None
        ) and time_range_covers(this_node, that_node)
    return this_node == that_node


class UnifiedQuery:
    """Ordered list of QueryNodes with read-only accessors.

    Nodes are immutable value objects; derived queries (clone, transforms,
    extension) always build a new UnifiedQuery.
    """

    def __init__(self, nodes: Iterable[QueryNode] | None = None):
        self._nodes: list[QueryNode] = list(nodes) if nodes else []

    def add_node(self, node: QueryNode) -> "UnifiedQuery":
        """Append a node; duplicates and overlaps are allowed. Returns self."""
        self._nodes.append(node)
        return self

    def get_nodes(self) -> list[QueryNode]:
        return list(self._nodes)

    def get_node_count(self) -> int:
        return len(self._nodes)

    def has_nodes(self) -> bool:
        return bool(self._nodes)

    def get_media_queries(
        self,
        camera_id: str | None = None,
        query_type: QueryType | None = None,
    ) -> list[MediaQuery]:
        """All camera-sourced nodes, optionally filtered.

        camera_id matches by membership in each node's camera_ids.
        """
        return [
            node
            for node in self._nodes
            if is_media_query(node)
            and (not camera_id or camera_id in node.camera_ids)
            and (not query_type or node.type is query_type)
        ]

    def get_folder_queries(self, folder_id: str | None = None) -> list[FolderQuery]:
        return [
            node
            for node in self._nodes
            if is_folder_query(node) and (not folder_id or node.folder.id == folder_id)
        ]

    def get_non_media_queries(self) -> list[QueryNode]:
        return [node for node in self._nodes if not is_media_query(node)]

    def has_media_queries_of_type(self, query_type: QueryType) -> bool:
        return any(
            is_media_query(node) and node.type is query_type for node in self._nodes
        )

    def get_all_camera_ids(self) -> set[str]:
        camera_ids: set[str] = set()
        for node in self.get_media_queries():
            camera_ids.update(node.camera_ids)
        return camera_ids

    def get_all_media_types(self) -> set[str]:
        """Viewable media kinds covered by the media nodes.

        Event nodes contribute clips/snapshots only via their flags; an
        unflagged Event node, RecordingSegments and MediaMetadata nodes
        contribute nothing.
        """
        types: set[str] = set()
        for node in self.get_media_queries():
            if isinstance(node, EventQuery):
                if node.has_clip:
                    types.add("clips")
                if node.has_snapshot:
                    types.add("snapshots")
            elif node.type is QueryType.RECORDING:
                types.add("recordings")
            elif node.type is QueryType.REVIEW:
                types.add("reviews")
        return types

    def clone(self) -> "UnifiedQuery":
        return UnifiedQuery(copy.deepcopy(self._nodes))

    def is_equal(self, other: "UnifiedQuery") -> bool:
        """Deep, order-sensitive equality."""
        return self._nodes == other._nodes

    def is_superset_of(self, other: "UnifiedQuery") -> bool:
        """True if every node of other is covered by some node of self."""
        return all(
            any(node_covers(this_node, that_node) for this_node in self._nodes)
            for that_node in other._nodes
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UnifiedQuery):
            return NotImplemented
        return self.is_equal(other)

    __hash__ = None

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self):
        return iter(list(self._nodes))

    def __repr__(self) -> str:
        return f"UnifiedQuery({self._nodes!r})"
