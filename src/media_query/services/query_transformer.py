"""
Unified Query Transformer - pure rewrites of an existing UnifiedQuery.

Used when the viewport changes (new time window, different event subtype)
without rebuilding from camera defaults. Every method returns a new query;
the input and its nodes are never modified.
"""

import dataclasses
from datetime import datetime
from typing import Any, Callable

from media_query.models import EventQuery, QueryNode, is_media_query
from media_query.services.unified_query import UnifiedQuery

# Distinguishes "not passed" from an explicit None in rebuild_query.
_UNSET: Any = object()


def _map_nodes(
    query: UnifiedQuery, transform: Callable[[QueryNode], QueryNode]
) -> UnifiedQuery:
    return UnifiedQuery(transform(node) for node in query.get_nodes())


class UnifiedQueryTransformer:
    """Stateless query rewrites. Folder nodes pass through untouched."""

    @staticmethod
    def strip_time_range(query: UnifiedQuery) -> UnifiedQuery:
        """Remove start/end from every camera-sourced node."""
        return _map_nodes(
            query,
            lambda node: (
                dataclasses.replace(node, start=None, end=None)
                if is_media_query(node)
                else node
            ),
        )

    @staticmethod
    def rebuild_query(
        query: UnifiedQuery,
        start: datetime | None = _UNSET,
        end: datetime | None = _UNSET,
        limit: int | None = _UNSET,
    ) -> UnifiedQuery:
        """Overwrite start/end/limit on every camera-sourced node.

        Only the arguments actually passed are applied; passing None clears
        the field.
        """
        changes = {
            name: value
            for name, value in (("start", start), ("end", end), ("limit", limit))
            if value is not _UNSET
        }
        return _map_nodes(
            query,
            lambda node: (
                dataclasses.replace(node, **changes) if is_media_query(node) else node
            ),
        )

    @staticmethod
    def convert_to_clips(query: UnifiedQuery) -> UnifiedQuery:
        """Force has_clip=True and clear has_snapshot on every Event node."""
        return _map_nodes(
            query,
            lambda node: (
                dataclasses.replace(node, has_clip=True, has_snapshot=None)
                if isinstance(node, EventQuery)
                else node
            ),
        )
