"""
View Session - owns the current view's query and results.

Decides when cached results can answer a new query (superset + fresh),
rebases the time window, pages earlier/later, applies reviewed toggles to
the held results, and runs best-effort background refreshes. Runner errors
propagate from load(); extend() and refresh() log them and report "nothing
changed" instead.
"""

import asyncio
import dataclasses
import logging
from datetime import datetime

from media_query.constants import LOGGER_NAME
from media_query.managers.camera_manager import ExtendDirection
from media_query.models import (
    EventQuery,
    QueryNode,
    QueryType,
    ViewItem,
    ViewMedia,
    ViewMediaType,
    is_folder_query,
    is_media_query,
    item_key,
    utc_now,
)
from media_query.services.query_filter import get_reviewed_query_filter_from_query
from media_query.services.query_runner import UnifiedQueryRunner
from media_query.services.query_transformer import UnifiedQueryTransformer
from media_query.services.unified_query import UnifiedQuery

logger = logging.getLogger(LOGGER_NAME)

# Query type -> media types its results can have.
QUERY_RESULT_TYPES: dict[QueryType, frozenset[ViewMediaType]] = {
    QueryType.EVENT: frozenset({ViewMediaType.CLIP, ViewMediaType.SNAPSHOT}),
    QueryType.RECORDING: frozenset({ViewMediaType.RECORDING}),
    QueryType.REVIEW: frozenset({ViewMediaType.REVIEW}),
}


def item_matches_node(item: ViewItem, node: QueryNode) -> bool:
    """True if item could have been produced by node."""
    if is_folder_query(node):
        return item.folder is not None and item.folder.id == node.folder.id
    if not is_media_query(node) or not isinstance(item, ViewMedia):
        return False
    if item.camera_id not in node.camera_ids:
        return False
    if item.media_type not in QUERY_RESULT_TYPES.get(node.type, frozenset()):
        return False
    if isinstance(node, EventQuery):
        if node.has_clip and not node.has_snapshot and item.media_type is ViewMediaType.SNAPSHOT:
            return False
        if node.has_snapshot and not node.has_clip and item.media_type is ViewMediaType.CLIP:
            return False
    if item.start_time is None:
        return node.start is None and node.end is None
    if node.start is not None and item.start_time < node.start:
        return False
    if node.end is not None and item.start_time > node.end:
        return False
    return True


class ViewSession:
    """The current view's request and results."""

    def __init__(self, runner: UnifiedQueryRunner):
        self._runner = runner
        self._query: UnifiedQuery | None = None
        self._results: list[ViewItem] | None = None
        self._results_timestamp: datetime | None = None
        self._lock = asyncio.Lock()

    def get_query(self) -> UnifiedQuery | None:
        return self._query

    def get_results(self) -> list[ViewItem] | None:
        return list(self._results) if self._results is not None else None

    def get_results_timestamp(self) -> datetime | None:
        return self._results_timestamp

    def _can_reuse(self, query: UnifiedQuery) -> bool:
        return (
            self._query is not None
            and self._results is not None
            and self._results_timestamp is not None
            and self._query.is_superset_of(query)
            and self._runner.are_results_fresh(self._results_timestamp, self._query)
        )

    async def load(self, query: UnifiedQuery, use_cache: bool = True) -> list[ViewItem]:
        """Make query current, reusing current results when they cover it."""
        async with self._lock:
            if use_cache and self._can_reuse(query):
                nodes = query.get_nodes()
                results = [
                    item
                    for item in self._results
                    if any(item_matches_node(item, node) for node in nodes)
                ]
                logger.debug("Reusing %d cached item(s) for narrower query", len(results))
            else:
                results = await self._runner.execute(query, use_cache=use_cache)
                self._results_timestamp = utc_now()
            self._query = query
            self._results = results
            return list(results)

    async def set_window(
        self, start: datetime | None, end: datetime | None
    ) -> list[ViewItem] | None:
        """Rebase the current query onto a new time window and load it."""
        if self._query is None:
            return None
        query = UnifiedQueryTransformer.rebuild_query(self._query, start=start, end=end)
        return await self.load(query)

    async def extend(self, direction: ExtendDirection) -> list[ViewItem] | None:
        """Page earlier/later; None when nothing was added (or on error)."""
        async with self._lock:
            if self._query is None or self._results is None:
                return None
            try:
                extension = await self._runner.extend(self._query, self._results, direction)
            except Exception:
                logger.exception("Failed to extend media %s", direction)
                return None
            if extension is None:
                return None
            self._query = extension.query
            self._results = extension.results
            return list(extension.results)

    async def refresh(self) -> bool:
        """Re-run the current query if its results went stale.

        Returns True if results were replaced. Failures are logged so a
        background refresh never aborts its caller.
        """
        async with self._lock:
            if self._query is None:
                return False
            if self._results_timestamp is not None and self._runner.are_results_fresh(
                self._results_timestamp, self._query
            ):
                return False
            try:
                results = await self._runner.execute(self._query, use_cache=False)
            except Exception as e:
                logger.warning("Background refresh failed: %s", e)
                return False
            self._results = results
            self._results_timestamp = utc_now()
            return True

    async def set_item_reviewed(self, item: ViewMedia, reviewed: bool) -> bool:
        """Apply a new reviewed status to an item in the current results.

        The item is replaced, not mutated, since dispatcher caches may hold
        the same object. If the node that produced it filters on the other
        status, it is dropped. Returns True if the item is still shown.
        """
        async with self._lock:
            if self._results is None:
                return False
            key = item_key(item)
            match = next(
                (
                    r
                    for r in self._results
                    if isinstance(r, ViewMedia) and item_key(r) == key
                ),
                None,
            )
            if match is None:
                return False

            wanted = get_reviewed_query_filter_from_query(self._query, match)
            if wanted is not None and wanted != reviewed:
                logger.debug("Dropping %s from results after reviewed=%s", match.id, reviewed)
                self._results = [r for r in self._results if r is not match]
                return False

            updated = dataclasses.replace(match, reviewed=reviewed)
            self._results = [updated if r is match else r for r in self._results]
            return True
