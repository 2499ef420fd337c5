"""
Unified Query Runner - routes UnifiedQuery nodes to the camera and folder
dispatchers and merges their results.

All media nodes go to the camera dispatcher in one call (it fans out per
engine and can batch/cache across nodes); folder nodes are expanded one at a
time. Dispatcher exceptions propagate to the caller unchanged.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from media_query.constants import LOGGER_NAME
from media_query.managers.camera_manager import CameraManager, ExtendDirection
from media_query.managers.folders import FoldersManager
from media_query.models import ViewItem
from media_query.services.unified_query import UnifiedQuery

logger = logging.getLogger(LOGGER_NAME)


@dataclass
class QueryExtension:
    """An extended query and the full (old + new) result list."""
    query: UnifiedQuery
    results: list[ViewItem]


class UnifiedQueryRunner:
    """Executes, freshness-checks and extends unified queries."""

    def __init__(
        self,
        camera_manager: CameraManager,
        folders_manager: FoldersManager,
        get_condition_state: Callable[[], dict[str, Any] | None] | None = None,
    ):
        self._camera_manager = camera_manager
        self._folders_manager = folders_manager
        self._get_condition_state = get_condition_state

    async def execute(self, query: UnifiedQuery, use_cache: bool = True) -> list[ViewItem]:
        """Camera results first, then folder results in node order."""
        all_items: list[ViewItem] = []

        media_queries = query.get_media_queries()
        if media_queries:
            items = await self._camera_manager.execute_media_queries(
                media_queries, use_cache=use_cache
            )
            all_items.extend(items or [])

        folder_queries = query.get_folder_queries()
        if folder_queries:
            condition_state = self._get_condition_state() if self._get_condition_state else None
            for folder_query in folder_queries:
                items = await self._folders_manager.expand_folder(
                    folder_query, condition_state, use_cache=use_cache
                )
                all_items.extend(items or [])

        logger.debug(
            "Executed %d media and %d folder node(s): %d item(s)",
            len(media_queries),
            len(folder_queries),
            len(all_items),
        )
        return all_items

    def are_results_fresh(self, results_timestamp: datetime, query: UnifiedQuery) -> bool:
        media_queries = query.get_media_queries()
        if media_queries and not self._camera_manager.are_media_queries_results_fresh(
            results_timestamp, media_queries
        ):
            return False

        for folder_query in query.get_folder_queries():
            if not self._folders_manager.are_results_fresh(results_timestamp, folder_query):
                return False
        return True

    async def extend(
        self,
        query: UnifiedQuery,
        existing_results: list[ViewItem],
        direction: ExtendDirection,
        use_cache: bool = True,
    ) -> QueryExtension | None:
        """Fetch more media earlier/later than existing_results.

        Only media nodes extend; the returned query carries the dispatcher's
        replacement media nodes plus every other node unchanged. None when
        the query has no media nodes or the dispatcher cannot extend.
        """
        media_queries = query.get_media_queries()
        if not media_queries:
            return None

        extension = await self._camera_manager.extend_media_queries(
            media_queries, existing_results, direction, use_cache=use_cache
        )
        if extension is None:
            return None

        extended = UnifiedQuery(extension.queries)
        for node in query.get_non_media_queries():
            extended.add_node(node)
        return QueryExtension(query=extended, results=extension.results)
