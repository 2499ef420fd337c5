"""
Folders Manager - the folder dispatcher.

Holds the configured folders and routes folder query nodes to the engine
registered for each folder's type.
"""

import dataclasses
import logging
import time
from collections import OrderedDict
from datetime import datetime
from typing import Any, Iterable

from media_query.constants import LOGGER_NAME, REQUEST_CACHE_MAX
from media_query.engines.base import BaseFoldersEngine
from media_query.errors import FolderInitializationError
from media_query.models import FolderConfig, FolderQuery, ViewItem, sort_items

logger = logging.getLogger(LOGGER_NAME)


class FoldersManager:
    """Folder registry plus dispatch to folder engines by folder type."""

    def __init__(
        self,
        engines: dict[str, BaseFoldersEngine],
        cache_max: int = REQUEST_CACHE_MAX,
    ):
        self._engines = dict(engines)
        self._folders: dict[str, FolderConfig] = {}
        self._cache: OrderedDict = OrderedDict()  # LRU keyed by folder query
        self._cache_max = cache_max

    def add_folders(self, configs: Iterable[FolderConfig]) -> None:
        """Register folders; missing IDs become folder/<n> (n = position)."""
        for index, config in enumerate(configs):
            if not config.id:
                config = dataclasses.replace(config, id=f"folder/{len(self._folders)}")
            if config.id in self._folders:
                raise FolderInitializationError(
                    f"Duplicate folder id: {config.id}", {"folder_id": config.id}
                )
            if config.type not in self._engines:
                logger.warning(
                    "Folder %s (#%d) has unknown type %s", config.id, index, config.type
                )
            self._folders[config.id] = config

    def get_folder(self, folder_id: str | None = None) -> FolderConfig | None:
        if folder_id is None:
            return next(iter(self._folders.values()), None)
        return self._folders.get(folder_id)

    def get_folders(self) -> list[FolderConfig]:
        return list(self._folders.values())

    def get_folder_count(self) -> int:
        return len(self._folders)

    def delete_folders(self) -> None:
        self._folders.clear()
        self._cache.clear()

    def get_default_query_parameters(self, folder: FolderConfig) -> FolderQuery | None:
        engine = self._engines.get(folder.type)
        if engine is None:
            logger.warning("No folder engine for type %s", folder.type)
            return None
        return engine.generate_default_folder_query(folder)

    def _get_cached(self, query: FolderQuery, max_age: int) -> list[ViewItem] | None:
        entry = self._cache.get(query)
        if entry and time.monotonic() - entry["timestamp"] < max_age:
            self._cache.move_to_end(query)
            return entry["data"]
        return None

    def _set_cache(
        self, query: FolderQuery, data: list[ViewItem], max_age: int
    ) -> None:
        """Store a listing, dropping expired entries and the least recently
        used ones over the cap."""
        now = time.monotonic()
        expired = [
            k for k, e in self._cache.items() if now - e["timestamp"] >= e["max_age"]
        ]
        for k in expired:
            del self._cache[k]
        self._cache[query] = {"timestamp": now, "max_age": max_age, "data": data}
        self._cache.move_to_end(query)
        while len(self._cache) > self._cache_max:
            self._cache.popitem(last=False)

    def get_cache_size(self) -> int:
        return len(self._cache)

    async def expand_folder(
        self,
        query: FolderQuery,
        condition_state: dict[str, Any] | None = None,
        use_cache: bool = True,
    ) -> list[ViewItem] | None:
        """List a folder node; None when no engine handles its type or the
        engine cannot resolve the path."""
        engine = self._engines.get(query.folder.type)
        if engine is None:
            logger.warning("No folder engine for type %s", query.folder.type)
            return None

        # Condition-dependent listings are never cached.
        cacheable = condition_state is None
        if use_cache and cacheable:
            cached = self._get_cached(query, engine.get_results_max_age())
            if cached is not None:
                logger.debug("Cache hit for folder %s", query.folder.id)
                return cached

        items = await engine.expand_folder(query, condition_state)
        if items is None:
            return None
        items = sort_items(items)
        if cacheable:
            self._set_cache(query, items, engine.get_results_max_age())
        return items

    def are_results_fresh(self, results_timestamp: datetime, query: FolderQuery) -> bool:
        engine = self._engines.get(query.folder.type)
        if engine is None:
            return False
        age = time.time() - results_timestamp.timestamp()
        return age < engine.get_results_max_age()
