"""
Camera Manager - the camera dispatcher.

Routes media query nodes to the engine that owns each camera, caches engine
responses for a short TTL, merges results and answers freshness and
extension (pagination) requests for the query runner.
"""

import asyncio
import dataclasses
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from media_query.constants import (
    DEFAULT_CACHE_TTL_SECONDS,
    LOGGER_NAME,
    REQUEST_CACHE_MAX,
)
from media_query.engines.base import BaseCameraEngine
from media_query.managers.camera_store import CameraStore
from media_query.models import (
    DefaultQueryParameters,
    MediaMetadata,
    MediaMetadataQuery,
    MediaQuery,
    QueryType,
    ViewItem,
    ViewMedia,
    item_key,
    sort_items,
)

logger = logging.getLogger(LOGGER_NAME)

ExtendDirection = Literal["earlier", "later"]


@dataclass
class MediaQueriesExtension:
    """Replacement media nodes plus the full (old + new) result list."""
    queries: list[MediaQuery]
    results: list[ViewItem]


class CameraManager:
    """Dispatches media nodes to camera engines.

    One call to execute_media_queries() receives every media node of a
    unified query, so identical engine requests across nodes are issued once.
    """

    def __init__(
        self,
        store: CameraStore,
        engines: dict[str, BaseCameraEngine],
        cache_ttl: int = DEFAULT_CACHE_TTL_SECONDS,
        cache_max: int = REQUEST_CACHE_MAX,
    ):
        self._store = store
        self._engines = dict(engines)
        self._cache: OrderedDict = OrderedDict()  # LRU keyed by engine request
        self._cache_ttl = cache_ttl
        self._cache_max = cache_max

    # -------------------------------------------------------------------------
    # Store / metadata lookups (used by the query builder)
    # -------------------------------------------------------------------------

    def get_store(self) -> CameraStore:
        return self._store

    def get_engine_for_camera(self, camera_id: str) -> BaseCameraEngine | None:
        camera = self._store.get_camera_config(camera_id)
        return self._engines.get(camera.engine) if camera else None

    def get_camera_capabilities(self, camera_id: str) -> frozenset[str] | None:
        return self._store.get_camera_capabilities(camera_id)

    def get_default_query_parameters(
        self, camera_id: str, query_type: QueryType
    ) -> DefaultQueryParameters | None:
        """Configured defaults for a camera, merged with engine defaults."""
        camera = self._store.get_camera_config(camera_id)
        if not camera:
            return None

        what = set(camera.defaults.what or ())
        where = set(camera.defaults.where or ())
        engine = self._engines.get(camera.engine)
        engine_defaults = (
            engine.get_default_query_parameters(camera, query_type) if engine else None
        )
        if engine_defaults:
            what.update(engine_defaults.what or ())
            where.update(engine_defaults.where or ())

        return DefaultQueryParameters(
            what=frozenset(what) if what else None,
            where=frozenset(where) if where else None,
        )

    # -------------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------------

    def _get_cached(self, key: tuple) -> list[ViewMedia] | None:
        entry = self._cache.get(key)
        if entry and time.monotonic() - entry["timestamp"] < self._cache_ttl:
            self._cache.move_to_end(key)
            return entry["data"]
        return None

    def _set_cache(self, key: tuple, data: list[ViewMedia]) -> None:
        """Store a response, dropping expired entries and the least recently
        used ones over the cap."""
        now = time.monotonic()
        expired = [
            k for k, e in self._cache.items() if now - e["timestamp"] >= self._cache_ttl
        ]
        for k in expired:
            del self._cache[k]
        self._cache[key] = {"timestamp": now, "data": data}
        self._cache.move_to_end(key)
        while len(self._cache) > self._cache_max:
            self._cache.popitem(last=False)

    def get_cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        self._cache.clear()

    # -------------------------------------------------------------------------
    # Routing
    # -------------------------------------------------------------------------

    def _route(
        self, nodes: list[MediaQuery], warn: bool = True
    ) -> list[tuple[str, MediaQuery]]:
        """Split each node by owning engine; identical engine requests are
        issued once."""
        routed: dict[tuple[str, MediaQuery], None] = {}
        for node in nodes:
            by_engine: dict[str, list[str]] = {}
            for camera_id in sorted(node.camera_ids):
                camera = self._store.get_camera_config(camera_id)
                if not camera or camera.engine not in self._engines:
                    if warn:
                        logger.warning(
                            "No engine for camera %s (engine=%s); skipping",
                            camera_id,
                            camera.engine if camera else None,
                        )
                    continue
                by_engine.setdefault(camera.engine, []).append(camera_id)

            for engine_name, camera_ids in by_engine.items():
                engine_node = (
                    node
                    if len(camera_ids) == len(node.camera_ids)
                    else dataclasses.replace(node, camera_ids=frozenset(camera_ids))
                )
                routed[(engine_name, engine_node)] = None
        return list(routed)

    async def _query_engine(
        self, engine_name: str, node: MediaQuery, use_cache: bool, oldest_first: bool
    ) -> list[ViewMedia]:
        key = (engine_name, node, oldest_first)
        if use_cache:
            cached = self._get_cached(key)
            if cached is not None:
                logger.debug("Cache hit for %s %s", engine_name, node.type.value)
                return cached

        items = await self._engines[engine_name].query(node, oldest_first=oldest_first)
        logger.debug(
            "Engine %s returned %d item(s) for %s on %s",
            engine_name,
            len(items),
            node.type.value,
            ",".join(sorted(node.camera_ids)),
        )
        self._set_cache(key, items)
        return items

    @staticmethod
    def _merge(items: list[ViewItem]) -> list[ViewItem]:
        seen: set[tuple] = set()
        unique: list[ViewItem] = []
        for item in items:
            key = item_key(item)
            if key[-1] is not None:
                if key in seen:
                    continue
                seen.add(key)
            unique.append(item)
        return sort_items(unique)

    # -------------------------------------------------------------------------
    # Dispatcher contract
    # -------------------------------------------------------------------------

    async def execute_media_queries(
        self, nodes: list[MediaQuery], use_cache: bool = True
    ) -> list[ViewItem] | None:
        """Run all media nodes; None if no node could be routed to an engine."""
        return await self._execute(nodes, use_cache, oldest_first=False)

    async def _execute(
        self, nodes: list[MediaQuery], use_cache: bool, oldest_first: bool
    ) -> list[ViewItem] | None:
        routed = self._route(nodes)
        if not routed:
            return None

        batches = await asyncio.gather(
            *(
                self._query_engine(name, node, use_cache, oldest_first)
                for name, node in routed
            )
        )
        return self._merge([item for batch in batches for item in batch])

    def are_media_queries_results_fresh(
        self, results_timestamp: datetime, nodes: list[MediaQuery]
    ) -> bool:
        age = time.time() - results_timestamp.timestamp()
        for engine_name, node in self._route(nodes, warn=False):
            if age >= self._engines[engine_name].get_results_max_age(node.type):
                return False
        return True

    async def extend_media_queries(
        self,
        nodes: list[MediaQuery],
        existing_results: list[ViewItem],
        direction: ExtendDirection,
        use_cache: bool = True,
    ) -> MediaQueriesExtension | None:
        """Fetch media adjacent to existing_results in the given direction.

        Returns None when there is nothing to anchor on or nothing new.
        """
        times = [
            item.start_time
            for item in existing_results
            if isinstance(item, ViewMedia) and item.start_time is not None
        ]
        if not nodes or not times:
            return None

        anchor = min(times) if direction == "earlier" else max(times)
        # The window includes the anchor; items already held there must not
        # use up the page.
        ties = times.count(anchor)
        window_nodes = [
            dataclasses.replace(
                n,
                start=None if direction == "earlier" else anchor,
                end=anchor if direction == "earlier" else None,
                limit=n.limit + ties if n.limit is not None else None,
            )
            for n in nodes
        ]

        # Paging forward keeps the items nearest the anchor, not the newest.
        fetched = (
            await self._execute(
                window_nodes, use_cache, oldest_first=direction == "later"
            )
            or []
        )
        existing_keys = {item_key(item) for item in existing_results}
        new_items = [
            item
            for item in fetched
            if isinstance(item, ViewMedia) and item_key(item) not in existing_keys
        ]
        if not new_items:
            logger.debug("No %s media beyond %s", direction, anchor.isoformat())
            return None

        queries = list(nodes)
        if direction == "earlier":
            starts = [i.start_time for i in new_items if i.start_time is not None]
            if starts:
                earliest = min(starts)
                queries = [
                    n if n.start is None else dataclasses.replace(n, start=min(n.start, earliest))
                    for n in nodes
                ]
        else:
            ends = [t for t in (i.get_usable_end_time() for i in new_items) if t is not None]
            if ends:
                latest = max(ends)
                queries = [
                    n if n.end is None else dataclasses.replace(n, end=max(n.end, latest))
                    for n in nodes
                ]

        return MediaQueriesExtension(
            queries=queries,
            results=self._merge(list(existing_results) + new_items),
        )

    async def get_media_metadata(self, camera_ids: set[str]) -> MediaMetadata | None:
        """Aggregate what/where/tags/days across the given cameras."""
        if not camera_ids:
            return None
        routed = self._route([MediaMetadataQuery(camera_ids=frozenset(camera_ids))])
        metadata = MediaMetadata()
        found = False
        for engine_name, node in routed:
            result = await self._engines[engine_name].get_media_metadata(node)
            if result:
                metadata = metadata.merge(result)
                found = True
        return metadata if found else None
