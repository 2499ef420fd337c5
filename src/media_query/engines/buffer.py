"""
Buffer Camera Engine - answers media queries from an event-buffer storage tree.

Layout: <storage>/<camera>/<unix_ts>_<event_id>/ holding a *.mp4 clip,
snapshot.jpg, metadata.json and an optional .viewed marker.
"""

import asyncio
import json
import logging
import os
import threading
from collections import OrderedDict
from typing import Any

from media_query.constants import (
    DEFAULT_RESULTS_MAX_AGE_SECONDS,
    EVENT_CACHE_MAX,
    LOGGER_NAME,
)
from media_query.engines.base import BaseCameraEngine
from media_query.models import (
    MediaMetadata,
    MediaMetadataQuery,
    MediaQuery,
    QueryType,
    ReviewQuery,
    Severity,
    ViewMedia,
    ViewMediaType,
    utc_from_timestamp,
)
from media_query.path_helpers import resolve_under_root

logger = logging.getLogger(LOGGER_NAME)

# Frigate review severities map onto the three-level scale.
SEVERITY_ALIASES: dict[str, Severity] = {
    "alert": Severity.HIGH,
    "detection": Severity.MEDIUM,
    "high": Severity.HIGH,
    "medium": Severity.MEDIUM,
    "low": Severity.LOW,
}


def resolve_clip_in_folder(folder_path: str) -> str | None:
    """
    Return the basename of the clip file in folder_path, or None if no clip.

    Lists *.mp4 in folder_path; if multiple, returns the newest by mtime
    (most recently modified).
    """
    try:
        candidates = [
            os.path.join(folder_path, n)
            for n in os.listdir(folder_path)
            if n.lower().endswith(".mp4")
            and os.path.isfile(os.path.join(folder_path, n))
        ]
    except OSError:
        return None
    if not candidates:
        return None
    if len(candidates) == 1:
        return os.path.basename(candidates[0])
    newest = max(candidates, key=lambda p: os.path.getmtime(p))
    return os.path.basename(newest)


def parse_event_folder_name(name: str) -> tuple[float, str] | None:
    """Split '<unix_ts>_<event_id>' into (timestamp, event_id); None otherwise."""
    ts, sep, event_id = name.partition("_")
    if not sep or not ts.isdigit() or not event_id:
        return None
    return float(ts), event_id


def _sub_label(metadata: dict[str, Any]) -> str | None:
    # Frigate publishes sub_label either as a string or as [name, score].
    value = metadata.get("sub_label")
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    return value if isinstance(value, str) and value else None


def _severity(metadata: dict[str, Any]) -> Severity | None:
    value = metadata.get("severity")
    if not isinstance(value, str):
        return None
    return SEVERITY_ALIASES.get(value.lower())


class BufferCameraEngine(BaseCameraEngine):
    """Camera engine over the local event buffer."""

    engine_type = "buffer"

    def __init__(
        self,
        storage_path: str,
        results_max_age: int = DEFAULT_RESULTS_MAX_AGE_SECONDS,
        event_cache_max: int = EVENT_CACHE_MAX,
    ):
        self.storage_path = storage_path
        self._results_max_age = results_max_age
        self._event_cache: OrderedDict = OrderedDict()  # LRU keyed by folder
        self._event_cache_max = event_cache_max
        self._lock = threading.Lock()

    def get_results_max_age(self, query_type: QueryType) -> int:
        return self._results_max_age

    # -------------------------------------------------------------------------
    # Filesystem
    # -------------------------------------------------------------------------

    def _get_event_cached(self, folder_path: str, mtime: float) -> dict[str, Any]:
        """Get parsed event data from cache if valid, otherwise parse and cache
        (LRU eviction when over cap)."""
        with self._lock:
            if folder_path in self._event_cache:
                self._event_cache.move_to_end(folder_path)
                entry = self._event_cache[folder_path]
                if entry["mtime"] == mtime:
                    return entry["data"]

        data = self._parse_event_files(folder_path)
        with self._lock:
            self._event_cache[folder_path] = {"mtime": mtime, "data": data}
            if len(self._event_cache) > self._event_cache_max:
                self._event_cache.popitem(last=False)
        return data

    def _parse_event_files(self, folder_path: str) -> dict[str, Any]:
        """Read all event files in one go and return data dict."""
        data: dict[str, Any] = {"metadata": {}}
        try:
            with open(os.path.join(folder_path, "metadata.json")) as f:
                metadata = json.load(f)
            if isinstance(metadata, dict):
                data["metadata"] = metadata
        except (OSError, json.JSONDecodeError):
            pass

        clip_basename = resolve_clip_in_folder(folder_path)
        data["has_clip"] = clip_basename is not None
        data["clip_basename"] = clip_basename
        data["has_snapshot"] = os.path.exists(os.path.join(folder_path, "snapshot.jpg"))
        data["viewed"] = os.path.exists(os.path.join(folder_path, ".viewed"))
        return data

    def _scan_camera(self, camera_id: str) -> list[dict[str, Any]]:
        """All event folders of one camera, newest first."""
        camera_dir = resolve_under_root(self.storage_path, camera_id)
        if not camera_dir or not os.path.isdir(camera_dir):
            logger.debug("No buffer directory for camera %s", camera_id)
            return []

        events = []
        try:
            with os.scandir(camera_dir) as it:
                entries = [e for e in it if e.is_dir() and not e.name.startswith(".")]
        except OSError as e:
            logger.warning("Cannot list %s: %s", camera_dir, e)
            return []

        for entry in entries:
            parsed = parse_event_folder_name(entry.name)
            if parsed is None:
                continue
            timestamp, event_id = parsed
            try:
                mtime = entry.stat().st_mtime
            except OSError:
                continue
            events.append(
                {
                    "camera": camera_id,
                    "folder": entry.name,
                    "event_id": event_id,
                    "timestamp": timestamp,
                    "data": self._get_event_cached(entry.path, mtime),
                }
            )
        events.sort(key=lambda e: e["timestamp"], reverse=True)
        return events

    # -------------------------------------------------------------------------
    # Conversion and filtering
    # -------------------------------------------------------------------------

    def _to_view_media(self, event: dict[str, Any], node: MediaQuery) -> ViewMedia:
        data = event["data"]
        metadata = data["metadata"]
        camera = event["camera"]
        folder = event["folder"]

        if node.type is QueryType.REVIEW:
            media_type = ViewMediaType.REVIEW
        elif getattr(node, "has_snapshot", None) and not getattr(node, "has_clip", None):
            media_type = ViewMediaType.SNAPSHOT
        elif data["has_clip"]:
            media_type = ViewMediaType.CLIP
        else:
            media_type = ViewMediaType.SNAPSHOT

        end_time = metadata.get("end_time")
        try:
            end = utc_from_timestamp(float(end_time)) if end_time is not None else None
        except (TypeError, ValueError):
            end = None

        label = metadata.get("label")
        sub_label = _sub_label(metadata)
        score = metadata.get("score")
        return ViewMedia(
            media_type=media_type,
            id=event["event_id"],
            camera_id=camera,
            start_time=utc_from_timestamp(event["timestamp"]),
            end_time=end,
            in_progress=end is None,
            content_id=(
                f"/files/{camera}/{folder}/{data['clip_basename']}"
                if data["has_clip"]
                else None
            ),
            title=" - ".join(v for v in (label, sub_label) if v) or event["event_id"],
            thumbnail=(
                f"/files/{camera}/{folder}/snapshot.jpg" if data["has_snapshot"] else None
            ),
            favorite=bool(metadata.get("favorite", False)),
            reviewed=data["viewed"],
            severity=_severity(metadata),
            score=float(score) if isinstance(score, (int, float)) else None,
            what=[label] if label else [],
            where=[z for z in metadata.get("zones") or [] if z],
            tags=[sub_label] if sub_label else [],
        )

    @staticmethod
    def _matches(item: ViewMedia, data: dict[str, Any], node: MediaQuery) -> bool:
        if node.start is not None and item.start_time < node.start:
            return False
        if node.end is not None and item.start_time > node.end:
            return False

        has_clip = getattr(node, "has_clip", None)
        if has_clip is not None and data["has_clip"] != has_clip:
            return False
        has_snapshot = getattr(node, "has_snapshot", None)
        if has_snapshot is not None and data["has_snapshot"] != has_snapshot:
            return False

        if node.what and not node.what.intersection(item.what):
            return False
        if node.where and not node.where.intersection(item.where):
            return False
        if node.tags and not node.tags.intersection(item.tags):
            return False
        if node.favorite is not None and item.favorite != node.favorite:
            return False
        if node.reviewed is not None and item.reviewed != node.reviewed:
            return False
        if isinstance(node, ReviewQuery) and node.severity:
            if item.severity not in node.severity:
                return False
        return True

    def _query_sync(self, node: MediaQuery, oldest_first: bool) -> list[ViewMedia]:
        results: list[ViewMedia] = []
        for camera_id in sorted(node.camera_ids):
            for event in self._scan_camera(camera_id):
                item = self._to_view_media(event, node)
                if self._matches(item, event["data"], node):
                    results.append(item)
        results.sort(key=lambda m: m.start_time, reverse=True)
        if node.limit is not None:
            if oldest_first:
                results = results[max(len(results) - node.limit, 0) :]
            else:
                results = results[: node.limit]
        return results

    def _metadata_sync(self, node: MediaMetadataQuery) -> MediaMetadata:
        metadata = MediaMetadata()
        for camera_id in sorted(node.camera_ids):
            for event in self._scan_camera(camera_id):
                item = self._to_view_media(event, node)
                metadata.days.add(item.start_time.strftime("%Y-%m-%d"))
                metadata.what.update(item.what)
                metadata.where.update(item.where)
                metadata.tags.update(item.tags)
        return metadata

    # -------------------------------------------------------------------------
    # Engine contract
    # -------------------------------------------------------------------------

    async def query(
        self, node: MediaQuery, oldest_first: bool = False
    ) -> list[ViewMedia]:
        if node.type not in (QueryType.EVENT, QueryType.REVIEW):
            logger.debug("Buffer engine does not serve %s queries", node.type.value)
            return []
        return await asyncio.to_thread(self._query_sync, node, oldest_first)

    async def get_media_metadata(self, node: MediaMetadataQuery) -> MediaMetadata | None:
        return await asyncio.to_thread(self._metadata_sync, node)
