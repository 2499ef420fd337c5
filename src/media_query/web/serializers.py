"""JSON helpers for the API: request parameter parsing and response
serialization of query nodes, result items and metadata."""

import dataclasses
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from media_query.models import (
    FolderConfig,
    MediaMetadata,
    QueryNode,
    ViewFolder,
    ViewItem,
    utc_from_timestamp,
)
from media_query.services.unified_query import UnifiedQuery

TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off")


# -----------------------------------------------------------------------------
# Request parsing (raise ValueError on malformed input; routes turn it into 400)
# -----------------------------------------------------------------------------


def parse_datetime(value: str | None) -> datetime | None:
    """Unix timestamp or ISO 8601; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if value.isdigit():
        return utc_from_timestamp(int(value))
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def parse_bool(value: str | None) -> bool | None:
    if value is None or value == "":
        return None
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean: {value!r}")


def parse_int(value: str | None, default: int | None = None) -> int | None:
    if value is None or value == "":
        return default
    result = int(value)
    if result < 0:
        raise ValueError(f"Expected a non-negative integer, got {value!r}")
    return result


def parse_csv(values: list[str]) -> frozenset[str] | None:
    """Merge repeated and comma-separated parameters (?what=a,b&what=c)."""
    items = {part.strip() for value in values for part in value.split(",") if part.strip()}
    return frozenset(items) if items else None


# -----------------------------------------------------------------------------
# Response serialization
# -----------------------------------------------------------------------------


def _to_json_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(_to_json_value(v) for v in value)
    if isinstance(value, FolderConfig):
        return value.id
    if isinstance(value, (list, tuple)):
        return [_to_json_value(v) for v in value]
    if dataclasses.is_dataclass(value):
        return {
            f.name: _to_json_value(getattr(value, f.name))
            for f in dataclasses.fields(value)
            if getattr(value, f.name) is not None
        }
    return value


def serialize_node(node: QueryNode) -> dict[str, Any]:
    """Node fields that are set, plus its source/type tags."""
    data: dict[str, Any] = {"source": node.source.value}
    node_type = getattr(node, "type", None)
    if node_type is not None:
        data["type"] = node_type.value
    data.update(_to_json_value(node))
    return data


def serialize_query(query: UnifiedQuery | None) -> list[dict[str, Any]]:
    return [serialize_node(node) for node in query] if query is not None else []


def serialize_item(item: ViewItem) -> dict[str, Any]:
    if isinstance(item, ViewFolder):
        return {
            "type": "folder",
            "folder": item.folder.id,
            "id": item.id,
            "title": item.title,
            "icon": item.icon,
            "thumbnail": item.thumbnail,
            "path": _to_json_value(item.path),
        }
    return {
        "type": item.media_type.value,
        "id": item.id,
        "camera": item.camera_id,
        "folder": item.folder.id if item.folder else None,
        "start_time": _to_json_value(item.start_time),
        "end_time": _to_json_value(item.end_time),
        "in_progress": item.in_progress,
        "content_id": item.content_id,
        "title": item.title,
        "thumbnail": item.thumbnail,
        "icon": item.icon,
        "favorite": item.favorite,
        "reviewed": item.reviewed,
        "severity": _to_json_value(item.severity),
        "score": item.score,
        "what": list(item.what),
        "where": list(item.where),
        "tags": list(item.tags),
    }


def serialize_metadata(metadata: MediaMetadata | None) -> dict[str, list[str]]:
    if metadata is None:
        return {"days": [], "tags": [], "what": [], "where": []}
    return {
        "days": sorted(metadata.days),
        "tags": sorted(metadata.tags),
        "what": sorted(metadata.what),
        "where": sorted(metadata.where),
    }
