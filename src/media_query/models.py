"""Query node value types, builder options, and result item models.

Query nodes are frozen dataclasses discriminated by the class-level ``source``
tag (camera vs folder) and, for camera nodes, the ``type`` tag. Set-valued
fields are normalized to frozensets so equality is by value and ignores
element order.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Iterable, Union


class QuerySource(str, Enum):
    """Which dispatcher resolves a node."""
    CAMERA = "camera"
    FOLDER = "folder"


class QueryType(str, Enum):
    """Media query variants (camera-sourced nodes only)."""
    EVENT = "event-query"
    RECORDING = "recording-query"
    RECORDING_SEGMENTS = "recording-segments-query"
    MEDIA_METADATA = "media-metadata"
    REVIEW = "review-query"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ViewMediaType(str, Enum):
    CLIP = "clip"
    SNAPSHOT = "snapshot"
    RECORDING = "recording"
    REVIEW = "review"


def _frozen(values: Iterable[Any] | None) -> frozenset | None:
    """Normalize an optional iterable to a frozenset (strings are one value)."""
    if values is None:
        return None
    if isinstance(values, str):
        return frozenset([values])
    return frozenset(values)


# =============================================================================
# Camera-sourced (media) query nodes
# =============================================================================


@dataclass(frozen=True, kw_only=True)
class MediaQuery:
    """Base for camera-sourced nodes. Never instantiated directly."""

    source: ClassVar[QuerySource] = QuerySource.CAMERA
    type: ClassVar[QueryType]

    camera_ids: frozenset[str]
    start: datetime | None = None
    end: datetime | None = None
    limit: int | None = None

    # Filters
    favorite: bool | None = None
    reviewed: bool | None = None
    tags: frozenset[str] | None = None
    what: frozenset[str] | None = None
    where: frozenset[str] | None = None

    def __post_init__(self) -> None:
        camera_ids = _frozen(self.camera_ids)
        if not camera_ids:
            raise ValueError(f"{type(self).__name__} requires at least one camera ID")
        object.__setattr__(self, "camera_ids", camera_ids)
        for name in ("tags", "what", "where"):
            object.__setattr__(self, name, _frozen(getattr(self, name)))


@dataclass(frozen=True, kw_only=True)
class EventQuery(MediaQuery):
    type: ClassVar[QueryType] = QueryType.EVENT

    # Frigate equivalents: has_clip / has_snapshot
    has_clip: bool | None = None
    has_snapshot: bool | None = None


@dataclass(frozen=True, kw_only=True)
class RecordingQuery(MediaQuery):
    type: ClassVar[QueryType] = QueryType.RECORDING


@dataclass(frozen=True, kw_only=True)
class RecordingSegmentsQuery(MediaQuery):
    type: ClassVar[QueryType] = QueryType.RECORDING_SEGMENTS


@dataclass(frozen=True, kw_only=True)
class MediaMetadataQuery(MediaQuery):
    type: ClassVar[QueryType] = QueryType.MEDIA_METADATA


@dataclass(frozen=True, kw_only=True)
class ReviewQuery(MediaQuery):
    type: ClassVar[QueryType] = QueryType.REVIEW

    severity: frozenset[Severity] | None = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.severity is not None:
            object.__setattr__(
                self,
                "severity",
                frozenset(Severity(s) for s in _frozen(self.severity)),
            )


MEDIA_QUERY_CLASSES: dict[QueryType, type[MediaQuery]] = {
    QueryType.EVENT: EventQuery,
    QueryType.RECORDING: RecordingQuery,
    QueryType.RECORDING_SEGMENTS: RecordingSegmentsQuery,
    QueryType.MEDIA_METADATA: MediaMetadataQuery,
    QueryType.REVIEW: ReviewQuery,
}


# =============================================================================
# Folder-sourced query nodes
# =============================================================================


@dataclass(frozen=True)
class FolderPathComponent:
    """One level of a folder hierarchy with engine matching/parsing hints.

    id: exact location of this level (relative to the folder root for local
        folders). Leading components with an id fix the starting directory.
    title / title_re: match a child directory by exact name or regex.
    start_date_re: regex whose first group is a Unix timestamp or ISO date,
        used to date items found at this level.
    """
    id: str | None = None
    title: str | None = None
    title_re: str | None = None
    start_date_re: str | None = None


@dataclass(frozen=True)
class FolderConfig:
    id: str
    type: str = "local"
    title: str | None = None
    icon: str | None = None
    root: str | None = None


@dataclass(frozen=True, kw_only=True)
class FolderQuery:
    source: ClassVar[QuerySource] = QuerySource.FOLDER

    folder: FolderConfig
    path: tuple[FolderPathComponent, ...]
    limit: int | None = None

    def __post_init__(self) -> None:
        path = tuple(self.path)
        if not path:
            raise ValueError("FolderQuery requires a non-empty path")
        object.__setattr__(self, "path", path)


QueryNode = Union[MediaQuery, FolderQuery]


def is_media_query(node: Any) -> bool:
    return getattr(node, "source", None) is QuerySource.CAMERA


def is_folder_query(node: Any) -> bool:
    return getattr(node, "source", None) is QuerySource.FOLDER


# =============================================================================
# Builder options
# =============================================================================


@dataclass(frozen=True)
class QueryFilters:
    favorite: bool | None = None
    reviewed: bool | None = None
    tags: frozenset[str] | None = None
    what: frozenset[str] | None = None
    where: frozenset[str] | None = None
    severity: frozenset[Severity] | None = None


@dataclass(frozen=True)
class MediaQueryOptions(QueryFilters):
    """Filters plus window/limit for media query builders."""
    start: datetime | None = None
    end: datetime | None = None
    limit: int | None = None


@dataclass(frozen=True)
class DefaultQueryParameters:
    """Per-camera default filter values that builders merge into nodes."""
    what: frozenset[str] | None = None
    where: frozenset[str] | None = None


# =============================================================================
# Result items
# =============================================================================


@dataclass(slots=True)
class ViewMedia:
    """A single media result (clip, snapshot, recording or review)."""
    media_type: ViewMediaType
    id: str | None = None
    camera_id: str | None = None
    folder: FolderConfig | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    in_progress: bool = False
    content_id: str | None = None
    title: str | None = None
    thumbnail: str | None = None
    icon: str | None = None
    favorite: bool | None = None
    reviewed: bool | None = None
    severity: Severity | None = None
    score: float | None = None
    what: list[str] = field(default_factory=list)
    where: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)

    def get_usable_end_time(self) -> datetime | None:
        if self.end_time is not None:
            return self.end_time
        if self.in_progress:
            return datetime.now(timezone.utc)
        return self.start_time

    def includes_time(self, seek: datetime) -> bool:
        end = self.get_usable_end_time()
        return self.start_time is not None and end is not None and self.start_time <= seek <= end


@dataclass(slots=True)
class ViewFolder:
    """A navigable child folder returned by a folder expansion."""
    folder: FolderConfig
    path: tuple[FolderPathComponent, ...]
    id: str | None = None
    title: str | None = None
    icon: str | None = None
    thumbnail: str | None = None


ViewItem = Union[ViewMedia, ViewFolder]


@dataclass(slots=True)
class MediaMetadata:
    """Aggregate filter values available for a set of cameras."""
    days: set[str] = field(default_factory=set)
    tags: set[str] = field(default_factory=set)
    what: set[str] = field(default_factory=set)
    where: set[str] = field(default_factory=set)

    def merge(self, other: "MediaMetadata") -> "MediaMetadata":
        return MediaMetadata(
            days=self.days | other.days,
            tags=self.tags | other.tags,
            what=self.what | other.what,
            where=self.where | other.where,
        )


def item_key(item: ViewItem) -> tuple:
    """Identity used to de-duplicate result items across engines."""
    if isinstance(item, ViewFolder):
        return ("folder", item.folder.id, item.id)
    return (item.media_type.value, item.camera_id, item.id)


def sort_items(items: Iterable[ViewItem]) -> list[ViewItem]:
    """Folders first (by title), then media newest first; undated media last."""
    items = list(items)
    folders = sorted(
        (i for i in items if isinstance(i, ViewFolder)),
        key=lambda f: (f.title or f.id or "").lower(),
    )
    media = [i for i in items if isinstance(i, ViewMedia)]
    dated = sorted(
        (m for m in media if m.start_time is not None),
        key=lambda m: m.start_time,
        reverse=True,
    )
    undated = [m for m in media if m.start_time is None]
    return [*folders, *dated, *undated]


def utc_from_timestamp(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def utc_now() -> datetime:
    return utc_from_timestamp(time.time())
