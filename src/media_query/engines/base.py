"""
Base interfaces for camera and folder engines.

Engines speak to one kind of backend. The camera manager and folders manager
route query nodes to them; engines return ViewItems (not backend payloads)
so dispatchers can merge results from different backends.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from media_query.constants import (
    DEFAULT_FOLDER_RESULTS_MAX_AGE_SECONDS,
    DEFAULT_RESULTS_MAX_AGE_SECONDS,
)
from media_query.models import (
    DefaultQueryParameters,
    FolderConfig,
    FolderQuery,
    MediaMetadata,
    MediaMetadataQuery,
    MediaQuery,
    QueryType,
    ViewItem,
    ViewMedia,
)

if TYPE_CHECKING:
    from media_query.managers.camera_store import CameraConfig


class BaseCameraEngine(ABC):
    """Abstract base for camera engines (event buffer storage, NVR APIs, ...)."""

    engine_type: str = "base"

    @abstractmethod
    async def query(
        self, node: MediaQuery, oldest_first: bool = False
    ) -> list[ViewMedia]:
        """Run one media node against the backend.

        The node's camera_ids only contains cameras owned by this engine.
        Unsupported query types return an empty list. Results are newest
        first; a limit keeps the newest items, or the oldest ones when
        oldest_first is set (paging forward from a start bound).
        """
        ...

    def get_default_query_parameters(
        self, camera: "CameraConfig", query_type: QueryType
    ) -> DefaultQueryParameters | None:
        """Engine-derived default filters for a camera (none by default)."""
        return None

    async def get_media_metadata(self, node: MediaMetadataQuery) -> MediaMetadata | None:
        """Available filter values for the node's cameras (unsupported by default)."""
        return None

    def get_results_max_age(self, query_type: QueryType) -> int:
        """Seconds after which results for this query type are stale."""
        return DEFAULT_RESULTS_MAX_AGE_SECONDS


class BaseFoldersEngine(ABC):
    """Abstract base for folder engines (local directories, media browsers)."""

    folder_type: str = "base"

    @abstractmethod
    def generate_default_folder_query(self, folder: FolderConfig) -> FolderQuery | None:
        """Return the root query for a folder, or None if the engine cannot
        handle it."""
        ...

    @abstractmethod
    async def expand_folder(
        self,
        query: FolderQuery,
        condition_state: dict[str, Any] | None = None,
    ) -> list[ViewItem] | None:
        """List the items at the query's path, or None if the path cannot be
        resolved."""
        ...

    def get_results_max_age(self) -> int:
        return DEFAULT_FOLDER_RESULTS_MAX_AGE_SECONDS
