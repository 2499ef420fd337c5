"""
Unified Query Builder - translates UI-level intents ("clips for these
cameras", "everything matching these filters", "the default view of this
camera") into UnifiedQuery objects.

This is the single place where UI media types (clips, snapshots, ...) become
strict query nodes (an EventQuery with has_clip=True, ...). Every build
method returns None rather than raising when the intent cannot be satisfied.
"""

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Iterable

from media_query.constants import LOGGER_NAME, MEDIA_CAPABILITIES, VIEW_MEDIA_TYPES
from media_query.managers.camera_manager import CameraManager
from media_query.managers.camera_store import (
    CameraConfig,
    CapabilitySearch,
    CapabilitySearchKeys,
)
from media_query.managers.folders import FoldersManager
from media_query.models import (
    FolderConfig,
    FolderPathComponent,
    FolderQuery,
    MEDIA_QUERY_CLASSES,
    MediaQuery,
    MediaQueryOptions,
    QueryNode,
    QueryType,
)
from media_query.services.query_filter import get_reviewed_query_filter_from_config
from media_query.services.unified_query import UnifiedQuery

logger = logging.getLogger(LOGGER_NAME)


@dataclass(frozen=True)
class MediaTypeSpec:
    """A resolved media type: events (optionally one subtype), recordings,
    reviews or folder."""
    media_type: str
    events_subtype: str | None = None

    @classmethod
    def clips(cls) -> "MediaTypeSpec":
        return cls("events", "clips")

    @classmethod
    def snapshots(cls) -> "MediaTypeSpec":
        return cls("events", "snapshots")

    @classmethod
    def events(cls) -> "MediaTypeSpec":
        return cls("events")

    @classmethod
    def recordings(cls) -> "MediaTypeSpec":
        return cls("recordings")

    @classmethod
    def reviews(cls) -> "MediaTypeSpec":
        return cls("reviews")

    @classmethod
    def folder(cls) -> "MediaTypeSpec":
        return cls("folder")


# Event subtype -> EventQuery flags.
EVENT_FLAGS: dict[str | None, dict[str, bool]] = {
    "clips": {"has_clip": True},
    "snapshots": {"has_snapshot": True},
    None: {},
}

# View media type (filter queries) -> (query type, event flags).
FILTER_NODE_TYPES: dict[str, tuple[QueryType, dict[str, bool]]] = {
    "clips": (QueryType.EVENT, {"has_clip": True}),
    "snapshots": (QueryType.EVENT, {"has_snapshot": True}),
    "recordings": (QueryType.RECORDING, {}),
    "reviews": (QueryType.REVIEW, {}),
}

def _common_options(options: MediaQueryOptions | None) -> dict[str, Any]:
    if options is None:
        return {}
    fields: dict[str, Any] = {}
    if options.start is not None:
        fields["start"] = options.start
    if options.end is not None:
        fields["end"] = options.end
    if options.limit is not None:
        fields["limit"] = options.limit
    return fields


def _filter_options(options: MediaQueryOptions | None, query_type: QueryType) -> dict[str, Any]:
    if options is None:
        return {}
    fields: dict[str, Any] = {}
    if options.favorite is not None:
        fields["favorite"] = options.favorite
    if options.reviewed is not None:
        fields["reviewed"] = options.reviewed
    for name in ("tags", "what", "where"):
        value = getattr(options, name)
        if value:
            fields[name] = value
    if options.severity and query_type is QueryType.REVIEW:
        fields["severity"] = options.severity
    return fields


class UnifiedQueryBuilder:
    """Builds UnifiedQuery objects from cameras, folders and options."""

    def __init__(
        self,
        camera_manager: CameraManager,
        folders_manager: FoldersManager | None = None,
    ):
        self._camera_manager = camera_manager
        self._folders_manager = folders_manager

    # -------------------------------------------------------------------------
    # Simple query builders
    # -------------------------------------------------------------------------

    def build_clips_query(
        self, camera_ids: Iterable[str], options: MediaQueryOptions | None = None
    ) -> UnifiedQuery | None:
        return self._build_query(QueryType.EVENT, camera_ids, options, has_clip=True)

    def build_snapshots_query(
        self, camera_ids: Iterable[str], options: MediaQueryOptions | None = None
    ) -> UnifiedQuery | None:
        return self._build_query(QueryType.EVENT, camera_ids, options, has_snapshot=True)

    def build_events_query(
        self, camera_ids: Iterable[str], options: MediaQueryOptions | None = None
    ) -> UnifiedQuery | None:
        return self._build_query(QueryType.EVENT, camera_ids, options)

    def build_recordings_query(
        self, camera_ids: Iterable[str], options: MediaQueryOptions | None = None
    ) -> UnifiedQuery | None:
        return self._build_query(QueryType.RECORDING, camera_ids, options)

    def build_reviews_query(
        self, camera_ids: Iterable[str], options: MediaQueryOptions | None = None
    ) -> UnifiedQuery | None:
        return self._build_query(QueryType.REVIEW, camera_ids, options)

    def _build_query(
        self,
        query_type: QueryType,
        camera_ids: Iterable[str],
        options: MediaQueryOptions | None,
        **extra: bool,
    ) -> UnifiedQuery | None:
        node = self._build_node(query_type, camera_ids, options, **extra)
        return UnifiedQuery([node]) if node is not None else None

    def _build_node(
        self,
        query_type: QueryType,
        camera_ids: Iterable[str],
        options: MediaQueryOptions | None = None,
        **extra: Any,
    ) -> MediaQuery | None:
        """One node covering all cameras: camera defaults (unioned), then
        explicit options, then type-specific fields."""
        camera_ids = frozenset(camera_ids or ())
        if not camera_ids:
            return None

        fields: dict[str, Any] = {}
        fields.update(self._merge_defaults_for_cameras(camera_ids, query_type))
        fields.update(_common_options(options))
        fields.update(_filter_options(options, query_type))
        fields.update(extra)
        return MEDIA_QUERY_CLASSES[query_type](camera_ids=camera_ids, **fields)

    def _merge_defaults_for_cameras(
        self, camera_ids: Iterable[str], query_type: QueryType
    ) -> dict[str, frozenset[str]]:
        what: set[str] = set()
        where: set[str] = set()
        for camera_id in camera_ids:
            defaults = self._camera_manager.get_default_query_parameters(camera_id, query_type)
            if defaults is None:
                continue
            what.update(defaults.what or ())
            where.update(defaults.where or ())

        merged: dict[str, frozenset[str]] = {}
        if what:
            merged["what"] = frozenset(what)
        if where:
            merged["where"] = frozenset(where)
        return merged

    # -------------------------------------------------------------------------
    # Filter query builders
    # -------------------------------------------------------------------------

    def get_all_media_capable_camera_ids(self) -> set[str]:
        return set(
            self._camera_manager.get_store().get_camera_ids_with_capability(
                CapabilitySearch(any_of=MEDIA_CAPABILITIES)
            )
        )

    def build_filter_query(
        self,
        camera_ids: Iterable[str] | None = None,
        media_types: Iterable[str] | None = None,
        options: MediaQueryOptions | None = None,
    ) -> UnifiedQuery | None:
        """One node per selected media type, all sharing the same cameras and
        filters. Omitted cameras/types default to every media-capable camera
        and every view media type."""
        effective_cameras = set(camera_ids or ()) or self.get_all_media_capable_camera_ids()
        selected = set(media_types or ()) or set(VIEW_MEDIA_TYPES)
        if not effective_cameras:
            return None

        for unknown in sorted(selected - set(FILTER_NODE_TYPES)):
            logger.debug("Ignoring unsupported media type %s", unknown)

        query = UnifiedQuery()
        for media_type in VIEW_MEDIA_TYPES:
            if media_type not in selected:
                continue
            query_type, flags = FILTER_NODE_TYPES[media_type]
            node = self._build_node(query_type, effective_cameras, options, **flags)
            if node is not None:
                query.add_node(node)
        return query if query.has_nodes() else None

    # -------------------------------------------------------------------------
    # Folder query builders
    # -------------------------------------------------------------------------

    def build_folder_query(
        self,
        folder: FolderConfig,
        path: Iterable[FolderPathComponent],
        limit: int | None = None,
    ) -> UnifiedQuery | None:
        path = tuple(path)
        if not path:
            return None
        return UnifiedQuery([FolderQuery(folder=folder, path=path, limit=limit)])

    def build_default_folder_query(
        self, folder_id: str | None = None, limit: int | None = None
    ) -> UnifiedQuery | None:
        node = self._build_folder_node(folder_id, limit)
        return UnifiedQuery([node]) if node is not None else None

    def _build_folder_node(
        self, folder_id: str | None, limit: int | None
    ) -> FolderQuery | None:
        if self._folders_manager is None:
            return None
        folder = self._folders_manager.get_folder(folder_id)
        if folder is None:
            logger.debug("No folder %s configured", folder_id or "(default)")
            return None
        node = self._folders_manager.get_default_query_parameters(folder)
        if node is None:
            return None
        return dataclasses.replace(node, limit=limit) if limit is not None else node

    def _build_folder_nodes_for_camera(
        self, camera: CameraConfig, limit: int | None
    ) -> list[QueryNode]:
        nodes = []
        for folder_id in camera.media.folders or (None,):
            node = self._build_folder_node(folder_id, limit)
            if node is not None:
                nodes.append(node)
        return nodes

    # -------------------------------------------------------------------------
    # Default / capability-aware builders
    # -------------------------------------------------------------------------

    def build_default_camera_query(
        self, camera_id: str | None = None, limit: int | None = None
    ) -> UnifiedQuery | None:
        """Each camera (or the camera plus its dependencies) resolves its own
        preferred media type; one node is emitted per camera."""
        store = self._camera_manager.get_store()
        camera_ids = (
            store.get_all_dependent_cameras(camera_id)
            if camera_id
            else store.get_camera_ids()
        )

        query = UnifiedQuery()
        for cid in camera_ids:
            camera = store.get_camera_config(cid)
            if camera is None:
                continue
            type_spec = self._resolve_media_type_spec(camera, camera.media.type)
            if type_spec is None:
                logger.debug("Camera %s has no usable default media type", cid)
                continue
            options = MediaQueryOptions(limit=limit) if limit is not None else None
            for node in self._build_nodes_for_type_spec(type_spec, camera, options):
                if node not in query.get_nodes():
                    query.add_node(node)
        return query if query.has_nodes() else None

    def build_camera_media_query(
        self,
        media_type: str,
        camera_id: str | None = None,
        events_subtype: str | None = None,
        options: MediaQueryOptions | None = None,
    ) -> UnifiedQuery | None:
        """Capability-aware query: only cameras that can serve media_type are
        included, one node per camera."""
        if media_type == "folder":
            # Folders go through build_default_folder_query.
            return None
        if media_type == "events":
            capability: CapabilitySearchKeys = events_subtype or CapabilitySearch(
                any_of=("clips", "snapshots")
            )
        elif media_type in ("recordings", "reviews"):
            capability = media_type
        else:
            logger.debug("Ignoring unsupported media type %s", media_type)
            return None

        store = self._camera_manager.get_store()
        camera_ids = (
            store.get_all_dependent_cameras(camera_id, capability)
            if camera_id
            else store.get_camera_ids_with_capability(capability)
        )

        query = UnifiedQuery()
        for cid in camera_ids:
            camera = store.get_camera_config(cid)
            type_spec = (
                self._resolve_media_type_spec(camera, media_type, events_subtype)
                if camera
                else None
            )
            if type_spec is None:
                continue
            for node in self._build_nodes_for_type_spec(type_spec, camera, options):
                query.add_node(node)
        return query if query.has_nodes() else None

    def _resolve_media_type_spec(
        self,
        camera: CameraConfig,
        media_type: str | None,
        events_type: str | None = None,
    ) -> MediaTypeSpec | None:
        capabilities = camera.capabilities
        has_reviews = "reviews" in capabilities
        has_recordings = "recordings" in capabilities

        if not media_type or media_type == "auto":
            if has_reviews:
                return MediaTypeSpec.reviews()
            events = self._resolve_events_spec(camera, events_type)
            if events is not None:
                return events
            if has_recordings:
                return MediaTypeSpec.recordings()
            if camera.media.folders:
                return MediaTypeSpec.folder()
            return None

        if media_type == "recordings":
            return MediaTypeSpec.recordings() if has_recordings else None
        if media_type == "reviews":
            return MediaTypeSpec.reviews() if has_reviews else None
        if media_type == "folder":
            return MediaTypeSpec.folder()
        if media_type == "events":
            return self._resolve_events_spec(camera, events_type)
        return None

    @staticmethod
    def _resolve_events_spec(
        camera: CameraConfig, events_type: str | None
    ) -> MediaTypeSpec | None:
        has_clips = "clips" in camera.capabilities
        has_snapshots = "snapshots" in camera.capabilities
        policy = events_type or camera.media.events_type

        if policy == "all" and has_clips and has_snapshots:
            return MediaTypeSpec.events()

        # Prefer the configured subtype, else whichever the camera has.
        if policy in ("clips", "snapshots"):
            target = policy
        else:
            target = "clips" if has_clips else "snapshots"

        if target == "clips" and has_clips:
            return MediaTypeSpec.clips()
        if target == "snapshots" and has_snapshots:
            return MediaTypeSpec.snapshots()
        return None

    def _build_nodes_for_type_spec(
        self,
        type_spec: MediaTypeSpec,
        camera: CameraConfig,
        options: MediaQueryOptions | None,
    ) -> list[QueryNode]:
        camera_ids = frozenset([camera.id])
        if type_spec.media_type == "folder":
            return self._build_folder_nodes_for_camera(
                camera, options.limit if options else None
            )

        if type_spec.media_type == "events":
            node = self._build_node(
                QueryType.EVENT, camera_ids, options, **EVENT_FLAGS[type_spec.events_subtype]
            )
        elif type_spec.media_type == "recordings":
            node = self._build_node(QueryType.RECORDING, camera_ids, options)
        else:
            if options is None or options.reviewed is None:
                reviewed = get_reviewed_query_filter_from_config(camera.media.reviewed)
                options = dataclasses.replace(
                    options or MediaQueryOptions(), reviewed=reviewed
                )
            node = self._build_node(QueryType.REVIEW, camera_ids, options)
        return [node] if node is not None else []
