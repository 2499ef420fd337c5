"""In-memory store of per-camera configuration: capabilities, media-type
preferences, default filters and camera dependencies.

The store is a queried collaborator of the builder and camera manager; it
holds no engine state and performs no I/O.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from media_query.constants import LOGGER_NAME
from media_query.errors import CameraInitializationError
from media_query.models import DefaultQueryParameters

logger = logging.getLogger(LOGGER_NAME)


@dataclass(frozen=True)
class CameraMediaConfig:
    type: str = "auto"                 # auto | events | recordings | reviews | folder
    events_type: str = "all"           # all | clips | snapshots
    reviewed: str = "unreviewed"       # all | reviewed | unreviewed
    folders: tuple[str, ...] = ()


@dataclass(frozen=True)
class CameraDependencies:
    cameras: tuple[str, ...] = ()
    all_cameras: bool = False


@dataclass(frozen=True)
class CapabilitySearch:
    """Match cameras having all of `all_of` and at least one of `any_of`."""
    all_of: tuple[str, ...] = ()
    any_of: tuple[str, ...] = ()

    def matches(self, capabilities: frozenset[str]) -> bool:
        if self.all_of and not all(c in capabilities for c in self.all_of):
            return False
        if self.any_of and not any(c in capabilities for c in self.any_of):
            return False
        return True


CapabilitySearchKeys = str | CapabilitySearch


@dataclass(frozen=True)
class CameraConfig:
    id: str
    engine: str = "buffer"
    title: str | None = None
    capabilities: frozenset[str] = frozenset()
    media: CameraMediaConfig = field(default_factory=CameraMediaConfig)
    defaults: DefaultQueryParameters = field(default_factory=DefaultQueryParameters)
    dependencies: CameraDependencies = field(default_factory=CameraDependencies)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CameraConfig":
        """Build from a validated cameras[] entry of config.yaml."""
        media = data.get("media") or {}
        defaults = data.get("defaults") or {}
        deps = data.get("dependencies") or {}
        return cls(
            id=data["id"],
            engine=data.get("engine", "buffer"),
            title=data.get("title"),
            capabilities=frozenset(data.get("capabilities") or []),
            media=CameraMediaConfig(
                type=media.get("type", "auto"),
                events_type=media.get("events_type", "all"),
                reviewed=media.get("reviewed", "unreviewed"),
                folders=tuple(media.get("folders") or ()),
            ),
            defaults=DefaultQueryParameters(
                what=frozenset(defaults["what"]) if defaults.get("what") else None,
                where=frozenset(defaults["where"]) if defaults.get("where") else None,
            ),
            dependencies=CameraDependencies(
                cameras=tuple(deps.get("cameras") or ()),
                all_cameras=bool(deps.get("all_cameras", False)),
            ),
        )


def _as_search(capability: CapabilitySearchKeys) -> CapabilitySearch:
    if isinstance(capability, CapabilitySearch):
        return capability
    return CapabilitySearch(all_of=(capability,))


class CameraStore:
    """Ordered registry of CameraConfig keyed by camera ID."""

    def __init__(self, cameras: Iterable[CameraConfig] | None = None) -> None:
        self._cameras: dict[str, CameraConfig] = {}
        for camera in cameras or ():
            self.add_camera(camera)

    def add_camera(self, camera: CameraConfig) -> None:
        if camera.id in self._cameras:
            raise CameraInitializationError(
                f"Duplicate camera id: {camera.id}", {"camera_id": camera.id}
            )
        self._cameras[camera.id] = camera

    def get_camera_count(self) -> int:
        return len(self._cameras)

    def get_camera_ids(self) -> list[str]:
        return list(self._cameras)

    def get_cameras(self) -> list[CameraConfig]:
        return list(self._cameras.values())

    def get_camera_config(self, camera_id: str) -> CameraConfig | None:
        return self._cameras.get(camera_id)

    def get_camera_capabilities(self, camera_id: str) -> frozenset[str] | None:
        camera = self._cameras.get(camera_id)
        return camera.capabilities if camera else None

    def has_capability(self, camera_id: str, capability: CapabilitySearchKeys) -> bool:
        capabilities = self.get_camera_capabilities(camera_id)
        return capabilities is not None and _as_search(capability).matches(capabilities)

    def get_camera_ids_with_capability(self, capability: CapabilitySearchKeys) -> list[str]:
        search = _as_search(capability)
        return [
            camera_id
            for camera_id, camera in self._cameras.items()
            if search.matches(camera.capabilities)
        ]

    def get_all_dependent_cameras(
        self,
        camera_id: str,
        capability: CapabilitySearchKeys | None = None,
    ) -> list[str]:
        """The camera plus its transitive dependencies, in discovery order.

        A camera with dependencies.all_cameras pulls in every camera. When
        capability is given, only cameras matching it are returned.
        """
        if camera_id not in self._cameras:
            return []

        ordered: list[str] = []
        pending = [camera_id]
        while pending:
            current = pending.pop(0)
            if current in ordered or current not in self._cameras:
                continue
            ordered.append(current)
            deps = self._cameras[current].dependencies
            if deps.all_cameras:
                pending.extend(c for c in self._cameras if c not in ordered)
            else:
                pending.extend(deps.cameras)

        if capability is None:
            return ordered
        return [c for c in ordered if self.has_capability(c, capability)]
