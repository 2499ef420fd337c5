"""Manager modules for the camera store and the camera/folder dispatchers."""

from media_query.managers.camera_manager import CameraManager
from media_query.managers.camera_store import CameraConfig, CameraStore
from media_query.managers.folders import FoldersManager

__all__ = [
    "CameraConfig",
    "CameraStore",
    "CameraManager",
    "FoldersManager",
]
