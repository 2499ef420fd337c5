"""Camera and folder engines: backend adapters behind the dispatchers."""

from media_query.engines.base import BaseCameraEngine, BaseFoldersEngine
from media_query.engines.buffer import BufferCameraEngine
from media_query.engines.local_folder import LocalFoldersEngine

__all__ = [
    "BaseCameraEngine",
    "BaseFoldersEngine",
    "BufferCameraEngine",
    "LocalFoldersEngine",
]
