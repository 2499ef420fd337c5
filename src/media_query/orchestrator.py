"""
Media Query Orchestrator - wires the camera store, dispatchers, engines,
query builder/runner and the web app from configuration.
"""

import asyncio
import logging
import time
from typing import Awaitable, TypeVar

from media_query.constants import LOGGER_NAME
from media_query.engines.buffer import BufferCameraEngine
from media_query.engines.local_folder import LocalFoldersEngine
from media_query.managers.camera_manager import CameraManager
from media_query.managers.camera_store import CameraConfig, CameraStore
from media_query.managers.folders import FoldersManager
from media_query.models import FolderConfig
from media_query.services.query_builder import UnifiedQueryBuilder
from media_query.services.query_runner import UnifiedQueryRunner

logger = logging.getLogger(LOGGER_NAME)

T = TypeVar("T")


class MediaQueryOrchestrator:
    """Owns every long-lived component of the service."""

    def __init__(self, config: dict):
        self.config = config
        self._start_time = time.time()

        self.camera_engines = {
            BufferCameraEngine.engine_type: BufferCameraEngine(
                config["STORAGE_PATH"],
                results_max_age=config["RESULTS_MAX_AGE_SECONDS"],
            ),
        }
        self.folder_engines = {
            LocalFoldersEngine.folder_type: LocalFoldersEngine(),
        }

        self.camera_store = CameraStore()
        for camera_dict in config.get("CAMERAS", []):
            camera = CameraConfig.from_dict(camera_dict)
            if camera.engine not in self.camera_engines:
                logger.warning(
                    f"Camera {camera.id} uses unknown engine {camera.engine}; "
                    "its media will not be queried"
                )
            self.camera_store.add_camera(camera)

        self.camera_manager = CameraManager(
            self.camera_store,
            self.camera_engines,
            cache_ttl=config["CACHE_TTL_SECONDS"],
        )

        self.folders_manager = FoldersManager(self.folder_engines)
        self.folders_manager.add_folders(
            FolderConfig(
                id=f.get("id", ""),
                type=f.get("type", "local"),
                title=f.get("title"),
                icon=f.get("icon"),
                root=f.get("root"),
            )
            for f in config.get("FOLDERS", [])
        )

        self.query_builder = UnifiedQueryBuilder(self.camera_manager, self.folders_manager)
        self.query_runner = UnifiedQueryRunner(self.camera_manager, self.folders_manager)

        # Flask app (lazy import to avoid circular deps)
        from media_query.web.server import create_app

        self.flask_app = create_app(self)

    def run(self, coro: Awaitable[T]) -> T:
        """Run a coroutine to completion from a (threaded) request handler."""
        return asyncio.run(coro)

    def start_services(self) -> None:
        """Log the effective configuration."""
        logger.info("=" * 60)
        logger.info("Starting Media Query Orchestrator")
        logger.info("=" * 60)
        logger.info(f"Storage Path: {self.config['STORAGE_PATH']}")
        logger.info(f"Cache TTL: {self.config['CACHE_TTL_SECONDS']}s")
        logger.info(f"Results Max Age: {self.config['RESULTS_MAX_AGE_SECONDS']}s")
        logger.info(f"Log Level: {self.config.get('LOG_LEVEL', 'INFO')}")

        for camera in self.camera_store.get_cameras():
            logger.info(
                f"  Camera {camera.id}: engine={camera.engine} "
                f"capabilities={sorted(camera.capabilities) or 'NONE'} media={camera.media.type}"
            )
        for folder in self.folders_manager.get_folders():
            logger.info(f"  Folder {folder.id}: type={folder.type} root={folder.root}")
        logger.info("=" * 60)

    def stop(self) -> None:
        """Graceful shutdown: drop cached results."""
        logger.info("Shutting down orchestrator...")
        self.camera_manager.clear_cache()
        self.folders_manager.delete_folders()

