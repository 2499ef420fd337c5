"""API blueprint: cameras, media, camera default view and metadata, folders, status."""

import logging
import time
from datetime import timedelta

from flask import Blueprint, jsonify, request

from media_query.constants import LOGGER_NAME, MEDIA_CHUNK_SIZE_DEFAULT
from media_query.logging_utils import error_buffer
from media_query.models import FolderPathComponent, MediaQueryOptions, Severity
from media_query.web.serializers import (
    parse_bool,
    parse_csv,
    parse_datetime,
    parse_int,
    serialize_item,
    serialize_metadata,
    serialize_query,
)

logger = logging.getLogger(LOGGER_NAME)


def create_bp(orchestrator):
    """Create API blueprint with routes closed over orchestrator."""
    bp = Blueprint("api", __name__)
    store = orchestrator.camera_store
    builder = orchestrator.query_builder
    runner = orchestrator.query_runner
    folders_manager = orchestrator.folders_manager
    chunk_size = orchestrator.config.get("MEDIA_CHUNK_SIZE", MEDIA_CHUNK_SIZE_DEFAULT)

    def _run_query(query):
        """Execute query (None = nothing to show) and build the response."""
        use_cache = parse_bool(request.args.get("cache")) is not False
        results = orchestrator.run(runner.execute(query, use_cache=use_cache)) if query is not None else []
        return jsonify({
            "query": serialize_query(query),
            "total_count": len(results),
            "results": [serialize_item(item) for item in results],
        })

    def _bad_request(e: Exception):
        logger.debug("Rejected %s: %s", request.path, e)
        return jsonify({"error": "bad_request", "message": str(e)}), 400

    @bp.route("/cameras")
    def list_cameras():
        cameras = [
            {
                "id": camera.id,
                "title": camera.title or camera.id,
                "engine": camera.engine,
                "capabilities": sorted(camera.capabilities),
                "media_type": camera.media.type,
            }
            for camera in store.get_cameras()
        ]
        return jsonify({"cameras": cameras, "default": cameras[0]["id"] if cameras else None})

    @bp.route("/media")
    def filter_media():
        try:
            camera_ids = parse_csv(request.args.getlist("camera"))
            media_types = parse_csv(request.args.getlist("type"))
            severity = parse_csv(request.args.getlist("severity"))
            options = MediaQueryOptions(
                start=parse_datetime(request.args.get("start")),
                end=parse_datetime(request.args.get("end")),
                limit=parse_int(request.args.get("limit"), chunk_size),
                favorite=parse_bool(request.args.get("favorite")),
                reviewed=parse_bool(request.args.get("reviewed")),
                tags=parse_csv(request.args.getlist("tags")),
                what=parse_csv(request.args.getlist("what")),
                where=parse_csv(request.args.getlist("where")),
                severity=frozenset(Severity(s) for s in severity) if severity else None,
            )
        except ValueError as e:
            return _bad_request(e)

        if camera_ids:
            unknown = sorted(c for c in camera_ids if store.get_camera_config(c) is None)
            if unknown:
                return jsonify({"error": "not_found", "message": f"Unknown camera(s): {', '.join(unknown)}"}), 404

        query = builder.build_filter_query(camera_ids, media_types, options)
        return _run_query(query)

    @bp.route("/cameras/<camera_id>/media")
    def camera_media(camera_id):
        if store.get_camera_config(camera_id) is None:
            return jsonify({"error": "not_found", "message": f"Unknown camera: {camera_id}"}), 404
        try:
            limit = parse_int(request.args.get("limit"), chunk_size)
        except ValueError as e:
            return _bad_request(e)
        return _run_query(builder.build_default_camera_query(camera_id, limit=limit))

    @bp.route("/cameras/<camera_id>/metadata")
    def camera_metadata(camera_id):
        if store.get_camera_config(camera_id) is None:
            return jsonify({"error": "not_found", "message": f"Unknown camera: {camera_id}"}), 404
        camera_ids = set(store.get_all_dependent_cameras(camera_id))
        metadata = orchestrator.run(orchestrator.camera_manager.get_media_metadata(camera_ids))
        return jsonify({"cameras": sorted(camera_ids), "metadata": serialize_metadata(metadata)})

    @bp.route("/folders")
    def list_folders():
        folders = [
            {"id": f.id, "type": f.type, "title": f.title or f.id, "icon": f.icon}
            for f in folders_manager.get_folders()
        ]
        return jsonify({"folders": folders})

    @bp.route("/folders/<path:folder_id>")
    def folder_media(folder_id):
        folder = folders_manager.get_folder(folder_id)
        if folder is None:
            return jsonify({"error": "not_found", "message": f"Unknown folder: {folder_id}"}), 404
        try:
            limit = parse_int(request.args.get("limit"))
        except ValueError as e:
            return _bad_request(e)

        path = request.args.get("path", "").strip("/")
        if path:
            query = builder.build_folder_query(
                folder, [FolderPathComponent(id=path, title=path.rsplit("/", 1)[-1])], limit=limit
            )
        else:
            query = builder.build_default_folder_query(folder.id, limit=limit)
        return _run_query(query)

    @bp.route("/status")
    def status():
        uptime_seconds = time.time() - orchestrator._start_time
        return jsonify({
            "online": True,
            "uptime_seconds": uptime_seconds,
            "uptime": str(timedelta(seconds=int(uptime_seconds))),
            "started_at": time.strftime(
                "%Y-%m-%d %H:%M:%S", time.localtime(orchestrator._start_time)
            ),
            "cameras": store.get_camera_count(),
            "folders": folders_manager.get_folder_count(),
            "recent_errors": error_buffer.get_all()[:5],
            "config": {
                "log_level": orchestrator.config.get("LOG_LEVEL", "INFO"),
                "cache_ttl_seconds": orchestrator.config.get("CACHE_TTL_SECONDS"),
                "results_max_age_seconds": orchestrator.config.get("RESULTS_MAX_AGE_SECONDS"),
                "media_chunk_size": chunk_size,
            },
        })

    return bp
