"""Flask app for the media query API."""

import logging
import os

from flask import Flask, jsonify, send_from_directory
from werkzeug.exceptions import HTTPException

from media_query.constants import LOGGER_NAME
from media_query.errors import MediaQueryError
from media_query.path_helpers import resolve_under_root
from media_query.web.routes import create_api_bp

logger = logging.getLogger(LOGGER_NAME)


def create_app(orchestrator):
    """Create Flask app with all endpoints. Routes close over orchestrator."""
    app = Flask(__name__)
    storage_path = orchestrator.config['STORAGE_PATH']

    app.register_blueprint(create_api_bp(orchestrator), url_prefix='/api')

    @app.route('/files/<path:filename>')
    def serve_file(filename):
        """Serve buffered clips and snapshots referenced by result items."""
        safe_path = resolve_under_root(storage_path, *filename.split('/'))
        if safe_path is None or not os.path.isfile(safe_path):
            return "File not found", 404
        return send_from_directory(os.path.realpath(storage_path), filename)

    @app.errorhandler(MediaQueryError)
    def handle_media_query_error(e):
        logger.warning(f"Request failed: {e.message}")
        return jsonify(e.to_dict()), 400

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception(f"Unhandled error: {e}")
        return jsonify({"error": "internal_error", "message": str(e)}), 500

    return app
