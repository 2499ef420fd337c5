"""Configuration loading and validation."""

import os
import logging
import sys

import yaml
from voluptuous import Schema, Required, Optional, Any, ALLOW_EXTRA, In, Invalid

from media_query.constants import (
    CAMERA_MEDIA_TYPES,
    CAPABILITY_KEYS,
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_RESULTS_MAX_AGE_SECONDS,
    EVENTS_TYPES,
    LOGGER_NAME,
    MEDIA_CHUNK_SIZE_DEFAULT,
    REVIEWED_FILTERS,
)

logger = logging.getLogger(LOGGER_NAME)


# Configuration Schema
CONFIG_SCHEMA = Schema({
    # Cameras whose media can be queried.
    Optional('cameras'): [{
        Required('id'): str,                  # Unique camera ID; used in query nodes and API paths.
        Optional('engine'): str,              # Engine that serves this camera (default: buffer).
        Optional('title'): str,               # Display title.
        Optional('capabilities'): [In(CAPABILITY_KEYS)],  # Media this camera can serve (clips, snapshots, ...).
        # Default-view preferences.
        Optional('media'): {
            Optional('type'): In(CAMERA_MEDIA_TYPES),      # auto | events | recordings | reviews | folder.
            Optional('events_type'): In(EVENTS_TYPES),     # all | clips | snapshots.
            Optional('reviewed'): In(REVIEWED_FILTERS),    # Reviewed filter for review queries.
            Optional('folders'): [str],                    # Folder IDs shown when type resolves to folder.
        },
        # Default filters merged into every query for this camera.
        Optional('defaults'): {
            Optional('what'): [str],          # Object labels (e.g. person, car).
            Optional('where'): [str],         # Zones.
        },
        # Other cameras whose media is shown alongside this camera.
        Optional('dependencies'): {
            Optional('cameras'): [str],
            Optional('all_cameras'): bool,
        },
    }],
    # Browsable folders.
    Optional('folders'): [{
        Optional('id'): str,                  # Folder ID; defaults to folder/<n>.
        Optional('type'): In(('local',)),     # Folder engine type.
        Optional('title'): str,
        Optional('icon'): str,
        Optional('root'): str,                # Directory a local folder browses.
    }],
    # Storage and web server.
    Optional('network'): {
        Optional('storage_path'): str,        # Root of the event buffer (<storage>/<camera>/<ts>_<id>/).
        Optional('flask_host'): str,          # Bind address for the API server.
        Optional('flask_port'): int,          # Port for the API server.
    },
    # Application behavior: logging, caching and pagination.
    Optional('settings'): {
        Optional('log_level'): Any('DEBUG', 'INFO', 'WARNING', 'ERROR'),  # Logging verbosity.
        Optional('cache_ttl_seconds'): int,          # Camera dispatcher request cache TTL.
        Optional('results_max_age_seconds'): int,    # Age after which buffer results are stale.
        Optional('media_chunk_size'): int,           # Default page size for media queries.
    },
}, extra=ALLOW_EXTRA)


def load_config() -> dict:
    """Load configuration from config.yaml merged with environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. config.yaml
    3. Default values

    Note: at least one camera or folder is REQUIRED.
    """
    config = {
        'CAMERAS': [],
        'FOLDERS': [],

        # Network defaults
        'STORAGE_PATH': '/app/storage',
        'FLASK_HOST': '0.0.0.0',
        'FLASK_PORT': 5056,

        # Settings defaults
        'LOG_LEVEL': 'INFO',
        'CACHE_TTL_SECONDS': DEFAULT_CACHE_TTL_SECONDS,
        'RESULTS_MAX_AGE_SECONDS': DEFAULT_RESULTS_MAX_AGE_SECONDS,
        'MEDIA_CHUNK_SIZE': MEDIA_CHUNK_SIZE_DEFAULT,
    }

    # Load from config.yaml if exists
    config_paths = ['/app/config.yaml', '/app/storage/config.yaml', './config.yaml', 'config.yaml']
    config_loaded = False

    for path in config_paths:
        if os.path.exists(path):
            try:
                logger.info(f"Loading config from {path}")
                with open(path, 'r') as f:
                    yaml_config = yaml.safe_load(f) or {}

                # Validate schema
                try:
                    yaml_config = CONFIG_SCHEMA(yaml_config)
                except Invalid as e:
                    logger.error(f"Invalid configuration in {path}: {e}")
                    sys.exit(1)

                config['CAMERAS'] = list(yaml_config.get('cameras') or [])
                config['FOLDERS'] = list(yaml_config.get('folders') or [])

                if 'settings' in yaml_config:
                    settings = yaml_config['settings']
                    config['LOG_LEVEL'] = settings.get('log_level', config['LOG_LEVEL'])
                    config['CACHE_TTL_SECONDS'] = settings.get('cache_ttl_seconds', config['CACHE_TTL_SECONDS'])
                    config['RESULTS_MAX_AGE_SECONDS'] = settings.get('results_max_age_seconds', config['RESULTS_MAX_AGE_SECONDS'])
                    config['MEDIA_CHUNK_SIZE'] = settings.get('media_chunk_size', config['MEDIA_CHUNK_SIZE'])

                if 'network' in yaml_config:
                    network = yaml_config['network']
                    config['STORAGE_PATH'] = network.get('storage_path', config['STORAGE_PATH'])
                    config['FLASK_HOST'] = network.get('flask_host', config['FLASK_HOST'])
                    config['FLASK_PORT'] = network.get('flask_port', config['FLASK_PORT'])

                config_loaded = True
                break

            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Error loading config from {path}: {e}")

    if not config_loaded:
        logger.info("No config.yaml found, using defaults")

    # Environment variables override everything (for deployment)
    config['STORAGE_PATH'] = os.getenv('STORAGE_PATH', config['STORAGE_PATH'])
    config['FLASK_HOST'] = os.getenv('FLASK_HOST', config['FLASK_HOST'])
    config['FLASK_PORT'] = int(os.getenv('FLASK_PORT', str(config['FLASK_PORT'])))
    config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', config['LOG_LEVEL'])
    config['CACHE_TTL_SECONDS'] = int(os.getenv('CACHE_TTL_SECONDS', str(config['CACHE_TTL_SECONDS'])))
    config['RESULTS_MAX_AGE_SECONDS'] = int(os.getenv('RESULTS_MAX_AGE_SECONDS', str(config['RESULTS_MAX_AGE_SECONDS'])))
    config['MEDIA_CHUNK_SIZE'] = int(os.getenv('MEDIA_CHUNK_SIZE', str(config['MEDIA_CHUNK_SIZE'])))

    # Validate required settings
    if not config['CAMERAS'] and not config['FOLDERS']:
        raise ValueError(
            "Missing required configuration: no cameras or folders. "
            "Add at least one entry under 'cameras:' or 'folders:' in config.yaml."
        )

    return config
