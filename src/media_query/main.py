#!/usr/bin/env python3
"""
Media Query Engine - Bootstrap and entry point.

Provides bootstrap() for the WSGI worker (media_query.wsgi). The server is
started via run_server.py (Gunicorn); do not run Flask's built-in server.

Run the app with: python run_server.py
"""

import logging
import sys
from pathlib import Path

from media_query.config import load_config
from media_query.constants import DISPLAY_DATETIME_FORMAT, LOGGER_NAME
from media_query.logging_utils import setup_logging
from media_query.orchestrator import MediaQueryOrchestrator

# Early logging for config loading (reconfigured after config is loaded)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt=DISPLAY_DATETIME_FORMAT,
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(LOGGER_NAME)


def _load_version() -> str:
    """Load version from version.txt.

    Checks the package dir first (installed) and then the project root
    (running from source).
    """
    try:
        pkg_dir = Path(__file__).resolve().parent
        for candidate in (
            pkg_dir / "version.txt",
            pkg_dir.parent.parent / "version.txt",
        ):
            if candidate.exists():
                return candidate.read_text().strip()
    except OSError:
        pass
    return "unknown"


def bootstrap() -> tuple[dict, MediaQueryOrchestrator]:
    """Load config, setup logging, create and return (config, orchestrator).

    Used by the WSGI entry point (wsgi.py). Does not start the web server.
    """
    config = load_config()
    setup_logging(config.get("LOG_LEVEL", "INFO"))

    logger.info("VERSION = %s", _load_version())

    orchestrator = MediaQueryOrchestrator(config)
    return config, orchestrator


def main():
    """Entry point: direct user to run_server.py (Gunicorn is the only server)."""
    logger.error(
        "Media Query Engine must be started with run_server.py (Gunicorn). "
        "Do not use python -m media_query.main to run the server."
    )
    sys.exit(1)


if __name__ == "__main__":
    main()
