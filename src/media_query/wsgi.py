"""
WSGI entry point for Gunicorn.

Bootstraps config and MediaQueryOrchestrator and exposes the Flask app.
Registers graceful shutdown on SIGTERM/SIGINT so orchestrator.stop() runs
when the container stops.
"""

import logging
import signal

from media_query.constants import LOGGER_NAME
from media_query.main import bootstrap

logger = logging.getLogger(LOGGER_NAME)

# Module-level orchestrator reference for signal handler (set in create_application).
_orchestrator = None


def _shutdown_handler(signum: int, frame) -> None:
    logger.info("Received signal %s, shutting down orchestrator...", signum)
    if _orchestrator:
        _orchestrator.stop()
    raise SystemExit(0)


def create_application():
    """Create the WSGI application: bootstrap, start_services, return Flask app."""
    global _orchestrator

    config, orchestrator = bootstrap()
    _orchestrator = orchestrator

    orchestrator.start_services()

    signal.signal(signal.SIGTERM, _shutdown_handler)
    signal.signal(signal.SIGINT, _shutdown_handler)

    return orchestrator.flask_app


application = create_application()
