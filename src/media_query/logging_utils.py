"""Error buffer and logging setup for the status endpoint.

Query paths log per request (e.g. an unroutable camera warns on every
media query), so repeats of the newest entry are folded into a count
instead of pushing older, distinct problems out of the buffer.
"""

import logging
import threading
from collections import deque
from datetime import datetime, timezone

from media_query.constants import ERROR_BUFFER_MAX_SIZE, LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

MESSAGE_MAX_LENGTH = 500


class ErrorBuffer:
    """Thread-safe rotating buffer of recent ERROR/WARNING log records."""

    def __init__(self, max_size: int = 10):
        self._entries: deque[dict] = deque(maxlen=max_size)
        self._lock = threading.Lock()

    def append(
        self, timestamp: str, level: str, message: str, source: str | None = None
    ) -> None:
        message = message[:MESSAGE_MAX_LENGTH] if message else ""
        with self._lock:
            last = self._entries[-1] if self._entries else None
            if (
                last is not None
                and last["level"] == level
                and last["message"] == message
                and last["source"] == source
            ):
                last["count"] += 1
                last["ts"] = timestamp
                return
            self._entries.append({
                "ts": timestamp,
                "first_ts": timestamp,
                "level": level,
                "source": source,
                "message": message,
                "count": 1,
            })

    def get_all(self) -> list[dict]:
        """Newest first; entries are copies."""
        with self._lock:
            return [dict(entry) for entry in reversed(self._entries)]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class ErrorBufferHandler(logging.Handler):
    """Logging handler that writes ERROR/WARNING to ErrorBuffer.

    Timestamps are UTC ISO 8601, like every other time the API returns.
    """

    def __init__(self, buffer: ErrorBuffer):
        super().__init__(level=logging.WARNING)
        self._buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            ts = datetime.fromtimestamp(record.created, timezone.utc).isoformat(
                timespec="seconds"
            )
            self._buffer.append(ts, record.levelname, record.getMessage(), record.module)
        except Exception:
            self.handleError(record)


error_buffer = ErrorBuffer(max_size=ERROR_BUFFER_MAX_SIZE)


def setup_logging(log_level: str):
    """Configure logging with the specified level."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.getLogger().setLevel(level)
    logger.setLevel(level)

    # Feed the status endpoint (avoid duplicate if called twice)
    if not any(isinstance(h, ErrorBufferHandler) for h in logger.handlers):
        logger.addHandler(ErrorBufferHandler(error_buffer))

    # Per-request access logs would drown out query logging.
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("gunicorn.access").setLevel(logging.WARNING)

    logger.info("Log level set to %s", log_level.upper())
