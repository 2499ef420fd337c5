"""
Media query exception hierarchy.

Builders never raise for unsatisfiable requests (they return None) and the
query runner is transparent to dispatcher errors; these exceptions cover
configuration and initialization faults raised by the managers.
"""

from typing import Any


class MediaQueryError(Exception):
    """Base exception for all media query errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        result = {
            "error": self.__class__.__name__,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class CameraInitializationError(MediaQueryError):
    """A camera could not be registered (duplicate ID).

    A camera naming an unknown engine is still registered; the orchestrator
    only warns, and queries for it are skipped at dispatch.
    """


class FolderInitializationError(MediaQueryError):
    """A folder could not be registered (duplicate ID)."""
