"""
Shared constants for media types, capabilities, caching and display.

Centralizes the closed set of view media types and capability keys so the
builder, store and web layer agree on spelling.
"""

# Logger name used by every module in the package.
LOGGER_NAME: str = "media-query"

# Media types a user can ask for in a gallery/filter view. Order is the order
# filter queries emit nodes in when no explicit types are given.
VIEW_MEDIA_TYPES: tuple[str, ...] = ("clips", "snapshots", "recordings", "reviews")

# Capability keys a camera may declare in config.
CAPABILITY_KEYS: tuple[str, ...] = (
    "clips",
    "snapshots",
    "recordings",
    "reviews",
    "favorite-events",
    "favorite-recordings",
)

# Capabilities that make a camera eligible for media (filter) queries.
MEDIA_CAPABILITIES: tuple[str, ...] = ("clips", "snapshots", "recordings", "reviews")

# Camera media-type preferences (cameras[].media.type).
CAMERA_MEDIA_TYPES: tuple[str, ...] = ("auto", "events", "recordings", "reviews", "folder")

# Events subtype policy (cameras[].media.events_type).
EVENTS_TYPES: tuple[str, ...] = ("all", "clips", "snapshots")

# Reviewed filter policy (cameras[].media.reviewed).
REVIEWED_FILTERS: tuple[str, ...] = ("all", "reviewed", "unreviewed")

# Pagination chunk size when a caller does not pass an explicit limit.
MEDIA_CHUNK_SIZE_DEFAULT: int = 50

# Camera dispatcher request cache TTL (seconds).
DEFAULT_CACHE_TTL_SECONDS: int = 60

# Results older than this (seconds) are considered stale by engines that do
# not override it.
DEFAULT_RESULTS_MAX_AGE_SECONDS: int = 60

# Folder results change rarely; default staleness window (seconds).
DEFAULT_FOLDER_RESULTS_MAX_AGE_SECONDS: int = 5 * 60

# LRU cap for parsed event folders in the buffer engine.
EVENT_CACHE_MAX: int = 500

# LRU cap for dispatcher request caches (camera and folder results).
REQUEST_CACHE_MAX: int = 256

# File extensions the local folder engine treats as media.
VIDEO_EXTENSIONS: frozenset[str] = frozenset({".mp4", ".mkv", ".mov", ".webm", ".m4v"})
IMAGE_EXTENSIONS: frozenset[str] = frozenset({".jpg", ".jpeg", ".png", ".webp", ".gif"})

# Error buffer for the status endpoint: max number of recent ERROR/WARNING
# log entries.
ERROR_BUFFER_MAX_SIZE: int = 10

# -----------------------------------------------------------------------------
# Time display (user-facing): 12-hour format with AM/PM. Query bounds and item
# times in API responses remain ISO 8601.
# -----------------------------------------------------------------------------
DISPLAY_DATETIME_FORMAT: str = "%Y-%m-%d %I:%M:%S %p"
