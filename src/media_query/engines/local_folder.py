"""
Local Folders Engine - browses a directory tree under a folder's root.

The last path component carrying an id fixes the start directory (ids are
relative to the root, "." is the root itself). Components after it match
child directory names by title or title_re, one level each. The directory
reached is listed: subdirectories become ViewFolder items, video and image
files become clip and snapshot ViewMedia.
"""

import asyncio
import logging
import os
import re
from datetime import datetime, timezone
from typing import Any

from media_query.constants import IMAGE_EXTENSIONS, LOGGER_NAME, VIDEO_EXTENSIONS
from media_query.engines.base import BaseFoldersEngine
from media_query.models import (
    FolderConfig,
    FolderPathComponent,
    FolderQuery,
    ViewFolder,
    ViewItem,
    ViewMedia,
    ViewMediaType,
    sort_items,
    utc_from_timestamp,
)
from media_query.path_helpers import resolve_under_root

logger = logging.getLogger(LOGGER_NAME)


def parse_start_date(name: str, pattern: str | None) -> datetime | None:
    """Date a file or directory name with start_date_re (first group is a Unix
    timestamp or an ISO date). Naive dates are taken as UTC."""
    if not pattern:
        return None
    try:
        match = re.search(pattern, name)
    except re.error as e:
        logger.warning("Invalid start_date_re %r: %s", pattern, e)
        return None
    if not match or not match.groups() or match.group(1) is None:
        return None
    value = match.group(1)
    if value.isdigit():
        return utc_from_timestamp(int(value))
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def component_matches(component: FolderPathComponent, name: str) -> bool:
    if component.title is not None and name != component.title:
        return False
    if component.title_re is not None:
        try:
            if not re.fullmatch(component.title_re, name):
                return False
        except re.error as e:
            logger.warning("Invalid title_re %r: %s", component.title_re, e)
            return False
    return True


def _list_dir(path: str) -> list[os.DirEntry]:
    try:
        with os.scandir(path) as it:
            return [e for e in it if not e.name.startswith(".")]
    except OSError as e:
        logger.warning("Cannot list %s: %s", path, e)
        return []


class LocalFoldersEngine(BaseFoldersEngine):
    """Folder engine over the local filesystem."""

    folder_type = "local"

    def generate_default_folder_query(self, folder: FolderConfig) -> FolderQuery | None:
        if not folder.root:
            logger.warning("Folder %s has no root; cannot browse", folder.id)
            return None
        return FolderQuery(
            folder=folder,
            path=(FolderPathComponent(id=".", title=folder.title),),
        )

    def _start_index(self, path: tuple[FolderPathComponent, ...]) -> int:
        for index in range(len(path) - 1, -1, -1):
            if path[index].id is not None:
                return index
        return -1

    def _expand_sync(self, query: FolderQuery) -> list[ViewItem] | None:
        folder = query.folder
        root = folder.root
        if not root or not os.path.isdir(root):
            logger.warning("Folder %s root is missing: %s", folder.id, root)
            return None

        start = self._start_index(query.path)
        start_id = query.path[start].id if start >= 0 else "."
        start_dir = resolve_under_root(root, start_id, allow_root=True)
        if not start_dir or not os.path.isdir(start_dir):
            logger.debug("Folder %s: no directory at %r", folder.id, start_id)
            return None

        directories = [start_dir]
        for component in query.path[start + 1 :]:
            directories = [
                entry.path
                for directory in directories
                for entry in _list_dir(directory)
                if entry.is_dir() and component_matches(component, entry.name)
            ]
            if not directories:
                return []

        date_re = next(
            (c.start_date_re for c in reversed(query.path) if c.start_date_re), None
        )
        base = os.path.realpath(root)
        items: list[ViewItem] = []
        for directory in directories:
            for entry in _list_dir(directory):
                rel = os.path.relpath(entry.path, base)
                # Symlinks pointing outside the root are skipped.
                if not resolve_under_root(base, rel):
                    continue
                item = self._to_item(query, entry, rel, date_re)
                if item is not None:
                    items.append(item)

        items = sort_items(items)
        if query.limit is not None:
            items = items[: query.limit]
        return items

    def _to_item(
        self,
        query: FolderQuery,
        entry: os.DirEntry,
        rel: str,
        date_re: str | None,
    ) -> ViewItem | None:
        folder = query.folder
        if entry.is_dir():
            return ViewFolder(
                folder=folder,
                path=query.path + (FolderPathComponent(id=rel, title=entry.name),),
                id=rel,
                title=entry.name,
                icon=folder.icon,
            )

        ext = os.path.splitext(entry.name)[1].lower()
        if ext in VIDEO_EXTENSIONS:
            media_type = ViewMediaType.CLIP
        elif ext in IMAGE_EXTENSIONS:
            media_type = ViewMediaType.SNAPSHOT
        else:
            return None

        start_time = parse_start_date(entry.name, date_re)
        if start_time is None:
            try:
                start_time = utc_from_timestamp(entry.stat().st_mtime)
            except OSError:
                start_time = None
        return ViewMedia(
            media_type=media_type,
            id=rel,
            folder=folder,
            start_time=start_time,
            content_id=rel,
            title=entry.name,
            thumbnail=rel if media_type is ViewMediaType.SNAPSHOT else None,
            icon=folder.icon,
        )

    async def expand_folder(
        self,
        query: FolderQuery,
        condition_state: dict[str, Any] | None = None,
    ) -> list[ViewItem] | None:
        return await asyncio.to_thread(self._expand_sync, query)
