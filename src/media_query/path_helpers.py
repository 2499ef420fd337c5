"""
Path safety helpers shared by the filesystem engines.

Centralizes "path under root" checks so engines do not duplicate
realpath/startswith logic: the resolved path must lie under the real root
(no traversal via .. or symlinks).
"""

import os


def resolve_under_root(root: str, *path_parts: str, allow_root: bool = False) -> str | None:
    """
    Resolve a path under root and return it if safe, else None.

    The result is the real absolute path of join(root, *path_parts) only when
    it lies strictly under the real root. With allow_root=True the root itself
    is also accepted (e.g. the top of a browsable folder).

    Does not require the resolved path to exist.
    """
    if not root:
        return None
    base = os.path.realpath(root)
    if not path_parts and not allow_root:
        return None
    candidate = os.path.realpath(os.path.join(base, *path_parts))
    if candidate == base:
        return candidate if allow_root else None
    if not candidate.startswith(base + os.sep):
        return None
    return candidate
