"""Path helpers and recursive tree enumeration for ghfilestore.

Provides path normalization and a depth-first walk over the remote
listing API.  Nothing here caches listings; every walk asks the remote.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, AsyncIterator

from ._types import FileDescriptor

if TYPE_CHECKING:
    from .api import RemoteContentAPI

log = logging.getLogger(__name__)


def _is_root_path(path: str | os.PathLike[str] | None) -> bool:
    """Return True if path represents the root (None, empty or only slashes)."""
    if path is None:
        return True
    return os.fspath(path).replace("\\", "/").strip("/") == ""


def _normalize_path(path: str | os.PathLike[str]) -> str:
    """Normalize a path: strip leading/trailing slashes, reject bad segments."""
    path = os.fspath(path).replace("\\", "/").strip("/")
    if not path:
        raise ValueError("Path must not be empty")
    segments = path.split("/")
    for seg in segments:
        if not seg:
            raise ValueError(f"Empty segment in path: {path!r}")
        if seg in (".", ".."):
            raise ValueError(f"Invalid path segment: {seg!r}")
    return "/".join(segments)


def _normalize_dir(path: str | os.PathLike[str] | None) -> str:
    """Normalize a directory path; the root is the empty string."""
    if _is_root_path(path):
        return ""
    return _normalize_path(path)


def join_path(directory: str | os.PathLike[str] | None, name: str) -> str:
    """Join a directory and a file name into a normalized repo path.

    Raises:
        ValueError: If *name* is empty, contains ``/``, or is ``.``/``..``.
    """
    if not name:
        raise ValueError("File name must not be empty")
    if "/" in name or name in (".", ".."):
        raise ValueError(f"Invalid file name: {name!r}")
    parent = _normalize_dir(directory)
    return f"{parent}/{name}" if parent else name


def relative_to(path: str, root: str) -> str:
    """Return *path* relative to the directory *root* (both normalized)."""
    if root and path.startswith(root + "/"):
        return path[len(root) + 1:]
    return path


async def walk(api: RemoteContentAPI, root: str | os.PathLike[str] | None = "") -> AsyncIterator[FileDescriptor]:
    """Yield every leaf file under *root*, depth first.

    Siblings come out in the order the remote listed them; directories are
    descended into where they appear and never yielded themselves.  A
    listing failure at any depth propagates and ends the walk.

    Raises:
        NotFoundError: If *root* does not exist.
        NotADirectoryError: If *root* is a file.
    """
    root = _normalize_dir(root)
    log.debug("walk %s", root or "/")
    for entry in await api.list(root):
        if entry.is_dir:
            async for child in walk(api, entry.path):
                yield child
        else:
            yield entry


async def collect(api: RemoteContentAPI, root: str | os.PathLike[str] | None = "") -> list[FileDescriptor]:
    """Return a new list of every leaf file under *root* (see :func:`walk`)."""
    return [entry async for entry in walk(api, root)]
