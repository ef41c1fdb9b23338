"""Stream a remote subtree into a zip archive."""

from __future__ import annotations

import asyncio
import logging
import os
import zipfile
from pathlib import Path
from typing import IO, TYPE_CHECKING

from ._types import ArchiveResult, FileDescriptor
from .exceptions import DataIntegrityError
from .tree import _normalize_dir, collect, relative_to

if TYPE_CHECKING:
    from .api import RemoteContentAPI

log = logging.getLogger(__name__)

ARCHIVE_FILENAME = "output.zip"
COMPRESS_LEVEL = 9

__all__ = ["assemble", "ARCHIVE_FILENAME"]


def _create(path: Path) -> IO[bytes]:
    path.parent.mkdir(parents=True, exist_ok=True)
    return open(path, "wb")


async def _append(api: RemoteContentAPI, zf: zipfile.ZipFile, entry: FileDescriptor, name: str) -> None:
    """Copy one remote file into *zf* chunk by chunk."""
    if not entry.url:
        raise DataIntegrityError(entry.path)
    log.debug("archive %s as %s", entry.path, name)
    with zf.open(name, "w") as dest:
        async for chunk in api.stream_binary(entry.url):
            await asyncio.to_thread(dest.write, chunk)


def _finish(zf: zipfile.ZipFile, fp: IO[bytes], owned: bool) -> None:
    """Write the central directory and flush the sink.

    For files we opened, also sync to disk and close.
    """
    zf.close()
    flush = getattr(fp, "flush", None)
    if flush is not None:
        flush()
    if owned:
        os.fsync(fp.fileno())
        fp.close()


async def assemble(
    api: RemoteContentAPI,
    root: str | os.PathLike[str] | None,
    sink: str | os.PathLike[str] | IO[bytes],
    *,
    keep_paths: bool = False,
) -> ArchiveResult:
    """Write every file under *root* into a zip archive at *sink*.

    Files are fetched one at a time, in walk order, and streamed into the
    archive as their bytes arrive.  Compression and disk writes run in a
    worker thread; only the per-entry headers are written from the event
    loop.  The call returns only after the sink has been flushed (and, for
    a path, synced and closed).

    The archive is finalized only once every entry has been written.  On
    failure a partial archive written to a path is removed; a caller's
    stream is left without a central directory, so it never reads as a
    valid zip.

    Args:
        api: Remote store to read from.
        root: Subtree to archive (``""`` for the repository root).
        sink: Output file path (parent directories are created) or a
            writable binary stream, which need not be seekable.
        keep_paths: Name entries by path relative to *root* instead of by
            bare file name.

    Raises:
        DataIntegrityError: If a file has no retrieval URL.
        StoreError: Any remote failure aborts the whole archive.
    """
    root = _normalize_dir(root)
    files = await collect(api, root)

    result = ArchiveResult()
    owned = isinstance(sink, (str, os.PathLike))
    if owned:
        out_path = Path(sink)
        fp = await asyncio.to_thread(_create, out_path)
        result.path = str(out_path)
    else:
        fp = sink

    try:
        zf = zipfile.ZipFile(fp, "w", zipfile.ZIP_DEFLATED, compresslevel=COMPRESS_LEVEL)
        for entry in files:
            name = relative_to(entry.path, root) if keep_paths else entry.name
            await _append(api, zf, entry, name)
            result.names.append(name)
        await asyncio.to_thread(_finish, zf, fp, owned)
    except BaseException:
        if owned:
            fp.close()
            out_path.unlink(missing_ok=True)
        raise

    log.debug("archived %d file(s) from %s", result.count, root or "/")
    return result
