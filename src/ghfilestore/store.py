"""FileStore: put/get/list/delete with revision preconditions on a remote tree."""

from __future__ import annotations

import base64
import binascii
import logging
import os
from pathlib import Path
from typing import IO, AsyncIterator

from . import archive, tree
from ._types import (
    ArchiveResult,
    DeleteOutcome,
    FileContent,
    FileDescriptor,
    Found,
    OverwritePolicy,
    RemoteItem,
    UploadOutcome,
    UploadStatus,
)
from .api import RemoteContentAPI
from .exceptions import DataIntegrityError, NotFoundError

log = logging.getLogger(__name__)

ENVELOPE_PREFIX = "data:"
ENVELOPE_MARKER = "base64,"

__all__ = ["FileStore", "normalize_content"]


def normalize_content(content: bytes | str) -> str:
    """Return *content* as a bare base64 payload.

    ``bytes`` are raw file content and get encoded.  A ``str`` is taken to be
    base64 already; a ``data:<mime>;base64,`` envelope is stripped off.

    Raises:
        ValueError: If *content* is empty or not valid base64.
    """
    if not content:
        raise ValueError("File content is required")
    if isinstance(content, (bytes, bytearray, memoryview)):
        return base64.b64encode(content).decode("ascii")
    payload = content
    if payload.startswith(ENVELOPE_PREFIX):
        index = payload.find(ENVELOPE_MARKER)
        if index < 0:
            raise ValueError("Data URI is not base64-encoded")
        payload = payload[index + len(ENVELOPE_MARKER):]
    payload = "".join(payload.split())
    if not payload:
        raise ValueError("File content is required")
    try:
        base64.b64decode(payload, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Content is not valid base64: {exc}") from None
    return payload


class FileStore:
    """Filesystem-style access to a remote content store.

    Every write first looks up the item's current revision and sends it as
    the precondition; nothing is cached between calls, so the remote store
    is always the authority on conflicts.

    Usage::

        async with FileStore.open("owner/repo", token) as store:
            await store.upload(b"hello", "docs", "a.txt")
            files = await store.list_all_files("docs")
    """

    def __init__(self, api: RemoteContentAPI):
        self._api = api

    @classmethod
    def open(cls, repo: str, token: str | None = None, **kwargs) -> FileStore:
        """Create a store over the GitHub contents API for *repo*.

        Keyword arguments are passed to
        :meth:`~ghfilestore.api.GitHubContentsAPI.open`.
        """
        from .api import GitHubContentsAPI
        return cls(GitHubContentsAPI.open(repo, token, **kwargs))

    def __repr__(self) -> str:
        return f"FileStore({self._api!r})"

    @property
    def api(self) -> RemoteContentAPI:
        return self._api

    async def aclose(self) -> None:
        close = getattr(self._api, "aclose", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> FileStore:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # --- Metadata ---

    async def fetch_metadata(self, path: str | os.PathLike[str] | None, name: str) -> RemoteItem:
        """Return metadata (and inline content, if any) for ``path/name``.

        Raises:
            NotFoundError: If nothing exists there.
        """
        full = tree.join_path(path, name)
        lookup = await self._api.get(full)
        if not isinstance(lookup, Found):
            raise NotFoundError(full)
        return lookup.item

    async def exists(self, path: str | os.PathLike[str] | None, name: str) -> bool:
        """Return ``True`` if a file or directory exists at ``path/name``."""
        return isinstance(await self._api.get(tree.join_path(path, name)), Found)

    # --- Write operations ---

    async def upload(
        self,
        content: bytes | str,
        path: str | os.PathLike[str] | None = "",
        name: str = "uploaded_file.txt",
        overwrite: OverwritePolicy | bool | str = OverwritePolicy.ALLOW,
        *,
        message: str | None = None,
    ) -> UploadOutcome:
        """Create or update the file ``path/name``.

        Args:
            content: Raw bytes, or a base64 string (optionally wrapped in a
                ``data:...;base64,`` envelope).
            path: Directory in the repository (``""`` for the root).
            name: File name.
            overwrite: :class:`OverwritePolicy` (or bool).  With ``REJECT``
                an existing file is left alone and ``SKIPPED_EXISTS`` is
                returned.
            message: Commit message (default ``"Upload <name>"`` or
                ``"Update <name>"``).

        Raises:
            ValueError: If *content* is empty or malformed.
            IsADirectoryError: If a directory exists at ``path/name``.
            ConflictError: If the file changed after its revision was read.
            TransportError: For network, auth, and rate-limit failures.
        """
        encoded = normalize_content(content)
        policy = OverwritePolicy.coerce(overwrite)
        full = tree.join_path(path, name)

        lookup = await self._api.get(full)
        if isinstance(lookup, Found):
            if lookup.item.descriptor.is_dir:
                raise IsADirectoryError(full)
            revision = lookup.item.revision
            if policy == OverwritePolicy.REJECT:
                log.debug("upload %s skipped: exists at %s", full, revision)
                return UploadOutcome(UploadStatus.SKIPPED_EXISTS, full, revision)
            item = await self._api.put(
                full, message=message or f"Update {name}", encoded=encoded, revision=revision,
            )
            status = UploadStatus.UPDATED
        else:
            item = await self._api.put(full, message=message or f"Upload {name}", encoded=encoded)
            status = UploadStatus.CREATED

        log.debug("upload %s %s -> %s", full, status, item.revision)
        return UploadOutcome(status, full, item.revision)

    async def delete_file(
        self, path: str | os.PathLike[str] | None, name: str, *, message: str | None = None,
    ) -> DeleteOutcome:
        """Delete ``path/name`` at its current revision.

        Raises:
            NotFoundError: If the file does not exist.
            IsADirectoryError: If ``path/name`` is a directory.
            ConflictError: If the file changed after its revision was read.
        """
        item = await self.fetch_metadata(path, name)
        if item.descriptor.is_dir:
            raise IsADirectoryError(item.path)
        await self._api.delete(item.path, message=message or f"Delete {name}", revision=item.revision)
        log.debug("delete %s at %s", item.path, item.revision)
        return DeleteOutcome(item.path, item.revision)

    # --- Read operations ---

    async def fetch_content(self, path: str | os.PathLike[str] | None, name: str) -> FileContent:
        """Return the file's base64 content, or its retrieval URL.

        Inline content wins; the URL is the fallback for files the remote
        will not inline.

        Raises:
            NotFoundError: If the file does not exist.
            IsADirectoryError: If ``path/name`` is a directory.
            DataIntegrityError: If the remote offers neither.
        """
        item = await self.fetch_metadata(path, name)
        if item.descriptor.is_dir:
            raise IsADirectoryError(item.path)
        if item.encoded:
            return FileContent(name, encoded=item.encoded)
        if item.descriptor.url:
            return FileContent(name, url=item.descriptor.url)
        raise DataIntegrityError(item.path)

    async def read(self, path: str | os.PathLike[str] | None, name: str) -> bytes:
        """Return the raw bytes of ``path/name``."""
        content = await self.fetch_content(path, name)
        if content.encoded is not None:
            return content.data
        return await self._api.fetch_binary(content.url)

    async def list_files(self, path: str | os.PathLike[str] | None = "") -> list[FileDescriptor]:
        """List the immediate children (files and directories) of *path*.

        Raises:
            NotFoundError: If *path* does not exist.
            NotADirectoryError: If *path* is a file.
        """
        return await self._api.list(tree._normalize_dir(path))

    def walk(self, path: str | os.PathLike[str] | None = "") -> AsyncIterator[FileDescriptor]:
        """Lazily yield every file under *path*; see :func:`ghfilestore.tree.walk`."""
        return tree.walk(self._api, path)

    async def list_all_files(self, path: str | os.PathLike[str] | None = "") -> list[FileDescriptor]:
        """List every file under *path*, recursively.  Directories are omitted."""
        return await tree.collect(self._api, path)

    # --- Archives ---

    async def download_archive(
        self,
        path: str | os.PathLike[str] | None,
        sink: str | os.PathLike[str] | IO[bytes],
        *,
        keep_paths: bool = False,
    ) -> ArchiveResult:
        """Zip every file under *path* into *sink*; see :func:`ghfilestore.archive.assemble`."""
        return await archive.assemble(self._api, path, sink, keep_paths=keep_paths)

    async def download_all(
        self, path: str | os.PathLike[str] | None = "", storage_dir: str | os.PathLike[str] = "",
    ) -> Path:
        """Zip every file under *path* into ``storage_dir/output.zip``.

        *storage_dir* (and its parents) are created if missing.  Returns the
        path of the archive.
        """
        target = Path(storage_dir or ".") / archive.ARCHIVE_FILENAME
        target.parent.mkdir(parents=True, exist_ok=True)
        await archive.assemble(self._api, path, target)
        return target
