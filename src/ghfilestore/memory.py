"""In-memory :class:`~ghfilestore.api.RemoteContentAPI`.

Files live in a dict keyed by path; directories are implied by paths.
Revisions are git blob hashes (computed with dulwich), so the same
content always has the same revision, exactly as on the hosted store.
"""

from __future__ import annotations

import base64
from typing import AsyncIterator

from dulwich.objects import Blob

from ._types import FileDescriptor, FileKind, Found, Lookup, NotFound, RemoteItem
from .exceptions import ConflictError, NotFoundError, TransportError
from .tree import _normalize_dir

URL_PREFIX = "memory://blob/"
DEFAULT_INLINE_LIMIT = 1024 * 1024


def blob_revision(data: bytes) -> str:
    """Return the 40-char hex git blob hash of *data*."""
    return Blob.from_string(data).id.decode()


class MemoryContentAPI:
    """A remote store held in process memory.

    Args:
        files: Optional initial ``{path: bytes}`` mapping.
        inline_limit: Files larger than this many bytes are returned without
            inline content, only a retrieval URL.
        chunk_size: Chunk size used by :meth:`stream_binary`.

    A blob is dropped once no path refers to its revision, so a retrieval
    URL for deleted or overwritten content stops working.
    """

    def __init__(
        self,
        files: dict[str, bytes] | None = None,
        *,
        inline_limit: int = DEFAULT_INLINE_LIMIT,
        chunk_size: int = 64 * 1024,
    ):
        self._files: dict[str, str] = {}
        self._blobs: dict[str, bytes] = {}
        self._inline_limit = inline_limit
        self._chunk_size = chunk_size
        self.operations: list[tuple[str, str]] = []
        for path, data in (files or {}).items():
            self._store(_normalize_dir(path), data)

    def __repr__(self) -> str:
        return f"MemoryContentAPI({len(self._files)} files)"

    # --- Direct access (not part of the remote protocol) ---

    @property
    def files(self) -> dict[str, bytes]:
        """Snapshot of ``{path: bytes}`` for every stored file."""
        return {path: self._blobs[rev] for path, rev in sorted(self._files.items())}

    def revision(self, path: str) -> str | None:
        return self._files.get(path)

    def _store(self, path: str, data: bytes) -> str:
        rev = blob_revision(data)
        old = self._files.get(path)
        self._blobs[rev] = data
        self._files[path] = rev
        if old is not None and old != rev:
            self._release(old)
        return rev

    def _release(self, rev: str) -> None:
        if rev not in self._files.values():
            del self._blobs[rev]

    def _is_dir(self, path: str) -> bool:
        if not path:
            return True
        prefix = path + "/"
        return any(p.startswith(prefix) for p in self._files)

    def _descriptor(self, path: str) -> FileDescriptor:
        rev = self._files[path]
        return FileDescriptor(path.rsplit("/", 1)[-1], path, FileKind.FILE, rev, URL_PREFIX + rev)

    def _item(self, path: str) -> RemoteItem:
        desc = self._descriptor(path)
        data = self._blobs[desc.revision]
        encoded = base64.b64encode(data).decode() if len(data) <= self._inline_limit else None
        return RemoteItem(desc, encoded=encoded, size=len(data))

    # --- RemoteContentAPI ---

    async def get(self, path: str) -> Lookup:
        if path in self._files:
            return Found(self._item(path))
        if self._is_dir(path):
            return Found(RemoteItem(FileDescriptor(path.rsplit("/", 1)[-1], path, FileKind.DIRECTORY, "")))
        return NotFound(path)

    async def put(self, path: str, *, message: str, encoded: str, revision: str | None = None) -> RemoteItem:
        current = self._files.get(path)
        if revision is None and current is not None:
            raise ConflictError(path, '"sha" wasn\'t supplied')
        if revision is not None and revision != current:
            raise ConflictError(path, f"{path} does not match {revision}")
        if self._is_dir(path):
            raise ConflictError(path, "a directory exists at this path")
        parts = path.split("/")
        for i in range(1, len(parts)):
            if "/".join(parts[:i]) in self._files:
                raise ConflictError(path, "a parent path is a file")
        self._store(path, base64.b64decode(encoded))
        self.operations.append(("update" if current else "create", path))
        return self._item(path)

    async def delete(self, path: str, *, message: str, revision: str) -> None:
        current = self._files.get(path)
        if current is None:
            raise NotFoundError(path)
        if revision != current:
            raise ConflictError(path, f"{path} does not match {revision}")
        del self._files[path]
        self._release(current)
        self.operations.append(("delete", path))

    async def list(self, path: str) -> list[FileDescriptor]:
        if path in self._files:
            raise NotADirectoryError(path)
        if not self._is_dir(path):
            raise NotFoundError(path)
        prefix = f"{path}/" if path else ""
        entries: dict[str, FileDescriptor] = {}
        for file_path in self._files:
            if not file_path.startswith(prefix):
                continue
            name, sep, _rest = file_path[len(prefix):].partition("/")
            if sep:
                entries.setdefault(name, FileDescriptor(name, prefix + name, FileKind.DIRECTORY, ""))
            else:
                entries[name] = self._descriptor(file_path)
        return [entries[name] for name in sorted(entries)]

    async def fetch_binary(self, url: str) -> bytes:
        if not url.startswith(URL_PREFIX):
            raise TransportError(f"GET {url} failed: unsupported URL")
        try:
            return self._blobs[url[len(URL_PREFIX):]]
        except KeyError:
            raise NotFoundError(url) from None

    async def stream_binary(self, url: str) -> AsyncIterator[bytes]:
        data = await self.fetch_binary(url)
        for start in range(0, len(data), self._chunk_size):
            yield data[start:start + self._chunk_size]
