"""Data structures shared by the store, the tree walker, and the archiver."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class FileKind(str, Enum):
    """Remote tree entry kind.

    Members: ``FILE``, ``DIRECTORY``.
    """
    FILE = "file"
    DIRECTORY = "dir"

    def __str__(self) -> str:          # noqa: D105
        return self.value

    @classmethod
    def from_remote(cls, kind: str) -> FileKind:
        """Map a remote ``type`` field to a :class:`FileKind`.

        Only ``"dir"`` is a directory; files, symlinks and submodules are
        leaves.
        """
        return cls.DIRECTORY if kind == "dir" else cls.FILE


class OverwritePolicy(str, Enum):
    """What :meth:`FileStore.upload` does when the target already exists."""
    ALLOW = "allow"
    REJECT = "reject"

    def __str__(self) -> str:          # noqa: D105
        return self.value

    @classmethod
    def coerce(cls, value: OverwritePolicy | bool | str) -> OverwritePolicy:
        """Accept a policy, a bool (``True`` allows), or a policy string."""
        if isinstance(value, bool):
            return cls.ALLOW if value else cls.REJECT
        return cls(value)


class UploadStatus(str, Enum):
    """Result kind of an upload: ``CREATED``, ``UPDATED``, or ``SKIPPED_EXISTS``."""
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED_EXISTS = "skipped-exists"

    def __str__(self) -> str:          # noqa: D105
        return self.value


@dataclass(frozen=True, slots=True)
class FileDescriptor:
    """One entry of a remote listing.

    Attributes:
        name: Final path segment.
        path: Full path inside the repository (no leading slash).
        kind: :class:`FileKind` of the entry.
        revision: Opaque content hash used as a write precondition.
        url: Direct retrieval URL, when the remote provides one.
    """

    name: str
    path: str
    kind: FileKind
    revision: str
    url: str | None = None

    @property
    def is_dir(self) -> bool:
        return self.kind == FileKind.DIRECTORY


@dataclass(frozen=True, slots=True)
class RemoteItem:
    """Metadata for a single remote item, as returned by a lookup or a write.

    *encoded* holds inline base64 content when the remote includes it.
    It is ``None`` for directories and for files too large to inline.
    """

    descriptor: FileDescriptor
    encoded: str | None = None
    size: int | None = None

    @property
    def revision(self) -> str:
        return self.descriptor.revision

    @property
    def path(self) -> str:
        return self.descriptor.path


@dataclass(frozen=True, slots=True)
class Found:
    """Lookup result: the item exists."""
    item: RemoteItem


@dataclass(frozen=True, slots=True)
class NotFound:
    """Lookup result: nothing exists at *path*."""
    path: str


Lookup = Union[Found, NotFound]


@dataclass(frozen=True, slots=True)
class UploadOutcome:
    """Result of :meth:`FileStore.upload`.

    For ``SKIPPED_EXISTS`` the *revision* is the existing remote revision.
    """

    status: UploadStatus
    path: str
    revision: str


@dataclass(frozen=True, slots=True)
class DeleteOutcome:
    """Result of :meth:`FileStore.delete_file`: the revision that was removed."""

    path: str
    revision: str


@dataclass(frozen=True, slots=True)
class FileContent:
    """File content in transfer-safe form, or where to fetch it.

    Exactly one of *encoded* (base64) or *url* is set.
    """

    name: str
    encoded: str | None = None
    url: str | None = None

    def __post_init__(self):
        if self.encoded is not None and self.url is not None:
            raise ValueError("Cannot specify both encoded content and url")
        if self.encoded is None and self.url is None:
            raise ValueError("Must specify either encoded content or url")

    @property
    def data(self) -> bytes:
        """Decoded bytes of inline content.

        Raises:
            ValueError: If the content is only reachable through *url*.
        """
        if self.encoded is None:
            raise ValueError(f"{self.name} has no inline content; fetch {self.url}")
        return base64.b64decode(self.encoded)


@dataclass
class ArchiveResult:
    """Outcome of one archive job.

    Attributes:
        names: Entry names in the order they were written.
        path: Archive location when the sink was a filesystem path.
    """

    names: list[str] = field(default_factory=list)
    path: str | None = None

    @property
    def count(self) -> int:
        return len(self.names)
