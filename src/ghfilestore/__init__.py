from .store import FileStore, normalize_content
from .api import RemoteContentAPI, GitHubContentsAPI
from .memory import MemoryContentAPI
from .exceptions import StoreError, NotFoundError, ConflictError, TransportError, DataIntegrityError
from ._types import (
    FileKind, FileDescriptor, RemoteItem, Found, NotFound,
    OverwritePolicy, UploadStatus, UploadOutcome, DeleteOutcome, FileContent, ArchiveResult,
)

__all__ = [
    "FileStore", "normalize_content",
    "RemoteContentAPI", "GitHubContentsAPI", "MemoryContentAPI",
    "StoreError", "NotFoundError", "ConflictError", "TransportError", "DataIntegrityError",
    "FileKind", "FileDescriptor", "RemoteItem", "Found", "NotFound",
    "OverwritePolicy", "UploadStatus", "UploadOutcome", "DeleteOutcome", "FileContent", "ArchiveResult",
]
