"""Exceptions for ghfilestore."""

from __future__ import annotations


class StoreError(Exception):
    """Base class for errors raised by the remote file store."""


class NotFoundError(StoreError, FileNotFoundError):
    """Raised when the remote store has no item at the requested path."""

    def __init__(self, path: str):
        super().__init__(f"Not found: {path}")
        self.path = path


class ConflictError(StoreError):
    """Raised when a write or delete carries a stale revision.

    The remote item changed between the revision lookup and the write.
    Fetch it again and decide whether to retry; nothing is retried here.
    """

    def __init__(self, path: str, message: str = ""):
        detail = f": {message}" if message else ""
        super().__init__(f"Revision conflict at {path}{detail}")
        self.path = path


class TransportError(StoreError):
    """Raised for network, authentication, and rate-limit failures.

    *status* is the HTTP status code, or ``None`` when no response was
    received.  The underlying exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, *, status: int | None = None):
        super().__init__(message)
        self.status = status


class DataIntegrityError(StoreError):
    """Raised when a remote file has neither inline content nor a retrieval URL."""

    def __init__(self, path: str):
        super().__init__(f"File content or download URL not found: {path}")
        self.path = path
