"""Remote contents API: the protocol the store consumes and its GitHub implementation.

Every remote call is a coroutine.  ``get`` reports a missing item as a
:class:`~ghfilestore._types.NotFound` value; every other failure is raised.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Protocol
from urllib.parse import quote, urlparse

import httpx

from ._types import FileDescriptor, FileKind, Found, Lookup, NotFound, RemoteItem
from .exceptions import ConflictError, NotFoundError, TransportError

log = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT = 30.0

__all__ = ["RemoteContentAPI", "GitHubContentsAPI", "DEFAULT_API_URL"]


class RemoteContentAPI(Protocol):
    """Single-item operations against a remote tree store.

    Paths are normalized repo paths without a leading slash; ``""`` is the
    repository root.
    """

    async def get(self, path: str) -> Lookup:
        """Return ``Found(item)`` or ``NotFound(path)``.

        Raises:
            TransportError: For any failure other than not-found.
        """
        ...

    async def put(self, path: str, *, message: str, encoded: str, revision: str | None = None) -> RemoteItem:
        """Create (no *revision*) or update (with *revision*) the file at *path*.

        Raises:
            ConflictError: If *revision* is stale, or missing for an existing file.
        """
        ...

    async def delete(self, path: str, *, message: str, revision: str) -> None:
        """Delete the file at *path* if its current revision is *revision*."""
        ...

    async def list(self, path: str) -> list[FileDescriptor]:
        """List the immediate children of the directory at *path*.

        Raises:
            NotFoundError: If *path* does not exist.
            NotADirectoryError: If *path* is a file.
        """
        ...

    async def fetch_binary(self, url: str) -> bytes:
        """Return the raw bytes behind a retrieval URL."""
        ...

    def stream_binary(self, url: str) -> AsyncIterator[bytes]:
        """Yield the raw bytes behind a retrieval URL in chunks."""
        ...


def _descriptor(data: dict) -> FileDescriptor:
    return FileDescriptor(
        name=data["name"],
        path=data["path"],
        kind=FileKind.from_remote(data.get("type", "file")),
        revision=data["sha"],
        url=data.get("download_url"),
    )


def _remote_item(data: dict) -> RemoteItem:
    # Files over 1 MB come back with encoding "none" and empty content.
    encoded = data.get("content") if data.get("encoding") == "base64" else None
    return RemoteItem(_descriptor(data), encoded=encoded or None, size=data.get("size"))


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("message", "")
    except (ValueError, AttributeError):
        return response.text


def _token_host(api_url: str) -> str:
    """Map an API base URL to the host credentials are stored under."""
    host = urlparse(api_url).hostname or "github.com"
    return host[4:] if host.startswith("api.") else host


def _validate_repo(repo: str) -> None:
    owner, sep, name = repo.partition("/")
    if not sep or not owner or not name or "/" in name:
        raise ValueError(f"Invalid repository {repo!r}: expected 'owner/name'")


class GitHubContentsAPI:
    """:class:`RemoteContentAPI` over the GitHub repository contents endpoint.

    Wraps an :class:`httpx.AsyncClient`.  Use :meth:`open` to build one from a
    repository name and token; pass your own client (e.g. with a mock
    transport) to the constructor directly.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        repo: str,
        *,
        branch: str | None = None,
        api_url: str = DEFAULT_API_URL,
        owns_client: bool = False,
    ):
        _validate_repo(repo)
        self._client = client
        self._repo = repo
        self._branch = branch
        self._base = f"{api_url.rstrip('/')}/repos/{repo}/contents"
        self._owns_client = owns_client

    @classmethod
    def open(
        cls,
        repo: str,
        token: str | None = None,
        *,
        branch: str | None = None,
        api_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> GitHubContentsAPI:
        """Create an API bound to *repo* (``owner/name``).

        Args:
            repo: Repository in ``owner/name`` form.
            token: Access token.  When ``None`` it is resolved with
                :func:`~ghfilestore.config.resolve_token`.
            branch: Branch to read and commit to (repository default if None).
            api_url: API base URL (GitHub Enterprise uses ``https://host/api/v3``).
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (tests use ``httpx.MockTransport``).

        Raises:
            ValueError: If the repository or token is missing.
        """
        if token is None:
            from .config import resolve_token
            token = resolve_token(_token_host(api_url))
        if not repo or not token:
            raise ValueError("Repository and token are required")
        client = httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )
        return cls(client, repo, branch=branch, api_url=api_url, owns_client=True)

    def __repr__(self) -> str:
        if self._branch:
            return f"GitHubContentsAPI({self._repo!r}, branch={self._branch!r})"
        return f"GitHubContentsAPI({self._repo!r})"

    @property
    def repo(self) -> str:
        return self._repo

    @property
    def branch(self) -> str | None:
        return self._branch

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this object created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> GitHubContentsAPI:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # --- HTTP plumbing ---

    def _url(self, path: str) -> str:
        return f"{self._base}/{quote(path, safe='/')}" if path else self._base

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        log.debug("%s %s:%s", method, self._repo, path or "/")
        try:
            return await self._client.request(method, self._url(path), **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {path or '/'} failed: {exc}") from exc

    def _raise_for_status(self, response: httpx.Response, path: str, *, write: bool = False) -> None:
        if response.is_success:
            return
        status = response.status_code
        if status == 404:
            raise NotFoundError(path)
        # 422 on a write means the sha was missing or malformed for the current state.
        if status == 409 or (write and status == 422):
            raise ConflictError(path, _error_message(response))
        raise TransportError(
            f"{response.request.method} {path or '/'} failed with {status}: {_error_message(response)}",
            status=status,
        )

    def _ref_params(self) -> dict[str, str]:
        return {"ref": self._branch} if self._branch else {}

    def _write_body(self, message: str, **fields) -> dict:
        body = {"message": message, **fields}
        if self._branch:
            body["branch"] = self._branch
        return body

    # --- RemoteContentAPI ---

    async def get(self, path: str) -> Lookup:
        response = await self._request("GET", path, params=self._ref_params())
        if response.status_code == 404:
            return NotFound(path)
        self._raise_for_status(response, path)
        data = response.json()
        if isinstance(data, list):
            name = path.rsplit("/", 1)[-1]
            return Found(RemoteItem(FileDescriptor(name, path, FileKind.DIRECTORY, "")))
        return Found(_remote_item(data))

    async def put(self, path: str, *, message: str, encoded: str, revision: str | None = None) -> RemoteItem:
        if revision is None:
            body = self._write_body(message, content=encoded)
        else:
            body = self._write_body(message, content=encoded, sha=revision)
        response = await self._request("PUT", path, json=body)
        self._raise_for_status(response, path, write=True)
        return _remote_item(response.json()["content"])

    async def delete(self, path: str, *, message: str, revision: str) -> None:
        body = self._write_body(message, sha=revision)
        response = await self._request("DELETE", path, json=body)
        self._raise_for_status(response, path, write=True)

    async def list(self, path: str) -> list[FileDescriptor]:
        response = await self._request("GET", path, params=self._ref_params())
        self._raise_for_status(response, path)
        data = response.json()
        if not isinstance(data, list):
            raise NotADirectoryError(path)
        return [_descriptor(entry) for entry in data]

    async def fetch_binary(self, url: str) -> bytes:
        return b"".join([chunk async for chunk in self.stream_binary(url)])

    async def stream_binary(self, url: str) -> AsyncIterator[bytes]:
        log.debug("GET %s", url)
        try:
            async with self._client.stream("GET", url) as response:
                if not response.is_success:
                    await response.aread()
                    self._raise_for_status(response, url)
                async for chunk in response.aiter_bytes():
                    yield chunk
        except httpx.HTTPError as exc:
            raise TransportError(f"GET {url} failed: {exc}") from exc
