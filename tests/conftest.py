"""Shared fixtures for ghfilestore tests."""

import base64
import json

import httpx
import pytest
from click.testing import CliRunner

from ghfilestore import FileStore, GitHubContentsAPI, MemoryContentAPI
from ghfilestore.memory import blob_revision

RAW_HOST = "raw.example.test"


@pytest.fixture
def api():
    """Empty in-memory store."""
    return MemoryContentAPI()


@pytest.fixture
def store(api):
    return FileStore(api)


@pytest.fixture
def docs_api():
    """Store with docs/a.txt ("hello") and docs/sub/b.txt ("world")."""
    return MemoryContentAPI({"docs/a.txt": b"hello", "docs/sub/b.txt": b"world"})


@pytest.fixture
def docs_store(docs_api):
    return FileStore(docs_api)


@pytest.fixture
def tree_api():
    """Deeper tree for recursive tests.

    Tree:
        readme.txt, setup.py,
        src/main.py, src/util.py, src/sub/deep.txt,
        docs/guide.md, docs/api.md
    """
    return MemoryContentAPI({
        "readme.txt": b"readme",
        "setup.py": b"setup",
        "src/main.py": b"main",
        "src/util.py": b"util",
        "src/sub/deep.txt": b"deep",
        "docs/guide.md": b"guide",
        "docs/api.md": b"api",
    })


# ---------------------------------------------------------------------------
# Fake GitHub contents endpoint
# ---------------------------------------------------------------------------

class FakeGitHub:
    """Serves the subset of the GitHub contents API that ghfilestore uses."""

    prefix = "/repos/octo/files/contents"

    def __init__(self, files=None):
        self.files = dict(files or {})
        self.requests = []

    def _entry(self, path):
        data = self.files[path]
        sha = blob_revision(data)
        return {
            "type": "file",
            "name": path.rsplit("/", 1)[-1],
            "path": path,
            "sha": sha,
            "size": len(data),
            "encoding": "base64",
            "content": base64.encodebytes(data).decode(),
            "download_url": f"https://{RAW_HOST}/{sha}",
        }

    def _listing(self, path):
        prefix = f"{path}/" if path else ""
        seen = {}
        for p in sorted(self.files):
            if not p.startswith(prefix):
                continue
            name, sep, _ = p[len(prefix):].partition("/")
            if sep:
                seen.setdefault(name, {"type": "dir", "name": name, "path": prefix + name,
                                       "sha": "d" * 40, "download_url": None})
            else:
                entry = self._entry(p)
                del entry["content"], entry["encoding"]
                seen[name] = entry
        return list(seen.values())

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == RAW_HOST:
            sha = request.url.path.lstrip("/")
            for data in self.files.values():
                if blob_revision(data) == sha:
                    return httpx.Response(200, content=data)
            return httpx.Response(404, json={"message": "Not Found"})

        path = request.url.path[len(self.prefix):].strip("/")
        if request.method == "GET":
            if path in self.files:
                return httpx.Response(200, json=self._entry(path))
            listing = self._listing(path)
            if listing or not path:
                return httpx.Response(200, json=listing)
            return httpx.Response(404, json={"message": "Not Found"})

        body = json.loads(request.content)
        current = blob_revision(self.files[path]) if path in self.files else None
        if request.method == "PUT":
            if current is not None and "sha" not in body:
                return httpx.Response(422, json={"message": "Invalid request.\n\n\"sha\" wasn't supplied."})
            if body.get("sha") != current:
                return httpx.Response(409, json={"message": f"{path} does not match {body.get('sha')}"})
            self.files[path] = base64.b64decode(body["content"])
            return httpx.Response(201 if current is None else 200,
                                  json={"content": self._entry(path), "commit": {"message": body["message"]}})
        if request.method == "DELETE":
            if current is None:
                return httpx.Response(404, json={"message": "Not Found"})
            if body.get("sha") != current:
                return httpx.Response(409, json={"message": f"{path} does not match {body.get('sha')}"})
            del self.files[path]
            return httpx.Response(200, json={"content": None, "commit": {"message": body["message"]}})
        return httpx.Response(405)


@pytest.fixture
def github():
    return FakeGitHub({"docs/a.txt": b"hello", "docs/sub/b.txt": b"world"})


@pytest.fixture
def github_api(github):
    return GitHubContentsAPI.open("octo/files", "test-token", transport=httpx.MockTransport(github))


# ---------------------------------------------------------------------------
# CLI fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def cli_api(monkeypatch, docs_api):
    """Route every CLI command to *docs_api* instead of the network."""
    monkeypatch.setattr("ghfilestore.cli._helpers._make_api", lambda ctx: docs_api)
    return docs_api
