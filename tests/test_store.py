"""Tests for FileStore: uploads, deletes, content retrieval, listings."""

import base64
import zipfile

import pytest

from ghfilestore import (
    ConflictError,
    DataIntegrityError,
    FileKind,
    FileStore,
    Found,
    MemoryContentAPI,
    NotFoundError,
    OverwritePolicy,
    RemoteItem,
    TransportError,
    UploadStatus,
    normalize_content,
)


class RecordingAPI(MemoryContentAPI):
    """Memory API that records the revision sent with every put."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.puts = []

    async def put(self, path, *, message, encoded, revision=None):
        self.puts.append((path, message, revision))
        return await super().put(path, message=message, encoded=encoded, revision=revision)


class RacingAPI(MemoryContentAPI):
    """Another writer changes the file right after every lookup."""

    async def get(self, path):
        lookup = await super().get(path)
        if path in self._files:
            self._store(path, b"changed by someone else")
        return lookup


class TestNormalizeContent:
    def test_bytes_are_encoded(self):
        assert normalize_content(b"hello") == "aGVsbG8="

    def test_plain_base64_passes_through(self):
        assert normalize_content("aGVsbG8=") == "aGVsbG8="

    def test_strips_data_uri_envelope(self):
        assert normalize_content("data:text/plain;base64,aGVsbG8=") == "aGVsbG8="

    def test_strips_whitespace(self):
        assert normalize_content("aGVs\nbG8=\n") == "aGVsbG8="

    def test_rejects_empty(self):
        with pytest.raises(ValueError):
            normalize_content(b"")
        with pytest.raises(ValueError):
            normalize_content("")

    def test_rejects_empty_payload_after_envelope(self):
        with pytest.raises(ValueError):
            normalize_content("data:text/plain;base64,")

    def test_rejects_data_uri_without_base64(self):
        with pytest.raises(ValueError):
            normalize_content("data:text/plain,hello")

    def test_rejects_malformed_base64(self):
        with pytest.raises(ValueError):
            normalize_content("not base64!")


class TestUpload:
    @pytest.mark.asyncio
    async def test_create(self, store, api):
        outcome = await store.upload(b"hello", "docs", "a.txt")
        assert outcome.status == UploadStatus.CREATED
        assert outcome.path == "docs/a.txt"
        assert outcome.revision == api.revision("docs/a.txt")
        assert api.files == {"docs/a.txt": b"hello"}

    @pytest.mark.asyncio
    async def test_create_at_root(self, store, api):
        outcome = await store.upload(b"x", "", "top.txt")
        assert outcome.path == "top.txt"
        assert api.files == {"top.txt": b"x"}

    @pytest.mark.asyncio
    async def test_leading_and_trailing_slashes(self, store, api):
        outcome = await store.upload(b"x", "/docs/", "a.txt")
        assert outcome.path == "docs/a.txt"

    @pytest.mark.asyncio
    async def test_reject_twice_skips_second(self, store, api):
        first = await store.upload(b"data", "x", "f.txt", OverwritePolicy.REJECT)
        before_files = api.files
        before_ops = list(api.operations)

        second = await store.upload(b"data", "x", "f.txt", OverwritePolicy.REJECT)

        assert first.status == UploadStatus.CREATED
        assert second.status == UploadStatus.SKIPPED_EXISTS
        assert second.revision == first.revision
        assert api.files == before_files
        assert api.operations == before_ops

    @pytest.mark.asyncio
    async def test_reject_leaves_different_content_alone(self, store, api):
        await store.upload(b"original", "x", "f.txt")
        outcome = await store.upload(b"replacement", "x", "f.txt", overwrite=False)
        assert outcome.status == UploadStatus.SKIPPED_EXISTS
        assert api.files["x/f.txt"] == b"original"

    @pytest.mark.asyncio
    async def test_allow_twice_creates_then_updates(self, store, api):
        first = await store.upload(b"v1", "x", "f.txt", OverwritePolicy.ALLOW)
        second = await store.upload(b"v2", "x", "f.txt", OverwritePolicy.ALLOW)
        assert first.status == UploadStatus.CREATED
        assert second.status == UploadStatus.UPDATED
        assert second.revision != first.revision
        assert api.files["x/f.txt"] == b"v2"
        assert api.operations == [("create", "x/f.txt"), ("update", "x/f.txt")]

    @pytest.mark.asyncio
    async def test_same_content_update_keeps_revision(self, store):
        first = await store.upload(b"same", "x", "f.txt")
        second = await store.upload(b"same", "x", "f.txt")
        assert second.status == UploadStatus.UPDATED
        assert second.revision == first.revision

    @pytest.mark.asyncio
    async def test_policy_accepts_strings(self, store):
        await store.upload(b"a", "x", "f.txt")
        outcome = await store.upload(b"b", "x", "f.txt", "reject")
        assert outcome.status == UploadStatus.SKIPPED_EXISTS

    @pytest.mark.asyncio
    async def test_create_sends_no_revision(self):
        api = RecordingAPI()
        await FileStore(api).upload(b"a", "x", "f.txt")
        assert api.puts == [("x/f.txt", "Upload f.txt", None)]

    @pytest.mark.asyncio
    async def test_update_sends_current_revision(self):
        api = RecordingAPI({"x/f.txt": b"old"})
        current = api.revision("x/f.txt")
        await FileStore(api).upload(b"new", "x", "f.txt")
        assert api.puts == [("x/f.txt", "Update f.txt", current)]

    @pytest.mark.asyncio
    async def test_custom_message(self):
        api = RecordingAPI()
        await FileStore(api).upload(b"a", "x", "f.txt", message="add f")
        assert api.puts[0][1] == "add f"

    @pytest.mark.asyncio
    async def test_enveloped_payload_matches_plain_payload(self, store, api):
        payload = base64.b64encode(b"\x00\x01binary\xff").decode()
        a = await store.upload(f"data:application/octet-stream;base64,{payload}", "x", "a.bin")
        b = await store.upload(payload, "x", "b.bin")
        assert api.files["x/a.bin"] == api.files["x/b.bin"] == b"\x00\x01binary\xff"
        assert a.revision == b.revision

    @pytest.mark.asyncio
    async def test_bytes_and_base64_store_same_content(self, store, api):
        await store.upload(b"hello", "x", "raw.txt")
        await store.upload("aGVsbG8=", "x", "enc.txt")
        assert api.files["x/raw.txt"] == api.files["x/enc.txt"]

    @pytest.mark.asyncio
    async def test_empty_content_rejected_before_remote_call(self, store, api):
        with pytest.raises(ValueError):
            await store.upload(b"", "x", "f.txt")
        assert api.operations == []

    @pytest.mark.asyncio
    async def test_name_with_slash_rejected(self, store):
        with pytest.raises(ValueError):
            await store.upload(b"a", "x", "a/b.txt")

    @pytest.mark.asyncio
    async def test_dotdot_path_rejected(self, store):
        with pytest.raises(ValueError):
            await store.upload(b"a", "../x", "f.txt")

    @pytest.mark.asyncio
    async def test_upload_onto_directory(self, docs_store):
        with pytest.raises(IsADirectoryError):
            await docs_store.upload(b"a", "docs", "sub")

    @pytest.mark.asyncio
    async def test_stale_revision_is_conflict(self):
        api = RacingAPI({"x/f.txt": b"old"})
        with pytest.raises(ConflictError):
            await FileStore(api).upload(b"new", "x", "f.txt")
        assert api.files["x/f.txt"] == b"changed by someone else"
        assert api.operations == []

    @pytest.mark.asyncio
    async def test_lookup_failure_is_not_treated_as_missing(self):
        class RateLimited(MemoryContentAPI):
            async def get(self, path):
                raise TransportError("GET failed with 403: rate limited", status=403)

        api = RateLimited()
        with pytest.raises(TransportError) as excinfo:
            await FileStore(api).upload(b"a", "x", "f.txt")
        assert excinfo.value.status == 403
        assert api.operations == []


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_existing(self, docs_store, docs_api):
        revision = docs_api.revision("docs/a.txt")
        outcome = await docs_store.delete_file("docs", "a.txt")
        assert outcome.path == "docs/a.txt"
        assert outcome.revision == revision
        assert "docs/a.txt" not in docs_api.files
        assert docs_api.operations == [("delete", "docs/a.txt")]

    @pytest.mark.asyncio
    async def test_delete_never_created_is_not_found(self, store):
        with pytest.raises(NotFoundError) as excinfo:
            await store.delete_file("nowhere", "ghost.txt")
        assert not isinstance(excinfo.value, ConflictError)
        assert isinstance(excinfo.value, FileNotFoundError)

    @pytest.mark.asyncio
    async def test_delete_directory(self, docs_store):
        with pytest.raises(IsADirectoryError):
            await docs_store.delete_file("docs", "sub")

    @pytest.mark.asyncio
    async def test_delete_stale_revision(self):
        api = RacingAPI({"x/f.txt": b"old"})
        with pytest.raises(ConflictError):
            await FileStore(api).delete_file("x", "f.txt")
        assert "x/f.txt" in api.files

    @pytest.mark.asyncio
    async def test_delete_then_upload_creates(self, docs_store):
        await docs_store.delete_file("docs", "a.txt")
        outcome = await docs_store.upload(b"again", "docs", "a.txt")
        assert outcome.status == UploadStatus.CREATED


class TestFetch:
    @pytest.mark.asyncio
    async def test_fetch_metadata(self, docs_store, docs_api):
        item = await docs_store.fetch_metadata("docs", "a.txt")
        assert item.path == "docs/a.txt"
        assert item.descriptor.kind == FileKind.FILE
        assert item.revision == docs_api.revision("docs/a.txt")
        assert item.size == 5

    @pytest.mark.asyncio
    async def test_fetch_metadata_missing(self, docs_store):
        with pytest.raises(NotFoundError):
            await docs_store.fetch_metadata("docs", "nope.txt")

    @pytest.mark.asyncio
    async def test_exists(self, docs_store):
        assert await docs_store.exists("docs", "a.txt")
        assert await docs_store.exists("docs", "sub")
        assert not await docs_store.exists("docs", "nope.txt")

    @pytest.mark.asyncio
    async def test_fetch_content_inline(self, docs_store):
        content = await docs_store.fetch_content("docs", "a.txt")
        assert content.name == "a.txt"
        assert content.url is None
        assert content.data == b"hello"

    @pytest.mark.asyncio
    async def test_fetch_content_falls_back_to_url(self):
        store = FileStore(MemoryContentAPI({"big.bin": b"x" * 100}, inline_limit=10))
        content = await store.fetch_content("", "big.bin")
        assert content.encoded is None
        assert content.url is not None
        with pytest.raises(ValueError):
            content.data

    @pytest.mark.asyncio
    async def test_fetch_content_without_content_or_url(self):
        class Broken(MemoryContentAPI):
            async def get(self, path):
                lookup = await super().get(path)
                desc = lookup.item.descriptor
                return Found(RemoteItem(type(desc)(desc.name, desc.path, desc.kind, desc.revision)))

        store = FileStore(Broken({"x/f.txt": b"data"}))
        with pytest.raises(DataIntegrityError):
            await store.fetch_content("x", "f.txt")

    @pytest.mark.asyncio
    async def test_fetch_content_of_directory(self, docs_store):
        with pytest.raises(IsADirectoryError):
            await docs_store.fetch_content("docs", "sub")

    @pytest.mark.asyncio
    async def test_read_inline(self, docs_store):
        assert await docs_store.read("docs/sub", "b.txt") == b"world"

    @pytest.mark.asyncio
    async def test_read_large_file_via_url(self):
        data = bytes(range(256)) * 40
        store = FileStore(MemoryContentAPI({"big.bin": data}, inline_limit=100))
        assert await store.read("", "big.bin") == data


class TestListing:
    @pytest.mark.asyncio
    async def test_list_root(self, docs_store):
        entries = await docs_store.list_files()
        assert [(e.name, e.kind) for e in entries] == [("docs", FileKind.DIRECTORY)]

    @pytest.mark.asyncio
    async def test_list_one_level(self, docs_store):
        entries = await docs_store.list_files("docs")
        assert [(e.path, e.is_dir) for e in entries] == [("docs/a.txt", False), ("docs/sub", True)]

    @pytest.mark.asyncio
    async def test_list_missing(self, docs_store):
        with pytest.raises(NotFoundError):
            await docs_store.list_files("missing")

    @pytest.mark.asyncio
    async def test_list_file(self, docs_store):
        with pytest.raises(NotADirectoryError):
            await docs_store.list_files("docs/a.txt")

    @pytest.mark.asyncio
    async def test_list_all_files_scenario(self, docs_store):
        files = await docs_store.list_all_files("docs")
        assert sorted(f.path for f in files) == ["docs/a.txt", "docs/sub/b.txt"]
        assert all(not f.is_dir for f in files)
        assert "docs/sub" not in [f.path for f in files]

    @pytest.mark.asyncio
    async def test_walk_is_lazy_iterator(self, docs_store):
        names = [f.name async for f in docs_store.walk("docs")]
        assert names == ["a.txt", "b.txt"]

    @pytest.mark.asyncio
    async def test_listing_reflects_new_uploads(self, docs_store):
        before = await docs_store.list_all_files("docs")
        await docs_store.upload(b"c", "docs/sub/deeper", "c.txt")
        after = await docs_store.list_all_files("docs")
        assert len(after) == len(before) + 1


class TestArchive:
    @pytest.mark.asyncio
    async def test_download_archive(self, docs_store, tmp_path):
        out = tmp_path / "docs.zip"
        result = await docs_store.download_archive("docs", out)
        assert result.count == 2
        with zipfile.ZipFile(out) as zf:
            assert zf.read("a.txt") == b"hello"
            assert zf.read("b.txt") == b"world"

    @pytest.mark.asyncio
    async def test_download_all_creates_storage_dir(self, docs_store, tmp_path):
        storage = tmp_path / "nested" / "out"
        target = await docs_store.download_all("docs", storage)
        assert target == storage / "output.zip"
        with zipfile.ZipFile(target) as zf:
            assert sorted(zf.namelist()) == ["a.txt", "b.txt"]


class TestContextManager:
    @pytest.mark.asyncio
    async def test_async_with_closes_api(self):
        closed = []

        class Closable(MemoryContentAPI):
            async def aclose(self):
                closed.append(True)

        async with FileStore(Closable()) as store:
            await store.upload(b"a", "", "f.txt")
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_api_without_aclose(self, store):
        async with store:
            pass
