"""Tests for blob storage and the submission repository."""

import json

import httpx
import pytest
from structlog.testing import capture_logs

from hommemade.errors import (
    AlreadyExistsError,
    FetchError,
    NotFoundError,
    StoreConfigurationError,
    StoreUnavailableError,
)
from hommemade.schemas.submission import StoredSubmission, Submission
from hommemade.storage.blob import MemoryBlobStore, VercelBlobStore
from hommemade.storage.submissions import (
    SubmissionRepository,
    sort_newest_first,
    submission_key,
)


def _submission(submission_id: str, timestamp: str, **fields) -> Submission:
    data = {
        "name": "Ana",
        "email": "ana@x.io",
        "brandName": "Ana Co",
        "whyNow": "launch",
        "successMetrics": "sales",
        "struggles": ["overwhelmed"],
        "communication": "email",
    }
    data.update(fields)
    return Submission(id=submission_id, timestamp=timestamp, **data)


class FlakyBlobStore(MemoryBlobStore):
    """Memory store whose get() fails for chosen keys."""

    def __init__(self, failing: set[str]):
        super().__init__()
        self.failing = failing

    async def get(self, url: str) -> bytes:
        if any(url.endswith(key) for key in self.failing):
            raise FetchError(url)
        return await super().get(url)


class TestSubmissionRepository:
    """Test write-once saves and resilient listing."""

    @pytest.mark.asyncio
    async def test_save_writes_pretty_json(self, repository, blob_store):
        submission = _submission("2024-05-01T12-00-00-123Z", "2024-05-01T12:00:00.123Z")
        blob = await repository.save(submission)

        assert blob.pathname == "submissions/2024-05-01T12-00-00-123Z.json"
        raw = await blob_store.get(blob.url)
        assert raw.decode().startswith("{\n  ")
        document = json.loads(raw)
        assert document["id"] == submission.id
        assert "phone" not in document

    @pytest.mark.asyncio
    async def test_save_never_overwrites(self, repository, blob_store):
        original = _submission("same-id", "2024-05-01T12:00:00.000Z", name="First")
        await repository.save(original)

        with pytest.raises(AlreadyExistsError):
            await repository.save(_submission("same-id", "2024-05-01T12:00:00.000Z", name="Second"))

        raw = await blob_store.get(f"{MemoryBlobStore.BASE_URL}/{submission_key('same-id')}")
        assert json.loads(raw)["name"] == "First"

    @pytest.mark.asyncio
    async def test_list_newest_first_with_blob_metadata(self, repository):
        await repository.save(_submission("a", "2024-05-01T10:00:00.000Z"))
        await repository.save(_submission("b", "2024-05-03T10:00:00.000Z"))
        await repository.save(_submission("c", "2024-05-02T10:00:00.000Z"))

        listed = await repository.list_all()
        assert [s.id for s in listed] == ["b", "c", "a"]
        assert listed[0].blobUrl.endswith("submissions/b.json")
        assert listed[0].blobSize > 0
        assert listed[0].blobUploadedAt

    @pytest.mark.asyncio
    async def test_list_skips_failing_entries(self):
        store = FlakyBlobStore(failing={"submissions/b.json"})
        repository = SubmissionRepository(store)
        for sid, ts in (("a", "2024-05-01T10:00:00.000Z"),
                        ("b", "2024-05-02T10:00:00.000Z"),
                        ("c", "2024-05-03T10:00:00.000Z")):
            await repository.save(_submission(sid, ts))

        with capture_logs() as logs:
            listed = await repository.list_all()

        assert [s.id for s in listed] == ["c", "a"]
        failures = [e for e in logs if e["event"] == "submission_load_failed"]
        assert len(failures) == 1
        assert failures[0]["pathname"] == "submissions/b.json"
        assert failures[0]["error_type"] == "FetchError"
        assert failures[0]["log_level"] == "error"

    @pytest.mark.asyncio
    async def test_list_skips_unparsable_documents(self, repository, blob_store):
        await repository.save(_submission("a", "2024-05-01T10:00:00.000Z"))
        await blob_store.put("submissions/broken.json", b"not json")
        await blob_store.put("submissions/array.json", b"[1, 2]")

        listed = await repository.list_all()
        assert [s.id for s in listed] == ["a"]

    @pytest.mark.asyncio
    async def test_list_empty(self, repository):
        assert await repository.list_all() == []

    @pytest.mark.asyncio
    async def test_lenient_documents_kept(self, repository, blob_store):
        await blob_store.put("submissions/legacy.json", json.dumps({"name": "Old"}).encode())
        listed = await repository.list_all()
        assert len(listed) == 1
        assert listed[0].id is None
        assert listed[0].model_dump()["name"] == "Old"


class TestSortNewestFirst:
    """Test ordering of dated and undated entries."""

    def test_undated_entries_last_ties_by_id(self):
        subs = [
            StoredSubmission(id="z"),
            StoredSubmission(id="old", timestamp="2024-01-01T00:00:00.000Z"),
            StoredSubmission(id="a", timestamp="garbage"),
            StoredSubmission(id="new", timestamp="2024-06-01T00:00:00.000Z"),
        ]
        assert [s.id for s in sort_newest_first(subs)] == ["new", "old", "a", "z"]


class TestVercelBlobStore:
    """Test the REST client against a mock transport."""

    def _store(self, handler, token: str = "tok") -> VercelBlobStore:
        return VercelBlobStore(token=token, api_url="https://blob.test", transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_put_sends_write_once_headers(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            return httpx.Response(200, json={"url": "https://blob.test/x.json", "pathname": "x.json"})

        blob = await self._store(handler).put("x.json", b"{}", content_type="application/json")

        assert seen["method"] == "PUT"
        assert seen["url"] == "https://blob.test/x.json"
        assert seen["headers"]["authorization"] == "Bearer tok"
        assert seen["headers"]["x-allow-overwrite"] == "0"
        assert seen["headers"]["x-add-random-suffix"] == "0"
        assert blob.url == "https://blob.test/x.json"
        assert blob.size == 2

    @pytest.mark.asyncio
    async def test_put_conflict_is_already_exists(self):
        store = self._store(lambda r: httpx.Response(400, json={"error": {"code": "blob_already_exists"}}))
        with pytest.raises(AlreadyExistsError):
            await store.put("x.json", b"{}")

    @pytest.mark.asyncio
    async def test_put_non_json_success_is_unavailable(self):
        store = self._store(lambda r: httpx.Response(200, text="<html>ok</html>"))
        with pytest.raises(StoreUnavailableError):
            await store.put("x.json", b"{}")

    @pytest.mark.asyncio
    async def test_put_server_error_is_unavailable(self):
        store = self._store(lambda r: httpx.Response(503, text="down"))
        with pytest.raises(StoreUnavailableError):
            await store.put("x.json", b"{}")

    @pytest.mark.asyncio
    async def test_missing_token(self):
        store = self._store(lambda r: httpx.Response(200, json={}), token="")
        with pytest.raises(StoreConfigurationError):
            await store.list("submissions/")

    @pytest.mark.asyncio
    async def test_list_follows_cursor(self):
        pages = {
            None: {"blobs": [{"url": "u1", "pathname": "submissions/1.json", "size": 10}],
                   "hasMore": True, "cursor": "next"},
            "next": {"blobs": [{"url": "u2", "pathname": "submissions/2.json", "size": 20}],
                     "hasMore": False},
        }

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["prefix"] == "submissions/"
            return httpx.Response(200, json=pages[request.url.params.get("cursor")])

        blobs = await self._store(handler).list("submissions/")
        assert [b.pathname for b in blobs] == ["submissions/1.json", "submissions/2.json"]

    @pytest.mark.asyncio
    async def test_get_errors(self):
        with pytest.raises(NotFoundError):
            await self._store(lambda r: httpx.Response(404)).get("https://blob.test/x.json")
        with pytest.raises(FetchError):
            await self._store(lambda r: httpx.Response(500)).get("https://blob.test/x.json")
