"""HTTP-level tests for the FastAPI app with in-memory collaborators."""

import asyncio
import base64
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from hommemade.api.deps import (
    get_chat_limiter,
    get_chat_service,
    get_pipeline,
    get_repository,
    get_store,
)
from hommemade.config import settings
from hommemade.errors import UpstreamProviderError
from hommemade.intake.pipeline import IntakePipeline
from hommemade.intake.rate_limit import RateLimiter
from hommemade.llm.chat import ChatService
from hommemade.main import app
from hommemade.schemas.submission import Submission
from hommemade.storage.blob import MemoryBlobStore
from hommemade.storage.submissions import SubmissionRepository


def _basic(user: str, password: str) -> dict:
    token = base64.b64encode(f"{user}:{password}".encode()).decode()
    return {"Authorization": f"Basic {token}"}


@pytest.fixture
def store():
    return MemoryBlobStore()


@pytest.fixture
def client(store, notifier, monkeypatch):
    """TestClient with memory storage, a fresh limiter and a mock notifier."""
    monkeypatch.setattr(settings, "environment", "development")
    monkeypatch.setattr(settings, "admin_username", "")
    monkeypatch.setattr(settings, "admin_password", "")

    repository = SubmissionRepository(store)
    pipeline = IntakePipeline(
        limiter=RateLimiter(window_ms=15 * 60 * 1000, max_attempts=5),
        repository=repository,
        notifier=notifier,
    )
    chat_limiter = RateLimiter(window_ms=60_000, max_attempts=20)

    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_chat_limiter] = lambda: chat_limiter
    yield TestClient(app)
    app.dependency_overrides.clear()


async def _seed(store: MemoryBlobStore, *names: str) -> None:
    repository = SubmissionRepository(store)
    for i, name in enumerate(names):
        await repository.save(Submission(
            id=f"2024-05-0{i + 1}T10-00-00-000Z",
            timestamp=f"2024-05-0{i + 1}T10:00:00.000Z",
            name=name,
            email="a@x.io",
            brandName="Brand, Inc",
            whyNow="launch",
            successMetrics="sales",
            struggles=["overwhelmed"],
            communication="email",
        ))


class TestSubmitEndpoint:
    """Test POST /api/submit."""

    def test_submit_success(self, client, valid_payload):
        response = client.post("/api/submit", json=valid_payload)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["submissionId"]
        assert response.headers["x-ratelimit-limit"] == "5"
        assert response.headers["x-ratelimit-remaining"] == "4"

    def test_get_not_allowed(self, client):
        response = client.get("/api/submit")
        assert response.status_code == 405
        assert response.json()["error"] == "Method not allowed"

    def test_validation_errors(self, client):
        response = client.post("/api/submit", json={"name": "Ana"})
        assert response.status_code == 400
        assert "email" in response.json()["errors"]

    def test_malformed_json(self, client):
        response = client.post("/api/submit", content=b"{not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert "body" in response.json()["errors"]

    def test_sixth_request_rate_limited(self, client, valid_payload):
        for _ in range(5):
            assert client.post("/api/submit", json=valid_payload).status_code == 200

        response = client.post("/api/submit", json=valid_payload)
        assert response.status_code == 429
        assert int(response.headers["retry-after"]) > 0


class TestAdminEndpoints:
    """Test admin listing, export and dashboard."""

    def test_list_submissions_newest_first(self, client, store):
        asyncio.run(_seed(store, "Older", "Newer"))
        response = client.get("/api/admin/submissions")

        assert response.status_code == 200
        assert [s["name"] for s in response.json()] == ["Newer", "Older"]
        assert response.json()[0]["blobUrl"].startswith("memory://blob/submissions/")

    def test_export_csv(self, client, store):
        asyncio.run(_seed(store, "Ana", "Ben"))
        response = client.get("/api/admin/export-csv")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["content-disposition"].startswith('attachment; filename="submissions-')
        lines = response.text.splitlines()
        assert len(lines) == 3
        assert lines[0].startswith("Submission ID,Timestamp")
        assert '"Brand, Inc"' in lines[1]

    def test_dashboard_renders(self, client, store):
        asyncio.run(_seed(store, "Ana <b>"))
        response = client.get("/admin")

        assert response.status_code == 200
        assert "Ana &lt;b&gt;" in response.text
        assert "overwhelmed" in response.text

    def test_requires_credentials_when_configured(self, client, monkeypatch):
        monkeypatch.setattr(settings, "admin_username", "admin")
        monkeypatch.setattr(settings, "admin_password", "pw")

        response = client.get("/api/admin/submissions")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == 'Basic realm="Admin Dashboard"'
        assert response.json()["error"] == "Unauthorized"

        assert client.get("/api/admin/submissions", headers=_basic("admin", "nope")).status_code == 401
        assert client.get("/api/admin/submissions", headers=_basic("admin", "pw")).status_code == 200

    def test_unconfigured_auth_refused_outside_development(self, client, monkeypatch):
        monkeypatch.setattr(settings, "admin_username", "")
        monkeypatch.setattr(settings, "admin_password", "")
        monkeypatch.setattr(settings, "environment", "production")

        response = client.get("/api/admin/export-csv")
        assert response.status_code == 503
        assert response.json()["message"] == "Admin authentication not configured"


class TestUploadEndpoint:
    """Test POST /api/upload."""

    def _body(self, file_name: str = "brief.pdf", content: bytes = b"%PDF-1.4", **extra) -> dict:
        return {"file": base64.b64encode(content).decode(), "fileName": file_name, **extra}

    def test_upload_stored_under_submission_id(self, client, store):
        response = client.post("/api/upload", json=self._body(submissionId="sub-1"))

        assert response.status_code == 200
        file = response.json()["file"]
        assert file["pathname"] == "uploads/sub-1-brief.pdf"
        assert file["fileName"] == "brief.pdf"
        assert file["size"] == 8

    def test_disallowed_type(self, client):
        response = client.post("/api/upload", json=self._body("run.exe"))
        assert response.status_code == 400
        assert "pdf" in response.json()["allowedTypes"]

    def test_too_large(self, client, monkeypatch):
        monkeypatch.setattr(settings, "max_file_size", 4)
        response = client.post("/api/upload", json=self._body())
        assert response.status_code == 400
        assert response.json()["maxSize"] == 4

    def test_disabled(self, client, monkeypatch):
        monkeypatch.setattr(settings, "enable_file_upload", False)
        assert client.post("/api/upload", json=self._body()).status_code == 403

    def test_missing_fields(self, client):
        response = client.post("/api/upload", json={"fileName": "a.pdf"})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"


class TestChatEndpoint:
    """Test POST /api/chat."""

    def _service(self, reply: str = "Hello!", side_effect=None) -> ChatService:
        provider = AsyncMock()
        provider.name = "openrouter"
        provider.complete = AsyncMock(return_value=reply, side_effect=side_effect)
        return ChatService(primary=provider)

    def test_reply(self, client):
        app.dependency_overrides[get_chat_service] = lambda: self._service()
        response = client.post("/api/chat", json={
            "messages": [{"role": "user", "content": "hi"}],
            "botType": "creative-director",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Hello!"
        assert body["botType"] == "creative-director"
        assert body["provider"] == "openrouter"

    def test_invalid_request(self, client):
        app.dependency_overrides[get_chat_service] = lambda: self._service()
        response = client.post("/api/chat", json={"messages": []})
        assert response.status_code == 400

    def test_auth_error_mapped(self, client):
        error = UpstreamProviderError("openrouter", kind="auth", status_code=401)
        app.dependency_overrides[get_chat_service] = lambda: self._service(side_effect=error)
        response = client.post("/api/chat", json={
            "messages": [{"role": "user", "content": "hi"}],
            "botType": "creative-director",
        })

        assert response.status_code == 500
        assert response.json()["code"] == "AUTH_ERROR"

    def test_no_provider(self, client):
        app.dependency_overrides[get_chat_service] = lambda: ChatService(None)
        response = client.post("/api/chat", json={
            "messages": [{"role": "user", "content": "hi"}],
            "botType": "creative-director",
        })
        assert response.status_code == 500
        assert response.json()["code"] == "CONFIG_ERROR"


class TestHealthEndpoints:
    """Test /health and /api/env-check."""

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "ok"

    def test_env_check_hides_secrets(self, client, monkeypatch):
        monkeypatch.setattr(settings, "resend_api_key", "re_super_secret")
        monkeypatch.setattr(settings, "blob_read_write_token", "vercel_blob_secret")

        response = client.get("/api/env-check")

        assert response.status_code == 200
        assert response.json()["resendKey"] is True
        assert response.json()["blobToken"] is True
        assert "secret" not in response.text


class TestErrorBodies:
    """Test that framework-level errors use the {error, message} body."""

    @pytest.mark.parametrize("method, path", [
        ("GET", "/api/chat"),
        ("POST", "/api/admin/export-csv"),
        ("GET", "/api/upload"),
    ])
    def test_method_not_allowed(self, client, method, path):
        response = client.request(method, path)

        assert response.status_code == 405
        body = response.json()
        assert body["error"] == "Method Not Allowed"
        assert body["message"] == "Method Not Allowed"

    def test_unknown_route(self, client):
        response = client.get("/api/nope")

        assert response.status_code == 404
        assert set(response.json()) == {"error", "message"}
