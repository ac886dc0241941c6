"""Blob storage: key -> bytes object store with list-by-prefix."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import httpx
import structlog

from hommemade.config import settings
from hommemade.errors import (
    AlreadyExistsError,
    FetchError,
    NotFoundError,
    StoreConfigurationError,
    StoreUnavailableError,
)

logger = structlog.get_logger()

BLOB_API_VERSION = "7"
LIST_PAGE_SIZE = 1000


@dataclass
class BlobObject:
    url: str
    pathname: str
    size: Optional[int] = None
    uploaded_at: Optional[str] = None


class BlobStore(ABC):
    """Object store interface used by repositories and the upload endpoint."""

    @abstractmethod
    async def put(
        self,
        key: str,
        data: bytes,
        *,
        access: str = "private",
        allow_overwrite: bool = False,
        content_type: str = "application/octet-stream",
    ) -> BlobObject:
        """Store data under key.

        Raises:
            AlreadyExistsError: key exists and allow_overwrite is False
            StoreUnavailableError: transport, auth or server failure
        """

    @abstractmethod
    async def list(self, prefix: str) -> list[BlobObject]:
        """All objects whose pathname starts with prefix."""

    @abstractmethod
    async def get(self, url: str) -> bytes:
        """Fetch one object by URL.

        Raises:
            NotFoundError: object does not exist
            FetchError: any other failure
        """


class MemoryBlobStore(BlobStore):
    """Process-local store for development (blob_backend=memory) and tests."""

    BASE_URL = "memory://blob"

    def __init__(self):
        self._objects: dict[str, tuple[bytes, BlobObject]] = {}

    def _url(self, key: str) -> str:
        return f"{self.BASE_URL}/{key}"

    async def put(
        self,
        key: str,
        data: bytes,
        *,
        access: str = "private",
        allow_overwrite: bool = False,
        content_type: str = "application/octet-stream",
    ) -> BlobObject:
        if key in self._objects and not allow_overwrite:
            raise AlreadyExistsError(key)
        obj = BlobObject(
            url=self._url(key),
            pathname=key,
            size=len(data),
            uploaded_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        )
        self._objects[key] = (data, obj)
        return obj

    async def list(self, prefix: str) -> list[BlobObject]:
        return [obj for key, (_, obj) in sorted(self._objects.items()) if key.startswith(prefix)]

    async def get(self, url: str) -> bytes:
        key = url.removeprefix(f"{self.BASE_URL}/")
        if key not in self._objects:
            raise NotFoundError(url)
        return self._objects[key][0]


class VercelBlobStore(BlobStore):
    """Hosted blob store over its REST API."""

    def __init__(
        self,
        token: str,
        api_url: str = "https://blob.vercel-storage.com",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        if not self.token:
            raise StoreConfigurationError("BLOB_READ_WRITE_TOKEN is not configured")
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
            headers={
                "authorization": f"Bearer {self.token}",
                "x-api-version": BLOB_API_VERSION,
            },
        )

    async def put(
        self,
        key: str,
        data: bytes,
        *,
        access: str = "private",
        allow_overwrite: bool = False,
        content_type: str = "application/octet-stream",
    ) -> BlobObject:
        headers = {
            "x-vercel-blob-access": access,
            "x-add-random-suffix": "0",
            "x-allow-overwrite": "1" if allow_overwrite else "0",
            "x-content-type": content_type,
            "x-cache-control-max-age": "3600",
        }
        try:
            async with self._client() as client:
                response = await client.put(f"{self.api_url}/{key}", content=data, headers=headers)
        except httpx.HTTPError as e:
            logger.error("blob_put_transport_error", key=key, error=str(e))
            raise StoreUnavailableError(f"put {key}: {e}") from e

        if response.status_code >= 400:
            if _is_already_exists(response):
                raise AlreadyExistsError(key)
            logger.error("blob_put_failed", key=key, status=response.status_code)
            raise StoreUnavailableError(f"put {key}: HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            logger.error("blob_put_bad_response", key=key, status=response.status_code)
            raise StoreUnavailableError(f"put {key}: malformed response") from e
        return BlobObject(
            url=body.get("url", ""),
            pathname=body.get("pathname", key),
            size=len(data),
            uploaded_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        )

    async def list(self, prefix: str) -> list[BlobObject]:
        objects: list[BlobObject] = []
        cursor: Optional[str] = None

        try:
            async with self._client() as client:
                while True:
                    params = {"prefix": prefix, "limit": str(LIST_PAGE_SIZE)}
                    if cursor:
                        params["cursor"] = cursor
                    response = await client.get(self.api_url, params=params)
                    if response.status_code >= 400:
                        logger.error("blob_list_failed", prefix=prefix, status=response.status_code)
                        raise StoreUnavailableError(f"list {prefix}: HTTP {response.status_code}")

                    body = response.json()
                    for blob in body.get("blobs", []):
                        objects.append(
                            BlobObject(
                                url=blob.get("url", ""),
                                pathname=blob.get("pathname", ""),
                                size=blob.get("size"),
                                uploaded_at=blob.get("uploadedAt"),
                            )
                        )
                    cursor = body.get("cursor")
                    if not body.get("hasMore") or not cursor:
                        break
        except httpx.HTTPError as e:
            logger.error("blob_list_transport_error", prefix=prefix, error=str(e))
            raise StoreUnavailableError(f"list {prefix}: {e}") from e

        return objects

    async def get(self, url: str) -> bytes:
        try:
            async with self._client() as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise FetchError(f"get {url}: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(url)
        if response.status_code >= 400:
            raise FetchError(f"get {url}: HTTP {response.status_code}")
        return response.content


def _is_already_exists(response: httpx.Response) -> bool:
    if response.status_code == 409:
        return True
    try:
        code = response.json().get("error", {}).get("code", "")
    except (ValueError, AttributeError):
        return False
    return code in ("blob_already_exists", "already_exists")


_store: Optional[BlobStore] = None


def get_blob_store() -> BlobStore:
    """Get or create the configured blob store (lazy init)."""
    global _store
    if _store is None:
        if settings.blob_backend == "memory":
            _store = MemoryBlobStore()
            logger.warning("blob_store_memory_backend")
        else:
            _store = VercelBlobStore(
                token=settings.blob_read_write_token,
                api_url=settings.blob_api_url,
                timeout=settings.blob_timeout_seconds,
            )
    return _store
