"""Exception hierarchy shared by storage, notifications and chat providers."""

from __future__ import annotations

from typing import Optional


class IntakeError(Exception):
    """Base class for application errors."""


class StoreError(IntakeError):
    """Blob store failure."""


class StoreUnavailableError(StoreError):
    """Transport, auth or server-side failure talking to the blob store."""


class StoreConfigurationError(StoreError):
    """Blob store is not configured (missing token)."""


class AlreadyExistsError(StoreError):
    """Write refused because the key exists and overwrite is disabled."""

    def __init__(self, key: str):
        super().__init__(f"Blob already exists: {key}")
        self.key = key


class NotFoundError(StoreError):
    """Requested blob does not exist."""


class FetchError(StoreError):
    """Blob could not be fetched (non-2xx or transport error)."""


class NotifyError(IntakeError):
    """Email provider failure. Always swallowed by the notifier."""


class NotifyTimeoutError(NotifyError):
    """Email provider did not answer in time."""


class UpstreamProviderError(IntakeError):
    """Chat provider failure, classified by status code.

    kind is one of: auth | rate_limit | timeout | upstream
    """

    def __init__(
        self,
        provider: str,
        kind: str = "upstream",
        status_code: Optional[int] = None,
        detail: str = "",
    ):
        super().__init__(f"{provider} error ({kind}, status={status_code}): {detail}")
        self.provider = provider
        self.kind = kind
        self.status_code = status_code
        self.detail = detail

    @classmethod
    def from_status(cls, provider: str, status_code: int, detail: str = "") -> "UpstreamProviderError":
        if status_code in (401, 403):
            kind = "auth"
        elif status_code == 429:
            kind = "rate_limit"
        else:
            kind = "upstream"
        return cls(provider, kind=kind, status_code=status_code, detail=detail)
