"""Test fixtures and configuration."""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from hommemade.intake.pipeline import IntakePipeline
from hommemade.intake.rate_limit import RateLimiter
from hommemade.notifications.email import NotifyOutcome
from hommemade.storage.blob import MemoryBlobStore
from hommemade.storage.submissions import SubmissionRepository


class FakeClock:
    """Controllable epoch-millisecond clock for rate limiter tests."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class SteppingClock:
    """UTC datetime clock that moves forward by step on each call."""

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        moment = self.current
        self.current += self.step
        return moment


@pytest.fixture
def valid_payload():
    """A complete, valid onboarding form payload."""
    return {
        "name": "Ana",
        "email": "ana@x.io",
        "brandName": "Ana Co",
        "whyNow": "launch",
        "successMetrics": "sales",
        "struggles": ["overwhelmed"],
        "communication": "email",
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return RateLimiter(window_ms=15 * 60 * 1000, max_attempts=5, clock=clock, name="test")


@pytest.fixture
def blob_store():
    return MemoryBlobStore()


@pytest.fixture
def repository(blob_store):
    return SubmissionRepository(blob_store)


@pytest.fixture
def notifier():
    """Notifier mock that reports a successful send."""
    mock = AsyncMock()
    mock.notify = AsyncMock(return_value=NotifyOutcome(status="sent", provider="resend"))
    return mock


@pytest.fixture
def submit_clock():
    return SteppingClock(datetime(2024, 5, 1, 12, 0, 0, 123000, tzinfo=timezone.utc))


@pytest.fixture
def pipeline(limiter, repository, notifier, submit_clock):
    return IntakePipeline(
        limiter=limiter,
        repository=repository,
        notifier=notifier,
        clock=submit_clock,
    )
