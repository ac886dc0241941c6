"""Fixed-window rate limiting per client key.

Counters live in a RateLimitStore. The only store shipped is process-local
memory: a restart or a second worker process starts every client from zero.
This is an abuse deterrent, not a security boundary.
"""

from __future__ import annotations

import asyncio
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

import structlog
from fastapi import Request

logger = structlog.get_logger()

DEFAULT_WINDOW_MS = 15 * 60 * 1000
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_CLEANUP_INTERVAL_MS = 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class RateLimitWindow:
    count: int
    reset_time: int  # epoch ms
    first_attempt: int  # epoch ms


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    count: int
    remaining: int
    reset_time: int
    retry_after_seconds: int = 0

    def headers(self) -> dict[str, str]:
        """X-RateLimit-* headers (plus Retry-After when denied)."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_time / 1000)),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after_seconds)
        return headers


class RateLimitStore(ABC):
    """Storage for per-key windows."""

    @abstractmethod
    def get(self, key: str) -> Optional[RateLimitWindow]: ...

    @abstractmethod
    def set(self, key: str, window: RateLimitWindow) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...

    @abstractmethod
    def items(self) -> Iterator[tuple[str, RateLimitWindow]]: ...

    @abstractmethod
    def sweep(self, now: int) -> int:
        """Drop windows whose reset time has passed. Returns removed count."""


class MemoryRateLimitStore(RateLimitStore):
    """Dict-backed store for a single server process."""

    def __init__(self):
        self._windows: dict[str, RateLimitWindow] = {}

    def get(self, key: str) -> Optional[RateLimitWindow]:
        return self._windows.get(key)

    def set(self, key: str, window: RateLimitWindow) -> None:
        self._windows[key] = window

    def delete(self, key: str) -> None:
        self._windows.pop(key, None)

    def items(self) -> Iterator[tuple[str, RateLimitWindow]]:
        return iter(list(self._windows.items()))

    def sweep(self, now: int) -> int:
        expired = [k for k, w in self._windows.items() if now > w.reset_time]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._windows)


class RateLimiter:
    """Fixed-window counter: max_attempts requests per window_ms per key."""

    def __init__(
        self,
        store: Optional[RateLimitStore] = None,
        window_ms: int = DEFAULT_WINDOW_MS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], int] = now_ms,
        name: str = "default",
    ):
        self.store = store if store is not None else MemoryRateLimitStore()
        self.window_ms = window_ms
        self.max_attempts = max_attempts
        self.clock = clock
        self.name = name

    def check(self, key: str) -> RateLimitDecision:
        """Count one attempt for key and decide whether it is allowed."""
        now = self.clock()
        window = self.store.get(key)

        if window is None or now > window.reset_time:
            window = RateLimitWindow(count=1, reset_time=now + self.window_ms, first_attempt=now)
        else:
            # denied attempts stop counting once over the limit
            window.count = min(window.count + 1, self.max_attempts + 1)
        self.store.set(key, window)

        if window.count > self.max_attempts:
            retry_after = math.ceil((window.reset_time - now) / 1000)
            logger.warning(
                "rate_limit_exceeded",
                limiter=self.name,
                key=key,
                count=window.count,
                reset_in_seconds=retry_after,
            )
            return RateLimitDecision(
                allowed=False,
                limit=self.max_attempts,
                count=window.count,
                remaining=0,
                reset_time=window.reset_time,
                retry_after_seconds=retry_after,
            )

        logger.debug(
            "rate_limit_checked",
            limiter=self.name,
            key=key,
            count=window.count,
            remaining=self.max_attempts - window.count,
        )
        return RateLimitDecision(
            allowed=True,
            limit=self.max_attempts,
            count=window.count,
            remaining=max(0, self.max_attempts - window.count),
            reset_time=window.reset_time,
        )

    def status(self, key: str) -> dict:
        """Current window for key without counting an attempt."""
        window = self.store.get(key)
        if window is None or self.clock() > window.reset_time:
            return {"count": 0, "remaining": self.max_attempts, "reset_time": None}
        return {
            "count": window.count,
            "remaining": max(0, self.max_attempts - window.count),
            "reset_time": window.reset_time,
        }

    def clear(self, key: str) -> None:
        self.store.delete(key)

    def stats(self) -> dict:
        now = self.clock()
        active = [w for _, w in self.store.items() if now <= w.reset_time]
        return {
            "active_keys": len(active),
            "total_attempts": sum(w.count for w in active),
            "blocked_keys": sum(1 for w in active if w.count > self.max_attempts),
            "window_ms": self.window_ms,
            "max_attempts": self.max_attempts,
        }

    def sweep(self) -> int:
        return self.store.sweep(self.clock())


class RateLimitSweeper:
    """Background task that evicts expired windows on a fixed interval."""

    def __init__(self, limiters: list[RateLimiter], interval_ms: int = DEFAULT_CLEANUP_INTERVAL_MS):
        self.limiters = limiters
        self.interval_ms = interval_ms
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    def sweep_once(self) -> int:
        removed = sum(limiter.sweep() for limiter in self.limiters)
        if removed:
            logger.debug("rate_limit_swept", removed=removed)
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_ms / 1000)
            try:
                self.sweep_once()
            except Exception as e:
                logger.error("rate_limit_sweep_failed", error=str(e), error_type=type(e).__name__)


def get_client_ip(request: Request) -> str:
    """Client key from proxy headers, else the socket peer, else "unknown"."""
    headers = request.headers

    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    for header in ("x-real-ip", "cf-connecting-ip", "x-client-ip"):
        value = headers.get(header)
        if value:
            return value.strip()

    if request.client and request.client.host:
        return request.client.host
    return "unknown"
