"""FastAPI dependencies: lazily created process-wide collaborators."""

from __future__ import annotations

from typing import Optional

from hommemade.config import settings
from hommemade.intake.pipeline import IntakePipeline
from hommemade.intake.rate_limit import RateLimiter, RateLimitSweeper
from hommemade.llm.chat import ChatService, build_chat_service
from hommemade.notifications.email import EmailNotifier, build_notifier
from hommemade.storage.blob import BlobStore, get_blob_store
from hommemade.storage.submissions import SubmissionRepository

_submit_limiter: Optional[RateLimiter] = None
_chat_limiter: Optional[RateLimiter] = None
_notifier: Optional[EmailNotifier] = None
_chat_service: Optional[ChatService] = None


def get_submit_limiter() -> RateLimiter:
    global _submit_limiter
    if _submit_limiter is None:
        _submit_limiter = RateLimiter(
            window_ms=settings.rate_limit_window_ms,
            max_attempts=settings.rate_limit_max,
            name="submit",
        )
    return _submit_limiter


def get_chat_limiter() -> RateLimiter:
    global _chat_limiter
    if _chat_limiter is None:
        _chat_limiter = RateLimiter(
            window_ms=settings.chat_rate_limit_window_ms,
            max_attempts=settings.chat_rate_limit_max,
            name="chat",
        )
    return _chat_limiter


def build_sweeper() -> RateLimitSweeper:
    return RateLimitSweeper(
        [get_submit_limiter(), get_chat_limiter()],
        interval_ms=settings.rate_limit_cleanup_interval_ms,
    )


async def get_store() -> BlobStore:
    return get_blob_store()


async def get_repository() -> SubmissionRepository:
    return SubmissionRepository(get_blob_store())


async def get_notifier() -> EmailNotifier:
    global _notifier
    if _notifier is None:
        _notifier = build_notifier()
    return _notifier


async def get_pipeline() -> IntakePipeline:
    return IntakePipeline(
        limiter=get_submit_limiter(),
        repository=await get_repository(),
        notifier=await get_notifier(),
        sanitize=settings.sanitize_input,
    )


async def get_chat_service() -> ChatService:
    global _chat_service
    if _chat_service is None:
        _chat_service = build_chat_service()
    return _chat_service
