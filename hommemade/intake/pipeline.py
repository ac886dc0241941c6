"""Intake pipeline: rate limit, validate, sanitize, persist, notify.

Persistence is the hard requirement: once the document is stored the client
gets a 200, whatever happens to the notification email.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional

import structlog
from pydantic import ValidationError

from hommemade.errors import AlreadyExistsError, StoreError
from hommemade.intake.rate_limit import RateLimiter
from hommemade.intake.validation import sanitize_submission, validate_submission
from hommemade.notifications.email import EmailNotifier
from hommemade.schemas.submission import Submission
from hommemade.storage.submissions import SubmissionRepository

logger = structlog.get_logger()

PERSIST_ATTEMPTS = 3


class IntakeState(str, Enum):
    RECEIVED = "received"
    RATE_CHECKED = "rate_checked"
    VALIDATED = "validated"
    SANITIZED = "sanitized"
    PERSISTED = "persisted"
    NOTIFIED = "notified"
    NOTIFY_FAILED = "notify_failed"
    RESPONDED = "responded"

    # Terminal failures
    REJECTED_METHOD = "rejected_method"
    REJECTED_RATE_LIMITED = "rejected_rate_limited"
    REJECTED_INVALID = "rejected_invalid"
    FAILED_PERSIST = "failed_persist"


@dataclass
class IntakeResult:
    state: IntakeState
    status_code: int
    body: dict
    headers: dict[str, str] = field(default_factory=dict)
    submission: Optional[Submission] = None
    trail: list[IntakeState] = field(default_factory=list)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def make_submission_id(timestamp: str) -> str:
    """Timestamp with ':' and '.' replaced by '-'."""
    return timestamp.replace(":", "-").replace(".", "-")


class IntakePipeline:
    """Handles one inbound form submission end to end."""

    def __init__(
        self,
        limiter: RateLimiter,
        repository: SubmissionRepository,
        notifier: EmailNotifier,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[str], str] = make_submission_id,
        sanitize: bool = True,
    ):
        self.limiter = limiter
        self.repository = repository
        self.notifier = notifier
        self.clock = clock
        self.id_factory = id_factory
        self.sanitize = sanitize

    async def handle(self, method: str, client_id: str, payload: Any) -> IntakeResult:
        trail = [IntakeState.RECEIVED]

        if method.upper() != "POST":
            return self._finish(
                trail, IntakeState.REJECTED_METHOD, 405,
                {"error": "Method not allowed", "message": "Only POST requests are accepted"},
            )

        decision = self.limiter.check(client_id)
        rate_headers = decision.headers()
        if not decision.allowed:
            return self._finish(
                trail, IntakeState.REJECTED_RATE_LIMITED, 429,
                {
                    "error": "Rate limit exceeded",
                    "message": (
                        "Too many form submissions. Please try again in "
                        f"{decision.retry_after_seconds} seconds."
                    ),
                    "retryAfter": decision.retry_after_seconds,
                },
                headers=rate_headers,
            )
        trail.append(IntakeState.RATE_CHECKED)

        validation = validate_submission(payload)
        if validation.is_valid:
            cleaned = sanitize_submission(payload, clean=self.sanitize)
            # fields that sanitize down to nothing must fail like missing ones
            validation = validate_submission(cleaned)

        if not validation.is_valid:
            logger.info("submission_invalid", client_id=client_id, fields=sorted(validation.errors))
            return self._finish(
                trail, IntakeState.REJECTED_INVALID, 400,
                {
                    "error": "Validation failed",
                    "message": "Please check your form data",
                    "errors": validation.errors,
                },
                headers=rate_headers,
            )
        trail.extend([IntakeState.VALIDATED, IntakeState.SANITIZED])

        try:
            submission = await self._persist(cleaned)
        except ValidationError as e:
            logger.warning("submission_model_rejected", client_id=client_id, error=str(e))
            return self._finish(
                trail, IntakeState.REJECTED_INVALID, 400,
                {
                    "error": "Validation failed",
                    "message": "Please check your form data",
                    "errors": {str(err["loc"][0]): err["msg"] for err in e.errors() if err["loc"]},
                },
                headers=rate_headers,
            )
        except StoreError as e:
            logger.error(
                "submission_persist_failed",
                client_id=client_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return self._finish(
                trail, IntakeState.FAILED_PERSIST, 500,
                {
                    "error": "Submission failed",
                    "message": "An error occurred while processing your submission. Please try again.",
                },
                headers=rate_headers,
            )
        trail.append(IntakeState.PERSISTED)

        try:
            outcome = await self.notifier.notify(submission)
            notified = outcome.status != "failed"
        except Exception as e:
            logger.error("submission_notify_crashed", submission_id=submission.id, error=str(e))
            notified = False
        trail.append(IntakeState.NOTIFIED if notified else IntakeState.NOTIFY_FAILED)

        return self._finish(
            trail, IntakeState.RESPONDED, 200,
            {
                "success": True,
                "message": "Form submitted successfully",
                "submissionId": submission.id,
                "timestamp": submission.timestamp,
            },
            headers=rate_headers,
            submission=submission,
        )

    def _finish(
        self,
        trail: list[IntakeState],
        state: IntakeState,
        status_code: int,
        body: dict,
        headers: Optional[dict[str, str]] = None,
        submission: Optional[Submission] = None,
    ) -> IntakeResult:
        trail.append(state)
        return IntakeResult(
            state=state,
            status_code=status_code,
            body=body,
            headers=headers or {},
            submission=submission,
            trail=trail,
        )

    async def _persist(self, fields: dict) -> Submission:
        """Create the submission with a fresh id/timestamp and store it.

        Ids come from the clock, so a key that already exists means another
        request landed in the same millisecond: move one millisecond forward
        and try again, up to PERSIST_ATTEMPTS times.
        """
        moment = self.clock()
        attempt = 1
        while True:
            timestamp = iso_timestamp(moment)
            submission = Submission(id=self.id_factory(timestamp), timestamp=timestamp, **fields)
            logger.info(
                "submission_received",
                submission_id=submission.id,
                brand_name=submission.brandName,
                has_files=bool(submission.files),
                attempt=attempt,
            )
            try:
                await self.repository.save(submission)
                return submission
            except AlreadyExistsError:
                if attempt >= PERSIST_ATTEMPTS:
                    raise
            logger.warning("submission_id_collision", submission_id=submission.id)
            attempt += 1
            moment = max(self.clock(), moment + timedelta(milliseconds=1))
