"""Submission repository: one JSON document per submission in the blob store."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import Optional

import structlog

from hommemade.schemas.submission import StoredSubmission, Submission
from hommemade.storage.blob import BlobObject, BlobStore

logger = structlog.get_logger()

SUBMISSIONS_PREFIX = "submissions/"


def submission_key(submission_id: str) -> str:
    return f"{SUBMISSIONS_PREFIX}{submission_id}.json"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def sort_newest_first(submissions: list[StoredSubmission]) -> list[StoredSubmission]:
    """Newest timestamp first.

    Missing or unparsable timestamps sort after every dated entry; ties are
    broken by id so the order is deterministic.
    """

    def key(sub: StoredSubmission) -> tuple:
        ts = parse_timestamp(sub.timestamp)
        if ts is None:
            return (1, 0.0, sub.id or "")
        return (0, -ts.timestamp(), sub.id or "")

    return sorted(submissions, key=key)


class SubmissionRepository:
    """Stores and loads submission documents."""

    def __init__(self, store: BlobStore):
        self.store = store

    async def save(self, submission: Submission) -> BlobObject:
        """Write the submission once. Never overwrites an existing document.

        Raises:
            AlreadyExistsError: a document with this id already exists
            StoreUnavailableError: the blob store could not be reached
        """
        key = submission_key(submission.id)
        data = json.dumps(submission.to_document(), indent=2, ensure_ascii=False).encode("utf-8")

        blob = await self.store.put(
            key,
            data,
            access="private",
            allow_overwrite=False,
            content_type="application/json",
        )

        logger.info(
            "submission_stored",
            submission_id=submission.id,
            blob_url=blob.url,
            pathname=blob.pathname,
        )
        return blob

    async def list_all(self) -> list[StoredSubmission]:
        """Load every stored submission, newest first.

        An entry that cannot be fetched or parsed is logged and skipped; the
        rest of the batch is still returned. Listing failures propagate.
        """
        blobs = await self.store.list(SUBMISSIONS_PREFIX)
        logger.info("submissions_loading", count=len(blobs))

        results = await asyncio.gather(
            *(self._load(blob) for blob in blobs),
            return_exceptions=True,
        )

        submissions: list[StoredSubmission] = []
        for blob, result in zip(blobs, results):
            if isinstance(result, BaseException):
                logger.error(
                    "submission_load_failed",
                    pathname=blob.pathname,
                    error=str(result),
                    error_type=type(result).__name__,
                )
                continue
            submissions.append(result)

        ordered = sort_newest_first(submissions)
        logger.info(
            "submissions_loaded",
            total=len(ordered),
            skipped=len(blobs) - len(ordered),
            newest=ordered[0].timestamp if ordered else None,
        )
        return ordered

    async def _load(self, blob: BlobObject) -> StoredSubmission:
        raw = await self.store.get(blob.url)
        document = json.loads(raw)
        if not isinstance(document, dict):
            raise ValueError("submission document is not a JSON object")

        document["blobUrl"] = blob.url
        document["blobSize"] = blob.size
        document["blobUploadedAt"] = blob.uploaded_at
        return StoredSubmission.model_validate(document)
