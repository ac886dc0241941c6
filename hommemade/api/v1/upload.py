"""File upload endpoint for attachments referenced by submissions."""

from __future__ import annotations

import base64
import binascii
import time
from typing import Optional

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from hommemade.api.deps import get_store
from hommemade.config import settings
from hommemade.errors import StoreError
from hommemade.intake.pipeline import iso_timestamp, utc_now
from hommemade.intake.validation import sanitize_text
from hommemade.storage.blob import BlobStore

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["upload"])

CONTENT_TYPES = {
    "pdf": "application/pdf",
    "txt": "text/plain",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "zip": "application/zip",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


class UploadRequest(BaseModel):
    file: str = Field(description="Base64-encoded file content")
    fileName: str = Field(min_length=1, max_length=255)
    submissionId: Optional[str] = Field(default=None, max_length=100)


def _error(status: int, error: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": error, "message": message, **extra})


def _safe_name(name: str) -> str:
    cleaned = sanitize_text(name).replace("/", "_").replace("\\", "_")
    return cleaned or "file"


@router.post("/upload")
async def upload_file(
    data: UploadRequest,
    store: BlobStore = Depends(get_store),
) -> JSONResponse:
    """Store one file under uploads/<submissionId>-<fileName>."""
    if not settings.enable_file_upload:
        return _error(403, "File upload disabled", "File upload functionality is currently disabled")

    allowed = settings.allowed_file_type_list
    extension = data.fileName.rsplit(".", 1)[-1].lower() if "." in data.fileName else ""
    if extension not in allowed:
        return _error(
            400, "File type not allowed",
            f"Allowed file types: {', '.join(allowed)}",
            allowedTypes=allowed,
        )

    try:
        content = base64.b64decode(data.file, validate=True)
    except (binascii.Error, ValueError):
        return _error(400, "Missing file data", "File content must be base64 encoded")
    if not content:
        return _error(400, "Missing file data", "Both file and fileName are required")

    if len(content) > settings.max_file_size:
        return _error(
            400, "File too large",
            f"Maximum file size: {round(settings.max_file_size / 1024 / 1024)}MB",
            maxSize=settings.max_file_size,
        )

    prefix = _safe_name(data.submissionId) if data.submissionId else str(int(time.time() * 1000))
    unique_name = f"uploads/{prefix}-{_safe_name(data.fileName)}"

    try:
        blob = await store.put(
            unique_name,
            content,
            access="private",
            allow_overwrite=False,
            content_type=CONTENT_TYPES.get(extension, "application/octet-stream"),
        )
    except StoreError as e:
        logger.error("file_upload_failed", pathname=unique_name, error=str(e), error_type=type(e).__name__)
        return _error(500, "Upload failed", "An error occurred while uploading the file. Please try again.")

    uploaded_at = iso_timestamp(utc_now())
    logger.info(
        "file_uploaded",
        submission_id=data.submissionId,
        pathname=blob.pathname,
        size=len(content),
    )
    return JSONResponse(
        content={
            "success": True,
            "file": {
                "url": blob.url,
                "fileName": data.fileName,
                "uniqueFileName": unique_name,
                "pathname": blob.pathname,
                "size": len(content),
                "uploadedAt": uploaded_at,
            },
        }
    )
