"""Health and configuration check endpoints."""

import structlog
from fastapi import APIRouter

from hommemade.config import settings
from hommemade.intake.pipeline import iso_timestamp, utc_now

logger = structlog.get_logger()

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "version": "0.1.0"}


@router.get("/api/env-check")
async def env_check() -> dict:
    """Which integrations are configured. Never returns secret values."""
    status = {
        "blobToken": bool(settings.blob_read_write_token),
        "blobBackend": settings.blob_backend,
        "resendKey": bool(settings.resend_api_key),
        "smtp": bool(settings.smtp_host),
        "adminAuth": settings.has_admin_auth,
        "environment": settings.environment,
        "configErrors": settings.config_errors(),
        "working": True,
        "timestamp": iso_timestamp(utc_now()),
    }
    logger.info("env_check", **{k: v for k, v in status.items() if k != "timestamp"})
    return status
