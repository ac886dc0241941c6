"""Onboarding form submission endpoint."""

from __future__ import annotations

import json

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from hommemade.api.deps import get_pipeline
from hommemade.intake.pipeline import IntakePipeline
from hommemade.intake.rate_limit import get_client_ip
from hommemade.schemas.submission import ErrorResponse, SubmitResponse

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["intake"])

MAX_BODY_BYTES = 1024 * 1024


async def _read_payload(request: Request):
    """Decoded JSON body, or None when it is missing, too large or not JSON."""
    body = await request.body()
    if not body or len(body) > MAX_BODY_BYTES:
        return None
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


@router.api_route(
    "/submit",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    responses={
        200: {"model": SubmitResponse},
        400: {"model": ErrorResponse},
        405: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def submit_form(
    request: Request,
    pipeline: IntakePipeline = Depends(get_pipeline),
) -> JSONResponse:
    """Accept one onboarding form submission.

    Returns:
        200 {success, submissionId, timestamp} once the submission is stored;
        400/405/429/500 with {error, message} otherwise
    """
    payload = await _read_payload(request) if request.method == "POST" else None

    result = await pipeline.handle(
        method=request.method,
        client_id=get_client_ip(request),
        payload=payload,
    )

    logger.info(
        "submit_handled",
        state=result.state.value,
        status=result.status_code,
        trail=[s.value for s in result.trail],
    )
    return JSONResponse(status_code=result.status_code, content=result.body, headers=result.headers)
