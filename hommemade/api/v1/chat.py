"""Chat assistants endpoint."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from hommemade.api.deps import get_chat_limiter, get_chat_service
from hommemade.errors import UpstreamProviderError
from hommemade.intake.pipeline import iso_timestamp, utc_now
from hommemade.intake.rate_limit import RateLimiter, get_client_ip
from hommemade.llm.chat import ChatService, NoProviderConfigured
from hommemade.schemas.chat import ChatRequest, ChatResponse

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["chat"])

APOLOGY = "I apologize, but I'm having trouble responding right now. Please try again in a moment."

# UpstreamProviderError.kind -> (status, code, message)
ERROR_RESPONSES = {
    "auth": (500, "AUTH_ERROR", "API authentication failed. Please check configuration."),
    "rate_limit": (429, "RATE_LIMIT", "Rate limit exceeded. Please try again in a moment."),
}


@router.post("/chat", responses={200: {"model": ChatResponse}})
async def chat(
    request: Request,
    limiter: RateLimiter = Depends(get_chat_limiter),
    service: ChatService = Depends(get_chat_service),
) -> JSONResponse:
    """Reply to a chat conversation as the requested assistant."""
    decision = limiter.check(get_client_ip(request))
    if not decision.allowed:
        return JSONResponse(
            status_code=429,
            headers=decision.headers(),
            content={
                "error": "Rate limit exceeded",
                "message": f"Too many messages. Please try again in {decision.retry_after_seconds} seconds.",
                "code": "RATE_LIMIT",
                "retryAfter": decision.retry_after_seconds,
            },
        )

    try:
        data = ChatRequest.model_validate(await request.json())
    except ValueError as e:
        # JSONDecodeError and pydantic ValidationError
        logger.info("chat_request_invalid", error_type=type(e).__name__)
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "message": "Messages array and botType are required"},
        )

    try:
        reply = await service.reply(data.botType, data.messages)
    except NoProviderConfigured:
        logger.error("chat_no_provider")
        return JSONResponse(
            status_code=500,
            content={"error": "Service configuration error", "message": APOLOGY, "code": "CONFIG_ERROR"},
        )
    except UpstreamProviderError as e:
        status, code, message = ERROR_RESPONSES.get(e.kind, (500, "AI_ERROR", APOLOGY))
        logger.error("chat_failed", provider=e.provider, kind=e.kind, status=e.status_code)
        return JSONResponse(
            status_code=status,
            content={"error": message, "message": APOLOGY, "code": code},
        )

    return JSONResponse(
        headers=decision.headers(),
        content=ChatResponse(
            message=reply.text,
            botType=data.botType,
            timestamp=iso_timestamp(utc_now()),
            provider=reply.provider,
        ).model_dump(),
    )
