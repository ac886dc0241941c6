"""Chat assistants: persona prompts and primary/fallback provider routing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog

from hommemade.config import settings
from hommemade.errors import UpstreamProviderError
from hommemade.llm.providers import ChatProvider, build_provider
from hommemade.schemas.chat import ChatMessage

logger = structlog.get_logger()

BOT_PROMPTS: dict[str, str] = {
    "creative-director": (
        "You are the Creative Director assistant for Homme Made, a creative agency "
        "specializing in human-in-the-loop creative systems. You help with brand strategy, "
        "visual direction, creative problem-solving and design system development. "
        "Your expertise includes branding, typography, color theory, composition and "
        "creative process optimization."
    ),
    "automation-architect": (
        "You are the Automation Architect assistant for Homme Made. You help creative "
        "teams design workflows, pick automation tools, plan API integrations and map "
        "processes, while keeping the human element in automated systems. The best "
        "automation enhances human creativity rather than replacing it."
    ),
    "content-strategist": (
        "You are the Content Strategist assistant for Homme Made. You help with brand "
        "storytelling, audience research, editorial planning and channel strategy, "
        "keeping every recommendation grounded in the brand's own voice."
    ),
}

DEFAULT_PROMPT = "You are a helpful AI assistant for Homme Made."


class NoProviderConfigured(Exception):
    """Neither the primary nor the fallback chat provider has credentials."""


@dataclass
class ChatReply:
    text: str
    provider: str


def build_messages(bot_type: str, messages: list[ChatMessage]) -> list[dict]:
    """Wire messages, with the persona prompt prepended unless the client sent one."""
    wire = [m.model_dump() for m in messages]
    if not any(m["role"] == "system" for m in wire):
        wire.insert(0, {"role": "system", "content": BOT_PROMPTS.get(bot_type, DEFAULT_PROMPT)})
    return wire


class ChatService:
    """Try the primary provider; on any failure try the fallback if configured."""

    def __init__(self, primary: Optional[ChatProvider], fallback: Optional[ChatProvider] = None):
        self.primary = primary
        self.fallback = fallback

    async def reply(self, bot_type: str, messages: list[ChatMessage]) -> ChatReply:
        """Generate the assistant reply.

        Raises:
            NoProviderConfigured: no provider is available
            UpstreamProviderError: every configured provider failed (the last error)
        """
        providers = [p for p in (self.primary, self.fallback) if p is not None]
        if not providers:
            raise NoProviderConfigured()

        wire = build_messages(bot_type, messages)
        last_error: Optional[UpstreamProviderError] = None

        for provider in providers:
            try:
                text = await provider.complete(wire)
            except UpstreamProviderError as e:
                last_error = e
                logger.warning(
                    "chat_provider_failed",
                    provider=provider.name,
                    kind=e.kind,
                    status=e.status_code,
                    bot_type=bot_type,
                )
                continue

            logger.info(
                "chat_reply_generated",
                provider=provider.name,
                bot_type=bot_type,
                messages=len(messages),
            )
            return ChatReply(text=text, provider=provider.name)

        raise last_error


def build_chat_service() -> ChatService:
    primary = build_provider(settings.chat_primary_provider)
    fallback = None
    if settings.chat_fallback_provider != settings.chat_primary_provider:
        fallback = build_provider(settings.chat_fallback_provider)
    if primary is None and fallback is None:
        logger.warning("chat_providers_not_configured")
    return ChatService(primary=primary, fallback=fallback)
