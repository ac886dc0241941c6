"""Chat completion providers.

Every provider turns a list of {role, content} messages into reply text and
reports failures as UpstreamProviderError classified from the HTTP status or
the SDK exception type.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import anthropic
import httpx
import structlog
from anthropic import AsyncAnthropic

from hommemade.config import settings
from hommemade.errors import UpstreamProviderError
from hommemade.llm.client import get_llm_client

logger = structlog.get_logger()


class ChatProvider(ABC):
    """Base class: complete(messages) -> reply text."""

    name = "base"

    @abstractmethod
    async def complete(self, messages: list[dict]) -> str:
        """Reply text for the conversation. Raises UpstreamProviderError."""


class OpenAICompatibleProvider(ChatProvider):
    """Any /chat/completions endpoint speaking the OpenAI wire format (OpenRouter, Groq)."""

    def __init__(
        self,
        name: str,
        api_key: str,
        api_url: str,
        model: str,
        max_tokens: int = 1500,
        temperature: float = 0.65,
        top_p: float = 0.85,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.name = name
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.top_p = top_p
        self.timeout = timeout
        self._transport = transport

    async def complete(self, messages: list[dict]) -> str:
        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "stream": False,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.api_url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=payload,
                )
        except httpx.TimeoutException as e:
            raise UpstreamProviderError(self.name, kind="timeout", detail=str(e)) from e
        except httpx.HTTPError as e:
            raise UpstreamProviderError(self.name, kind="upstream", detail=str(e)) from e

        if response.status_code >= 400:
            raise UpstreamProviderError.from_status(
                self.name, response.status_code, detail=response.text[:200]
            )

        try:
            text = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise UpstreamProviderError(self.name, detail=f"malformed response: {e}") from e
        if not text:
            raise UpstreamProviderError(self.name, detail="empty completion")
        return text.strip()


class AnthropicProvider(ChatProvider):
    """Claude via the Anthropic SDK. System messages become the system prompt."""

    name = "anthropic"

    def __init__(
        self,
        client: Optional[AsyncAnthropic] = None,
        model: str = "claude-sonnet-4-20250514",
        max_tokens: int = 1500,
        temperature: float = 0.65,
    ):
        self._client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    @property
    def client(self) -> AsyncAnthropic:
        return self._client or get_llm_client()

    async def complete(self, messages: list[dict]) -> str:
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        conversation = [
            {"role": m["role"], "content": m["content"]}
            for m in messages
            if m["role"] in ("user", "assistant")
        ]
        kwargs = {}
        if system:
            kwargs["system"] = system

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=conversation,
                **kwargs,
            )
        except anthropic.AuthenticationError as e:
            raise UpstreamProviderError(self.name, kind="auth", status_code=401, detail=str(e)) from e
        except anthropic.RateLimitError as e:
            raise UpstreamProviderError(self.name, kind="rate_limit", status_code=429, detail=str(e)) from e
        except anthropic.APITimeoutError as e:
            raise UpstreamProviderError(self.name, kind="timeout", detail=str(e)) from e
        except anthropic.APIStatusError as e:
            raise UpstreamProviderError.from_status(self.name, e.status_code, detail=str(e)) from e
        except anthropic.APIError as e:
            raise UpstreamProviderError(self.name, detail=str(e)) from e

        text = "".join(block.text for block in response.content if getattr(block, "type", "") == "text")
        logger.info(
            "anthropic_completion",
            model=self.model,
            tokens_in=response.usage.input_tokens,
            tokens_out=response.usage.output_tokens,
        )
        if not text:
            raise UpstreamProviderError(self.name, detail="empty completion")
        return text.strip()


def build_provider(name: str) -> Optional[ChatProvider]:
    """Provider by name, or None when it has no API key configured."""
    if name == "openrouter" and settings.openrouter_api_key:
        return OpenAICompatibleProvider(
            name="openrouter",
            api_key=settings.openrouter_api_key,
            api_url=settings.openrouter_api_url,
            model=settings.openrouter_model,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
            timeout=settings.chat_timeout_seconds,
        )
    if name == "groq" and settings.groq_api_key:
        return OpenAICompatibleProvider(
            name="groq",
            api_key=settings.groq_api_key,
            api_url=settings.groq_api_url,
            model=settings.groq_model,
            max_tokens=min(settings.llm_max_tokens, 1000),
            temperature=0.7,
            top_p=0.9,
            timeout=settings.chat_timeout_seconds,
        )
    if name == "anthropic" and settings.anthropic_api_key:
        return AnthropicProvider(
            model=settings.llm_model,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
        )
    return None
