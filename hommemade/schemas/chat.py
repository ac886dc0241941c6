"""Chat assistant request/response schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str = Field(min_length=1, max_length=8000)


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(min_length=1, max_length=50)
    botType: str = Field(min_length=1, max_length=50)


class ChatResponse(BaseModel):
    message: str
    botType: str
    timestamp: str
    provider: str
