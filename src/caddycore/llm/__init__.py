from __future__ import annotations

from .base import (
    LLMClient,
    LLMClientError,
    LLMConnectionError,
    LLMInvalidResponseError,
    LLMMessage,
    LLMResponse,
    LLMTimeoutError,
)
from .openai_client import OpenAICompatibleClient

__all__ = [
    "LLMClient",
    "LLMClientError",
    "LLMConnectionError",
    "LLMInvalidResponseError",
    "LLMMessage",
    "LLMResponse",
    "LLMTimeoutError",
    "OpenAICompatibleClient",
]
