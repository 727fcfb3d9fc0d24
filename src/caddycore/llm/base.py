"""LLM client interface used by the intent classifier.

The classifier talks to an OpenAI-compatible chat endpoint (a local vLLM
server or a hosted gateway).  Everything outside this package sees only
:class:`LLMClient`, so tests can plug in a fake without network access.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class LLMMessage:
    """Standard message format for all LLM clients."""
    role: str  # "system" | "user" | "assistant"
    content: str


@dataclass(frozen=True)
class LLMResponse:
    """Standard response from LLM client."""
    content: str
    model: str
    tokens_used: int  # prompt + completion, -1 when unknown
    finish_reason: str  # "stop" | "length" | "error"
    latency_ms: int = 0
    usage: Optional[Dict[str, Any]] = None


class LLMClientError(Exception):
    """Base exception for LLM client errors."""
    pass


class LLMConnectionError(LLMClientError):
    """Server connection failed."""
    pass


class LLMTimeoutError(LLMClientError):
    """Request timed out."""
    pass


class LLMInvalidResponseError(LLMClientError):
    """Response parsing failed."""
    pass


class LLMClient(ABC):
    """Abstract base class for LLM clients."""

    @abstractmethod
    def is_available(self, *, timeout_seconds: float = 1.5) -> bool:
        """Check if backend is reachable.

        Args:
            timeout_seconds: Connection timeout

        Returns:
            True if backend responds
        """
        pass

    @abstractmethod
    def chat_detailed(
        self,
        messages: List[LLMMessage],
        *,
        temperature: float = 0.0,
        max_tokens: int = 256,
        seed: Optional[int] = None,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        """Chat completion with metadata.

        Raises:
            LLMConnectionError: Cannot reach backend
            LLMTimeoutError: Request timed out
            LLMInvalidResponseError: Response parsing failed
        """
        pass

    def chat(
        self,
        messages: List[LLMMessage],
        *,
        temperature: float = 0.0,
        max_tokens: int = 256,
    ) -> str:
        """Chat completion (simple string response)."""
        return self.chat_detailed(
            messages, temperature=temperature, max_tokens=max_tokens
        ).content

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier reported in logs."""
        pass
