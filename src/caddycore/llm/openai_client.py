"""OpenAI-compatible chat client for the intent classifier backend.

Connects to any server exposing ``/v1/chat/completions`` (vLLM, llama.cpp
server, a hosted gateway).  Connection settings come from the constructor or
from the environment:

    CADDY_LLM_BASE_URL   default http://127.0.0.1:8001
    CADDY_LLM_MODEL      default Qwen/Qwen2.5-3B-Instruct-AWQ
    CADDY_LLM_API_KEY    default EMPTY

Usage:
    >>> client = OpenAICompatibleClient()
    >>> client.chat([LLMMessage(role="user", content="what's in my bag")])
"""

from __future__ import annotations

import logging
import os
import threading
import time
from typing import Any, Dict, List, Optional

import requests
from openai import OpenAI

from caddycore.llm.base import (
    LLMClient,
    LLMConnectionError,
    LLMInvalidResponseError,
    LLMMessage,
    LLMResponse,
    LLMTimeoutError,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:8001"
DEFAULT_MODEL = "Qwen/Qwen2.5-3B-Instruct-AWQ"


def _api_base(base_url: str) -> str:
    base = base_url.rstrip("/")
    if not base.endswith("/v1"):
        base = f"{base}/v1"
    return base


class OpenAICompatibleClient(LLMClient):
    """Chat client over the OpenAI-compatible API.

    Attributes:
        base_url: Server URL (with or without the ``/v1`` suffix)
        model: Served model name
        timeout_seconds: Transport timeout; the classifier enforces its own
            tighter budget on top of this
    """

    def __init__(
        self,
        base_url: str = "",
        model: str = "",
        api_key: str = "",
        timeout_seconds: float = 10.0,
    ):
        self.base_url = (
            base_url or os.getenv("CADDY_LLM_BASE_URL", DEFAULT_BASE_URL)
        ).rstrip("/")
        self.model = (model or os.getenv("CADDY_LLM_MODEL", DEFAULT_MODEL)).strip()
        self._api_key = api_key or os.getenv("CADDY_LLM_API_KEY", "EMPTY")
        self.timeout_seconds = float(timeout_seconds)

        self._lock = threading.Lock()
        self._client: Optional[OpenAI] = None

    @property
    def model_name(self) -> str:
        return self.model

    def _get_client(self) -> OpenAI:
        """Lazy-initialize the OpenAI client (thread-safe)."""
        if self._client is not None:
            return self._client
        with self._lock:
            if self._client is None:
                self._client = OpenAI(
                    base_url=_api_base(self.base_url),
                    api_key=self._api_key,
                    timeout=self.timeout_seconds,
                    max_retries=0,
                )
        return self._client

    def is_available(self, *, timeout_seconds: float = 1.5) -> bool:
        """Check if the server answers on ``/v1/models``."""
        try:
            r = requests.get(
                f"{_api_base(self.base_url)}/models",
                timeout=float(timeout_seconds),
            )
        except requests.RequestException as e:
            logger.debug("[llm] health check failed: %s", e)
            return False
        return r.status_code == 200

    def chat_detailed(
        self,
        messages: List[LLMMessage],
        *,
        temperature: float = 0.0,
        max_tokens: int = 256,
        seed: Optional[int] = None,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        """Chat completion with detailed metadata."""
        client = self._get_client()
        openai_messages = [{"role": m.role, "content": m.content} for m in messages]

        kwargs: Dict[str, Any] = {}
        if response_format is not None:
            kwargs["response_format"] = response_format

        t0 = time.perf_counter()
        try:
            completion = client.chat.completions.create(
                model=self.model,
                messages=openai_messages,
                temperature=float(temperature),
                max_tokens=int(max_tokens),
                seed=seed,
                **kwargs,
            )
        except Exception as e:
            error_msg = str(e).lower()
            if "timeout" in error_msg or "timed out" in error_msg:
                raise LLMTimeoutError(
                    f"LLM request timed out after {self.timeout_seconds}s"
                ) from e
            if "connection" in error_msg or "refused" in error_msg or "unreachable" in error_msg:
                raise LLMConnectionError(
                    f"Cannot reach LLM server at {self.base_url}"
                ) from e
            raise LLMInvalidResponseError(f"LLM request failed: {e}") from e

        elapsed_ms = int((time.perf_counter() - t0) * 1000)

        if not completion.choices:
            raise LLMInvalidResponseError("LLM returned no choices")
        choice = completion.choices[0]
        content = choice.message.content or ""

        usage: Optional[Dict[str, Any]] = None
        total_tokens = -1
        if completion.usage is not None:
            usage = {
                "prompt_tokens": completion.usage.prompt_tokens,
                "completion_tokens": completion.usage.completion_tokens,
                "total_tokens": completion.usage.total_tokens,
            }
            total_tokens = int(completion.usage.total_tokens or -1)

        logger.debug(
            "[llm] call model=%s latency_ms=%d total_tokens=%d",
            self.model, elapsed_ms, total_tokens,
        )

        return LLMResponse(
            content=content.strip(),
            model=completion.model or self.model,
            tokens_used=total_tokens,
            finish_reason=choice.finish_reason or "stop",
            latency_ms=elapsed_ms,
            usage=usage,
        )
