from __future__ import annotations

import asyncio
import json
import socket
import threading
import time
from datetime import datetime, timedelta, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Dict, List, Optional

import pytest

from caddycore.llm.base import LLMClient, LLMMessage, LLMResponse
from caddycore.memory.models import Lie, MissDirection, MissEvent, PressureContext


@pytest.fixture(autouse=True)
def _ensure_event_loop_for_sync_tests():
    """Ensure asyncio.get_event_loop() works in sync tests.

    With pytest + pytest-asyncio, the default loop may be cleared between tests.
    We create a loop when missing and clean it up after the test.
    """

    created_loop: asyncio.AbstractEventLoop | None = None
    try:
        asyncio.get_event_loop()
    except RuntimeError:
        created_loop = asyncio.new_event_loop()
        asyncio.set_event_loop(created_loop)

    yield

    if created_loop is not None:
        if not created_loop.is_closed():
            created_loop.close()
        # Prevent returning a closed loop in later tests
        asyncio.set_event_loop(None)


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run tests marked with @pytest.mark.integration.",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-integration"):
        return

    deselected: list[pytest.Item] = []
    selected: list[pytest.Item] = []
    for item in items:
        if item.get_closest_marker("integration"):
            deselected.append(item)
        else:
            selected.append(item)

    if deselected:
        config.hook.pytest_deselected(items=deselected)
        items[:] = selected


# ============================================================================
# Shared fixtures
# ============================================================================


NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for decay and retention tests."""
    return NOW


@pytest.fixture
def make_event(now: datetime) -> Callable[..., MissEvent]:
    """Factory for MissEvent objects ``days_ago`` before :func:`now`."""

    def _make(
        direction: MissDirection = MissDirection.SLICE,
        *,
        days_ago: float = 1.0,
        club_id: str = "7-iron",
        pressure: bool = False,
        lie: Lie = Lie.FAIRWAY,
    ) -> MissEvent:
        return MissEvent(
            timestamp=now - timedelta(days=days_ago),
            club_id=club_id,
            direction=direction,
            lie=lie,
            pressure=PressureContext(is_user_tagged=pressure),
        )

    return _make


class FakeLLMClient(LLMClient):
    """Canned classifier backend.

    Returns ``content`` (a dict is JSON-encoded) or raises ``error``; sleeps
    ``delay`` seconds first.  Every call is recorded in :attr:`calls`.
    """

    def __init__(
        self,
        content: Any = None,
        *,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.content = content
        self.error = error
        self.delay = delay
        self.calls: List[List[LLMMessage]] = []
        self.kwargs: List[Dict[str, Any]] = []

    @property
    def model_name(self) -> str:
        return "fake-classifier"

    def is_available(self, *, timeout_seconds: float = 1.5) -> bool:
        return self.error is None

    def chat_detailed(self, messages, *, temperature=0.0, max_tokens=256, seed=None, response_format=None):
        self.calls.append(list(messages))
        self.kwargs.append({"temperature": temperature, "max_tokens": max_tokens, "response_format": response_format})
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        content = self.content
        if isinstance(content, dict):
            content = json.dumps(content)
        return LLMResponse(content=content or "", model=self.model_name, tokens_used=-1, finish_reason="stop")


def llm_answer(intent: str, confidence: float, **entities: Any) -> Dict[str, Any]:
    return {"intent": intent, "confidence": confidence, "entities": entities}


@pytest.fixture
def fake_llm() -> Callable[..., FakeLLMClient]:
    return FakeLLMClient


# ============================================================================
# OpenAI-compatible mock server (integration tests)
# ============================================================================


class _OpenAIMockHandler(BaseHTTPRequestHandler):
    server_version = "caddy-llm-mock/1.0"

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A003
        # Keep pytest output clean.
        return

    def _send_json(self, status: int, payload: dict[str, Any]) -> None:
        data = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def do_GET(self) -> None:  # noqa: N802
        if self.path.rstrip("/") == "/v1/models":
            model_name = getattr(self.server, "model_name", "caddy-mock")
            self._send_json(
                200,
                {"object": "list", "data": [{"id": model_name, "object": "model", "owned_by": "mock"}]},
            )
            return
        self._send_json(404, {"error": {"message": "not found"}})

    def do_POST(self) -> None:  # noqa: N802
        if self.path.rstrip("/") != "/v1/chat/completions":
            self._send_json(404, {"error": {"message": "not found"}})
            return

        length = int(self.headers.get("Content-Length", "0") or "0")
        raw = self.rfile.read(length) if length > 0 else b"{}"
        try:
            req = json.loads(raw.decode("utf-8"))
        except json.JSONDecodeError:
            self._send_json(400, {"error": {"message": "invalid json"}})
            return

        last_user = ""
        for msg in reversed(req.get("messages") or []):
            if isinstance(msg, dict) and msg.get("role") == "user":
                last_user = str(msg.get("content") or "").lower()
                break

        if "bag" in last_user:
            answer = llm_answer("equipment_info", 0.93)
        elif "score" in last_user:
            answer = llm_answer("score_entry", 0.9)
        else:
            answer = llm_answer("help_request", 0.3)

        model_name = getattr(self.server, "model_name", "caddy-mock")
        self._send_json(
            200,
            {
                "id": f"chatcmpl-mock-{int(time.time())}",
                "object": "chat.completion",
                "created": int(time.time()),
                "model": model_name,
                "choices": [
                    {
                        "index": 0,
                        "message": {"role": "assistant", "content": json.dumps(answer)},
                        "finish_reason": "stop",
                    }
                ],
                "usage": {"prompt_tokens": 10, "completion_tokens": 10, "total_tokens": 20},
            },
        )


@pytest.fixture(scope="session")
def llm_mock_server_url() -> str:
    """Start a tiny OpenAI-compatible mock server for integration tests."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), _OpenAIMockHandler)
    server.model_name = "caddy-mock"  # type: ignore[attr-defined]

    host, port = server.server_address
    url = f"http://{host}:{port}"

    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    deadline = time.time() + 5.0
    while time.time() < deadline:
        try:
            with socket.create_connection((host, port), timeout=0.2):
                break
        except OSError:
            time.sleep(0.05)
    else:
        server.shutdown()
        raise RuntimeError("Failed to start LLM mock server")

    yield url

    server.shutdown()
    server.server_close()
