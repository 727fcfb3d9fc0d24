"""Error taxonomy for the caddy decision core.

Four kinds of trouble can show up while handling an utterance:

1. Transient capability failures (classifier timeout, network loss).  These
   are raised as :class:`ClassifierUnavailableError` and recovered locally by
   the offline matcher; the pipeline never surfaces them to its caller.
2. Contract violations (future timestamps, confidence outside ``[0, 1]``).
   Raised as :class:`ContractViolationError` at the boundary; they point at a
   caller bug.
3. Missing prerequisites.  Not an error, see
   :class:`caddycore.routing.orchestrator.PrerequisiteMissing`.
4. Low confidence.  Not an error either, it goes to clarification.

:func:`describe_error` maps any exception to a fixed, user-facing message.
"""

from __future__ import annotations

import asyncio
import sqlite3
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from caddycore.llm.base import LLMConnectionError, LLMTimeoutError

__all__ = [
    "CaddyError",
    "ContractViolationError",
    "ClassifierUnavailableError",
    "ClassifierTimeoutError",
    "ClassifierResponseError",
    "PersistenceError",
    "ErrorKind",
    "UserFacingError",
    "describe_error",
]


class CaddyError(Exception):
    """Base exception for the decision core."""
    pass


class ContractViolationError(CaddyError, ValueError):
    """Caller passed input that breaks a documented contract."""
    pass


class ClassifierUnavailableError(CaddyError):
    """The remote classifier could not produce a usable answer."""
    pass


class ClassifierTimeoutError(ClassifierUnavailableError):
    """The remote classifier exceeded its latency budget."""

    def __init__(self, message: str, timeout_seconds: Optional[float] = None):
        super().__init__(message)
        self.timeout_seconds = timeout_seconds


class ClassifierResponseError(ClassifierUnavailableError):
    """The remote classifier answered with something we cannot use."""
    pass


class PersistenceError(CaddyError):
    """Reading or writing the miss-event database failed."""
    pass


# ============================================================================
# User-facing descriptions
# ============================================================================


class ErrorKind(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    CLASSIFICATION = "classification"
    SERVICE_UNAVAILABLE = "service_unavailable"
    INVALID_INPUT = "invalid_input"
    STORAGE = "storage"
    UNKNOWN = "unknown"


_MESSAGES = {
    ErrorKind.NETWORK: "No internet connection available. I can still help with scores, stats, equipment, and settings.",
    ErrorKind.TIMEOUT: "That took too long. Let's try something simpler.",
    ErrorKind.CLASSIFICATION: "I couldn't understand your request. Could you rephrase it?",
    ErrorKind.SERVICE_UNAVAILABLE: "The assistant service is unavailable right now. Basic features still work offline.",
    ErrorKind.INVALID_INPUT: "That input doesn't look right. Please check it and try again.",
    ErrorKind.STORAGE: "I couldn't access your shot history right now.",
    ErrorKind.UNKNOWN: "Something unexpected happened. Please try again.",
}


@dataclass(frozen=True)
class UserFacingError:
    """A fixed, displayable description of an exception."""
    kind: ErrorKind
    message: str
    recoverable: bool = True


def describe_error(exc: BaseException) -> UserFacingError:
    """Map an exception to a fixed user-facing description."""
    if isinstance(exc, (ClassifierTimeoutError, LLMTimeoutError, asyncio.TimeoutError, TimeoutError)):
        kind = ErrorKind.TIMEOUT
    elif isinstance(exc, (LLMConnectionError, ConnectionError)):
        kind = ErrorKind.NETWORK
    elif isinstance(exc, ClassifierResponseError):
        kind = ErrorKind.CLASSIFICATION
    elif isinstance(exc, ClassifierUnavailableError):
        kind = ErrorKind.SERVICE_UNAVAILABLE
    elif isinstance(exc, (PersistenceError, sqlite3.Error)):
        kind = ErrorKind.STORAGE
    elif isinstance(exc, ValueError):
        kind = ErrorKind.INVALID_INPUT
    else:
        kind = ErrorKind.UNKNOWN

    recoverable = kind is not ErrorKind.INVALID_INPUT
    return UserFacingError(kind=kind, message=_MESSAGES[kind], recoverable=recoverable)
