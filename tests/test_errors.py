"""Tests for the error taxonomy and user-facing descriptions."""

from __future__ import annotations

import asyncio
import sqlite3

import pytest

from caddycore.errors import (
    CaddyError,
    ClassifierResponseError,
    ClassifierTimeoutError,
    ClassifierUnavailableError,
    ContractViolationError,
    ErrorKind,
    PersistenceError,
    describe_error,
)
from caddycore.llm.base import LLMConnectionError, LLMTimeoutError


@pytest.mark.parametrize(
    "exc, kind",
    [
        (ClassifierTimeoutError("slow", timeout_seconds=3.0), ErrorKind.TIMEOUT),
        (LLMTimeoutError("slow"), ErrorKind.TIMEOUT),
        (asyncio.TimeoutError(), ErrorKind.TIMEOUT),
        (LLMConnectionError("down"), ErrorKind.NETWORK),
        (ConnectionRefusedError(), ErrorKind.NETWORK),
        (ClassifierResponseError("junk"), ErrorKind.CLASSIFICATION),
        (ClassifierUnavailableError("503"), ErrorKind.SERVICE_UNAVAILABLE),
        (PersistenceError("locked"), ErrorKind.STORAGE),
        (sqlite3.OperationalError("locked"), ErrorKind.STORAGE),
        (ContractViolationError("bad"), ErrorKind.INVALID_INPUT),
        (RuntimeError("boom"), ErrorKind.UNKNOWN),
    ],
)
def test_describe_error_kind(exc, kind):
    described = describe_error(exc)
    assert described.kind is kind
    assert described.message


def test_invalid_input_not_recoverable():
    assert describe_error(ContractViolationError("x")).recoverable is False
    assert describe_error(PersistenceError("x")).recoverable is True


def test_messages_are_fixed():
    assert describe_error(RuntimeError("a")).message == describe_error(KeyError("b")).message


def test_hierarchy():
    assert issubclass(ClassifierTimeoutError, ClassifierUnavailableError)
    assert issubclass(ContractViolationError, ValueError)
    assert issubclass(PersistenceError, CaddyError)
    assert ClassifierTimeoutError("x", timeout_seconds=4.5).timeout_seconds == 4.5
