"""Exception types and the failure normalizer used for user-facing errors."""
from __future__ import annotations

import asyncio
import json
import re
from typing import Any

import aiohttp

from .models import ErrorCategory, OperationError

MAX_MESSAGE_LENGTH = 80

UNKNOWN_ERROR = "An unknown error occurred."
UNEXPECTED_ERROR = "An unexpected error occurred. Check logs."


class EngineNotInitializedError(RuntimeError):
    """A mutating call was made without a signer or protocol client."""


class OperationInProgressError(RuntimeError):
    """Another mutating operation is already running for this session."""


class FaucetError(RuntimeError):
    """The faucet reported an unsuccessful funding request."""


_REVERT_REASON_RE = re.compile(r'execution reverted: (.*?)"')
_INNER_MESSAGE_RE = re.compile(r'"message"\s*:\s*"([^"]+)"')

_USER_REJECTED = ("User rejected", "Action rejected", "4001", "ACTION_REJECTED")

# (category, needles, message) checked in order; first match wins.
_RULES: tuple[tuple[ErrorCategory, tuple[str, ...], str], ...] = (
    (
        ErrorCategory.INSUFFICIENT_FUNDS,
        ("insufficient funds", "exceeds balance"),
        "Insufficient funds for gas or transaction.",
    ),
    (
        ErrorCategory.NETWORK_ERROR,
        ("Internal JSON-RPC error",),
        "Internal network error. Please try again.",
    ),
    (
        ErrorCategory.NETWORK_ERROR,
        ("Network Error", "connection refusing"),
        "Network connection failed. Please check your internet.",
    ),
    (
        ErrorCategory.NETWORK_ERROR,
        ("timeout",),
        "Request timed out. Please try again.",
    ),
    (
        ErrorCategory.NONCE_TOO_LOW,
        ("nonce too low",),
        "Transaction failed: Nonce too low. Please reset your wallet.",
    ),
    (
        ErrorCategory.UNDERPRICED_REPLACEMENT,
        ("replacement transaction underpriced",),
        "Transaction failed: Replacement gas too low. Please increase gas.",
    ),
    (
        ErrorCategory.CALL_EXCEPTION,
        ("call revert exception", "CALL_EXCEPTION"),
        "Transaction failed: Contract execution reverted.",
    ),
)


def _extract_message(error: Any) -> str:
    if isinstance(error, str):
        return error
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    if isinstance(error, dict) and "message" in error:
        return str(error["message"])
    message = getattr(error, "message", None)
    if message is not None:
        return str(message)
    try:
        return json.dumps(error)
    except (TypeError, ValueError):
        return repr(error)


def normalize_error(error: Any) -> OperationError:
    """Classify an arbitrary failure into a category and a display message."""
    if error is None:
        return OperationError(ErrorCategory.UNCLASSIFIED, UNKNOWN_ERROR)

    # Transport exceptions often carry no useful text.
    if isinstance(error, asyncio.TimeoutError):
        return OperationError(
            ErrorCategory.NETWORK_ERROR, "Request timed out. Please try again."
        )
    if isinstance(error, aiohttp.ClientConnectionError):
        return OperationError(
            ErrorCategory.NETWORK_ERROR,
            "Network connection failed. Please check your internet.",
        )

    message = _extract_message(error)

    if any(needle in message for needle in _USER_REJECTED):
        return OperationError(ErrorCategory.USER_REJECTED, "User rejected the request.")

    if "execution reverted" in message:
        match = _REVERT_REASON_RE.search(message)
        if match and match.group(1):
            return OperationError(
                ErrorCategory.EXECUTION_REVERTED,
                f"Transaction failed: {match.group(1)}",
            )
        return OperationError(
            ErrorCategory.EXECUTION_REVERTED, "Transaction failed: Execution reverted."
        )

    for category, needles, display in _RULES:
        if any(needle in message for needle in needles):
            return OperationError(category, display)

    if len(message) > MAX_MESSAGE_LENGTH:
        match = _INNER_MESSAGE_RE.search(message)
        if match:
            inner = match.group(1)
            if len(inner) > MAX_MESSAGE_LENGTH:
                inner = inner[: MAX_MESSAGE_LENGTH - 3] + "..."
            return OperationError(ErrorCategory.UNCLASSIFIED, inner)
        return OperationError(ErrorCategory.UNCLASSIFIED, UNEXPECTED_ERROR)

    return OperationError(ErrorCategory.UNCLASSIFIED, message)


def parse_error(error: Any) -> str:
    """Return only the display message for ``error``."""
    return normalize_error(error).message
