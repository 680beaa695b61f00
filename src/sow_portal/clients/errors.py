"""Error types for the SOW backend client and helpers for user-facing messages.

Backend failures come in two shapes: REST error bodies (``{"error": ...}`` or
``{"message": ...}``) and Step Functions failure payloads, whose ``cause`` is
itself a JSON string holding the Lambda ``errorMessage``.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

import httpx

MAX_ERROR_LENGTH = 500

STATUS_MESSAGES: dict[int, str] = {
    400: "Bad request - please check your input",
    401: "Unauthorized - please log in again",
    403: "Forbidden - you do not have permission",
    404: "Not found - the requested resource does not exist",
    500: "Internal server error - please try again later",
    503: "Service unavailable - please try again later",
}


# ── Exceptions ──────────────────────────────────────────────────────────────


class ApiError(Exception):
    """Non-success response from the SOW backend."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.body = body

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code!r}, message={self.message!r})"


class AuthenticationError(ApiError):
    """401 that survived a token refresh, or no refresh was possible."""


class NotFoundError(ApiError):
    pass


class NetworkError(ApiError):
    """The request never produced a response (connect failure, timeout)."""


@dataclass(frozen=True)
class ParsedError:
    message: str
    code: str | None = None


# ── Response Parsing ────────────────────────────────────────────────────────


def _message_from_body(body: Any) -> str | None:
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return None


def error_from_response(response: httpx.Response) -> ApiError:
    """Build the matching ApiError subclass for a non-2xx response."""
    try:
        body: Any = response.json()
    except ValueError:
        body = response.text or None

    status = response.status_code
    message = _message_from_body(body) or STATUS_MESSAGES.get(status, "An error occurred")

    if status == 401:
        cls: type[ApiError] = AuthenticationError
    elif status == 404:
        cls = NotFoundError
    else:
        cls = ApiError
    return cls(message, status_code=status, code=str(status), body=body)


def parse_api_error(error: object) -> ParsedError:
    """Extract a displayable message from any error shape the dashboard sees.

    Handles ApiError instances, ``{"status", "data": {...}}`` dicts, plain
    strings, and anything else (generic message).
    """
    if isinstance(error, ApiError):
        code = str(error.status_code) if error.status_code is not None else error.code
        return ParsedError(message=error.message, code=code)

    if isinstance(error, dict):
        status = error.get("status")
        code = str(status) if status is not None else None
        body_message = _message_from_body(error.get("data"))
        if body_message:
            return ParsedError(message=body_message, code=code)
        root_message = _message_from_body(error)
        if root_message:
            return ParsedError(message=root_message, code=code)
        if status is not None:
            numeric = status if isinstance(status, int) else 500
            return ParsedError(
                message=STATUS_MESSAGES.get(numeric, "An error occurred"),
                code=str(numeric),
            )

    if isinstance(error, str):
        return ParsedError(message=error)

    if isinstance(error, Exception) and str(error):
        return ParsedError(message=str(error))

    return ParsedError(message="An unexpected error occurred")


def is_network_error(error: object) -> bool:
    if isinstance(error, (NetworkError, httpx.TransportError)):
        return True
    if isinstance(error, dict):
        return error.get("status") in ("FETCH_ERROR", 0)
    return False


def is_auth_error(error: object) -> bool:
    if isinstance(error, AuthenticationError):
        return True
    if isinstance(error, ApiError):
        return error.status_code == 401
    if isinstance(error, dict):
        return error.get("status") in (401, "401")
    return False


# ── Step Functions Errors ───────────────────────────────────────────────────

_ERROR_MESSAGE_RE = re.compile(r'"errorMessage":\s*"([^"]+)"')


def _format_for_user(message: str) -> str:
    if len(message) > MAX_ERROR_LENGTH:
        message = message[:MAX_ERROR_LENGTH] + "..."

    if "Template" in message and "not found" in message:
        return message + "\n\nPlease ensure a valid template is assigned to this deal."

    if "no defaultPrompt" in message or "no templateVariables" in message:
        return message + "\n\nThe assigned template may be incomplete. Please contact support."

    return message


def parse_step_function_error(raw: str | None) -> str:
    """Turn a Step Functions failure payload into a user-facing message."""
    if not raw:
        return "Generation failed"

    try:
        parsed = json.loads(raw)
    except ValueError:
        parsed = None
        if "errorMessage" in raw and "errorType" in raw:
            match = _ERROR_MESSAGE_RE.search(raw)
            if match:
                return _format_for_user(match.group(1))

    if isinstance(parsed, dict):
        if parsed.get("error") and parsed.get("cause"):
            try:
                cause = json.loads(parsed["cause"])
            except (TypeError, ValueError):
                cause = None
            if isinstance(cause, dict) and cause.get("errorMessage"):
                return _format_for_user(cause["errorMessage"])
        if parsed.get("errorMessage"):
            return _format_for_user(parsed["errorMessage"])
        if parsed.get("message"):
            return _format_for_user(parsed["message"])

    return _format_for_user(raw)
