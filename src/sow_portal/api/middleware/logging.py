"""Structured request logging middleware.

Logs every request with:
- method, path, status_code, duration_ms
- user (Cognito ``sub`` read from the bearer ID token, if present)
- request_id (UUID generated per request, added to response as X-Request-ID)
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import Request, Response
from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = structlog.get_logger(__name__)


def _user_from_header(auth_header: str | None) -> str | None:
    # The BFF does not verify tokens; the backend does. This is for log context only.
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    try:
        claims = jwt.get_unverified_claims(auth_header[7:])
    except JWTError:
        return None
    return claims.get("sub") or claims.get("email")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request with caller and timing.

    Generates a unique X-Request-ID for each request and includes it in
    both the log entry and the response headers.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = str(uuid.uuid4())
        start_time = time.monotonic()
        user_id = _user_from_header(request.headers.get("Authorization"))

        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                "request_error",
                method=request.method,
                path=request.url.path,
                status_code=500,
                duration_ms=round((time.monotonic() - start_time) * 1000, 2),
                user_id=user_id,
                request_id=request_id,
            )
            raise

        duration_ms = round((time.monotonic() - start_time) * 1000, 2)
        response.headers["X-Request-ID"] = request_id

        log_method = logger.info if response.status_code < 400 else logger.warning
        if response.status_code >= 500:
            log_method = logger.error

        log_method(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
            user_id=user_id,
            request_id=request_id,
        )
        return response
