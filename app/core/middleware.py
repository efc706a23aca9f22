"""Custom middleware for request tracing, error handling and security headers."""

import logging
import uuid
from typing import Callable

import structlog
from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.core.errors import ErrorCode, ErrorResponse

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach a request ID and turn unhandled exceptions into standard errors.

    The request ID comes from the ``X-Request-ID`` header when the client sends
    one. It is stored on ``request.state``, bound to the structlog context for
    every log line emitted during the request, and echoed in the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled exception during %s %s", request.method, request.url.path)
            response = ErrorResponse.create(
                code=ErrorCode.INTERNAL_ERROR,
                message="Internal server error",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                request_id=request_id,
            )
        finally:
            structlog.contextvars.clear_contextvars()

        response.headers["X-Request-ID"] = request_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add OWASP-recommended security headers to all responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "geolocation=(), microphone=(), camera=(), payment=(), usb=()"
        )
        response.headers["Cross-Origin-Opener-Policy"] = "same-origin"
        # The API serves JSON only
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        # Only enable HSTS in production with HTTPS
        if not settings.DEBUG:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response
