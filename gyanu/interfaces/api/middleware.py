"""
API Middleware - Request/response processing.

Provides:
- Request ID tracking
- Response latency measurement
- Error handling with taxonomy codes
- Rate limiting of chat requests
"""

from __future__ import annotations

import logging
import time
import uuid
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from gyanu.config.errors import ErrorCode, GyanuError

logger = logging.getLogger(__name__)

__all__ = [
    "ErrorHandlerMiddleware",
    "LatencyMiddleware",
    "RateLimitMiddleware",
    "RequestIDMiddleware",
    "error_status",
]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach request ID for tracing across logs and responses."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class LatencyMiddleware(BaseHTTPMiddleware):
    """Track and log request latency."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start_time = time.perf_counter()

        response = await call_next(request)

        # Streaming responses are timed to the first byte only
        duration_ms = (time.perf_counter() - start_time) * 1000
        response.headers["X-Response-Time-Ms"] = f"{duration_ms:.2f}"

        logger.info(
            "%s %s status=%d latency_ms=%.2f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            getattr(request.state, "request_id", "unknown"),
        )
        return response


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Convert GyanuError exceptions to structured JSON responses."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        try:
            return await call_next(request)
        except GyanuError as e:
            request_id = getattr(request.state, "request_id", "unknown")
            status = error_status(e.code)
            if status >= 500:
                logger.error("%s: %s request_id=%s details=%s", e.code.value, e.message, request_id, e.details)
            else:
                logger.warning("%s: %s request_id=%s", e.code.value, e.message, request_id)
            return JSONResponse(
                status_code=status,
                content={"error": e.to_dict(), "request_id": request_id},
            )
        except Exception as e:
            request_id = getattr(request.state, "request_id", "unknown")
            logger.exception("Unhandled error: %s request_id=%s", str(e), request_id)
            return JSONResponse(
                status_code=500,
                content={
                    "error": {
                        "code": ErrorCode.INTERNAL_ERROR.value,
                        "message": "Internal server error",
                        "details": {},
                    },
                    "request_id": request_id,
                },
            )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Fixed-window in-memory rate limiting per client IP.

    Only paths under one of ``prefixes`` are counted; health and usage
    endpoints are never limited.
    """

    def __init__(
        self,
        app: ASGIApp,
        requests_per_minute: int = 30,
        prefixes: tuple[str, ...] = ("/api/chat",),
    ) -> None:
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.prefixes = prefixes
        self.buckets: dict[str, dict[str, Any]] = defaultdict(lambda: {"window": 0, "tokens": 0})

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if not request.url.path.startswith(self.prefixes):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        window = int(time.time() // 60)
        bucket = self.buckets[client_ip]

        if bucket["window"] != window:
            bucket["window"] = window
            bucket["tokens"] = self.requests_per_minute

        if bucket["tokens"] <= 0:
            request_id = getattr(request.state, "request_id", "unknown")
            logger.warning("Rate limit exceeded for %s request_id=%s", client_ip, request_id)
            return JSONResponse(
                status_code=429,
                content={
                    "error": {
                        "code": ErrorCode.RATE_LIMITED.value,
                        "message": "Too many requests. Please retry after 60 seconds.",
                        "details": {"retry_after": 60},
                    },
                    "request_id": request_id,
                },
                headers={"Retry-After": "60"},
            )

        bucket["tokens"] -= 1

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(bucket["tokens"])
        response.headers["X-RateLimit-Limit"] = str(self.requests_per_minute)
        return response


def error_status(code: ErrorCode) -> int:
    """Map error codes to HTTP status codes."""
    mapping = {
        # 400 Bad Request
        ErrorCode.VALIDATION_ERROR: 400,
        # 401 Unauthorized
        ErrorCode.LLM_AUTH_FAILED: 401,
        # 429 Rate Limited
        ErrorCode.RATE_LIMITED: 429,
        # 502 Bad Gateway
        ErrorCode.LLM_INVALID_RESPONSE: 502,
        # 503 Service Unavailable
        ErrorCode.SERVICE_UNAVAILABLE: 503,
        ErrorCode.GATE_TIMEOUT: 503,
        ErrorCode.LLM_UNAVAILABLE: 503,
        ErrorCode.RETRIEVAL_FAILED: 503,
        ErrorCode.WEB_SEARCH_FAILED: 503,
        ErrorCode.CONFIG_MISSING: 503,
        # 504 Gateway Timeout
        ErrorCode.LLM_TIMEOUT: 504,
    }
    return mapping.get(code, 500)
