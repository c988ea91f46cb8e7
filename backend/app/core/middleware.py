"""
Request middleware — logging, timing, correlation IDs, rate limiting.

Provides:
    • X-Request-ID header injection (correlation ID)
    • Request/response timing (X-Process-Time header)
    • Structured log entry per request
    • Request context for downstream log enrichment
    • Fixed-window per-client rate limiting (429 with Retry-After)
    • Baseline security headers on every response
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Callable, Dict, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from backend.app.core.errors import RateLimitError, build_error_response
from backend.app.core.logging_config import set_request_context

logger = logging.getLogger(__name__)

_QUIET_PREFIXES = ("/docs", "/redoc", "/openapi", "/favicon")

SECURITY_HEADERS: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Permitted-Cross-Domain-Policies": "none",
    "Cross-Origin-Resource-Policy": "same-origin",
}

# Rate-limit table size above which stale windows are dropped
RATE_LIMIT_PRUNE_THRESHOLD = 10_000


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every request with timing, inject correlation ID.

    Request log entry includes:
        - method, path, status_code
        - duration_ms
        - client IP
        - request_id (also returned in X-Request-ID response header)
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex[:16])
        client_ip = _client_ip(request)
        path = request.url.path

        set_request_context(
            request_id=request_id,
            client_ip=client_ip,
            endpoint=path,
            method=request.method,
        )

        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.error(
                "%s %s → 500 (%.1fms) [%s]",
                request.method, path, duration_ms, client_ip,
                extra={"duration_ms": duration_ms, "status_code": 500},
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{duration_ms:.1f}ms"

        if not any(path.startswith(p) for p in _QUIET_PREFIXES):
            log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
            logger.log(
                log_level,
                "%s %s → %d (%.1fms) [%s]",
                request.method, path, response.status_code,
                duration_ms, client_ip,
                extra={
                    "duration_ms": duration_ms,
                    "status_code": response.status_code,
                    "endpoint": path,
                },
            )

        set_request_context()

        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Fixed-window request limiter keyed by client IP.

    Each client may make ``max_requests`` requests per ``window_seconds``.
    Health probes are never counted. Counters live in process memory, so
    the limit is per instance.
    """

    def __init__(
        self,
        app,
        *,
        max_requests: int = 100,
        window_seconds: int = 900,
        exempt_prefixes: Tuple[str, ...] = ("/health",),
        clock: Callable[[], float] = time.monotonic,
        prune_threshold: int = RATE_LIMIT_PRUNE_THRESHOLD,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.exempt_prefixes = exempt_prefixes
        self._clock = clock
        self.prune_threshold = prune_threshold
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._last_prune = clock()
        self._lock = threading.Lock()

    def _hit(self, key: str) -> Tuple[bool, int]:
        """Count one request; return (allowed, seconds until window reset)."""
        now = self._clock()
        with self._lock:
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0
            count += 1
            self._windows[key] = (started, count)

            # At most one full scan per window, however large the table
            if (len(self._windows) > self.prune_threshold
                    and now - self._last_prune >= self.window_seconds):
                self._prune(now)

        retry_after = max(1, int(self.window_seconds - (now - started)))
        return count <= self.max_requests, retry_after

    def _prune(self, now: float) -> None:
        """Drop expired windows. Caller holds the lock."""
        self._windows = {
            k: v for k, v in self._windows.items()
            if now - v[0] < self.window_seconds
        }
        self._last_prune = now

    @property
    def tracked_clients(self) -> int:
        return len(self._windows)

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if any(path.startswith(p) for p in self.exempt_prefixes):
            return await call_next(request)

        allowed, retry_after = self._hit(_client_ip(request))
        if not allowed:
            exc = RateLimitError(retry_after=retry_after)
            logger.warning(
                "Rate limit exceeded for %s on %s", _client_ip(request), path,
                extra={"status_code": exc.status_code, "endpoint": path},
            )
            response = build_error_response(
                exc.status_code, exc.error_code, exc.message,
                exc.details, request,
            )
            response.headers["Retry-After"] = str(retry_after)
            return response

        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Attach baseline hardening headers to every response.

    Headers already set by a handler are left alone.
    """

    def __init__(self, app, *, headers: Optional[Dict[str, str]] = None):
        super().__init__(app)
        self.headers = dict(SECURITY_HEADERS if headers is None else headers)

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        return response
