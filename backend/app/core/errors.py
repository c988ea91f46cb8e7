"""
Centralised error handling — exception hierarchy + FastAPI handlers.

Provides:
    • Domain-specific exception classes
    • Consistent JSON error response format
    • Automatic logging of unhandled errors
    • Request context in error responses (non-production)

Only client-input problems and store invariant violations are raised to
callers. Per-zone push failures are returned as data by the dispatcher and
never surface here.

Usage:
    from backend.app.core.errors import (
        SafetyAPIError,
        MissingFieldsError,
        InvalidCategoryError,
        register_error_handlers,
    )

    raise MissingFieldsError(["content"])
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Iterable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.app.core.config import settings

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class SafetyAPIError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class MissingFieldsError(SafetyAPIError):
    """Report submission lacks lat, lng or content (400)."""

    def __init__(self, fields: Iterable[str]):
        missing = list(fields)
        super().__init__(
            message="Missing required fields",
            status_code=400,
            error_code="MISSING_FIELDS",
            details={"missing": missing},
        )


class MissingLocationError(SafetyAPIError):
    """Subscription request lacks lat or lng (400)."""

    def __init__(self, fields: Iterable[str]):
        super().__init__(
            message="Missing location",
            status_code=400,
            error_code="MISSING_LOCATION",
            details={"missing": list(fields)},
        )


class InvalidCategoryError(SafetyAPIError):
    """Category is not one of the enumerated values (400)."""

    def __init__(self, category: Any, valid_categories: Iterable[str]):
        super().__init__(
            message="Invalid category",
            status_code=400,
            error_code="INVALID_CATEGORY",
            details={
                "category": category,
                "valid_categories": list(valid_categories),
            },
        )
        self.category = category
        self.valid_categories = self.details["valid_categories"]


class DuplicateReportError(SafetyAPIError):
    """Report id collision in the store (500) — should never happen."""

    def __init__(self, report_id: str):
        super().__init__(
            message=f"Report id {report_id} already exists",
            status_code=500,
            error_code="DUPLICATE_REPORT_ID",
            details={"report_id": report_id},
        )


class TransportUnavailableError(SafetyAPIError):
    """Push transport is not configured (503)."""

    def __init__(self, message: str = "Push notifications disabled"):
        super().__init__(
            message=message,
            status_code=503,
            error_code="TRANSPORT_UNAVAILABLE",
        )


class RateLimitError(SafetyAPIError):
    """Rate limit exceeded (429)."""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: int = 60):
        super().__init__(
            message=message,
            status_code=429,
            error_code="RATE_LIMIT_EXCEEDED",
            details={"retry_after_seconds": retry_after},
        )


# ═══════════════════════════════════════════════════════════════════════════
# Error Response Builder
# ═══════════════════════════════════════════════════════════════════════════

def build_error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: Dict[str, Any] = {
        "error": {
            "code": error_code,
            "message": message,
            "status": status_code,
        }
    }

    if details:
        body["error"]["details"] = details

    # Include request path in non-production
    if request and not settings.is_production:
        body["error"]["path"] = str(request.url.path)
        body["error"]["method"] = request.method

    return JSONResponse(status_code=status_code, content=body)


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""

    @app.exception_handler(SafetyAPIError)
    async def handle_safety_error(request: Request, exc: SafetyAPIError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "API Error [%s]: %s | details=%s",
            exc.error_code, exc.message, exc.details,
        )
        return build_error_response(
            exc.status_code, exc.error_code, exc.message,
            exc.details, request,
        )

    @app.exception_handler(ValueError)
    async def handle_value_error(request: Request, exc: ValueError):
        logger.warning("ValueError: %s", exc)
        return build_error_response(
            422, "VALIDATION_ERROR", str(exc), request=request,
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.critical(
            "Unhandled exception: %s\n%s",
            exc, traceback.format_exc(),
        )
        message = str(exc) if settings.DEBUG else "Internal server error"
        details = (
            {"traceback": traceback.format_exc().split("\n")}
            if settings.DEBUG else None
        )
        return build_error_response(
            500, "INTERNAL_ERROR", message, details, request,
        )
