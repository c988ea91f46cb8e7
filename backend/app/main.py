"""
FastAPI application entry point.

Run with:
    uvicorn backend.app.main:app --reload --port 3000

Or from the project root:
    python -m uvicorn backend.app.main:app --reload

``create_app`` builds an independent application (own store, transport
and sweeper); tests use it to inject a simulated transport and a fake
clock.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# ── Core infrastructure ──
from backend.app.core.config import Settings, settings
from backend.app.core.logging_config import setup_logging, get_logger
from backend.app.core.errors import register_error_handlers
from backend.app.core.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from backend.app.core.health import HealthStatus, run_health_check

# ── Domain ──
from backend.app.notifications.fcm import build_transport
from backend.app.notifications.transport import PushTransport
from backend.app.reports.maintenance import ExpirySweeper
from backend.app.reports.models import valid_categories
from backend.app.reports.service import ReportService
from backend.app.reports.store import Clock

# ── API routers ──
from backend.app.api.v1.reports import router as report_router

# ── Initialise logging ──
setup_logging()
logger = get_logger(__name__)


def create_app(
    app_settings: Optional[Settings] = None,
    *,
    transport: Optional[PushTransport] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """Build the application with its own report service."""
    cfg = app_settings or settings
    push = transport if transport is not None else build_transport(cfg)
    service = ReportService.from_settings(cfg, push, clock=clock)
    sweeper = ExpirySweeper(service.store, interval_seconds=cfg.CLEANUP_INTERVAL_SECONDS)

    # ── Application lifespan (startup / shutdown) ──

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage startup and shutdown events."""
        logger.info(
            "Starting %s v%s [%s] — push notifications %s, categories: %s",
            cfg.APP_NAME, cfg.APP_VERSION, cfg.ENVIRONMENT,
            "ENABLED" if service.push_enabled else "DISABLED",
            ", ".join(valid_categories()),
        )
        await sweeper.start()
        yield
        await sweeper.stop()
        logger.info("Shutting down %s", cfg.APP_NAME)

    app = FastAPI(
        title=cfg.APP_NAME,
        description=(
            "Anonymous, location-tagged incident reports. Locations are "
            "coarsened to ~100 m zones, reports expire after 8 hours, and "
            "each new report is pushed to the subscribers of its zone and "
            "the 8 surrounding zones."
        ),
        version=cfg.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.report_service = service
    app.state.sweeper = sweeper

    # ── Middleware stack (last added runs first) ──

    if cfg.RATE_LIMIT_ENABLED:
        app.add_middleware(
            RateLimitMiddleware,
            max_requests=cfg.RATE_LIMIT_MAX_REQUESTS,
            window_seconds=cfg.RATE_LIMIT_WINDOW_SECONDS,
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.CORS_ORIGINS if not cfg.CORS_ALLOW_ALL else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    # ── Error handlers ──
    register_error_handlers(app)

    # ── Register routers ──
    app.include_router(report_router)

    # ── Root & health endpoints ──

    @app.get("/", tags=["root"])
    async def root():
        return {
            "service": cfg.APP_NAME,
            "version": cfg.APP_VERSION,
            "environment": cfg.ENVIRONMENT,
            "privacy": "No user tracking enabled",
            "push_notifications": "enabled" if service.push_enabled else "disabled",
            "docs": "/docs",
        }

    @app.get("/health", tags=["health"])
    async def health_check():
        """Deep health probe with report counters."""
        report = await run_health_check(service, sweeper, cfg)
        stats = service.stats()
        body = report.to_dict()
        body.update({
            "reports_count": stats.total,
            "categories": dict(stats.per_category),
            "valid_categories": valid_categories(),
            "push_notifications": "enabled" if service.push_enabled else "disabled",
        })
        return body

    @app.get("/health/live", tags=["health"])
    async def liveness():
        """Kubernetes liveness probe — is the process alive?"""
        return {"status": "alive"}

    @app.get("/health/ready", tags=["health"])
    async def readiness():
        """Kubernetes readiness probe — can we serve traffic?"""
        report = await run_health_check(service, sweeper, cfg)
        if report.status == HealthStatus.UNHEALTHY:
            return JSONResponse(status_code=503, content=report.to_dict())
        return report.to_dict()

    return app


app = create_app()
