"""
FastAPI routes: anonymous reports, zone queries and push subscriptions.

Provides endpoints to:
    POST /api/v1/report                       — submit a report + broadcast
    GET  /api/v1/zone/{zone_id}               — live reports in a zone
    GET  /api/v1/reports/category/{category}  — live reports of a category
    POST /api/v1/subscribe                    — subscribe a device to its zones
    GET  /api/v1/debug/zones                  — per-zone counters

Handlers are plain ``def`` functions: FastAPI runs them in its thread
pool, so a slow push provider blocks only the request that triggered it.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request

from backend.app.api.schemas import (
    CategoryReportsResponse,
    ReportRequest,
    SubscribeRequest,
    ZoneReportsResponse,
)
from backend.app.reports.models import (
    category_icons,
    parse_category,
    valid_categories,
)
from backend.app.reports.service import ReportService

router = APIRouter(prefix="/api/v1", tags=["reports"])


def get_report_service(request: Request) -> ReportService:
    """The service instance created at application startup."""
    return request.app.state.report_service


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/report",
    summary="Submit an anonymous report",
    description=(
        "Anonymises the location to a zone, scrubs the text, stores the "
        "report for 8 hours and pushes an alert to the zone and its 8 "
        "neighbours. Push failures are reported per zone and never fail "
        "the submission."
    ),
)
def submit_report(
    body: ReportRequest,
    service: ReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    result = service.submit_report(
        body.lat, body.lng, body.content,
        language=body.language,
        has_photo=body.has_photo,
        category=body.category,
    )
    return result.to_dict()


@router.get(
    "/zone/{zone_id}",
    response_model=ZoneReportsResponse,
    summary="Reports in a zone",
    description="Up to 20 most recent live reports; unknown category filters are ignored.",
)
def get_zone_reports(
    zone_id: str,
    category: Optional[str] = Query(None, description="safety | fun | lost"),
    service: ReportService = Depends(get_report_service),
):
    reports = service.query_zone(zone_id, category)
    return {
        "zone": zone_id,
        "category_filter": category or "all",
        "reports": reports,
        "count": len(reports),
        "valid_categories": valid_categories(),
        "timestamp": service.store.now_ms(),
    }


@router.get(
    "/reports/category/{category}",
    response_model=CategoryReportsResponse,
    summary="Reports of one category",
    description="Up to 50 most recent live reports across all zones.",
)
def get_category_reports(
    category: str,
    service: ReportService = Depends(get_report_service),
):
    normalized = parse_category(category)
    reports = service.query_category(normalized)
    return {
        "category": normalized.value,
        "categoryIcon": normalized.icon,
        "reports": reports,
        "count": len(reports),
        "timestamp": service.store.now_ms(),
    }


@router.post(
    "/subscribe",
    summary="Subscribe a device to its neighbourhood",
    description=(
        "Resolves the location to a zone and, when a token is supplied and "
        "push is enabled, subscribes the token to all 9 zone topics."
    ),
)
def subscribe(
    body: SubscribeRequest,
    service: ReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    result = service.subscribe(
        body.lat, body.lng,
        platform=body.platform,
        token=body.token,
    )
    payload = result.to_dict()
    payload["valid_categories"] = valid_categories()
    payload["timestamp"] = service.store.now_ms()
    return payload


@router.get(
    "/debug/zones",
    summary="Per-zone report counters",
)
def debug_zones(service: ReportService = Depends(get_report_service)) -> Dict[str, Any]:
    payload = service.stats().to_dict()
    payload.update({
        "valid_categories": valid_categories(),
        "category_icons": category_icons(),
        "push_enabled": service.push_enabled,
        "timestamp": service.store.now_ms(),
    })
    return payload
