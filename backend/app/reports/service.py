"""
service.py — Report submission, queries and subscriptions.

Single entry point used by the HTTP layer. Owns nothing global: the
store, transport and helpers are passed in, and the application creates
one ReportService at startup.

Submission pipeline:

    lat/lng ──▶ anonymize_location ──▶ zone
    content ──▶ sanitize_content   ──▶ clean text
                                          │
                    ReportStore.create ◀──┘
                            │
                            ▼
               neighborhood(zone) ──▶ broadcast_report ──▶ BroadcastResult
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from backend.app.core.config import Settings
from backend.app.core.errors import MissingFieldsError, MissingLocationError
from backend.app.notifications.dispatcher import broadcast_report
from backend.app.notifications.models import BroadcastResult, SubscriptionResult
from backend.app.notifications.subscriptions import Anonymizer, subscribe_location
from backend.app.notifications.transport import PushTransport
from backend.app.reports.models import Report, StoreStats, parse_category
from backend.app.reports.sanitizer import sanitize_content
from backend.app.reports.store import Clock, ReportStore
from backend.app.spatial.zones import anonymize_location, neighborhood

logger = logging.getLogger(__name__)

Sanitizer = Callable[[Optional[str]], str]


@dataclass
class SubmissionResult:
    """Stored report plus the fan-out it triggered."""
    report: Report
    affected_zones: List[str]
    push: BroadcastResult

    def to_dict(self) -> Dict[str, Any]:
        category = self.report.category
        return {
            "success": True,
            "reportId": self.report.id,
            "zone": self.report.zone,
            "category": category.value,
            "categoryIcon": category.icon,
            "timestamp": self.report.created_at,
            "expires": self.report.expires_at,
            "affected_zones": list(self.affected_zones),
            "push_notifications": self.push.to_dict(),
            "message": f"{category.alert_title} submitted successfully",
        }


class ReportService:
    """
    Exposed operations of the alerting core.

    Usage:
        service = ReportService(ReportStore(), SimulatedTransport())
        result = service.submit_report(37.7749, -122.4194, "Road flooded")
        service.query_zone(result.report.zone)
    """

    def __init__(
        self,
        store: ReportStore,
        transport: PushTransport,
        *,
        sanitizer: Sanitizer = sanitize_content,
        anonymizer: Anonymizer = anonymize_location,
        body_max_length: int = 100,
    ):
        self.store = store
        self.transport = transport
        self._sanitize = sanitizer
        self._anonymize = anonymizer
        self.body_max_length = body_max_length

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: PushTransport,
        *,
        clock: Optional[Clock] = None,
    ) -> "ReportService":
        store_kwargs: Dict[str, Any] = {}
        if clock is not None:
            store_kwargs["clock"] = clock
        store = ReportStore(
            ttl_seconds=settings.REPORT_TTL_SECONDS,
            bucket_seconds=settings.TIMESTAMP_BUCKET_SECONDS,
            zone_limit=settings.ZONE_QUERY_LIMIT,
            category_limit=settings.CATEGORY_QUERY_LIMIT,
            **store_kwargs,
        )
        return cls(
            store,
            transport,
            sanitizer=functools.partial(
                sanitize_content, max_length=settings.CONTENT_MAX_LENGTH,
            ),
            anonymizer=functools.partial(
                anonymize_location,
                noise_degrees=settings.LOCATION_NOISE_DEGREES,
                precision=settings.ZONE_PRECISION,
            ),
            body_max_length=settings.PUSH_BODY_MAX_LENGTH,
        )

    @property
    def push_enabled(self) -> bool:
        return self.transport.enabled

    # ── Reports ──

    def submit_report(
        self,
        lat: Optional[float],
        lng: Optional[float],
        content: Optional[str],
        language: Optional[str] = None,
        has_photo: bool = False,
        category: Any = None,
    ) -> SubmissionResult:
        """
        Anonymise, store and broadcast a report.

        Raises
        ------
        MissingFieldsError
            If lat or lng is None, or content is missing or blank.
        """
        missing = [
            name for name, value in (("lat", lat), ("lng", lng)) if value is None
        ]
        if content is None or not content.strip():
            missing.append("content")
        if missing:
            raise MissingFieldsError(missing)

        location = self._anonymize(lat, lng)
        report = self.store.create(
            zone=location.zone,
            content=self._sanitize(content),
            language=language,
            has_photo=has_photo,
            category=category,
        )

        zones = neighborhood(report.zone)
        push = broadcast_report(
            report, zones, self.transport,
            body_max_length=self.body_max_length,
            ttl_seconds=self.store.ttl_ms // 1000,
        )
        return SubmissionResult(report=report, affected_zones=zones, push=push)

    def query_zone(self, zone_id: str, category: Any = None) -> List[Dict[str, Any]]:
        reports = self.store.get_by_zone(zone_id, category)
        logger.debug("Found %d reports for zone %s", len(reports), zone_id)
        return [r.to_view() for r in reports]

    def query_category(self, category: Any) -> List[Dict[str, Any]]:
        """Raises InvalidCategoryError for values outside the enumerated set."""
        normalized = parse_category(category)
        return [r.to_view() for r in self.store.get_by_category(normalized)]

    def stats(self) -> StoreStats:
        return self.store.stats()

    # ── Subscriptions ──

    def subscribe(
        self,
        lat: Optional[float],
        lng: Optional[float],
        platform: Optional[str] = None,
        token: Optional[str] = None,
    ) -> SubscriptionResult:
        """
        Resolve the caller's zones and register ``token`` on their topics.

        Raises
        ------
        MissingLocationError
            If lat or lng is None.
        """
        missing = [
            name for name, value in (("lat", lat), ("lng", lng)) if value is None
        ]
        if missing:
            raise MissingLocationError(missing)

        return subscribe_location(
            lat, lng, self.transport,
            token=token,
            platform=platform,
            anonymizer=self._anonymize,
        )
