"""
store.py — TTL-bounded, thread-safe in-memory report index.

The store owns the lifecycle of every Report: it generates ids and
timestamps on creation, answers zone / category / stats queries, and
physically removes expired entries when swept.

═══════════════════════════════════════════════════════════════════════════
EXPIRY MODEL
═══════════════════════════════════════════════════════════════════════════

Two mechanisms work together:

    1. Lazy filtering   — every read keeps only reports with
                          now < expires_at. Query results never depend
                          on when the last sweep ran.
    2. Active sweeping  — evict_expired() deletes dead entries to
                          reclaim memory. Run hourly by ExpirySweeper.

No tombstones are kept: once swept, a report is simply gone.

═══════════════════════════════════════════════════════════════════════════
LOCKING
═══════════════════════════════════════════════════════════════════════════

A single threading.Lock guards the id → Report dict. Readers copy the
values under the lock and filter / sort outside it. The sweep scans a
snapshot and only takes the lock again for the deletions. Reports are
frozen dataclasses, so sharing them across threads is safe.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from backend.app.core.errors import DuplicateReportError
from backend.app.reports.models import (
    Report,
    StoreStats,
    find_category,
    normalize_category,
    parse_category,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], float]  # epoch seconds

DEFAULT_TTL_SECONDS = 8 * 60 * 60
DEFAULT_BUCKET_SECONDS = 15 * 60
DEFAULT_ZONE_LIMIT = 20
DEFAULT_CATEGORY_LIMIT = 50


def generate_report_id() -> str:
    return f"report_{uuid.uuid4().hex}"


def _newest_first(reports: List[Report]) -> List[Report]:
    return sorted(reports, key=lambda r: r.created_at, reverse=True)


class ReportStore:
    """
    In-memory report index with TTL eviction.

    Usage:
        store = ReportStore()
        report = store.create(zone="37774_-122420", content="Road blocked")
        store.get_by_zone("37774_-122420")
        store.evict_expired()
    """

    def __init__(
        self,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        bucket_seconds: int = DEFAULT_BUCKET_SECONDS,
        zone_limit: int = DEFAULT_ZONE_LIMIT,
        category_limit: int = DEFAULT_CATEGORY_LIMIT,
        clock: Clock = time.time,
    ):
        self.ttl_ms = int(ttl_seconds * 1000)
        self.bucket_ms = int(bucket_seconds * 1000)
        self.zone_limit = zone_limit
        self.category_limit = category_limit
        self._clock = clock
        self._reports: Dict[str, Report] = {}
        self._lock = threading.Lock()

    # ── Time helpers ──

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def fuzz_timestamp(self, now_ms: int) -> int:
        """Round down to the start of the current bucket."""
        return (now_ms // self.bucket_ms) * self.bucket_ms

    # ── Writes ──

    def create(
        self,
        *,
        zone: str,
        content: str,
        language: Optional[str] = None,
        has_photo: bool = False,
        category: Any = None,
    ) -> Report:
        """
        Build a report stamped from the store clock and insert it.

        ``category`` is normalised (unknown → safety); ``content`` must
        already be sanitised.
        """
        now = self.now_ms()
        report = Report(
            id=generate_report_id(),
            zone=zone,
            content=content,
            language=language or "unknown",
            has_photo=bool(has_photo),
            category=normalize_category(category),
            created_at=self.fuzz_timestamp(now),
            expires_at=now + self.ttl_ms,
        )
        self.put(report)
        return report

    def put(self, report: Report) -> None:
        """
        Insert a report.

        Raises
        ------
        DuplicateReportError
            If the id is already present. With uuid4 ids this indicates a
            bug, not bad input, and is not retried.
        """
        with self._lock:
            if report.id in self._reports:
                raise DuplicateReportError(report.id)
            self._reports[report.id] = report

        logger.info(
            "%s Report %s stored in zone %s (%s)",
            report.category.icon, report.id, report.zone, report.category.value,
            extra={
                "report_id": report.id,
                "zone": report.zone,
                "category": report.category.value,
            },
        )

    # ── Reads ──

    def _live(self) -> List[Report]:
        now = self.now_ms()
        with self._lock:
            snapshot = list(self._reports.values())
        return [r for r in snapshot if r.is_live(now)]

    def get(self, report_id: str) -> Optional[Report]:
        with self._lock:
            report = self._reports.get(report_id)
        if report is None or not report.is_live(self.now_ms()):
            return None
        return report

    def get_by_zone(self, zone: str, category: Any = None) -> List[Report]:
        """
        Most recent live reports in one zone.

        An unrecognised ``category`` filter is ignored rather than
        rejected.
        """
        wanted = find_category(category) if category else None
        matches = [
            r for r in self._live()
            if r.zone == zone and (wanted is None or r.category is wanted)
        ]
        return _newest_first(matches)[: self.zone_limit]

    def get_by_category(self, category: Any) -> List[Report]:
        """
        Most recent live reports of one category across all zones.

        Raises
        ------
        InvalidCategoryError
            If ``category`` is not one of the enumerated values.
        """
        wanted = parse_category(category)
        matches = [r for r in self._live() if r.category is wanted]
        return _newest_first(matches)[: self.category_limit]

    def stats(self) -> StoreStats:
        stats = StoreStats()
        for report in self._live():
            cat = report.category.value
            stats.total += 1
            stats.per_category[cat] += 1
            zone = stats.per_zone.setdefault(report.zone, {"total": 0})
            zone["total"] += 1
            zone[cat] = zone.get(cat, 0) + 1
        return stats

    def __len__(self) -> int:
        """Physical size, including expired entries not yet swept."""
        with self._lock:
            return len(self._reports)

    # ── Maintenance ──

    def evict_expired(self) -> int:
        """
        Delete every report whose expiry has passed.

        Idempotent and safe to run alongside reads and writes.

        Returns
        -------
        int
            Number of reports removed by this call.
        """
        now = self.now_ms()
        with self._lock:
            snapshot = list(self._reports.items())

        expired = [rid for rid, r in snapshot if not r.is_live(now)]
        if not expired:
            return 0

        removed = 0
        with self._lock:
            for rid in expired:
                if self._reports.pop(rid, None) is not None:
                    removed += 1

        if removed:
            logger.info("Cleaned up %d expired reports", removed)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._reports.clear()
