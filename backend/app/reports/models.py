"""
models.py — Data structures for anonymous incident reports.

Defines:
    • Category    — closed set of report categories with display metadata
    • Report      — an immutable, TTL-bounded anonymous report
    • StoreStats  — counters over the live (unexpired) reports

═══════════════════════════════════════════════════════════════════════════
CATEGORIES
═══════════════════════════════════════════════════════════════════════════

    Category    Icon    Alert Title          Android colour
    ────────    ────    ─────────────────    ──────────────
    safety      ⚠️      Safety Alert         #FF0000
    fun         🎉      Event Alert          #FFD700
    lost        🔍      Lost/Found Alert     #2196F3

Two parsing entry points:

    normalize_category(value)  — lenient, used on submission.
                                 Unknown / missing → SAFETY.
    parse_category(value)      — strict, used by category queries.
                                 Unknown → InvalidCategoryError.

Both trim whitespace and ignore case, so "SAFETY " is "safety".

═══════════════════════════════════════════════════════════════════════════
TIMESTAMPS
═══════════════════════════════════════════════════════════════════════════

All timestamps are integer epoch milliseconds.

    created_at = floor(now / 15 min) × 15 min     shown to clients
    expires_at = now + 8 h                        drives eviction

expires_at is computed from the exact submission instant, not from the
fuzzed created_at, so expires_at − created_at varies between 8 h and
8 h 15 min.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from backend.app.core.errors import InvalidCategoryError


# ═══════════════════════════════════════════════════════════════════════════
# Category
# ═══════════════════════════════════════════════════════════════════════════

class Category(str, Enum):
    """Report category — the only values a report may carry."""
    SAFETY = "safety"
    FUN    = "fun"
    LOST   = "lost"

    @property
    def icon(self) -> str:
        return _CATEGORY_ICONS[self]

    @property
    def alert_title(self) -> str:
        """Alert title including the icon, e.g. '🎉 Event Alert'."""
        return f"{self.icon} {_CATEGORY_TITLES[self]}"

    @property
    def color(self) -> str:
        return _CATEGORY_COLORS[self]


DEFAULT_CATEGORY = Category.SAFETY

_CATEGORY_ICONS: Dict[Category, str] = {
    Category.SAFETY: "⚠️",
    Category.FUN:    "🎉",
    Category.LOST:   "🔍",
}

_CATEGORY_TITLES: Dict[Category, str] = {
    Category.SAFETY: "Safety Alert",
    Category.FUN:    "Event Alert",
    Category.LOST:   "Lost/Found Alert",
}

_CATEGORY_COLORS: Dict[Category, str] = {
    Category.SAFETY: "#FF0000",
    Category.FUN:    "#FFD700",
    Category.LOST:   "#2196F3",
}


def valid_categories() -> List[str]:
    return [c.value for c in Category]


def category_icons() -> Dict[str, str]:
    return {c.value: c.icon for c in Category}


def find_category(value: Any) -> Optional[Category]:
    """Case-insensitive lookup; None for anything outside the set."""
    if isinstance(value, Category):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Category(value.strip().lower())
    except ValueError:
        return None


def normalize_category(value: Any) -> Category:
    """
    Map arbitrary input to a Category, defaulting to SAFETY.

    Examples
    --------
    >>> normalize_category(" FUN ")
    <Category.FUN: 'fun'>
    >>> normalize_category("bogus")
    <Category.SAFETY: 'safety'>
    >>> normalize_category(None)
    <Category.SAFETY: 'safety'>
    """
    return find_category(value) or DEFAULT_CATEGORY


def parse_category(value: Any) -> Category:
    """Strict variant of normalize_category; raises InvalidCategoryError."""
    category = find_category(value)
    if category is None:
        raise InvalidCategoryError(value, valid_categories())
    return category


# ═══════════════════════════════════════════════════════════════════════════
# Report
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Report:
    """
    An anonymous incident report.

    Attributes
    ----------
    id : str
        Opaque identifier, "report_<32 hex chars>".
    zone : str
        Anonymised origin zone ("<latBucket>_<lngBucket>").
    content : str
        Sanitised text, at most 500 characters.
    language : str
        Free-form locale tag; "unknown" when not supplied.
    has_photo : bool
    category : Category
    created_at : int
        Fuzzed creation time (epoch ms, 15-minute buckets).
    expires_at : int
        Exact creation time + TTL (epoch ms).
    """
    id: str
    zone: str
    content: str
    language: str = "unknown"
    has_photo: bool = False
    category: Category = DEFAULT_CATEGORY
    created_at: int = 0
    expires_at: int = 0

    def is_live(self, now_ms: int) -> bool:
        return now_ms < self.expires_at

    def to_view(self) -> Dict[str, Any]:
        """Client-facing representation."""
        return {
            "id": self.id,
            "zone": self.zone,
            "content": self.content,
            "language": self.language,
            "hasPhoto": self.has_photo,
            "category": self.category.value,
            "categoryIcon": self.category.icon,
            "timestamp": self.created_at,
            "expires": self.expires_at,
        }


# ═══════════════════════════════════════════════════════════════════════════
# Stats
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class StoreStats:
    """Counters over unexpired reports."""
    total: int = 0
    per_category: Dict[str, int] = field(
        default_factory=lambda: {c.value: 0 for c in Category}
    )
    per_zone: Dict[str, Dict[str, int]] = field(default_factory=dict)

    @property
    def zone_count(self) -> int:
        return len(self.per_zone)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_reports": self.total,
            "total_zones": self.zone_count,
            "category_breakdown": dict(self.per_category),
            "zones": {z: dict(counts) for z, counts in self.per_zone.items()},
        }
