"""
models.py — Data structures for zone-topic push notifications.

Defines:
    • TopicAlert        — one message addressed to one zone topic
    • DeliveryStatus    — outcome state of one per-zone operation
    • DeliveryOutcome   — result of sending to / subscribing on one topic
    • BroadcastResult   — aggregated outcomes of a report fan-out
    • SubscriptionResult — zones resolved for a client + per-zone outcomes

═══════════════════════════════════════════════════════════════════════════
PARTIAL FAILURE
═══════════════════════════════════════════════════════════════════════════

Fan-out is best-effort. Every zone gets its own DeliveryOutcome and a
failure on one zone never cancels the others. Nothing is rolled back.

Two distinct "nothing was sent" cases:

    transport disabled    → BroadcastResult(enabled=False), no outcomes,
                            no transport calls at all
    every zone failed     → BroadcastResult(enabled=True), 9 FAILED
                            outcomes, one transport call per zone

═══════════════════════════════════════════════════════════════════════════
ALERT DATA BLOCK
═══════════════════════════════════════════════════════════════════════════

Mobile clients render notifications from the data block, so its key set
is fixed (ALERT_DATA_KEYS). All values are strings, as topic messaging
providers require:

    reportId, zone, category, timestamp, expires, hasPhoto, language
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

ALERT_DATA_KEYS = (
    "reportId", "zone", "category", "timestamp", "expires", "hasPhoto", "language",
)

PUSH_DISABLED_REASON = "Push notifications disabled"


class DeliveryStatus(str, Enum):
    """Per-zone operation state."""
    DELIVERED = "delivered"
    FAILED    = "failed"


@dataclass(frozen=True)
class TopicAlert:
    """A push message for one zone topic."""
    topic: str
    title: str
    body: str
    data: Dict[str, str]
    color: str = "#FF0000"
    ttl_seconds: int = 8 * 60 * 60


@dataclass
class DeliveryOutcome:
    """Result of one transport call for one zone."""
    zone: str
    topic: str
    status: DeliveryStatus = DeliveryStatus.DELIVERED
    message_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == DeliveryStatus.DELIVERED

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "zone": self.zone,
            "topic": self.topic,
            "success": self.success,
        }
        if self.message_id is not None:
            d["messageId"] = self.message_id
        if self.error is not None:
            d["error"] = self.error
        return d


@dataclass
class BroadcastResult:
    """Aggregated outcome of broadcasting one report."""
    enabled: bool
    outcomes: List[DeliveryOutcome] = field(default_factory=list)
    reason: Optional[str] = None

    @property
    def delivered(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    @property
    def failed_zones(self) -> List[str]:
        return [o.zone for o in self.outcomes if not o.success]

    def to_dict(self) -> Dict[str, Any]:
        if not self.enabled:
            return {"success": False, "reason": self.reason or PUSH_DISABLED_REASON}
        return {
            "success": True,
            "delivered": self.delivered,
            "failed": self.failed,
            "failed_zones": self.failed_zones,
            "notifications": [o.to_dict() for o in self.outcomes],
        }


@dataclass
class SubscriptionResult:
    """Zones resolved for a subscriber and the topic registrations made."""
    zone: str
    affected_zones: List[str]
    enabled: bool
    platform: Optional[str] = None
    outcomes: List[DeliveryOutcome] = field(default_factory=list)

    @property
    def registered(self) -> bool:
        """True when at least one topic registration was attempted."""
        return len(self.outcomes) > 0

    @property
    def failed_zones(self) -> List[str]:
        return [o.zone for o in self.outcomes if not o.success]

    @property
    def message(self) -> str:
        if self.registered:
            return "Subscribed to push notifications"
        if self.enabled:
            return "Subscription registered (no push token supplied)"
        return "Subscription registered (push notifications disabled)"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "zone": self.zone,
            "affected_zones": list(self.affected_zones),
            "platform": self.platform,
            "push_enabled": self.enabled,
            "subscriptions": [o.to_dict() for o in self.outcomes],
            "failed_zones": self.failed_zones,
            "message": self.message,
        }
