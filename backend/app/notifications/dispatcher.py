"""
dispatcher.py — Fan a new report out to its neighbourhood's zone topics.

═══════════════════════════════════════════════════════════════════════════
DISPATCH FLOW
═══════════════════════════════════════════════════════════════════════════

    ┌─────────────────────┐
    │  New report +       │
    │  neighbourhood (9)  │
    └─────────┬───────────┘
              │
              ▼
    ┌─────────────────────┐    transport.enabled is False
    │  1. Transport check │ ─────────────────────────────▶ BroadcastResult(
    └─────────┬───────────┘                                  enabled=False)
              │
              ▼
    ┌─────────────────────┐
    │  2. Build alert     │  title  = "<icon> <category title>"
    │     per zone        │  body   = "<icon> <content ≤100>[...]"
    │                     │  topic  = "zone_<zone>"
    └─────────┬───────────┘
              │
              ▼
    ┌─────────────────────┐
    │  3. Send, one call  │  Exceptions are caught per zone and
    │     per zone        │  recorded as FAILED; the loop continues.
    └─────────┬───────────┘
              │
              ▼
    ┌─────────────────────┐
    │  4. BroadcastResult │  one DeliveryOutcome per zone
    └─────────────────────┘

Delivery is sequential and synchronous: the submitting request gets the
full result before it responds. There is no retry; a slow provider call
delays the response.
"""

from __future__ import annotations

import logging
from typing import Dict, Sequence

from backend.app.notifications.models import (
    BroadcastResult,
    DeliveryOutcome,
    DeliveryStatus,
    PUSH_DISABLED_REASON,
    TopicAlert,
)
from backend.app.notifications.transport import PushTransport
from backend.app.reports.models import Report
from backend.app.reports.sanitizer import truncate_utf16, utf16_length
from backend.app.spatial.zones import zone_topic

logger = logging.getLogger(__name__)

BODY_MAX_LENGTH = 100
ELLIPSIS = "..."


# ═══════════════════════════════════════════════════════════════════════════
# Payload Builder
# ═══════════════════════════════════════════════════════════════════════════

def truncate_body(content: str, max_length: int = BODY_MAX_LENGTH) -> str:
    """Keep ``max_length`` UTF-16 code units, marking any cut with "..."."""
    if utf16_length(content) > max_length:
        return truncate_utf16(content, max_length) + ELLIPSIS
    return content


def build_alert_data(report: Report) -> Dict[str, str]:
    """Data block consumed by mobile clients; every value is a string."""
    return {
        "reportId": report.id,
        "zone": report.zone,
        "category": report.category.value,
        "timestamp": str(report.created_at),
        "expires": str(report.expires_at),
        "hasPhoto": "true" if report.has_photo else "false",
        "language": report.language,
    }


def build_topic_alert(
    report: Report,
    zone: str,
    *,
    body_max_length: int = BODY_MAX_LENGTH,
    ttl_seconds: int = 8 * 60 * 60,
) -> TopicAlert:
    """
    Build the alert for one zone topic.

    Every zone receives the same title, body and data; only the topic
    differs. ``data["zone"]`` is the report's origin zone, not the topic
    zone.
    """
    category = report.category
    return TopicAlert(
        topic=zone_topic(zone),
        title=category.alert_title,
        body=f"{category.icon} {truncate_body(report.content, body_max_length)}",
        data=build_alert_data(report),
        color=category.color,
        ttl_seconds=ttl_seconds,
    )


# ═══════════════════════════════════════════════════════════════════════════
# Broadcast
# ═══════════════════════════════════════════════════════════════════════════

def broadcast_report(
    report: Report,
    zones: Sequence[str],
    transport: PushTransport,
    *,
    body_max_length: int = BODY_MAX_LENGTH,
    ttl_seconds: int = 8 * 60 * 60,
) -> BroadcastResult:
    """
    Send one alert per zone through the transport.

    Parameters
    ----------
    report : Report
        The newly stored report.
    zones : sequence of str
        Target zones, normally neighborhood(report.zone).
    transport : PushTransport
    body_max_length : int
        UTF-16 code units of content kept in the notification body.
    ttl_seconds : int
        Provider-side message lifetime.

    Returns
    -------
    BroadcastResult
        enabled=False with no outcomes when the transport is disabled;
        otherwise one DeliveryOutcome per zone, in ``zones`` order.
    """
    if not transport.enabled:
        logger.info("Push notifications disabled, skipping broadcast of %s", report.id)
        return BroadcastResult(enabled=False, reason=PUSH_DISABLED_REASON)

    category = report.category
    logger.info(
        "Broadcasting %s alert %s to %d zones",
        category.value, report.id, len(zones),
        extra={"report_id": report.id, "category": category.value, "zone_count": len(zones)},
    )

    result = BroadcastResult(enabled=True)

    for zone in zones:
        alert = build_topic_alert(
            report, zone,
            body_max_length=body_max_length,
            ttl_seconds=ttl_seconds,
        )
        try:
            message_id = transport.send_to_topic(alert)
        except Exception as exc:
            logger.error(
                "Failed to send notification to zone %s: %s", zone, exc,
                extra={"zone": zone, "topic": alert.topic, "report_id": report.id},
            )
            result.outcomes.append(DeliveryOutcome(
                zone=zone,
                topic=alert.topic,
                status=DeliveryStatus.FAILED,
                error=str(exc),
            ))
            continue

        logger.debug(
            "%s Push notification sent to topic %s (%s)",
            category.icon, alert.topic, category.value,
        )
        result.outcomes.append(DeliveryOutcome(
            zone=zone,
            topic=alert.topic,
            message_id=message_id,
        ))

    logger.info(
        "Broadcast %s complete: %d delivered, %d failed",
        report.id, result.delivered, result.failed,
        extra={"report_id": report.id},
    )
    return result
