"""
subscriptions.py — Register a client token on its neighbourhood topics.

The flow mirrors report submission: the location is anonymised to a zone,
expanded to the 3 × 3 neighbourhood, and the token is subscribed to each
zone topic. Membership is stored by the push provider only.

If the transport is disabled or no token is supplied, the zones are still
resolved and returned but nothing is registered ("local-only" mode). That
is a normal response, not an error.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from backend.app.notifications.models import (
    DeliveryOutcome,
    DeliveryStatus,
    SubscriptionResult,
)
from backend.app.notifications.transport import PushTransport
from backend.app.spatial.zones import (
    AnonymizedLocation,
    anonymize_location,
    neighborhood,
    zone_topic,
)

logger = logging.getLogger(__name__)

Anonymizer = Callable[[float, float], AnonymizedLocation]


def subscribe_location(
    lat: float,
    lng: float,
    transport: PushTransport,
    *,
    token: Optional[str] = None,
    platform: Optional[str] = None,
    anonymizer: Anonymizer = anonymize_location,
) -> SubscriptionResult:
    """
    Resolve a location's zones and subscribe ``token`` to each topic.

    Returns
    -------
    SubscriptionResult
        Always carries the zone and its neighbourhood; ``outcomes`` holds
        one entry per zone when registration was attempted.
    """
    location = anonymizer(lat, lng)
    zones = neighborhood(location.zone)

    result = SubscriptionResult(
        zone=location.zone,
        affected_zones=zones,
        enabled=transport.enabled,
        platform=platform,
    )

    if not (transport.enabled and token):
        logger.info(
            "Subscription resolved for zone %s (push disabled or no token)",
            location.zone, extra={"zone": location.zone},
        )
        return result

    for zone in zones:
        topic = zone_topic(zone)
        try:
            transport.subscribe_token(token, topic)
        except Exception as exc:
            logger.error(
                "Failed to subscribe to topic %s: %s", topic, exc,
                extra={"zone": zone, "topic": topic},
            )
            result.outcomes.append(DeliveryOutcome(
                zone=zone, topic=topic,
                status=DeliveryStatus.FAILED, error=str(exc),
            ))
            continue

        result.outcomes.append(DeliveryOutcome(zone=zone, topic=topic))

    logger.info(
        "Subscribed %s client to %d/%d topics around zone %s",
        platform or "unknown", len(zones) - len(result.failed_zones), len(zones),
        location.zone, extra={"zone": location.zone},
    )
    return result
