"""
transport.py — Push transport interface and non-network implementations.

A transport delivers TopicAlerts to pub/sub topics and registers client
tokens on topics. The core only ever sees this interface:

    enabled                         cheap availability check
    send_to_topic(alert) -> str     provider message id, raises on failure
    subscribe_token(token, topic)   raises on failure

Implementations:

    DisabledTransport   — push not configured; enabled=False
    SimulatedTransport  — logs and records calls (development / tests)
    FirebaseTransport   — Firebase Cloud Messaging (see fcm.py)

Topic membership lives entirely inside the provider. This service keeps
no local subscription table.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

from backend.app.core.errors import TransportUnavailableError
from backend.app.notifications.models import PUSH_DISABLED_REASON, TopicAlert

logger = logging.getLogger(__name__)


class PushTransport:
    """Base class for push providers."""

    name: str = "base"

    @property
    def enabled(self) -> bool:
        return True

    def send_to_topic(self, alert: TopicAlert) -> str:
        raise NotImplementedError

    def subscribe_token(self, token: str, topic: str) -> None:
        raise NotImplementedError

    def describe(self) -> Dict[str, object]:
        return {"provider": self.name, "enabled": self.enabled}


class DisabledTransport(PushTransport):
    """Stand-in used when no provider is configured."""

    name = "disabled"

    def __init__(self, reason: str = PUSH_DISABLED_REASON):
        self.reason = reason

    @property
    def enabled(self) -> bool:
        return False

    def send_to_topic(self, alert: TopicAlert) -> str:
        raise TransportUnavailableError(self.reason)

    def subscribe_token(self, token: str, topic: str) -> None:
        raise TransportUnavailableError(self.reason)

    def describe(self) -> Dict[str, object]:
        return {"provider": self.name, "enabled": False, "reason": self.reason}


@dataclass
class SimulatedTransport(PushTransport):
    """
    In-process transport that logs instead of sending.

    ``failing_topics`` makes specific topics raise, for exercising the
    partial-failure paths. Only the last ``history_limit`` sends and
    subscriptions are kept.
    """

    failing_topics: Set[str] = field(default_factory=set)
    sent: List[TopicAlert] = field(default_factory=list)
    subscriptions: List[Tuple[str, str]] = field(default_factory=list)
    name: str = "simulation"
    history_limit: int = 1000

    def send_to_topic(self, alert: TopicAlert) -> str:
        if alert.topic in self.failing_topics:
            raise RuntimeError(f"simulated delivery failure for {alert.topic}")

        message_id = f"sim-{uuid.uuid4().hex[:12]}"
        self.sent.append(alert)
        del self.sent[:-self.history_limit]
        logger.info(
            "[SIMULATED_PUSH] %s → %s (%s)", alert.title, alert.topic, message_id,
            extra={"topic": alert.topic},
        )
        return message_id

    def subscribe_token(self, token: str, topic: str) -> None:
        if topic in self.failing_topics:
            raise RuntimeError(f"simulated subscription failure for {topic}")

        self.subscriptions.append((token, topic))
        del self.subscriptions[:-self.history_limit]
        logger.info(
            "[SIMULATED_PUSH] token %s... subscribed to %s", token[:8], topic,
            extra={"topic": topic},
        )

    def topics_for(self, token: str) -> List[str]:
        return [topic for t, topic in self.subscriptions if t == token]

    def describe(self) -> Dict[str, object]:
        return {
            "provider": self.name,
            "enabled": True,
            "sent": len(self.sent),
            "subscriptions": len(self.subscriptions),
        }
