"""
fcm.py — Firebase Cloud Messaging transport and provider bootstrap.

Delivery mechanism:
    • firebase-admin SDK, topic messaging (no per-device fan-out here)
    • Each zone topic is "zone_<zone>"; devices join topics via
      subscribe_to_topic when they call /subscribe
    • Android config: high priority, TTL equal to the report TTL,
      category colour on the notification

═══════════════════════════════════════════════════════════════════════════
CREDENTIAL BOOTSTRAP
═══════════════════════════════════════════════════════════════════════════

Checked in order:

    1. Service-account JSON at FIREBASE_SERVICE_ACCOUNT_KEY
       (default ./firebase-service-account.json)
    2. FIREBASE_PROJECT_ID + FIREBASE_PRIVATE_KEY + FIREBASE_CLIENT_EMAIL
       (literal "\\n" in the key is turned into newlines)
    3. Neither → DisabledTransport

Any failure while initialising the SDK also yields a DisabledTransport.
The service keeps accepting reports; it just stops pushing.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import credentials, messaging

from backend.app.core.config import Settings
from backend.app.notifications.models import TopicAlert
from backend.app.notifications.transport import (
    DisabledTransport,
    PushTransport,
    SimulatedTransport,
)

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "anonymous-safety-alerts"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


class FirebaseTransport(PushTransport):
    """Topic messaging through firebase-admin."""

    name = "fcm"

    def __init__(
        self,
        app: Optional[firebase_admin.App] = None,
        *,
        project_id: Optional[str] = None,
        android_channel_id: str = "safety_alerts",
    ):
        self._app = app
        self.project_id = project_id
        self.android_channel_id = android_channel_id

    def build_message(self, alert: TopicAlert) -> messaging.Message:
        return messaging.Message(
            topic=alert.topic,
            notification=messaging.Notification(title=alert.title, body=alert.body),
            data=dict(alert.data),
            android=messaging.AndroidConfig(
                priority="high",
                ttl=alert.ttl_seconds,
                notification=messaging.AndroidNotification(
                    sound="default",
                    priority="high",
                    channel_id=self.android_channel_id,
                    icon="ic_notification",
                    color=alert.color,
                ),
            ),
        )

    def send_to_topic(self, alert: TopicAlert) -> str:
        return messaging.send(self.build_message(alert), app=self._app)

    def subscribe_token(self, token: str, topic: str) -> None:
        response = messaging.subscribe_to_topic([token], topic, app=self._app)
        if response.failure_count:
            reason = response.errors[0].reason if response.errors else "unknown"
            raise RuntimeError(f"Topic subscription rejected: {reason}")

    def describe(self) -> Dict[str, object]:
        return {"provider": self.name, "enabled": True, "project_id": self.project_id}


# ═══════════════════════════════════════════════════════════════════════════
# Bootstrap
# ═══════════════════════════════════════════════════════════════════════════

def _load_credential(settings: Settings) -> Optional[Dict[str, Any]]:
    """Return {"certificate": ..., "project_id": ..., "source": ...} or None."""
    key_path = Path(settings.FIREBASE_SERVICE_ACCOUNT_KEY)
    if key_path.is_file():
        cert = credentials.Certificate(str(key_path))
        return {"certificate": cert, "project_id": cert.project_id, "source": str(key_path)}

    if (settings.FIREBASE_PROJECT_ID and settings.FIREBASE_PRIVATE_KEY
            and settings.FIREBASE_CLIENT_EMAIL):
        cert = credentials.Certificate({
            "type": "service_account",
            "project_id": settings.FIREBASE_PROJECT_ID,
            "private_key": settings.FIREBASE_PRIVATE_KEY.replace("\\n", "\n"),
            "client_email": settings.FIREBASE_CLIENT_EMAIL,
            "token_uri": GOOGLE_TOKEN_URI,
        })
        return {
            "certificate": cert,
            "project_id": settings.FIREBASE_PROJECT_ID,
            "source": "environment",
        }

    logger.warning(
        "Firebase service account file not found at %s and environment "
        "credentials are incomplete", key_path,
    )
    return None


def _firebase_app(certificate: credentials.Certificate) -> firebase_admin.App:
    try:
        return firebase_admin.get_app(FIREBASE_APP_NAME)
    except ValueError:
        return firebase_admin.initialize_app(certificate, name=FIREBASE_APP_NAME)


def build_transport(settings: Settings) -> PushTransport:
    """
    Select and initialise the push transport from settings.

    PUSH_PROVIDER:
        "fcm"         Firebase if credentials load, else disabled
        "simulation"  SimulatedTransport
        anything else DisabledTransport
    """
    provider = settings.PUSH_PROVIDER.strip().lower()

    if provider == "simulation":
        logger.info("Push notifications ENABLED (simulation)")
        return SimulatedTransport()

    if provider != "fcm":
        logger.info("Push notifications DISABLED (PUSH_PROVIDER=%s)", provider)
        return DisabledTransport()

    try:
        loaded = _load_credential(settings)
        if loaded is None:
            logger.info("Push notifications DISABLED (Firebase not configured)")
            return DisabledTransport("Firebase not configured")

        app = _firebase_app(loaded["certificate"])
    except Exception as e:
        logger.error("Firebase initialization failed: %s", e)
        return DisabledTransport(f"Firebase initialization failed: {e}")

    logger.info(
        "Push notifications ENABLED (Firebase project %s, credentials from %s)",
        loaded["project_id"], loaded["source"],
    )
    return FirebaseTransport(
        app,
        project_id=loaded["project_id"],
        android_channel_id=settings.ANDROID_CHANNEL_ID,
    )
