"""
test_notifications.py — Tests for the zone-topic push pipeline.

Covers:
    • Alert payload construction (title, body truncation, data block)
    • broadcast_report partial failure and disabled short-circuit
    • subscribe_location local-only and registration paths
    • Disabled / simulated transports
    • FirebaseTransport message building and SDK calls (mocked)
    • build_transport provider selection

Run with:
    pytest tests/test_notifications.py -v
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from backend.app.core.config import Settings
from backend.app.core.errors import TransportUnavailableError
from backend.app.notifications.dispatcher import (
    broadcast_report,
    build_alert_data,
    build_topic_alert,
    truncate_body,
)
from backend.app.notifications.fcm import FirebaseTransport, build_transport
from backend.app.notifications.models import (
    ALERT_DATA_KEYS,
    DeliveryStatus,
    TopicAlert,
)
from backend.app.notifications.subscriptions import subscribe_location
from backend.app.notifications.transport import (
    DisabledTransport,
    PushTransport,
    SimulatedTransport,
)
from backend.app.reports.models import Category, Report
from backend.app.spatial.zones import AnonymizedLocation, neighborhood


# ═══════════════════════════════════════════════════════════════════════════
# Test Fixtures
# ═══════════════════════════════════════════════════════════════════════════

ZONE = "37774_-122420"
ZONES = neighborhood(ZONE)


def _make_report(
    *,
    content: str = "Street flooded near the park",
    category: Category = Category.SAFETY,
    has_photo: bool = False,
    language: str = "en",
) -> Report:
    return Report(
        id="report_abc123",
        zone=ZONE,
        content=content,
        language=language,
        has_photo=has_photo,
        category=category,
        created_at=1_699_999_200_000,
        expires_at=1_700_028_800_000,
    )


def _fixed_zone(lat: float, lng: float) -> AnonymizedLocation:
    return AnonymizedLocation(zone=ZONE, latitude=lat, longitude=lng)


class _CountingDisabled(DisabledTransport):
    """Disabled transport that records any call made to it."""

    def __init__(self):
        super().__init__()
        self.calls = 0

    def send_to_topic(self, alert):
        self.calls += 1
        return super().send_to_topic(alert)

    def subscribe_token(self, token, topic):
        self.calls += 1
        return super().subscribe_token(token, topic)


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Payload Builder
# ═══════════════════════════════════════════════════════════════════════════

class TestPayload:
    """Test alert title, body and data block."""

    def test_truncate_short_unchanged(self):
        assert truncate_body("a" * 100) == "a" * 100

    def test_truncate_long(self):
        assert truncate_body("a" * 101) == "a" * 100 + "..."

    def test_truncate_counts_utf16_units(self):
        assert truncate_body("😀" * 50) == "😀" * 50
        assert truncate_body("😀" * 60) == "😀" * 50 + "..."

    def test_truncate_drops_split_emoji(self):
        assert truncate_body("a" + "😀" * 60) == "a" + "😀" * 49 + "..."

    def test_fun_alert(self):
        alert = build_topic_alert(_make_report(category=Category.FUN, content="Live music"), ZONE)
        assert alert.title == "🎉 Event Alert"
        assert alert.body == "🎉 Live music"
        assert alert.topic == f"zone_{ZONE}"
        assert alert.color == "#FFD700"

    def test_long_body_truncated(self):
        alert = build_topic_alert(_make_report(content="x" * 300), ZONE)
        assert alert.body == "⚠️ " + "x" * 100 + "..."

    def test_data_block_strings(self):
        data = build_alert_data(_make_report(has_photo=True))
        assert tuple(data) == ALERT_DATA_KEYS
        assert all(isinstance(v, str) for v in data.values())
        assert data["hasPhoto"] == "true"
        assert data["timestamp"] == "1699999200000"
        assert data["expires"] == "1700028800000"
        assert data["category"] == "safety"

    def test_data_zone_is_origin_zone(self):
        neighbour = ZONES[4]
        alert = build_topic_alert(_make_report(), neighbour)
        assert alert.topic == f"zone_{neighbour}"
        assert alert.data["zone"] == ZONE


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Broadcast
# ═══════════════════════════════════════════════════════════════════════════

class TestBroadcast:
    """Test broadcast_report."""

    def test_all_delivered(self):
        transport = SimulatedTransport()
        result = broadcast_report(_make_report(), ZONES, transport)
        assert result.enabled is True
        assert result.delivered == 9
        assert result.failed == 0
        assert [a.topic for a in transport.sent] == [f"zone_{z}" for z in ZONES]
        assert all(o.message_id.startswith("sim-") for o in result.outcomes)

    def test_single_zone_failure_isolated(self):
        failing = f"zone_{ZONES[3]}"
        transport = SimulatedTransport(failing_topics={failing})
        result = broadcast_report(_make_report(), ZONES, transport)
        assert result.delivered == 8
        assert result.failed_zones == [ZONES[3]]
        bad = result.outcomes[3]
        assert bad.status == DeliveryStatus.FAILED
        assert "simulated delivery failure" in bad.error
        assert len(transport.sent) == 8

    def test_every_zone_failing_still_enabled(self):
        transport = SimulatedTransport(failing_topics={f"zone_{z}" for z in ZONES})
        result = broadcast_report(_make_report(), ZONES, transport)
        assert result.enabled is True
        assert result.failed == 9
        assert result.to_dict()["success"] is True

    def test_disabled_short_circuit(self):
        transport = _CountingDisabled()
        result = broadcast_report(_make_report(), ZONES, transport)
        assert result.enabled is False
        assert result.outcomes == []
        assert transport.calls == 0
        assert result.to_dict() == {"success": False, "reason": "Push notifications disabled"}

    def test_outcome_order_matches_zones(self):
        result = broadcast_report(_make_report(), ZONES, SimulatedTransport())
        assert [o.zone for o in result.outcomes] == ZONES

    def test_custom_ttl_and_length(self):
        transport = SimulatedTransport()
        broadcast_report(
            _make_report(content="abcdef"), ZONES[:1], transport,
            body_max_length=3, ttl_seconds=60,
        )
        alert = transport.sent[0]
        assert alert.body == "⚠️ abc..."
        assert alert.ttl_seconds == 60

    def test_result_serialisation(self):
        transport = SimulatedTransport(failing_topics={f"zone_{ZONES[0]}"})
        d = broadcast_report(_make_report(), ZONES, transport).to_dict()
        assert d["delivered"] == 8
        assert d["failed"] == 1
        assert d["notifications"][0] == {
            "zone": ZONES[0],
            "topic": f"zone_{ZONES[0]}",
            "success": False,
            "error": f"simulated delivery failure for zone_{ZONES[0]}",
        }
        assert "messageId" in d["notifications"][1]


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Subscriptions
# ═══════════════════════════════════════════════════════════════════════════

class TestSubscribeLocation:
    """Test subscribe_location."""

    def test_registers_token_on_nine_topics(self):
        transport = SimulatedTransport()
        result = subscribe_location(
            37.7749, -122.4194, transport,
            token="tok-1", platform="android", anonymizer=_fixed_zone,
        )
        assert result.zone == ZONE
        assert result.affected_zones == ZONES
        assert result.registered is True
        assert transport.topics_for("tok-1") == [f"zone_{z}" for z in ZONES]
        assert result.to_dict()["message"] == "Subscribed to push notifications"

    def test_no_token_is_local_only(self):
        transport = SimulatedTransport()
        result = subscribe_location(1.0, 2.0, transport, anonymizer=_fixed_zone)
        assert result.registered is False
        assert transport.subscriptions == []
        assert result.affected_zones == ZONES
        assert "no push token" in result.message

    def test_disabled_is_local_only(self):
        transport = _CountingDisabled()
        result = subscribe_location(
            1.0, 2.0, transport, token="tok", anonymizer=_fixed_zone,
        )
        assert transport.calls == 0
        d = result.to_dict()
        assert d["success"] is True
        assert d["push_enabled"] is False
        assert d["subscriptions"] == []
        assert "disabled" in d["message"]

    def test_partial_registration_failure(self):
        transport = SimulatedTransport(failing_topics={f"zone_{ZONES[8]}"})
        result = subscribe_location(
            1.0, 2.0, transport, token="tok", anonymizer=_fixed_zone,
        )
        assert result.failed_zones == [ZONES[8]]
        assert len(transport.subscriptions) == 8

    def test_zone_is_within_one_bucket_of_input(self):
        result = subscribe_location(37.7749, -122.4194, SimulatedTransport())
        lat_b, lng_b = (int(p) for p in result.zone.split("_"))
        assert abs(lat_b - 37774) <= 1
        assert abs(lng_b - (-122420)) <= 1


# ═══════════════════════════════════════════════════════════════════════════
# Section 4: Transports
# ═══════════════════════════════════════════════════════════════════════════

class TestTransports:
    """Test base, disabled and simulated transports."""

    def test_base_not_implemented(self):
        with pytest.raises(NotImplementedError):
            PushTransport().send_to_topic(MagicMock())

    def test_disabled_raises(self):
        transport = DisabledTransport("Firebase not configured")
        assert transport.enabled is False
        with pytest.raises(TransportUnavailableError) as info:
            transport.subscribe_token("tok", "zone_1_1")
        assert info.value.status_code == 503
        assert transport.describe()["reason"] == "Firebase not configured"

    def test_simulated_describe(self):
        transport = SimulatedTransport()
        transport.subscribe_token("tok", "zone_1_1")
        assert transport.describe() == {
            "provider": "simulation", "enabled": True, "sent": 0, "subscriptions": 1,
        }

    def test_simulated_history_bounded(self):
        transport = SimulatedTransport(history_limit=5)
        alert = build_topic_alert(_make_report(), ZONE)
        for i in range(12):
            transport.send_to_topic(alert)
            transport.subscribe_token(f"tok-{i}", "zone_1_1")
        assert len(transport.sent) == 5
        assert len(transport.subscriptions) == 5
        assert transport.subscriptions[0] == ("tok-7", "zone_1_1")
        assert transport.topics_for("tok-0") == []

    def test_outcome_serialises_every_field(self):
        result = broadcast_report(_make_report(), ZONES[:1], SimulatedTransport())
        outcome = result.outcomes[0]
        assert set(vars(outcome)) == {"zone", "topic", "status", "message_id", "error"}
        assert set(outcome.to_dict()) == {"zone", "topic", "success", "messageId"}


class TestFirebaseTransport:
    """Test FirebaseTransport against a mocked messaging module."""

    def _alert(self) -> TopicAlert:
        return build_topic_alert(_make_report(category=Category.LOST), ZONE)

    def test_build_message(self):
        transport = FirebaseTransport(android_channel_id="safety_alerts")
        msg = transport.build_message(self._alert())
        assert msg.topic == f"zone_{ZONE}"
        assert msg.notification.title == "🔍 Lost/Found Alert"
        assert msg.data["reportId"] == "report_abc123"
        assert msg.android.priority == "high"
        assert msg.android.notification.channel_id == "safety_alerts"
        assert msg.android.notification.color == "#2196F3"
        assert msg.android.notification.icon == "ic_notification"

    @patch("backend.app.notifications.fcm.messaging.send")
    def test_send_returns_message_id(self, mock_send):
        mock_send.return_value = "projects/p/messages/1"
        app = MagicMock()
        transport = FirebaseTransport(app)
        assert transport.send_to_topic(self._alert()) == "projects/p/messages/1"
        mock_send.assert_called_once()
        assert mock_send.call_args.kwargs["app"] is app

    @patch("backend.app.notifications.fcm.messaging.send")
    def test_send_error_propagates(self, mock_send):
        mock_send.side_effect = RuntimeError("quota exceeded")
        with pytest.raises(RuntimeError):
            FirebaseTransport().send_to_topic(self._alert())

    @patch("backend.app.notifications.fcm.messaging.subscribe_to_topic")
    def test_subscribe_ok(self, mock_sub):
        mock_sub.return_value = MagicMock(failure_count=0, errors=[])
        FirebaseTransport().subscribe_token("tok", "zone_1_1")
        args = mock_sub.call_args.args
        assert args[0] == ["tok"]
        assert args[1] == "zone_1_1"

    @patch("backend.app.notifications.fcm.messaging.subscribe_to_topic")
    def test_subscribe_rejected(self, mock_sub):
        mock_sub.return_value = MagicMock(
            failure_count=1, errors=[MagicMock(reason="invalid-argument")],
        )
        with pytest.raises(RuntimeError, match="invalid-argument"):
            FirebaseTransport().subscribe_token("bad", "zone_1_1")

    @patch("backend.app.notifications.fcm.messaging.send")
    def test_broadcast_through_firebase(self, mock_send):
        mock_send.side_effect = ["id-%d" % i for i in range(9)]
        result = broadcast_report(_make_report(), ZONES, FirebaseTransport())
        assert result.delivered == 9
        assert mock_send.call_count == 9


# ═══════════════════════════════════════════════════════════════════════════
# Section 5: Provider Selection
# ═══════════════════════════════════════════════════════════════════════════

class TestBuildTransport:
    """Test build_transport."""

    def test_simulation(self):
        assert isinstance(build_transport(Settings(PUSH_PROVIDER="simulation")), SimulatedTransport)

    def test_none_provider(self):
        transport = build_transport(Settings(PUSH_PROVIDER="none"))
        assert isinstance(transport, DisabledTransport)
        assert transport.enabled is False

    def test_fcm_without_credentials(self, tmp_path):
        cfg = Settings(
            PUSH_PROVIDER="fcm",
            FIREBASE_SERVICE_ACCOUNT_KEY=str(tmp_path / "missing.json"),
            FIREBASE_PROJECT_ID=None,
            FIREBASE_PRIVATE_KEY=None,
            FIREBASE_CLIENT_EMAIL=None,
        )
        transport = build_transport(cfg)
        assert isinstance(transport, DisabledTransport)
        assert transport.reason == "Firebase not configured"

    @patch("backend.app.notifications.fcm._firebase_app")
    @patch("backend.app.notifications.fcm.credentials.Certificate")
    def test_fcm_from_environment(self, mock_cert, mock_app, tmp_path):
        mock_app.return_value = MagicMock()
        cfg = Settings(
            PUSH_PROVIDER="fcm",
            FIREBASE_SERVICE_ACCOUNT_KEY=str(tmp_path / "missing.json"),
            FIREBASE_PROJECT_ID="demo-project",
            FIREBASE_PRIVATE_KEY="-----BEGIN KEY-----\\nabc\\n-----END KEY-----",
            FIREBASE_CLIENT_EMAIL="svc@demo-project.iam.gserviceaccount.com",
        )
        transport = build_transport(cfg)
        assert isinstance(transport, FirebaseTransport)
        assert transport.project_id == "demo-project"
        info = mock_cert.call_args.args[0]
        assert info["type"] == "service_account"
        assert "\n" in info["private_key"]
        assert "\\n" not in info["private_key"]

    @patch("backend.app.notifications.fcm.credentials.Certificate")
    def test_fcm_init_failure_disables(self, mock_cert, tmp_path):
        mock_cert.side_effect = ValueError("bad key")
        cfg = Settings(
            PUSH_PROVIDER="fcm",
            FIREBASE_SERVICE_ACCOUNT_KEY=str(tmp_path / "missing.json"),
            FIREBASE_PROJECT_ID="demo-project",
            FIREBASE_PRIVATE_KEY="key",
            FIREBASE_CLIENT_EMAIL="svc@example.com",
        )
        transport = build_transport(cfg)
        assert isinstance(transport, DisabledTransport)
        assert transport.reason.startswith("Firebase initialization failed")
