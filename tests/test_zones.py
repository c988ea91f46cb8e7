"""
test_zones.py — Tests for location anonymisation and zone neighbourhoods.

Covers:
    • anonymize_location (zone format, noise bounds, bucketing)
    • neighborhood (size, order, distinctness, malformed zones)
    • parse_zone / zone_topic helpers

Run with:
    pytest tests/test_zones.py -v
"""

from __future__ import annotations

import math
import random
import re

import pytest

from backend.app.spatial.zones import (
    AnonymizedLocation,
    anonymize_location,
    bucket,
    neighborhood,
    parse_zone,
    zone_topic,
)

ZONE_RE = re.compile(r"^-?\d+_-?\d+$")

# San Francisco City Hall area
SF_LAT = 37.7749
SF_LNG = -122.4194


class _FixedRandom:
    """Noise source that always returns the same draw."""

    def __init__(self, value: float):
        self.value = value

    def random(self) -> float:
        return self.value


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Anonymisation
# ═══════════════════════════════════════════════════════════════════════════

class TestAnonymizeLocation:
    """Test anonymize_location."""

    def test_returns_anonymized_location(self):
        loc = anonymize_location(SF_LAT, SF_LNG)
        assert isinstance(loc, AnonymizedLocation)

    def test_zone_format_for_many_points(self):
        rng = random.Random(1234)
        for _ in range(500):
            lat = rng.uniform(-90, 90)
            lng = rng.uniform(-180, 180)
            loc = anonymize_location(lat, lng, rng=rng)
            assert ZONE_RE.match(loc.zone), loc.zone

    def test_without_noise_is_plain_bucketing(self):
        loc = anonymize_location(SF_LAT, SF_LNG, noise_degrees=0.0)
        assert loc.zone == "37774_-122420"
        assert loc.latitude == SF_LAT
        assert loc.longitude == SF_LNG

    def test_noise_is_bounded(self):
        rng = random.Random(99)
        for _ in range(200):
            loc = anonymize_location(SF_LAT, SF_LNG, rng=rng)
            assert abs(loc.latitude - SF_LAT) <= 0.001
            assert abs(loc.longitude - SF_LNG) <= 0.001

    def test_zone_within_one_bucket_of_true_location(self):
        rng = random.Random(7)
        true_lat = bucket(SF_LAT)
        true_lng = bucket(SF_LNG)
        for _ in range(200):
            lat_b, lng_b = parse_zone(anonymize_location(SF_LAT, SF_LNG, rng=rng).zone)
            assert abs(lat_b - true_lat) <= 1
            assert abs(lng_b - true_lng) <= 1

    def test_extreme_draws_shift_by_full_noise(self):
        low = anonymize_location(10.0, 20.0, rng=_FixedRandom(0.0))
        assert low.latitude == pytest.approx(9.999)
        assert low.longitude == pytest.approx(19.999)

    def test_perturbed_coordinates_match_zone(self):
        loc = anonymize_location(SF_LAT, SF_LNG, rng=random.Random(3))
        expected = f"{math.floor(loc.latitude * 1000)}_{math.floor(loc.longitude * 1000)}"
        assert loc.zone == expected

    def test_negative_coordinates_floor_downwards(self):
        loc = anonymize_location(-33.8688, 151.2093, noise_degrees=0.0)
        assert loc.zone == "-33869_151209"

    def test_not_deterministic(self):
        """Identical input can land in different zones."""
        rng = random.Random(42)
        zones = {
            anonymize_location(SF_LAT, SF_LNG, rng=rng).zone
            for _ in range(200)
        }
        assert len(zones) > 1

    def test_custom_precision(self):
        loc = anonymize_location(SF_LAT, SF_LNG, noise_degrees=0.0, precision=100)
        assert loc.zone == "3777_-12242"


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Neighbourhood
# ═══════════════════════════════════════════════════════════════════════════

class TestNeighborhood:
    """Test neighborhood."""

    def test_nine_distinct_zones_origin_first(self):
        zones = neighborhood("37774_-122420")
        assert len(zones) == 9
        assert len(set(zones)) == 9
        assert zones[0] == "37774_-122420"

    def test_row_major_order(self):
        assert neighborhood("10_20") == [
            "10_20",
            "9_19", "9_20", "9_21",
            "10_19", "10_21",
            "11_19", "11_20", "11_21",
        ]

    def test_crosses_zero(self):
        zones = neighborhood("0_0")
        assert "-1_-1" in zones
        assert "1_1" in zones
        assert "0_0" == zones[0]
        assert zones.count("0_0") == 1

    def test_negative_zone(self):
        zones = neighborhood("-5_-7")
        assert zones[1] == "-6_-8"
        assert zones[-1] == "-4_-6"

    def test_every_result_is_valid_zone(self):
        for zone in neighborhood("123_-456"):
            assert ZONE_RE.match(zone)

    @pytest.mark.parametrize("zone", ["downtown", "1_2_3", "a_b", "12_", "", "1.5_2"])
    def test_malformed_zone_returned_alone(self, zone):
        assert neighborhood(zone) == [zone]

    def test_pure(self):
        assert neighborhood("5_5") == neighborhood("5_5")

    def test_anonymized_zone_round_trip(self):
        loc = anonymize_location(SF_LAT, SF_LNG)
        zones = neighborhood(loc.zone)
        assert zones[0] == loc.zone
        assert len(zones) == 9


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Helpers
# ═══════════════════════════════════════════════════════════════════════════

class TestZoneHelpers:
    """Test parse_zone and zone_topic."""

    def test_parse_valid(self):
        assert parse_zone("37774_-122420") == (37774, -122420)

    def test_parse_invalid(self):
        assert parse_zone("nope") is None
        assert parse_zone("x_1") is None

    def test_topic_name(self):
        assert zone_topic("37774_-122420") == "zone_37774_-122420"
