"""
zones.py — Privacy-preserving location zoning and zone neighbourhoods.

Provides:
    - Location anonymisation: bounded random noise + coarse bucketing
    - Zone identifiers of the form "<latBucket>_<lngBucket>"
    - The 3 × 3 notification neighbourhood around a zone
    - Zone → push topic naming

Coordinates are in **decimal degrees**.

Zoning Scheme
=============
A zone is not a stored entity. It is derived from a coordinate by

    bucket = floor(value × precision)          precision = 1000
    zone   = f"{lat_bucket}_{lng_bucket}"

With precision 1000 a bucket spans 0.001° (~110 m of latitude). Two
coordinates share a zone iff both buckets match. This is a coarse grid,
not a geohash: cells shrink in longitude towards the poles and nothing
wraps at ±180°.

Before bucketing, each coordinate gets independent uniform noise in
[-0.001°, +0.001°). Submitting the same point twice can therefore land in
different zones. That is intentional: a zone id must not pin a reporter
to a fixed location across reports.

Neighbourhood
=============
Alerts go to the origin zone plus the 8 cells around it, so a subscriber
near a cell edge still hears about a report just across it:

    (+1,-1) (+1, 0) (+1,+1)
    ( 0,-1) ( 0, 0) ( 0,+1)        offsets are (Δlat, Δlng)
    (-1,-1) (-1, 0) (-1,+1)

Order is the origin first, then row-major over Δlat = -1, 0, 1 and
Δlng = -1, 0, 1, skipping (0, 0).
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import List, Optional, Tuple


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ZONE_PRECISION: int = 1000
LOCATION_NOISE_DEGREES: float = 0.001
TOPIC_PREFIX: str = "zone_"

_NEIGHBOUR_OFFSETS: Tuple[Tuple[int, int], ...] = tuple(
    (d_lat, d_lng)
    for d_lat in (-1, 0, 1)
    for d_lng in (-1, 0, 1)
    if (d_lat, d_lng) != (0, 0)
)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AnonymizedLocation:
    """Zone derived from a perturbed coordinate."""
    zone: str
    latitude: float   # perturbed, never the submitted value
    longitude: float


# ---------------------------------------------------------------------------
# Anonymisation
# ---------------------------------------------------------------------------

def make_zone(lat_bucket: int, lng_bucket: int) -> str:
    return f"{lat_bucket}_{lng_bucket}"


def bucket(value: float, precision: int = ZONE_PRECISION) -> int:
    """Bucket a coordinate: floor(value × precision)."""
    return math.floor(value * precision)


def anonymize_location(
    lat: float,
    lng: float,
    *,
    rng: Optional[random.Random] = None,
    noise_degrees: float = LOCATION_NOISE_DEGREES,
    precision: int = ZONE_PRECISION,
) -> AnonymizedLocation:
    """
    Perturb a coordinate and derive its coarse zone.

    Parameters
    ----------
    lat, lng : float
        Submitted location in decimal degrees. Assumed finite and in range;
        validation belongs to the HTTP layer.
    rng : random.Random, optional
        Noise source. Defaults to the module-level generator.
    noise_degrees : float
        Maximum absolute noise added to each coordinate.
    precision : int
        Buckets per degree.

    Returns
    -------
    AnonymizedLocation

    Examples
    --------
    >>> loc = anonymize_location(37.7749, -122.4194, noise_degrees=0.0)
    >>> loc.zone
    '37774_-122420'
    """
    source = rng or random
    noisy_lat = lat + (source.random() - 0.5) * 2 * noise_degrees
    noisy_lng = lng + (source.random() - 0.5) * 2 * noise_degrees

    zone = make_zone(bucket(noisy_lat, precision), bucket(noisy_lng, precision))
    return AnonymizedLocation(zone=zone, latitude=noisy_lat, longitude=noisy_lng)


# ---------------------------------------------------------------------------
# Topology
# ---------------------------------------------------------------------------

def parse_zone(zone: str) -> Optional[Tuple[int, int]]:
    """Split a zone into (lat_bucket, lng_bucket); None if malformed."""
    parts = zone.split("_")
    if len(parts) != 2:
        return None
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return None


def neighborhood(zone: str) -> List[str]:
    """
    Return the zone followed by its 8 adjacent zones.

    A zone that does not parse into exactly two integers is returned on
    its own, unchanged.

    Examples
    --------
    >>> neighborhood("10_20")[:3]
    ['10_20', '9_19', '9_20']
    >>> neighborhood("downtown")
    ['downtown']
    """
    parsed = parse_zone(zone)
    if parsed is None:
        return [zone]

    lat_bucket, lng_bucket = parsed
    return [zone] + [
        make_zone(lat_bucket + d_lat, lng_bucket + d_lng)
        for d_lat, d_lng in _NEIGHBOUR_OFFSETS
    ]


def zone_topic(zone: str) -> str:
    """Push topic name for a zone."""
    return f"{TOPIC_PREFIX}{zone}"
