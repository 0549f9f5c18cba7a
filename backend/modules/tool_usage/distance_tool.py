"""
modules/tool_usage/distance_tool.py
-------------------------------------
Great-circle distances and travel-time estimates between places, using the
Haversine formula and per-mode average speeds. No external HTTP calls are made;
distances are straight-line, not road-network.

Every function here is pure. Missing endpoints (None, or a place without
coordinates) and empty inputs resolve to 0.0 rather than raising.

Config knobs (config.py):
  EARTH_RADIUS_KM       -- Haversine radius (default: 6371.0)
  TRANSPORT_SPEEDS_KMH  -- average speed per transport mode
  DEFAULT_SPEED_KMH     -- speed for unknown modes (default: 25.0)
  WALKING_DISTANCE_KM / NEAR_DISTANCE_KM -- distance category bounds
"""

from __future__ import annotations
import math
import logging
from enum import Enum
from typing import Iterable, Optional, Sequence

import config
from schemas.place import Place

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Pure maths
# ---------------------------------------------------------------------------


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points (Haversine formula) in km."""
    r = config.EARTH_RADIUS_KM
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lam = math.radians(lon2 - lon1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lam / 2) ** 2
    )
    # Rounding can push a marginally past 1.0 for antipodal points
    return 2 * r * math.asin(math.sqrt(min(1.0, a)))


def place_distance(a: Optional[Place], b: Optional[Place]) -> float:
    """Distance between two places in km; 0.0 if either endpoint is missing."""
    if a is None or b is None or not a.has_coordinates or not b.has_coordinates:
        return 0.0
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)  # type: ignore[arg-type]


def min_distance(place: Optional[Place], references: Iterable[Place]) -> float:
    """Distance to the closest reference point; 0.0 with no usable references."""
    distances = _distances_to(place, references)
    return min(distances) if distances else 0.0


def average_distance(place: Optional[Place], references: Iterable[Place]) -> float:
    """Mean distance to the reference points; 0.0 with no usable references."""
    distances = _distances_to(place, references)
    return sum(distances) / len(distances) if distances else 0.0


def total_route_distance(places: Sequence[Place]) -> float:
    """Sum of consecutive leg distances; 0.0 for fewer than two places."""
    if len(places) < 2:
        return 0.0
    return sum(place_distance(places[i], places[i + 1]) for i in range(len(places) - 1))


def distance_matrix(places: Sequence[Place]) -> list[list[float]]:
    """Full n x n symmetric distance matrix [km]."""
    n = len(places)
    matrix = [[0.0] * n for _ in range(n)]
    for i in range(n):
        for j in range(i + 1, n):
            d = place_distance(places[i], places[j])
            matrix[i][j] = d
            matrix[j][i] = d
    return matrix


def _distances_to(place: Optional[Place], references: Iterable[Place]) -> list[float]:
    if place is None or not place.has_coordinates:
        return []
    return [place_distance(place, ref) for ref in references if ref is not None and ref.has_coordinates]


# ---------------------------------------------------------------------------
# Travel time
# ---------------------------------------------------------------------------


def speed_for_mode(mode: Optional[str]) -> float:
    """Average speed [km/h] for a transport mode; DEFAULT_SPEED_KMH when unknown."""
    return config.TRANSPORT_SPEEDS_KMH.get((mode or "").lower(), config.DEFAULT_SPEED_KMH)


def travel_time_minutes(km: float, speed_kmh: float) -> int:
    """Whole minutes to cover km at speed_kmh, rounded up; 0 for non-positive inputs."""
    if km <= 0 or speed_kmh <= 0:
        return 0
    return math.ceil(km / speed_kmh * 60.0)


class DistanceCategory(str, Enum):
    WALKABLE = "walkable"   # <= WALKING_DISTANCE_KM
    NEAR     = "near"       # <= NEAR_DISTANCE_KM
    FAR      = "far"


def categorize_distance(km: float) -> DistanceCategory:
    if km <= config.WALKING_DISTANCE_KM:
        return DistanceCategory.WALKABLE
    if km <= config.NEAR_DISTANCE_KM:
        return DistanceCategory.NEAR
    return DistanceCategory.FAR


# ---------------------------------------------------------------------------
# DistanceTool
# ---------------------------------------------------------------------------


class DistanceTool:
    """
    Travel-time lookups between places for one transport mode.
    Thin stateful wrapper over the pure functions above.
    """

    def __init__(self, transport_mode: str = config.DEFAULT_TRANSPORT_MODE) -> None:
        self.transport_mode = transport_mode
        self.speed_kmh: float = speed_for_mode(transport_mode)  # km/h

    def distance_km(self, a: Optional[Place], b: Optional[Place]) -> float:
        return place_distance(a, b)

    def travel_time(self, a: Optional[Place], b: Optional[Place]) -> int:
        """Travel time in minutes between two places."""
        return travel_time_minutes(place_distance(a, b), self.speed_kmh)

    def travel_time_matrix(self, places: Sequence[Place]) -> list[list[int]]:
        """Return a full n x n travel-time matrix [minutes]."""
        return [
            [travel_time_minutes(km, self.speed_kmh) for km in row]
            for row in distance_matrix(places)
        ]
