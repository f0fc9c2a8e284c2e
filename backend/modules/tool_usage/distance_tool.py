"""
modules/tool_usage/distance_tool.py
-------------------------------------
GeoMath for tour routing: Haversine distance between venues, a road-trip
travel-time estimate, and total route distance.  Pure functions, no state.
No external HTTP calls are made.

Config knobs (config.py):
  TOUR_AVERAGE_SPEED_KMH -- average touring speed (default: 70)
  TOUR_TRAVEL_BUFFER     -- multiplier for rest stops / traffic (default: 1.2)
  TOUR_MIN_LEG_MINUTES   -- minimum duration of any non-zero hop (default: 30)

Missing coordinates fail closed: distance() returns 0.0 and
total_route_distance() skips the pair.  Callers must treat such stops as
"cannot be scored geographically".
"""

from __future__ import annotations
import math
from typing import Iterable, Optional, Sequence

import config

# ---------------------------------------------------------------------------
# Pure maths
# ---------------------------------------------------------------------------

_EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points (Haversine formula) in km."""
    r = _EARTH_RADIUS_KM
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lam = math.radians(lon2 - lon1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lam / 2) ** 2
    )
    return 2 * r * math.asin(min(1.0, math.sqrt(a)))


def distance(
    lat1: Optional[float],
    lon1: Optional[float],
    lat2: Optional[float],
    lon2: Optional[float],
) -> float:
    """Haversine km between two coordinate pairs; 0.0 when either pair is incomplete."""
    if lat1 is None or lon1 is None or lat2 is None or lon2 is None:
        return 0.0
    if lat1 == lat2 and lon1 == lon2:
        return 0.0
    return haversine_km(lat1, lon1, lat2, lon2)


def stop_distance(a, b) -> float:
    """distance() between two objects exposing ``latitude`` / ``longitude``."""
    return distance(a.latitude, a.longitude, b.latitude, b.longitude)


def travel_time_minutes(distance_km: float) -> int:
    """
    Comparative road-trip duration for *distance_km*.

    0 km → 0 min.  Otherwise (km / speed) * 60 * buffer, never below
    TOUR_MIN_LEG_MINUTES.  Monotonic non-decreasing in distance.
    """
    if distance_km <= 0:
        return 0
    minutes = (distance_km / config.TOUR_AVERAGE_SPEED_KMH) * 60.0 * config.TOUR_TRAVEL_BUFFER
    return max(config.TOUR_MIN_LEG_MINUTES, int(round(minutes)))


def total_route_distance(ordered_stops: Sequence) -> float:
    """Sum of distance() over consecutive pairs; pairs missing coordinates add 0."""
    total = 0.0
    for prev, nxt in zip(ordered_stops, ordered_stops[1:]):
        if not (prev.has_coordinates and nxt.has_coordinates):
            continue
        total += stop_distance(prev, nxt)
    return total


def located(stops: Iterable) -> list:
    """Stops that carry both coordinates."""
    return [s for s in stops if s.has_coordinates]

