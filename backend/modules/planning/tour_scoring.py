"""
modules/planning/tour_scoring.py
---------------------------------
Aggregate tour scores (all on a 0–100 scale).

  calculate_optimization_score     final score persisted by the ApplyEngine
  calculate_geographic_clustering  neighbour-distance bands
  calculate_schedule_efficiency    day-gap bands between consecutive shows
  calculate_date_coverage          share of stops carrying a date
  calculate_initial_tour_score     pre-optimization baseline
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from schemas.tour import Stop
from modules.tool_usage.distance_tool import stop_distance, travel_time_minutes

# (max km to both neighbours, points)
_CLUSTER_BANDS: tuple[tuple[float, int], ...] = (
    (50, 10), (100, 8), (200, 6), (300, 4), (500, 2),
)
# exact day gaps with their own award; larger gaps fall into the ranges below
_SPACING_EXACT: dict[int, int] = {1: 10, 2: 9, 3: 7}
_SPACING_RANGES: tuple[tuple[int, int], ...] = ((5, 5), (7, 3), (14, 1))

_NEUTRAL_CLUSTERING = 50      # fewer than 3 stops
_NEUTRAL_EFFICIENCY = 40      # fewer than 2 dated stops
_INITIAL_BASE_SCORE = 70
_INITIAL_MIN_SCORE  = 30
_INITIAL_NO_DATA    = 40


def calculate_optimization_score(
    total_distance: float,
    total_travel_time: float,
    gap_filling_quality: float = 0,
    geographic_clustering: float = 0,
    schedule_efficiency: float = 0,
    date_coverage: float = 0,
) -> int:
    """Base 100 minus distance/time penalties plus quality bonuses, clamped to [0, 100]."""
    distance_penalty = min(20.0, total_distance / 100)
    time_penalty     = min(20.0, total_travel_time / 500)
    gap_bonus        = min(15.0, gap_filling_quality * 0.15)
    cluster_bonus    = min(10.0, geographic_clustering * 0.1)
    schedule_bonus   = min(15.0, schedule_efficiency * 0.15)
    date_bonus       = min(15.0, date_coverage * 0.15)
    score = (
        100 - distance_penalty - time_penalty
        + gap_bonus + cluster_bonus + schedule_bonus + date_bonus
    )
    return max(0, min(100, round(score)))


def calculate_geographic_clustering(stops: Sequence[Stop]) -> int:
    if len(stops) < 3:
        return _NEUTRAL_CLUSTERING
    points = 0
    for prev, curr, nxt in zip(stops, stops[1:], stops[2:]):
        if not (prev.has_coordinates and curr.has_coordinates and nxt.has_coordinates):
            continue
        worst = max(stop_distance(curr, prev), stop_distance(curr, nxt))
        for limit, award in _CLUSTER_BANDS:
            if worst < limit:
                points += award
                break
    return round(points / ((len(stops) - 2) * 10) * 100)


def calculate_schedule_efficiency(stops: Sequence[Stop]) -> int:
    dates = sorted(s.date for s in stops if s.date is not None)
    if len(dates) < 2:
        return _NEUTRAL_EFFICIENCY
    points = 0
    for a, b in zip(dates, dates[1:]):
        gap = (b - a).days
        if gap in _SPACING_EXACT:
            points += _SPACING_EXACT[gap]
            continue
        for limit, award in _SPACING_RANGES:
            if gap <= limit:
                points += award
                break
    return round(points / ((len(dates) - 1) * 10) * 100)


def calculate_date_coverage(stops: Sequence[Stop]) -> int:
    if not stops:
        return 0
    return round(sum(1 for s in stops if s.date is not None) / len(stops) * 100)


@dataclass(frozen=True)
class InitialTourScore:
    optimization_score: int
    total_distance: float
    total_travel_time: int


def calculate_initial_tour_score(stops: Sequence[Stop]) -> InitialTourScore:
    """
    Baseline score for a tour before any optimization.

    Located stops are walked by date (falling back to sequence); penalties for
    distance, backtracking (detour > 1.5x the direct hop), gaps over a week,
    same-day long hops and undated stops.
    """
    route = sorted(
        (s for s in stops if s.has_coordinates),
        key=lambda s: (s.date is None, s.date or s.sequence, s.sequence),
    )
    if len(route) < 2:
        return InitialTourScore(_INITIAL_NO_DATA, 0.0, 0)

    total_distance = 0.0
    total_travel_time = 0
    schedule_penalty = 0.0
    route_penalty = 0.0
    date_gap_penalty = min(15, sum(1 for s in stops if s.date is None) * 3)

    for i, (curr, nxt) in enumerate(zip(route, route[1:])):
        leg = stop_distance(curr, nxt)
        total_distance += leg
        total_travel_time += travel_time_minutes(leg)

        if i > 0:
            prev = route[i - 1]
            direct = stop_distance(prev, nxt)
            if direct > 0 and (leg + stop_distance(prev, curr)) / direct > 1.5:
                route_penalty += 5

        if curr.date and nxt.date:
            days = (nxt.date - curr.date).days
            if days > 7:
                schedule_penalty += min(10, (days - 7) * 1.5)
            if days < 1 and leg > 50:
                schedule_penalty += 5

    distance_penalty = min(20, total_distance / 150)
    total_penalty = min(40, distance_penalty + schedule_penalty + route_penalty + date_gap_penalty)
    score = max(_INITIAL_MIN_SCORE, round(_INITIAL_BASE_SCORE - total_penalty))
    return InitialTourScore(score, total_distance, total_travel_time)
