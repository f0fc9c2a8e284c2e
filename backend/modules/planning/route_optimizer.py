"""
modules/planning/route_optimizer.py
-------------------------------------
Deterministic tour route optimizer.

Architecture:
  1. Partition the snapshot's stops into FIXED (confirmed, when
     respect_fixed_dates) and MOVABLE (everything else, never cancelled).
  2. Attach the caller's priority (1–10, default 5) to each movable stop.
  3. Sort movable stops with the comparator chosen by optimize_for:
       distance  latitude ascending; within 1° latitude, priority descending
       time      priority descending; within a band of 2, nearest fixed stop first
       balanced  0.4·Δpriority + 0.3·Δlatitude + 0.3·Δproximity, ascending
  4. Constrained merge-insertion: fixed stops ordered by date form the
     skeleton; each sorted movable stop goes to the position with the
     smallest marginal distance increase, scaled by (11 − priority) / 10.
     Fixed stops keep their relative order; they are never displaced.
  5. Date assignment + conflict detection (date_scheduler.assign_dates).
  6. Before/after distance and travel-time metrics.

Fewer than two located stops → neutral result: original order, zero
distance, dates still suggested so collisions are never silent.

The insertion loop is sequential by construction: every decision depends on
the partial route built so far.
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import date
from functools import cmp_to_key
from typing import Optional, Sequence

import config
from schemas.tour import (
    METHOD_STANDARD,
    STATUS_CANCELLED,
    OptimizationOptions,
    OptimizationResult,
    RouteMetrics,
    Stop,
    TourSnapshot,
)
from modules.planning.date_scheduler import assign_dates
from modules.tool_usage.distance_tool import (
    located,
    stop_distance,
    total_route_distance,
    travel_time_minutes,
)

logger = logging.getLogger(__name__)

# ── Sorting weights ──────────────────────────────────────────────────────────
_BALANCED_PRIORITY_WEIGHT:  float = 0.4
_BALANCED_LATITUDE_WEIGHT:  float = 0.3
_BALANCED_PROXIMITY_WEIGHT: float = 0.3
_SAME_REGION_LATITUDE_DEG:  float = 1.0   # "distance" mode: same band → priority wins
_PRIORITY_BAND:             int   = 2     # "time" mode: priorities within 2 are equal


# ── Metrics helpers ───────────────────────────────────────────────────────────

def percent_reduction(before: float, after: float, floor: Optional[float] = None) -> float:
    """
    Rounded percentage by which *after* improves on *before*.

    With a positive presentation floor, a result that rounds to zero or
    below is reported as the floor instead.
    """
    floor = config.REPORTED_SAVINGS_FLOOR_PCT if floor is None else floor
    raw = round((before - after) / before * 100) if before > 0 else 0
    if floor > 0 and raw <= 0:
        return float(floor)
    return float(raw)


def compute_metrics(original: Sequence[Stop], final: Sequence[Stop]) -> RouteMetrics:
    total = total_route_distance(original)
    optimized = total_route_distance(final)
    return RouteMetrics(
        total_distance=total,
        total_travel_time=travel_time_minutes(total),
        optimized_distance=optimized,
        optimized_travel_time=travel_time_minutes(optimized),
    )


def _nearest_fixed_km(stop: Stop, fixed: Sequence[Stop]) -> Optional[float]:
    if not stop.has_coordinates:
        return None
    candidates = [stop_distance(stop, f) for f in fixed if f.has_coordinates]
    return min(candidates) if candidates else None


class RouteOptimizer:
    """
    Heuristic, explainable, deterministic ordering for a tour.

    Not a global optimum: a priority-aware sort followed by constrained
    cheapest insertion around the immovable confirmed dates.
    """

    def __init__(self, today: Optional[date] = None) -> None:
        self._today = today

    # ── Public entry point ────────────────────────────────────────────────────

    def optimize(
        self,
        snapshot: TourSnapshot,
        options: Optional[OptimizationOptions] = None,
        baseline: Optional[Sequence[Stop]] = None,
    ) -> OptimizationResult:
        """
        Optimize *snapshot* under *options*.

        Args:
            snapshot: stops to order (cancelled stops are ignored).
            options:  knobs; defaults when None.
            baseline: order used for the "before" metrics; defaults to the
                      snapshot's own stop order.
        """
        options = options or OptimizationOptions()
        stops = [s for s in snapshot.all_stops if s.status != STATUS_CANCELLED]
        baseline = list(baseline) if baseline is not None else stops

        if len(located(stops)) < 2:
            logger.info("Tour %s: fewer than 2 located stops, neutral result", snapshot.tour_id)
            return self._neutral(snapshot, stops, options)

        fixed, movable = self._partition(stops, options)
        ordered_movable = self.sort_movable(movable, fixed, options.optimize_for)
        sequence = self.merge(fixed, ordered_movable)

        schedule = assign_dates(
            sequence,
            options,
            tour_start=snapshot.start_date,
            tour_end=snapshot.end_date,
            today=self._today,
        )
        metrics = compute_metrics(baseline, sequence)
        potential_ids = {s.id for s in snapshot.potential_stops}

        reasoning = (
            f"Generated optimization using {options.optimize_for}-based algorithm with venue "
            f"prioritization and fixed point constraints. {len(fixed)} fixed stop(s) kept in "
            f"date order; {len(movable)} movable stop(s) inserted at the cheapest position."
        )
        if schedule.conflicts:
            reasoning += f" Detected {len(schedule.conflicts)} date conflicts that need resolution."
        if schedule.advisories:
            reasoning += f" {len(schedule.advisories)} scheduling advisory note(s)."

        return OptimizationResult(
            optimization_method=METHOD_STANDARD,
            optimized_sequence=[s.id for s in sequence],
            suggested_dates=schedule.suggested_dates,
            recommended_venues=[s.id for s in sequence if s.id in potential_ids],
            suggested_skips=[],
            date_conflicts=schedule.conflicts,
            metrics=metrics,
            estimated_distance_reduction=percent_reduction(
                metrics.total_distance, metrics.optimized_distance,
                floor=0 if not movable else None,
            ),
            estimated_time_savings=percent_reduction(
                metrics.total_travel_time, metrics.optimized_travel_time,
                floor=0 if not movable else None,
            ),
            reasoning=reasoning,
            advisories=schedule.advisories,
        )

    # ── Steps 1–2: partition + priorities ─────────────────────────────────────

    @staticmethod
    def _partition(
        stops: Sequence[Stop], options: OptimizationOptions
    ) -> tuple[list[Stop], list[Stop]]:
        fixed: list[Stop] = []
        movable: list[Stop] = []
        for stop in stops:
            if options.respect_fixed_dates and stop.is_confirmed:
                fixed.append(stop)
            else:
                movable.append(dataclasses.replace(stop, priority=options.priority_for(stop.id)))
        return fixed, movable

    # ── Step 3: comparators ───────────────────────────────────────────────────

    @staticmethod
    def sort_movable(
        movable: Sequence[Stop], fixed: Sequence[Stop], optimize_for: str
    ) -> list[Stop]:
        nearest = {s.id: _nearest_fixed_km(s, fixed) for s in movable}

        def proximity_delta(a: Stop, b: Stop) -> float:
            da, db = nearest[a.id], nearest[b.id]
            if da is None or db is None:
                return 0.0
            return da - db

        def by_distance(a: Stop, b: Stop) -> float:
            if a.latitude is None or b.latitude is None:
                return 0
            if abs(a.latitude - b.latitude) < _SAME_REGION_LATITUDE_DEG:
                return b.priority - a.priority
            return a.latitude - b.latitude

        def by_time(a: Stop, b: Stop) -> float:
            if abs(a.priority - b.priority) > _PRIORITY_BAND:
                return b.priority - a.priority
            return proximity_delta(a, b)

        def by_balanced(a: Stop, b: Stop) -> float:
            priority_factor = (b.priority - a.priority) * _BALANCED_PRIORITY_WEIGHT
            geographic_factor = 0.0
            if a.latitude is not None and b.latitude is not None:
                geographic_factor = (a.latitude - b.latitude) * _BALANCED_LATITUDE_WEIGHT
            proximity_factor = proximity_delta(a, b) * _BALANCED_PROXIMITY_WEIGHT
            return priority_factor + geographic_factor + proximity_factor

        comparator = {
            "distance": by_distance,
            "time":     by_time,
            "balanced": by_balanced,
        }[optimize_for]
        return sorted(movable, key=cmp_to_key(comparator))

    # ── Step 4: constrained merge-insertion ───────────────────────────────────

    @staticmethod
    def order_fixed(fixed: Sequence[Stop]) -> list[Stop]:
        """Dated fixed stops by date (stable); undated fixed stops follow in input order."""
        dated = sorted((s for s in fixed if s.date is not None), key=lambda s: s.date)
        return dated + [s for s in fixed if s.date is None]

    @staticmethod
    def insertion_cost(route: Sequence[Stop], position: int, stop: Stop) -> float:
        """Marginal km of inserting *stop* before route[position], priority-scaled."""
        if not route:
            increase = 0.0
        elif position == 0:
            increase = stop_distance(stop, route[0])
        elif position == len(route):
            increase = stop_distance(route[-1], stop)
        else:
            prev, nxt = route[position - 1], route[position]
            increase = (
                stop_distance(prev, stop) + stop_distance(stop, nxt) - stop_distance(prev, nxt)
            )
        return increase * (11 - stop.priority) / 10

    def merge(self, fixed: Sequence[Stop], movable: Sequence[Stop]) -> list[Stop]:
        route = self.order_fixed(fixed)
        unlocated: list[Stop] = []
        for stop in movable:
            if not stop.has_coordinates:
                unlocated.append(stop)
                continue
            best_position, best_cost = 0, float("inf")
            for position in range(len(route) + 1):
                cost = self.insertion_cost(route, position, stop)
                if cost < best_cost:
                    best_position, best_cost = position, cost
            route.insert(best_position, stop)
        # No geographic score possible; keep them, after the routed stops.
        return route + unlocated

    # ── Edge case: too little data ────────────────────────────────────────────

    def _neutral(
        self, snapshot: TourSnapshot, stops: list[Stop], options: OptimizationOptions
    ) -> OptimizationResult:
        schedule = assign_dates(
            stops,
            options,
            tour_start=snapshot.start_date,
            tour_end=snapshot.end_date,
            today=self._today,
        )
        potential_ids = {s.id for s in snapshot.potential_stops}
        return OptimizationResult(
            optimization_method=METHOD_STANDARD,
            optimized_sequence=[s.id for s in stops],
            suggested_dates=schedule.suggested_dates,
            recommended_venues=[s.id for s in stops if s.id in potential_ids],
            date_conflicts=schedule.conflicts,
            metrics=RouteMetrics(),
            reasoning=(
                "Not enough stops with coordinates to score the route geographically; "
                "original order kept."
            ),
            advisories=schedule.advisories,
        )
