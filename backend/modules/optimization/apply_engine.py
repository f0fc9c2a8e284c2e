"""
modules/optimization/apply_engine.py
--------------------------------------
Apply Engine — commits an accepted optimization back to the Stop Store.

For each reference in the accepted sequence, in order:
  1. resolve it (stop id, else 1-based position into the snapshot stops)
  2. sequence := position index (0-based)
  3. date     := suggested date, when present and valid (never for confirmed stops)
  4. status   potential → hold (confirmed stops keep their status)

A reference that cannot be resolved, or whose write fails, is logged and
reported in ``skipped``; the batch continues.  Afterwards the new route's
distance, travel time and optimization score are persisted on the tour.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from db.stop_store import StopStore
from schemas.tour import STATUS_HOLD, STATUS_POTENTIAL, Stop, parse_date
from modules.observability.logger import StructuredLogger
from modules.optimization.snapshot_builder import SnapshotBuilder
from modules.optimization.stop_resolver import lookup_by_ref, resolve_stop_ref
from modules.planning.tour_scoring import (
    calculate_date_coverage,
    calculate_geographic_clustering,
    calculate_initial_tour_score,
    calculate_optimization_score,
    calculate_schedule_efficiency,
)
from modules.tool_usage.distance_tool import total_route_distance, travel_time_minutes

logger = logging.getLogger(__name__)


@dataclass
class ApplyReport:
    applied: int = 0
    skipped: list[dict] = field(default_factory=list)    # {reference, reason}
    optimized_distance: float = 0.0
    optimized_travel_time: int = 0
    optimization_score: int = 0

    @property
    def partial(self) -> bool:
        return bool(self.skipped)

    def to_dict(self) -> dict:
        return {
            "success": True,
            "applied": self.applied,
            "skipped": list(self.skipped),
            "partial": self.partial,
            "metrics": {
                "optimizedDistance":   round(self.optimized_distance, 1),
                "optimizedTravelTime": self.optimized_travel_time,
                "optimizationScore":   self.optimization_score,
            },
        }


class ApplyEngine:
    def __init__(self, store: StopStore, run_logger: Optional[StructuredLogger] = None) -> None:
        self._store = store
        self._builder = SnapshotBuilder(store)
        self._run_log = run_logger or StructuredLogger()

    def apply(
        self,
        tour_id: int,
        optimized_sequence: Sequence[Any],
        suggested_dates: Optional[dict] = None,
    ) -> ApplyReport:
        """Raises TourNotFoundError when the tour does not exist."""
        snapshot = self._builder.build(tour_id)
        stops = list(snapshot.all_stops)
        suggested_dates = suggested_dates or {}
        report = ApplyReport()
        final_route: list[Stop] = []
        seen: set[int] = set()

        for index, ref in enumerate(optimized_sequence):
            stop = resolve_stop_ref(ref, stops)
            if stop is None:
                logger.warning("Tour %s: stop reference %r not found, skipped", tour_id, ref)
                report.skipped.append({"reference": ref, "reason": "unresolved reference"})
                continue
            if stop.id in seen:
                report.skipped.append({"reference": ref, "reason": f"duplicate of stop {stop.id}"})
                continue
            seen.add(stop.id)

            new_date = None
            new_status = None
            if not stop.is_confirmed:
                raw = lookup_by_ref(suggested_dates, ref, stop)
                new_date = parse_date(raw)
                if raw is not None and new_date is None:
                    logger.warning("Tour %s: invalid date %r for stop %s ignored", tour_id, raw, stop.id)
                if stop.status == STATUS_POTENTIAL:
                    new_status = STATUS_HOLD

            try:
                self._store.update_stop(stop.id, sequence=index, date=new_date, status=new_status)
            except Exception as exc:  # noqa: BLE001  one failed write must not abort the batch
                logger.warning("Tour %s: update of stop %s failed: %s", tour_id, stop.id, exc)
                report.skipped.append({"reference": ref, "reason": f"write failed: {exc}"})
                continue

            report.applied += 1
            final_route.append(dataclasses.replace(
                stop,
                sequence=index,
                date=new_date or stop.date,
                status=new_status or stop.status,
            ))

        self._score(snapshot.initial_total_distance, stops, final_route, report)
        metrics = {
            "optimized_distance":    report.optimized_distance,
            "optimized_travel_time": report.optimized_travel_time,
            "optimization_score":    report.optimization_score,
        }
        if snapshot.initial_total_distance is None:
            metrics["initial_total_distance"] = self._initial_distance(None, stops)
        self._store.update_tour_metrics(tour_id, metrics)

        run_id = f"apply_{tour_id}_{uuid.uuid4().hex[:8]}"
        self._run_log.log(run_id, "apply_result", {"tour_id": tour_id, **report.to_dict()})
        if report.partial:
            logger.warning("Tour %s: apply partial, %d skipped", tour_id, len(report.skipped))
        return report

    @staticmethod
    def _initial_distance(recorded: Optional[float], stops: Sequence[Stop]) -> float:
        if recorded is not None:
            return recorded
        return calculate_initial_tour_score(stops).total_distance

    def _score(
        self,
        recorded_initial: Optional[float],
        before: Sequence[Stop],
        route: Sequence[Stop],
        report: ApplyReport,
    ) -> None:
        distance = total_route_distance(route)
        travel_time = travel_time_minutes(distance)
        report.optimized_distance = distance
        report.optimized_travel_time = travel_time

        initial = self._initial_distance(recorded_initial, before)
        if distance < initial:
            report.optimization_score = calculate_optimization_score(
                distance,
                travel_time,
                geographic_clustering=calculate_geographic_clustering(route),
                schedule_efficiency=calculate_schedule_efficiency(route),
                date_coverage=calculate_date_coverage(route),
            )
        else:
            report.optimization_score = calculate_optimization_score(distance, travel_time)
