"""
modules/optimization/orchestrator.py
--------------------------------------
Optimization Orchestrator — one call, one strategy decision.

  standard  RouteOptimizer only
  ai        RouteSuggestionAgent; a degraded (fallback) result is returned as-is
  auto      AI first when a text generator is configured, else RouteOptimizer.
            A successful AI result combined with non-default options is re-run
            through RouteOptimizer seeded with the AI's ordering: AI reasoning
            is kept, sequence / dates / conflicts come from the re-run.

Every call is recorded in the structured run log.  Collaborator failures
never escape; only TourNotFoundError (snapshot construction) does.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from db.stop_store import StopStore
from schemas.tour import (
    METHOD_AI,
    METHOD_AUTO,
    METHOD_STANDARD,
    OptimizationOptions,
    OptimizationResult,
    TourSnapshot,
)
from modules.observability.logger import StructuredLogger
from modules.optimization.snapshot_builder import SnapshotBuilder
from modules.optimization.stop_resolver import resolve_sequence
from modules.optimization.suggestion_agent import RouteSuggestionAgent
from modules.planning.route_optimizer import RouteOptimizer

logger = logging.getLogger(__name__)

METHODS = (METHOD_STANDARD, METHOD_AI, METHOD_AUTO)

_CONSTRAINT_NOTE = " Enhanced with venue priorities and scheduling constraints."


@dataclass
class OptimizationOutcome:
    """The result plus the snapshot it was computed from."""
    snapshot: TourSnapshot
    result: OptimizationResult
    run_id: str = ""

    def to_dict(self) -> dict:
        return {
            "tourData":           self.snapshot.to_dict(),
            "optimizationResult": self.result.to_dict(),
        }


class Orchestrator:
    def __init__(
        self,
        store: StopStore,
        llm_client: Any = None,
        run_logger: Optional[StructuredLogger] = None,
        today: Optional[date] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self._builder = SnapshotBuilder(store)
        self._optimizer = RouteOptimizer(today=today)
        agent_kwargs: dict[str, Any] = {"optimizer": self._optimizer}
        if timeout_seconds is not None:
            agent_kwargs["timeout_seconds"] = timeout_seconds
        self._agent = RouteSuggestionAgent(llm_client, **agent_kwargs)
        self._run_log = run_logger or StructuredLogger()

    @property
    def ai_configured(self) -> bool:
        return self._agent.configured

    def optimize(
        self,
        tour_id: int,
        options: Optional[OptimizationOptions] = None,
        method: str = METHOD_AUTO,
        cancel_event: Optional[threading.Event] = None,
        timeout_seconds: Optional[float] = None,
    ) -> OptimizationOutcome:
        """
        Optimize one tour.

        Raises:
            ValueError:        unknown *method*
            TourNotFoundError: the tour does not exist
        """
        if method not in METHODS:
            raise ValueError(f"method must be one of {METHODS}, got {method!r}")
        options = options or OptimizationOptions()
        snapshot = self._builder.build(tour_id)

        run_id = f"opt_{tour_id}_{uuid.uuid4().hex[:8]}"
        self._run_log.log(run_id, "optimization_start", {
            "tour_id": tour_id,
            "method":  method,
            "options": options.cache_key_payload(),
            "stops":   len(snapshot.all_stops),
        })

        if method == METHOD_STANDARD or (method == METHOD_AUTO and not self.ai_configured):
            logger.info("Tour %s: standard optimization (requested %s)", tour_id, method)
            result = self._optimizer.optimize(snapshot, options)
        else:
            logger.info("Tour %s: AI optimization (requested %s)", tour_id, method)
            result = self._agent.suggest(
                snapshot, options, cancel_event=cancel_event, timeout_seconds=timeout_seconds,
            )
            if result.degraded:
                self._run_log.log(run_id, "ai_fallback", dict(result.ai_error or {}))
            elif method == METHOD_AUTO and options.has_custom_settings():
                result = self._apply_constraints(snapshot, result, options)

        self._run_log.log(run_id, "optimization_result", {
            "method":             result.optimization_method,
            "degraded":           result.degraded,
            "optimizedSequence":  result.optimized_sequence,
            "conflicts":          len(result.date_conflicts),
            "calculatedMetrics":  result.metrics.to_dict(),
        })
        return OptimizationOutcome(snapshot=snapshot, result=result, run_id=run_id)

    def _apply_constraints(
        self,
        snapshot: TourSnapshot,
        ai_result: OptimizationResult,
        options: OptimizationOptions,
    ) -> OptimizationResult:
        """Re-run the deterministic optimizer over the AI's ordering."""
        ai_order, _ = resolve_sequence(ai_result.optimized_sequence, snapshot.all_stops)
        rerun = self._optimizer.optimize(
            snapshot.with_order(ai_order), options, baseline=snapshot.all_stops,
        )
        kept = set(rerun.optimized_sequence)
        logger.info("Tour %s: AI ordering re-run with caller constraints", snapshot.tour_id)
        return OptimizationResult(
            optimization_method=METHOD_AI,
            optimized_sequence=rerun.optimized_sequence,
            suggested_dates=rerun.suggested_dates,
            recommended_venues=[i for i in ai_result.recommended_venues if i in kept],
            suggested_skips=list(ai_result.suggested_skips),
            date_conflicts=rerun.date_conflicts,
            metrics=rerun.metrics,
            estimated_distance_reduction=rerun.estimated_distance_reduction,
            estimated_time_savings=rerun.estimated_time_savings,
            reasoning=ai_result.reasoning + _CONSTRAINT_NOTE,
            advisories=rerun.advisories,
            claimed_metrics=ai_result.claimed_metrics,
        )
