"""
modules/optimization/suggestion_agent.py
------------------------------------------
RouteSuggestionAgent: delegates sequencing judgment to an external AI text
generator and stays safe against its unreliability.

Flow:
  1. build_prompt(snapshot)    deterministic prompt, stable integer ids
  2. _call_with_deadline()     one blocking call in a daemon thread,
                               abandoned on timeout or caller cancellation
                               (an abandoned call never holds up exit)
  3. parse_response()          ordered parser strategies
  4. _to_result()              ids reconciled (id first, then 1-based
                               position), metrics recomputed from the
                               resolved order against the baseline,
                               AI date collisions reported

Any failure in 2–4 returns the deterministic optimizer's result with
``degraded=True`` and ``ai_error`` populated.  Nothing propagates.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, TimeoutError as FuturesTimeout
from datetime import date
from typing import Any, Optional

import config
from schemas.tour import (
    METHOD_AI,
    OptimizationOptions,
    OptimizationResult,
    Stop,
    TourSnapshot,
    parse_date,
)
from modules.optimization.errors import (
    CollaboratorUnavailableError,
    SuggestionCancelledError,
    SuggestionParseError,
    SuggestionTimeoutError,
    SuggestionValidationError,
)
from modules.optimization.response_parsers import SEQUENCE_KEY, parse_response
from modules.optimization.stop_resolver import resolve_date_map, resolve_sequence
from modules.planning.date_scheduler import detect_conflicts
from modules.planning.route_optimizer import RouteOptimizer, compute_metrics, percent_reduction

logger = logging.getLogger(__name__)

_POLL_SECONDS = 0.05


def _describe(stop: Stop, index: int) -> str:
    when = stop.date.isoformat() if stop.date else "No date"
    return (
        f"{index}. {stop.name} ({stop.city}) - {when} - "
        f"Coordinates: [{stop.latitude}, {stop.longitude}] - ID: {stop.id}"
    )


class RouteSuggestionAgent:
    """AI-backed alternative route, with deterministic fallback."""

    AGENT_NAME = "RouteSuggestionAgent"

    SYSTEM_PROMPT = """\
You are an AI assistant specializing in tour optimization for artists and venues.

Confirmed venues are fixed points: never drop them, never move their dates,
never change their relative order.

Return STRICT JSON:

{
  "optimizedSequence": [<venue ids in travel order>],
  "suggestedDates": {"<venue id>": "YYYY-MM-DD"},
  "recommendedVenues": [<potential venue ids to keep>],
  "suggestedSkips": [<potential venue ids to drop>],
  "estimatedDistanceReduction": "<percent>",
  "estimatedTimeSavings": "<percent>",
  "reasoning": "<short explanation>"
}

Only use venue IDs from the provided lists.  optimizedSequence must contain
ALL venues to keep (confirmed + recommended potential venues).
Suggest dates only for venues without a date.

Return JSON only.
If output is not valid JSON, it will be rejected."""

    def __init__(
        self,
        llm_client: Any = None,
        optimizer: Optional[RouteOptimizer] = None,
        timeout_seconds: float = config.LLM_TIMEOUT_SECONDS,
    ) -> None:
        self._llm = llm_client
        self._optimizer = optimizer or RouteOptimizer()
        self._timeout = timeout_seconds

    @property
    def configured(self) -> bool:
        return self._llm is not None

    # ── Prompt ────────────────────────────────────────────────────────────────

    def build_prompt(self, snapshot: TourSnapshot) -> str:
        confirmed = "\n".join(
            _describe(s, i) for i, s in enumerate(snapshot.confirmed_stops, 1)
        ) or "(none)"
        potential = "\n".join(
            _describe(s, i) for i, s in enumerate(snapshot.potential_stops, 1)
        ) or "(none)"
        return f"""{self.SYSTEM_PROMPT}

# TOUR DATA
Tour Name: {snapshot.tour_name}
Artist: {snapshot.artist_name}
Genres: {', '.join(snapshot.artist_genres) or 'Not set'}
Start Date: {snapshot.start_date.isoformat() if snapshot.start_date else 'Not set'}
End Date: {snapshot.end_date.isoformat() if snapshot.end_date else 'Not set'}

# CONFIRMED VENUES (fixed points that cannot be changed)
{confirmed}

# POTENTIAL VENUES (can be reordered, included, or excluded)
{potential}

# TASK
1. Optimal venue sequence to minimize travel distance
2. Suggested dates for venues without dates
3. Venues that should be skipped
"""

    # ── Public entry point ────────────────────────────────────────────────────

    def suggest(
        self,
        snapshot: TourSnapshot,
        options: Optional[OptimizationOptions] = None,
        cancel_event: Optional[threading.Event] = None,
        timeout_seconds: Optional[float] = None,
    ) -> OptimizationResult:
        """
        AI suggestion for *snapshot*; on any failure the deterministic result
        under *options*, flagged ``degraded``.
        """
        try:
            if self._llm is None:
                raise CollaboratorUnavailableError("no AI text generator configured")
            prompt = self.build_prompt(snapshot)
            raw = self._call_with_deadline(
                prompt,
                timeout_seconds if timeout_seconds is not None else self._timeout,
                cancel_event,
            )
            payload, strategy = parse_response(raw)
            if payload is None:
                raise SuggestionParseError("no JSON object or sequence found in AI response")
            result = self._to_result(snapshot, payload, options)
            logger.info(
                "Tour %s: AI suggestion accepted (%s parser, %d stops)",
                snapshot.tour_id, strategy, len(result.optimized_sequence),
            )
            return result
        except Exception as exc:  # noqa: BLE001  collaborator errors are arbitrary
            return self.fallback(snapshot, options, exc)

    def fallback(
        self,
        snapshot: TourSnapshot,
        options: Optional[OptimizationOptions],
        exc: BaseException,
    ) -> OptimizationResult:
        logger.warning("Tour %s: AI optimization failed, using fallback: %s", snapshot.tour_id, exc)
        result = self._optimizer.optimize(snapshot, options)
        result.degraded = True
        result.ai_error = {
            "message":   "AI optimization failed, using fallback optimization",
            "details":   getattr(exc, "detail", None) or str(exc) or exc.__class__.__name__,
            "errorType": exc.__class__.__name__,
        }
        return result

    # ── Collaborator call ─────────────────────────────────────────────────────

    def _call_with_deadline(
        self,
        prompt: str,
        timeout_seconds: float,
        cancel_event: Optional[threading.Event],
    ) -> str:
        future: Future = Future()

        def _run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self._llm.complete(prompt))
            except Exception as exc:  # noqa: BLE001  re-raised by future.result()
                future.set_exception(exc)

        threading.Thread(target=_run, name="ai-suggest", daemon=True).start()
        deadline = time.monotonic() + timeout_seconds
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise SuggestionCancelledError("request cancelled by caller")
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise SuggestionTimeoutError(f"no AI response within {timeout_seconds:g}s")
            try:
                text = future.result(timeout=min(remaining, _POLL_SECONDS))
            except FuturesTimeout:
                continue
            if not isinstance(text, str) or not text.strip():
                raise SuggestionParseError("empty AI response")
            return text

    # ── Reconciliation ────────────────────────────────────────────────────────

    def _to_result(
        self,
        snapshot: TourSnapshot,
        payload: dict,
        options: Optional[OptimizationOptions] = None,
    ) -> OptimizationResult:
        stops = list(snapshot.all_stops)
        refs = payload.get(SEQUENCE_KEY)
        if not isinstance(refs, list) or not refs:
            raise SuggestionValidationError(f"missing or empty {SEQUENCE_KEY}")

        sequence, unresolved = resolve_sequence(refs, stops)
        if unresolved:
            logger.warning("Tour %s: ignoring unresolved AI references %s", snapshot.tour_id, unresolved)
        if not sequence:
            raise SuggestionValidationError("no AI sequence entry matches a tour stop")
        self._check_fixed_points(snapshot, sequence)

        kept = {s.id for s in sequence}
        undated = {s.id for s in sequence if s.date is None}
        suggested_dates: dict[int, date] = {}
        for stop_id, raw_date in resolve_date_map(payload.get("suggestedDates") or {}, stops).items():
            parsed = parse_date(raw_date)
            if parsed is not None and stop_id in undated:
                suggested_dates[stop_id] = parsed
        _, conflicts = detect_conflicts(
            sequence, suggested_dates, options.avoid_dates if options else (),
        )
        if conflicts:
            logger.warning("Tour %s: %d AI date collision(s)", snapshot.tour_id, len(conflicts))

        potential_ids = {s.id for s in snapshot.potential_stops}
        recommended, _ = resolve_sequence(payload.get("recommendedVenues") or [], stops)
        skips, _ = resolve_sequence(payload.get("suggestedSkips") or [], stops)

        metrics = compute_metrics(stops, sequence)
        claimed = {
            k: payload[k]
            for k in ("estimatedDistanceReduction", "estimatedTimeSavings")
            if k in payload
        }
        reasoning = str(payload.get("reasoning") or "AI-suggested route.")
        if payload.get("partial"):
            reasoning += " (Recovered from a non-JSON answer: sequence only.)"

        return OptimizationResult(
            optimization_method=METHOD_AI,
            optimized_sequence=[s.id for s in sequence],
            suggested_dates=suggested_dates,
            recommended_venues=[s.id for s in recommended if s.id in potential_ids and s.id in kept]
            or [s.id for s in sequence if s.id in potential_ids],
            suggested_skips=[s.id for s in skips if s.id in potential_ids],
            date_conflicts=conflicts,
            metrics=metrics,
            estimated_distance_reduction=percent_reduction(
                metrics.total_distance, metrics.optimized_distance),
            estimated_time_savings=percent_reduction(
                metrics.total_travel_time, metrics.optimized_travel_time),
            reasoning=reasoning,
            claimed_metrics=claimed or None,
        )

    @staticmethod
    def _check_fixed_points(snapshot: TourSnapshot, sequence: list[Stop]) -> None:
        """Confirmed stops must all be kept, in their original date order."""
        kept = [s.id for s in sequence if s.is_confirmed]
        expected = [s.id for s in RouteOptimizer.order_fixed(snapshot.confirmed_stops)]
        missing = [i for i in expected if i not in kept]
        if missing:
            raise SuggestionValidationError(f"AI sequence dropped confirmed stop(s) {missing}")
        if kept != expected:
            raise SuggestionValidationError("AI sequence reorders confirmed stops")
