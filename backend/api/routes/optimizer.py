"""
api/routes/optimizer.py
------------------------
POST /v1/tours/optimize/{tour_id}
POST /v1/tours/apply/{tour_id}

Bodies and responses use camelCase keys.  Collaborators (orchestrator,
apply engine, cache) are FastAPI dependencies so tests can override them.

Status codes:
  400  tour id not a positive integer, unknown option value,
       missing optimizedSequence
  404  apply on a tour that does not exist
  422  body fails validation
  500  optimize on a tour that does not exist (generic message),
       unexpected failure
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

import config
from db import get_store
from db.redis_client import OptimizationCache
from llm import get_llm_client
from schemas.tour import OptimizationOptions
from modules.optimization.apply_engine import ApplyEngine
from modules.optimization.errors import TourNotFoundError
from modules.optimization.orchestrator import Orchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Request schemas ────────────────────────────────────────────────────────────

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OptimizeRequest(_CamelModel):
    method: Literal["standard", "ai", "auto"] = "auto"
    venue_priorities: dict[int, int] = Field(default_factory=dict)
    respect_fixed_dates: bool = True
    optimize_for: Literal["distance", "time", "balanced"] = "balanced"
    preferred_dates: dict[int, date] = Field(default_factory=dict)
    avoid_dates: list[date] = Field(default_factory=list)
    min_days_between_shows: int = Field(config.DEFAULT_MIN_DAYS_BETWEEN_SHOWS, ge=1)
    max_days_between_shows: int = Field(config.DEFAULT_MAX_DAYS_BETWEEN_SHOWS, ge=1)
    timeout_seconds: Optional[float] = Field(None, gt=0, description="AI call deadline override")

    def to_options(self) -> OptimizationOptions:
        return OptimizationOptions(
            venue_priorities=dict(self.venue_priorities),
            respect_fixed_dates=self.respect_fixed_dates,
            optimize_for=self.optimize_for,
            preferred_dates=dict(self.preferred_dates),
            avoid_dates=set(self.avoid_dates),
            min_days_between_shows=self.min_days_between_shows,
            max_days_between_shows=self.max_days_between_shows,
        )


class ApplyRequest(_CamelModel):
    # ids or 1-based positions, as produced by the optimize call or an AI
    optimized_sequence: Optional[list[Any]] = None
    suggested_dates: dict[str, Any] = Field(default_factory=dict)


# ── Dependencies ───────────────────────────────────────────────────────────────

def get_orchestrator() -> Orchestrator:
    return Orchestrator(get_store(), llm_client=get_llm_client())


def get_apply_engine() -> ApplyEngine:
    return ApplyEngine(get_store())


def get_cache() -> Optional[OptimizationCache]:
    return OptimizationCache() if config.OPTIMIZATION_CACHE_ENABLED else None


def _parse_tour_id(raw: str) -> int:
    try:
        tour_id = int(raw)
    except (TypeError, ValueError):
        tour_id = 0
    if tour_id <= 0:
        raise HTTPException(status_code=400, detail=f"Invalid tour id: {raw!r}")
    return tour_id


# ── Endpoints ──────────────────────────────────────────────────────────────────

@router.post("/optimize/{tour_id}", summary="Compute an optimized route for a tour")
def optimize_tour(
    tour_id: str,
    req: Optional[OptimizeRequest] = None,
    orchestrator: Orchestrator = Depends(get_orchestrator),
    cache: Optional[OptimizationCache] = Depends(get_cache),
) -> dict:
    """Returns ``{tourData, optimizationResult}``; nothing is persisted."""
    tid = _parse_tour_id(tour_id)
    req = req or OptimizeRequest()
    try:
        options = req.to_options()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    options_payload = options.cache_key_payload()
    if cache is not None:
        cached = cache.get(tid, req.method, options_payload)
        if cached is not None:
            return cached

    try:
        outcome = orchestrator.optimize(
            tid, options, method=req.method, timeout_seconds=req.timeout_seconds,
        )
    except TourNotFoundError as exc:
        logger.warning("Optimize failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to optimize tour") from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Optimize failed for tour %s", tid)
        raise HTTPException(status_code=500, detail="Failed to optimize tour") from exc

    body = outcome.to_dict()
    if cache is not None:
        cache.set(tid, req.method, options_payload, body)
    return body


@router.post("/apply/{tour_id}", summary="Apply an accepted optimization to a tour")
def apply_optimization(
    tour_id: str,
    req: ApplyRequest,
    engine: ApplyEngine = Depends(get_apply_engine),
    cache: Optional[OptimizationCache] = Depends(get_cache),
) -> dict:
    """Writes sequence / date / status per stop; ``partial`` is true when any stop was skipped."""
    tid = _parse_tour_id(tour_id)
    if req.optimized_sequence is None:
        raise HTTPException(
            status_code=400,
            detail="Missing required parameters: tourId, optimizedSequence",
        )
    try:
        report = engine.apply(tid, req.optimized_sequence, req.suggested_dates)
    except TourNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.detail) from exc
    except Exception as exc:
        logger.exception("Apply failed for tour %s", tid)
        raise HTTPException(status_code=500, detail="Failed to apply optimization") from exc
    finally:
        if cache is not None:
            cache.invalidate_tour(tid)
    return report.to_dict()
