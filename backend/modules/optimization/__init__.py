"""modules/optimization — Tour optimization: AI suggestions with deterministic fallback, apply."""

from modules.optimization.errors import (
    TourOptimizationError, TourNotFoundError, SuggestionError,
)
from modules.optimization.snapshot_builder import SnapshotBuilder
from modules.optimization.suggestion_agent import RouteSuggestionAgent
from modules.optimization.orchestrator import Orchestrator, OptimizationOutcome
from modules.optimization.apply_engine import ApplyEngine, ApplyReport

__all__ = [
    "TourOptimizationError", "TourNotFoundError", "SuggestionError",
    "SnapshotBuilder",
    "RouteSuggestionAgent",
    "Orchestrator", "OptimizationOutcome",
    "ApplyEngine", "ApplyReport",
]
