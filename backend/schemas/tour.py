"""
schemas/tour.py
---------------
Dataclass definitions for the tour route optimizer.

  Stop                 — one venue's participation in a tour
  TourSnapshot         — immutable input data set for one optimization call
  OptimizationOptions  — caller-supplied knobs for the deterministic optimizer
  DateConflict         — two stops landing on the same calendar day
  RouteMetrics         — before/after distance (km) and travel time (minutes)
  OptimizationResult   — output of the optimizer / AI adapter / orchestrator

Serialisers (``to_dict``) emit the camelCase keys used on the HTTP surface.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date
from typing import Any, Optional

import config

# Stop lifecycle
STATUS_CONFIRMED = "confirmed"
STATUS_HOLD      = "hold"
STATUS_POTENTIAL = "potential"
STATUS_CANCELLED = "cancelled"

METHOD_STANDARD = "standard"
METHOD_AI       = "ai"
METHOD_AUTO     = "auto"

OPTIMIZE_FOR_VALUES = ("distance", "time", "balanced")


def parse_date(value: Any) -> Optional[date]:
    """
    Coerce an ISO-8601 string (date or datetime) or a date into a ``date``.
    Returns None for empty or unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value if type(value) is date else value.date()  # datetime → date
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def _iso(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d else None


@dataclass(frozen=True)
class Stop:
    """
    A tour's relationship to one venue.

    ``priority`` (1–10) is supplied by the caller per request and is never
    persisted.  A stop without coordinates cannot be scored geographically.
    """
    id: int
    venue_id: Optional[int] = None
    name: str = "Unknown Venue"
    city: str = "Unknown City"
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: str = STATUS_POTENTIAL
    date: Optional[date] = None
    sequence: int = 0
    priority: int = config.DEFAULT_STOP_PRIORITY

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def is_confirmed(self) -> bool:
        return self.status == STATUS_CONFIRMED

    def to_dict(self) -> dict:
        return {
            "id":        self.id,
            "venueId":   self.venue_id,
            "name":      self.name,
            "city":      self.city,
            "latitude":  self.latitude,
            "longitude": self.longitude,
            "date":      _iso(self.date),
            "isFixed":   self.is_confirmed,
            "status":    self.status,
            "sequence":  self.sequence,
        }


@dataclass(frozen=True)
class TourSnapshot:
    """Built once per optimization request; never mutated during it."""
    tour_id: int
    tour_name: str = ""
    artist_name: str = "Unknown Artist"
    artist_genres: tuple[str, ...] = ()
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    confirmed_stops: tuple[Stop, ...] = ()
    potential_stops: tuple[Stop, ...] = ()
    initial_total_distance: Optional[float] = None

    @property
    def all_stops(self) -> tuple[Stop, ...]:
        return self.confirmed_stops + self.potential_stops

    def with_order(self, ordered: list[Stop]) -> "TourSnapshot":
        """Return a copy whose stop lists follow *ordered* (stops not listed are dropped)."""
        return TourSnapshot(
            tour_id=self.tour_id,
            tour_name=self.tour_name,
            artist_name=self.artist_name,
            artist_genres=self.artist_genres,
            start_date=self.start_date,
            end_date=self.end_date,
            confirmed_stops=tuple(s for s in ordered if s.is_confirmed),
            potential_stops=tuple(s for s in ordered if not s.is_confirmed),
            initial_total_distance=self.initial_total_distance,
        )

    def to_dict(self) -> dict:
        return {
            "tourId":          self.tour_id,
            "tourName":        self.tour_name,
            "artistName":      self.artist_name,
            "artistGenres":    list(self.artist_genres),
            "startDate":       _iso(self.start_date),
            "endDate":         _iso(self.end_date),
            "confirmedVenues": [s.to_dict() for s in self.confirmed_stops],
            "potentialVenues": [s.to_dict() for s in self.potential_stops],
            "allVenues":       [s.to_dict() for s in self.all_stops],
        }


@dataclass
class OptimizationOptions:
    """
    Knobs for the deterministic optimizer.

    venue_priorities        stop id → 1..10 (missing → DEFAULT_STOP_PRIORITY)
    respect_fixed_dates     confirmed stops are immovable when True
    optimize_for            "distance" | "time" | "balanced"
    preferred_dates         stop id → date
    avoid_dates             dates no suggestion may land on
    min_days_between_shows  spacing used when chaining suggested dates
    max_days_between_shows  advisory only: reported, never enforced
    """
    venue_priorities: dict[int, int] = field(default_factory=dict)
    respect_fixed_dates: bool = True
    optimize_for: str = "balanced"
    preferred_dates: dict[int, date] = field(default_factory=dict)
    avoid_dates: set[date] = field(default_factory=set)
    min_days_between_shows: int = config.DEFAULT_MIN_DAYS_BETWEEN_SHOWS
    max_days_between_shows: int = config.DEFAULT_MAX_DAYS_BETWEEN_SHOWS

    def __post_init__(self) -> None:
        if self.optimize_for not in OPTIMIZE_FOR_VALUES:
            raise ValueError(
                f"optimize_for must be one of {OPTIMIZE_FOR_VALUES}, got {self.optimize_for!r}"
            )
        self.venue_priorities = {
            int(k): max(1, min(10, int(v))) for k, v in self.venue_priorities.items()
        }
        self.min_days_between_shows = max(1, int(self.min_days_between_shows))

    def priority_for(self, stop_id: int) -> int:
        return self.venue_priorities.get(stop_id, config.DEFAULT_STOP_PRIORITY)

    def has_custom_settings(self) -> bool:
        """True when any field differs from its default value."""
        defaults = OptimizationOptions()
        return any(
            getattr(self, f.name) != getattr(defaults, f.name) for f in fields(self)
        )

    def cache_key_payload(self) -> dict:
        return {
            "venuePriorities":     {str(k): v for k, v in sorted(self.venue_priorities.items())},
            "respectFixedDates":   self.respect_fixed_dates,
            "optimizeFor":         self.optimize_for,
            "preferredDates":      {str(k): _iso(v) for k, v in sorted(self.preferred_dates.items())},
            "avoidDates":          sorted(_iso(d) for d in self.avoid_dates),
            "minDaysBetweenShows": self.min_days_between_shows,
            "maxDaysBetweenShows": self.max_days_between_shows,
        }


@dataclass(frozen=True)
class DateConflict:
    stop_id: int
    conflict_with: int
    suggested_alternative_date: Optional[date] = None

    def to_dict(self) -> dict:
        return {
            "venueId":                  self.stop_id,
            "conflictWith":             self.conflict_with,
            "suggestedAlternativeDate": _iso(self.suggested_alternative_date),
        }


@dataclass
class RouteMetrics:
    total_distance: float = 0.0          # km, original order
    total_travel_time: int = 0           # minutes, original order
    optimized_distance: float = 0.0      # km, final order
    optimized_travel_time: int = 0       # minutes, final order

    def to_dict(self) -> dict:
        return {
            "totalDistance":         round(self.total_distance, 1),
            "totalTravelTimeMinutes": self.total_travel_time,
            "optimizedDistance":     round(self.optimized_distance, 1),
            "optimizedTimeMinutes":  self.optimized_travel_time,
        }


@dataclass
class OptimizationResult:
    """
    Produced fresh per request; only ever persisted through the ApplyEngine.

    ``degraded`` is True when an AI optimization was requested but the
    deterministic algorithm produced this result; ``ai_error`` then says why.
    """
    optimization_method: str = METHOD_STANDARD
    optimized_sequence: list[int] = field(default_factory=list)
    suggested_dates: dict[int, date] = field(default_factory=dict)
    recommended_venues: list[int] = field(default_factory=list)
    suggested_skips: list[int] = field(default_factory=list)
    date_conflicts: list[DateConflict] = field(default_factory=list)
    metrics: RouteMetrics = field(default_factory=RouteMetrics)
    estimated_distance_reduction: float = 0.0    # percent
    estimated_time_savings: float = 0.0          # percent
    reasoning: str = ""
    advisories: list[str] = field(default_factory=list)
    degraded: bool = False
    ai_error: Optional[dict] = None
    claimed_metrics: Optional[dict] = None       # AI's own estimates, unverified

    def to_dict(self) -> dict:
        out: dict[str, Any] = {
            "optimizationMethod":         self.optimization_method,
            "optimizedSequence":          list(self.optimized_sequence),
            "suggestedDates":             {str(k): _iso(v) for k, v in self.suggested_dates.items()},
            "recommendedVenues":          list(self.recommended_venues),
            "suggestedSkips":             list(self.suggested_skips),
            "dateConflicts":              [c.to_dict() for c in self.date_conflicts],
            "estimatedDistanceReduction": self.estimated_distance_reduction,
            "estimatedTimeSavings":       self.estimated_time_savings,
            "reasoning":                  self.reasoning,
            "advisories":                 list(self.advisories),
            "calculatedMetrics":          self.metrics.to_dict(),
            "degraded":                   self.degraded,
        }
        if self.ai_error is not None:
            out["aiError"] = dict(self.ai_error)
        if self.claimed_metrics is not None:
            out["claimedMetrics"] = dict(self.claimed_metrics)
        return out
