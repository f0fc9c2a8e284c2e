"""
modules/planning/date_scheduler.py
-----------------------------------
Date assignment and collision detection over a merged stop sequence.

Pass 1 — existing dates:
  Every stop that already carries a date is recorded in the taken-date map.
  A second stop on an already-taken day produces a DateConflict with the
  first free day after it as the suggested alternative.  detect_conflicts()
  is shared with the AI path, which checks its suggested dates the same way.

Pass 2 — walk the sequence, suggesting dates for undated stops:
  a) preferred date, if not taken (a taken preferred date is itself a conflict)
  b) previous date in the walk + min_days_between_shows
  c) no previous date: preferred date → tour start → today + offset
  Candidates in (b)/(c) advance one day at a time past avoid-dates and
  taken days, so suggestions never collide with each other or with
  existing dates.

Existing dates are never changed.  max_days_between_shows and the tour end
date are advisory: violations are reported, not repaired.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Mapping, Optional, Sequence

import config
from schemas.tour import DateConflict, OptimizationOptions, Stop

_ONE_DAY = timedelta(days=1)


@dataclass
class ScheduleOutcome:
    suggested_dates: dict[int, date] = field(default_factory=dict)
    conflicts: list[DateConflict] = field(default_factory=list)
    advisories: list[str] = field(default_factory=list)


def _next_free(candidate: date, taken: dict[date, int], avoid: set[date]) -> date:
    while candidate in taken or candidate in avoid:
        candidate += _ONE_DAY
    return candidate


def detect_conflicts(
    sequence: Sequence[Stop],
    dates: Optional[Mapping[int, date]] = None,
    avoid: Iterable[date] = (),
) -> tuple[dict[date, int], list[DateConflict]]:
    """
    Record every date in *sequence* and report same-day collisions.

    Existing stop dates are recorded first, then *dates* (suggestions for
    undated stops, keyed by stop id), so a suggestion landing on an existing
    date is always the side reported.  Returns the taken-date map and the
    conflicts, each with the next free day as its alternative.
    """
    taken: dict[date, int] = {}
    conflicts: list[DateConflict] = []
    avoid = set(avoid)

    def _record(stop_id: int, day: date) -> None:
        if day in taken:
            conflicts.append(DateConflict(
                stop_id=stop_id,
                conflict_with=taken[day],
                suggested_alternative_date=_next_free(day + _ONE_DAY, taken, avoid),
            ))
        else:
            taken[day] = stop_id

    for stop in sequence:
        if stop.date is not None:
            _record(stop.id, stop.date)
    for stop in sequence:
        suggested = (dates or {}).get(stop.id)
        if stop.date is None and suggested is not None:
            _record(stop.id, suggested)
    return taken, conflicts


def assign_dates(
    sequence: Sequence[Stop],
    options: OptimizationOptions,
    tour_start: Optional[date] = None,
    tour_end: Optional[date] = None,
    today: Optional[date] = None,
) -> ScheduleOutcome:
    """Suggest dates for undated stops in *sequence* and report collisions."""
    outcome = ScheduleOutcome()
    avoid = set(options.avoid_dates)
    spacing = timedelta(days=options.min_days_between_shows)

    # ── Pass 1: existing dates ────────────────────────────────────────────
    taken, conflicts = detect_conflicts(sequence, avoid=avoid)
    outcome.conflicts.extend(conflicts)

    # ── Pass 2: suggestions ───────────────────────────────────────────────
    previous: Optional[date] = None
    for stop in sequence:
        if stop.date is not None:
            previous = stop.date
            continue

        preferred = options.preferred_dates.get(stop.id)
        if preferred is not None:
            if preferred in taken:
                outcome.conflicts.append(DateConflict(
                    stop_id=stop.id,
                    conflict_with=taken[preferred],
                    suggested_alternative_date=None,
                ))
            elif preferred not in avoid:
                outcome.suggested_dates[stop.id] = preferred
                taken[preferred] = stop.id
                previous = preferred
                continue

        if previous is not None:
            anchor = previous + spacing
        elif preferred is not None:
            anchor = preferred
        elif tour_start is not None:
            anchor = tour_start
        else:
            anchor = (today or date.today()) + timedelta(days=config.DEFAULT_START_OFFSET_DAYS)

        chosen = _next_free(anchor, taken, avoid)
        outcome.suggested_dates[stop.id] = chosen
        taken[chosen] = stop.id
        previous = chosen

    outcome.advisories.extend(_advisories(sequence, outcome.suggested_dates, options, tour_end))
    return outcome


def _advisories(
    sequence: Sequence[Stop],
    suggested: dict[int, date],
    options: OptimizationOptions,
    tour_end: Optional[date],
) -> list[str]:
    notes: list[str] = []
    dated = [
        (stop.id, stop.date or suggested.get(stop.id))
        for stop in sequence
        if (stop.date or suggested.get(stop.id)) is not None
    ]
    for (a_id, a_date), (b_id, b_date) in zip(dated, dated[1:]):
        gap = (b_date - a_date).days
        if gap > options.max_days_between_shows:
            notes.append(
                f"{gap} days between stop {a_id} ({a_date.isoformat()}) and stop "
                f"{b_id} ({b_date.isoformat()}) exceeds the {options.max_days_between_shows}-day maximum"
            )
    if tour_end is not None:
        for stop_id, d in suggested.items():
            if d > tour_end:
                notes.append(
                    f"suggested date {d.isoformat()} for stop {stop_id} falls after tour end "
                    f"{tour_end.isoformat()}"
                )
    return notes
