"""
modules/optimization/snapshot_builder.py
------------------------------------------
Builds the immutable TourSnapshot for one optimization request from Stop
Store records.

  confirmed_stops  status == confirmed
  potential_stops  every other non-cancelled stop (potential, hold)

Both lists keep the store order (sequence, then id).
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from db.stop_store import StopStore
from schemas.tour import STATUS_CANCELLED, Stop, TourSnapshot, parse_date
from modules.optimization.errors import TourNotFoundError

logger = logging.getLogger(__name__)


def _float_or_none(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def stop_from_row(row: dict) -> Stop:
    return Stop(
        id=int(row["id"]),
        venue_id=row.get("venue_id"),
        name=row.get("venue_name") or "Unknown Venue",
        city=row.get("city") or "Unknown City",
        latitude=_float_or_none(row.get("latitude")),
        longitude=_float_or_none(row.get("longitude")),
        status=(row.get("status") or "potential").lower(),
        date=parse_date(row.get("date")),
        sequence=int(row.get("sequence") or 0),
    )


def _genres(raw: Any) -> tuple[str, ...]:
    if not raw:
        return ()
    if isinstance(raw, str):
        return tuple(g.strip() for g in raw.split(",") if g.strip())
    return tuple(str(g) for g in raw)


class SnapshotBuilder:
    def __init__(self, store: StopStore) -> None:
        self._store = store

    def build(self, tour_id: int) -> TourSnapshot:
        """Raises TourNotFoundError when the tour record does not exist."""
        tour = self._store.get_tour(tour_id)
        if tour is None:
            raise TourNotFoundError(f"tour {tour_id} not found")

        artist = None
        if tour.get("artist_id") is not None:
            artist = self._store.get_artist(tour["artist_id"])

        stops = [stop_from_row(r) for r in self._store.list_tour_stops(tour_id)]
        stops.sort(key=lambda s: (s.sequence, s.id))
        confirmed = tuple(s for s in stops if s.is_confirmed)
        potential = tuple(
            s for s in stops if not s.is_confirmed and s.status != STATUS_CANCELLED
        )
        logger.info(
            "Tour %s snapshot: %d confirmed, %d potential, %d cancelled",
            tour_id, len(confirmed), len(potential),
            len(stops) - len(confirmed) - len(potential),
        )
        return TourSnapshot(
            tour_id=tour_id,
            tour_name=tour.get("name") or "",
            artist_name=(artist or {}).get("name") or "Unknown Artist",
            artist_genres=_genres((artist or {}).get("genres")),
            start_date=parse_date(tour.get("start_date")),
            end_date=parse_date(tour.get("end_date")),
            confirmed_stops=confirmed,
            potential_stops=potential,
            initial_total_distance=_float_or_none(tour.get("initial_total_distance")),
        )
