"""
db/stop_store.py
-----------------
Stop Store: the persistence collaborator consumed by the optimizer.

  StopStore          abstract read/write contract
  InMemoryStopStore  dict-backed implementation (tests, local runs)

The PostgreSQL implementation lives in db/repositories/tour_repo.py.

Row shapes (plain dicts, snake_case):

  tour   : id, name, artist_id, start_date, end_date,
           initial_total_distance, initial_optimization_score,
           optimized_distance, optimized_travel_time, optimization_score
  artist : id, name, genres (list[str])
  stop   : id, tour_id, venue_id, venue_name, city, latitude, longitude,
           status, date, sequence
"""

from __future__ import annotations

import copy
import datetime
import threading
from abc import ABC, abstractmethod
from typing import Any, Optional


class StopStore(ABC):
    """Reads tour/venue/artist records; writes stop sequence/date/status."""

    @abstractmethod
    def get_tour(self, tour_id: int) -> Optional[dict]:
        ...

    @abstractmethod
    def get_artist(self, artist_id: int) -> Optional[dict]:
        ...

    @abstractmethod
    def list_tour_stops(self, tour_id: int) -> list[dict]:
        """Stops of the tour joined with their venue, ordered by (sequence, id)."""

    @abstractmethod
    def update_stop(
        self,
        stop_id: int,
        *,
        sequence: Optional[int] = None,
        date: Optional[datetime.date] = None,
        status: Optional[str] = None,
    ) -> None:
        """Write the given fields only. Raises KeyError when the stop does not exist."""

    @abstractmethod
    def update_tour_metrics(self, tour_id: int, metrics: dict[str, Any]) -> None:
        ...


class InMemoryStopStore(StopStore):
    """Thread-safe dict-backed store. Rows are copied in and out."""

    def __init__(
        self,
        tours: Optional[list[dict]] = None,
        artists: Optional[list[dict]] = None,
        stops: Optional[list[dict]] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._tours: dict[int, dict] = {}
        self._artists: dict[int, dict] = {}
        self._stops: dict[int, dict] = {}
        for row in tours or []:
            self.add_tour(row)
        for row in artists or []:
            self.add_artist(row)
        for row in stops or []:
            self.add_stop(row)

    # ── seeding ───────────────────────────────────────────────────────────────

    def add_tour(self, row: dict) -> None:
        with self._lock:
            self._tours[int(row["id"])] = copy.deepcopy(row)

    def add_artist(self, row: dict) -> None:
        with self._lock:
            self._artists[int(row["id"])] = copy.deepcopy(row)

    def add_stop(self, row: dict) -> None:
        with self._lock:
            self._stops[int(row["id"])] = copy.deepcopy(row)

    def get_stop(self, stop_id: int) -> Optional[dict]:
        with self._lock:
            row = self._stops.get(stop_id)
            return copy.deepcopy(row) if row is not None else None

    # ── StopStore ─────────────────────────────────────────────────────────────

    def get_tour(self, tour_id: int) -> Optional[dict]:
        with self._lock:
            row = self._tours.get(tour_id)
            return copy.deepcopy(row) if row is not None else None

    def get_artist(self, artist_id: int) -> Optional[dict]:
        with self._lock:
            row = self._artists.get(artist_id)
            return copy.deepcopy(row) if row is not None else None

    def list_tour_stops(self, tour_id: int) -> list[dict]:
        with self._lock:
            rows = [copy.deepcopy(r) for r in self._stops.values() if r.get("tour_id") == tour_id]
        return sorted(rows, key=lambda r: (r.get("sequence") or 0, r["id"]))

    def update_stop(
        self,
        stop_id: int,
        *,
        sequence: Optional[int] = None,
        date: Optional[datetime.date] = None,
        status: Optional[str] = None,
    ) -> None:
        with self._lock:
            row = self._stops.get(stop_id)
            if row is None:
                raise KeyError(f"stop {stop_id} not found")
            if sequence is not None:
                row["sequence"] = sequence
            if date is not None:
                row["date"] = date
            if status is not None:
                row["status"] = status

    def update_tour_metrics(self, tour_id: int, metrics: dict[str, Any]) -> None:
        with self._lock:
            row = self._tours.get(tour_id)
            if row is None:
                raise KeyError(f"tour {tour_id} not found")
            row.update(metrics)
