"""
db/repositories/tour_repo.py
------------------------------
SQL for the `tours`, `artists`, `venues` and `tour_venues` tables, and the
PostgreSQL-backed StopStore built on it.

Source: docs/database/schema.sql

The module-level functions accept a psycopg2 connection object;
commit/rollback is managed by the caller via db.connection.get_conn().
PostgresStopStore opens one unit of work per StopStore call.
"""

from __future__ import annotations

import datetime
from typing import Any, Optional

from db.connection import dict_cursor, get_conn
from db.stop_store import StopStore

# tour columns the apply step may write
_TOUR_METRIC_COLUMNS = (
    "initial_total_distance",
    "initial_optimization_score",
    "optimized_distance",
    "optimized_travel_time",
    "optimization_score",
)


# ── reads ──────────────────────────────────────────────────────────────────────

def get_tour(conn, tour_id: int) -> dict | None:
    sql = """
        SELECT id, name, artist_id, start_date, end_date, status,
               initial_total_distance, initial_optimization_score,
               optimized_distance, optimized_travel_time, optimization_score
        FROM tours
        WHERE id = %s
    """
    with dict_cursor(conn) as cur:
        cur.execute(sql, (tour_id,))
        row = cur.fetchone()
        return dict(row) if row else None


def get_artist(conn, artist_id: int) -> dict | None:
    with dict_cursor(conn) as cur:
        cur.execute("SELECT id, name, genres FROM artists WHERE id = %s", (artist_id,))
        row = cur.fetchone()
        return dict(row) if row else None


def list_tour_stops(conn, tour_id: int) -> list[dict]:
    """Stops of a tour joined with their venue, ordered by (sequence, id)."""
    sql = """
        SELECT tv.id, tv.tour_id, tv.venue_id, tv.date, tv.status, tv.sequence,
               v.name AS venue_name, v.city, v.latitude, v.longitude
        FROM tour_venues tv
        JOIN venues v ON v.id = tv.venue_id
        WHERE tv.tour_id = %s
        ORDER BY tv.sequence, tv.id
    """
    with dict_cursor(conn) as cur:
        cur.execute(sql, (tour_id,))
        return [dict(r) for r in cur.fetchall()]


# ── writes ─────────────────────────────────────────────────────────────────────

def update_tour_venue(
    conn,
    stop_id: int,
    sequence: Optional[int] = None,
    stop_date: Optional[datetime.date] = None,
    status: Optional[str] = None,
) -> int:
    """
    Update the given columns of one tour_venues row.

    Returns the number of rows updated (0 when the stop does not exist).
    status_updated_at is touched only when the status is written.
    """
    assignments: list[str] = []
    params: list[Any] = []
    if sequence is not None:
        assignments.append("sequence = %s")
        params.append(sequence)
    if stop_date is not None:
        assignments.append("date = %s")
        params.append(stop_date)
    if status is not None:
        assignments.append("status = %s")
        assignments.append("status_updated_at = now()")
        params.append(status)
    if not assignments:
        return 1
    sql = f"UPDATE tour_venues SET {', '.join(assignments)} WHERE id = %s"
    with conn.cursor() as cur:
        cur.execute(sql, (*params, stop_id))
        return cur.rowcount


def update_tour_metrics(conn, tour_id: int, metrics: dict[str, Any]) -> None:
    """Write known metric columns onto the tour; unknown keys are ignored."""
    columns = [c for c in _TOUR_METRIC_COLUMNS if c in metrics]
    if not columns:
        return
    assignments = ", ".join(f"{c} = %s" for c in columns)
    sql = f"UPDATE tours SET {assignments}, updated_at = now() WHERE id = %s"
    with conn.cursor() as cur:
        cur.execute(sql, (*[metrics[c] for c in columns], tour_id))


# ── StopStore over PostgreSQL ──────────────────────────────────────────────────

class PostgresStopStore(StopStore):
    def get_tour(self, tour_id: int) -> Optional[dict]:
        with get_conn() as conn:
            return get_tour(conn, tour_id)

    def get_artist(self, artist_id: int) -> Optional[dict]:
        with get_conn() as conn:
            return get_artist(conn, artist_id)

    def list_tour_stops(self, tour_id: int) -> list[dict]:
        with get_conn() as conn:
            return list_tour_stops(conn, tour_id)

    def update_stop(
        self,
        stop_id: int,
        *,
        sequence: Optional[int] = None,
        date: Optional[datetime.date] = None,
        status: Optional[str] = None,
    ) -> None:
        with get_conn() as conn:
            updated = update_tour_venue(conn, stop_id, sequence, date, status)
        if not updated:
            raise KeyError(f"stop {stop_id} not found")

    def update_tour_metrics(self, tour_id: int, metrics: dict[str, Any]) -> None:
        with get_conn() as conn:
            update_tour_metrics(conn, tour_id, metrics)
