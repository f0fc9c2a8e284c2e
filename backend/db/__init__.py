"""
db/
----
Database access layer for the tour route optimizer.

Storage architecture:
  PostgreSQL (psycopg2) — persistent Stop Store
    tables: artists, venues, tours, tour_venues
    schema: docs/database/schema.sql
    apply:  python scripts/run_migrations.py

  Redis (redis-py) — optional optimization result cache
    tour-opt:{tour_id}:{md5}   TTL = OPTIMIZATION_CACHE_TTL (1 h)

  In-memory Stop Store — tests and local runs (STOP_STORE_BACKEND=memory)

Public exports:
    from db import get_store
    from db.stop_store import StopStore, InMemoryStopStore
    from db.redis_client import OptimizationCache
"""

from __future__ import annotations

import config
from db.stop_store import InMemoryStopStore, StopStore

_store: StopStore | None = None


def get_store() -> StopStore:
    """Return the process-wide Stop Store selected by STOP_STORE_BACKEND."""
    global _store
    if _store is None:
        if config.STOP_STORE_BACKEND == "memory":
            _store = InMemoryStopStore()
        else:
            from db.repositories.tour_repo import PostgresStopStore
            _store = PostgresStopStore()
    return _store


__all__ = ["get_store", "StopStore", "InMemoryStopStore"]
