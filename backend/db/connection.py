"""
db/connection.py
-----------------
psycopg2 ThreadedConnectionPool for the PostgreSQL Stop Store.

Usage:
    from db.connection import get_conn, dict_cursor

    with get_conn() as conn:
        with dict_cursor(conn) as cur:
            cur.execute("SELECT * FROM tours WHERE id = %s", (tour_id,))
            tour = cur.fetchone()          # dict or None

get_conn() commits on clean exit, rolls back on exception and always returns
the connection to the pool.  The pool is created lazily on first use from
the POSTGRES_* settings in config.py.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

import psycopg2
import psycopg2.extras
import psycopg2.pool

import config

_pool: psycopg2.pool.ThreadedConnectionPool | None = None


def get_pool() -> psycopg2.pool.ThreadedConnectionPool:
    """Return the process-wide pool, (re)creating it when missing or closed."""
    global _pool
    if _pool is None or _pool.closed:
        _pool = psycopg2.pool.ThreadedConnectionPool(
            minconn=config.POSTGRES_MIN_CONN,
            maxconn=config.POSTGRES_MAX_CONN,
            host=config.POSTGRES_HOST,
            port=config.POSTGRES_PORT,
            dbname=config.POSTGRES_DB,
            user=config.POSTGRES_USER,
            password=config.POSTGRES_PASSWORD,
        )
    return _pool


@contextmanager
def get_conn() -> Generator:
    """Borrow one connection for a unit of work."""
    pool = get_pool()
    conn = pool.getconn()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn)


def dict_cursor(conn):  # noqa: ANN201
    """Cursor whose rows are dicts keyed by column name."""
    return conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)


def close_pool() -> None:
    """Close every pooled connection (application shutdown)."""
    global _pool
    if _pool and not _pool.closed:
        _pool.closeall()
    _pool = None
