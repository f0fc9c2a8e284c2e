#!/usr/bin/env python
"""
scripts/run_migrations.py
--------------------------
Applies docs/database/schema.sql to the configured Postgres database.

Usage:
    python scripts/run_migrations.py [--dry-run]

Exit codes:
    0 — schema applied (or dry-run listed)
    1 — connection failed or SQL error

Uses the POSTGRES_* settings from config.py.  All statements run in one
transaction; the schema uses IF NOT EXISTS throughout, so re-running is safe.
"""

from __future__ import annotations

import argparse
import pathlib
import re
import sys

# Make backend/ importable when run as a script
_BACKEND_DIR = pathlib.Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_BACKEND_DIR))

import psycopg2  # noqa: E402
import config  # noqa: E402

_SQL_FILE = _BACKEND_DIR / "docs" / "database" / "schema.sql"


def load_statements(path: pathlib.Path = _SQL_FILE) -> list[str]:
    """Read *path*, drop comments and split into non-empty statements."""
    if not path.exists():
        raise FileNotFoundError(f"SQL file not found: {path}")
    sql = path.read_text(encoding="utf-8")
    sql = re.sub(r"/\*.*?\*/", "", sql, flags=re.DOTALL)
    sql = re.sub(r"--[^\n]*", "", sql)
    return [s.strip() for s in sql.split(";") if s.strip()]


def run(dry_run: bool = False) -> None:
    statements = load_statements()

    print(f"[migrations] SQL file   : {_SQL_FILE}")
    print(f"[migrations] Statements : {len(statements)}")
    print(f"[migrations] Target DB  : {config.POSTGRES_DB} @ "
          f"{config.POSTGRES_HOST}:{config.POSTGRES_PORT}")

    if dry_run:
        print("[migrations] DRY-RUN, nothing applied.")
        for i, stmt in enumerate(statements, 1):
            print(f"  [{i:03d}] {stmt[:80].replace(chr(10), ' ')}...")
        return

    conn = psycopg2.connect(
        host=config.POSTGRES_HOST,
        port=config.POSTGRES_PORT,
        dbname=config.POSTGRES_DB,
        user=config.POSTGRES_USER,
        password=config.POSTGRES_PASSWORD,
    )
    try:
        with conn.cursor() as cur:
            for i, stmt in enumerate(statements, 1):
                try:
                    cur.execute(stmt)
                except psycopg2.Error as exc:
                    print(f"  [✗] Statement {i} failed: {exc.pgerror or exc}")
                    raise
                print(f"  [✓] {stmt[:60].replace(chr(10), ' ')}")
        conn.commit()
        print(f"[migrations] Done, {len(statements)} statements applied.")
    except Exception:
        conn.rollback()
        print("[migrations] ROLLED BACK due to error.")
        raise
    finally:
        conn.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Apply the tour optimizer Postgres schema.")
    parser.add_argument("--dry-run", action="store_true", help="List statements without executing them.")
    args = parser.parse_args()
    try:
        run(dry_run=args.dry_run)
    except Exception as exc:
        print(f"[migrations] ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
