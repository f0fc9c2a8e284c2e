from __future__ import annotations

from datetime import date

from db.repositories import tour_repo
from scripts.run_migrations import load_statements


class FakeCursor:
    def __init__(self, rowcount=1):
        self.executed: list[tuple] = []
        self.rowcount = rowcount

    def execute(self, sql, params=None):
        self.executed.append((" ".join(sql.split()), params))

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeConn:
    def __init__(self, rowcount=1):
        self.cur = FakeCursor(rowcount)

    def cursor(self, **kwargs):
        return self.cur


def test_update_tour_venue_writes_only_given_columns():
    conn = FakeConn()
    tour_repo.update_tour_venue(conn, 14, sequence=2, status="hold")
    sql, params = conn.cur.executed[0]
    assert sql == (
        "UPDATE tour_venues SET sequence = %s, status = %s, "
        "status_updated_at = now() WHERE id = %s"
    )
    assert params == (2, "hold", 14)


def test_update_tour_venue_with_date():
    conn = FakeConn()
    assert tour_repo.update_tour_venue(conn, 14, stop_date=date(2025, 6, 2)) == 1
    assert conn.cur.executed[0][1] == (date(2025, 6, 2), 14)


def test_update_tour_venue_nothing_to_write():
    conn = FakeConn()
    assert tour_repo.update_tour_venue(conn, 14) == 1
    assert conn.cur.executed == []


def test_update_tour_metrics_ignores_unknown_keys():
    conn = FakeConn()
    tour_repo.update_tour_metrics(conn, 1, {"optimization_score": 81, "bogus": 1})
    sql, params = conn.cur.executed[0]
    assert sql == "UPDATE tours SET optimization_score = %s, updated_at = now() WHERE id = %s"
    assert params == (81, 1)


def test_schema_statements():
    statements = load_statements()
    tables = [s for s in statements if s.startswith("CREATE TABLE")]
    assert len(tables) == 4
    assert any("tour_venues" in s for s in tables)
    assert all("--" not in s for s in statements)
