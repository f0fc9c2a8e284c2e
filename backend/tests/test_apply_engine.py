from __future__ import annotations

import json
from datetime import date

import pytest

from db.stop_store import InMemoryStopStore
from modules.optimization.apply_engine import ApplyEngine
from modules.optimization.errors import TourNotFoundError

from fakes import sample_store


@pytest.fixture
def engine(store, run_log):
    return ApplyEngine(store, run_logger=run_log)


def test_apply_writes_sequence_dates_and_status(store, engine):
    report = engine.apply(
        1, [13, 11, 14, 12], {"13": "2025-07-15", "14": "2025-06-02", "11": "2025-05-01"},
    )

    assert report.applied == 4
    assert report.skipped == []
    assert not report.partial

    ny, seattle, portland, la = (store.get_stop(i) for i in (13, 11, 14, 12))
    assert [ny["sequence"], seattle["sequence"], portland["sequence"], la["sequence"]] == [0, 1, 2, 3]
    assert ny["date"] == date(2025, 7, 15) and ny["status"] == "hold"
    assert portland["date"] == date(2025, 6, 2) and portland["status"] == "hold"
    # confirmed stops keep date and status
    assert seattle["date"] == "2025-06-01" and seattle["status"] == "confirmed"
    assert la["status"] == "confirmed"


def test_apply_persists_tour_metrics(store, engine):
    report = engine.apply(1, [11, 14, 12, 13])
    tour = store.get_tour(1)

    assert tour["optimized_distance"] == pytest.approx(report.optimized_distance)
    assert tour["optimized_travel_time"] == report.optimized_travel_time
    assert tour["optimization_score"] == report.optimization_score
    assert 0 <= report.optimization_score <= 100
    # no baseline was stored, so one is derived and recorded
    assert tour["initial_total_distance"] > 0


def test_shorter_route_earns_quality_bonuses(store, engine, run_log):
    store.update_tour_metrics(1, {"initial_total_distance": 50000.0})
    good = engine.apply(1, [11, 14, 12, 13]).optimization_score

    other = sample_store()
    other.update_tour_metrics(1, {"initial_total_distance": 1.0})
    plain = ApplyEngine(other, run_logger=run_log).apply(1, [11, 14, 12, 13]).optimization_score

    assert good > plain


def test_positional_references(store, engine):
    # 1-based positions into confirmed + potential stops: 11, 12, 13, 14
    report = engine.apply(1, [1, 4, 2, 3], {"4": "2025-06-02"})
    assert report.applied == 4
    assert store.get_stop(14)["sequence"] == 1
    assert store.get_stop(14)["date"] == date(2025, 6, 2)
    assert store.get_stop(13)["sequence"] == 3


def test_unresolvable_and_duplicate_references_are_skipped(store, engine):
    report = engine.apply(1, [11, 999, 14, 11, 12])
    assert report.applied == 3
    assert report.partial
    assert [s["reference"] for s in report.skipped] == [999, 11]
    assert store.get_stop(12)["sequence"] == 4


def test_invalid_date_is_ignored_not_fatal(store, engine):
    report = engine.apply(1, [11, 14, 12], {"14": "next tuesday"})
    assert report.applied == 3
    assert store.get_stop(14)["date"] is None
    assert store.get_stop(14)["status"] == "hold"


def test_failed_write_does_not_abort_batch(store, run_log):
    class FlakyStore(InMemoryStopStore):
        def update_stop(self, stop_id, **fields):
            if stop_id == 14:
                raise IOError("disk full")
            super().update_stop(stop_id, **fields)

    flaky = FlakyStore()
    for row in (store.get_tour(1),):
        flaky.add_tour(row)
    for stop_id in (11, 12, 13, 14):
        flaky.add_stop(store.get_stop(stop_id))

    report = ApplyEngine(flaky, run_logger=run_log).apply(1, [11, 14, 12, 13])
    assert report.applied == 3
    assert report.skipped[0]["reference"] == 14
    assert "disk full" in report.skipped[0]["reason"]
    assert flaky.get_stop(13)["sequence"] == 3


def test_apply_result_is_logged(engine, run_log):
    engine.apply(1, [11, 12])
    logs = list(run_log.logs_dir.glob("apply_1_*.jsonl"))
    assert len(logs) == 1
    record = json.loads(logs[0].read_text().splitlines()[0])
    assert record["event_type"] == "apply_result"
    assert record["payload"]["applied"] == 2


def test_missing_tour(engine):
    with pytest.raises(TourNotFoundError):
        engine.apply(404, [1])


def test_report_serialisation(engine):
    body = engine.apply(1, [11, 14, 12, 13, 77]).to_dict()
    assert body["success"] is True
    assert body["partial"] is True
    assert body["skipped"] == [{"reference": 77, "reason": "unresolved reference"}]
    assert set(body["metrics"]) == {"optimizedDistance", "optimizedTravelTime", "optimizationScore"}
