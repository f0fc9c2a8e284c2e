from __future__ import annotations

from datetime import date

import pytest

from modules.optimization.errors import TourNotFoundError
from modules.optimization.snapshot_builder import SnapshotBuilder


def test_partition_and_metadata(store):
    snap = SnapshotBuilder(store).build(1)
    assert [s.id for s in snap.confirmed_stops] == [11, 12]
    assert [s.id for s in snap.potential_stops] == [13, 14]
    assert [s.id for s in snap.all_stops] == [11, 12, 13, 14]
    assert snap.artist_name == "The Night Owls"
    assert snap.artist_genres == ("indie", "folk")
    assert snap.start_date is None
    assert snap.end_date == date(2025, 8, 31)
    assert snap.confirmed_stops[0].date == date(2025, 6, 1)
    assert snap.confirmed_stops[0].city == "Seattle"


def test_hold_stops_are_potential_and_missing_artist_is_tolerated(store):
    snap = SnapshotBuilder(store).build(2)
    assert snap.artist_name == "Unknown Artist"
    assert [(s.id, s.status) for s in snap.potential_stops] == [(21, "potential"), (22, "hold")]
    assert not snap.potential_stops[1].has_coordinates


def test_stops_follow_stored_sequence(store):
    store.update_stop(14, sequence=0)
    store.update_stop(11, sequence=5)
    snap = SnapshotBuilder(store).build(1)
    assert [s.id for s in snap.confirmed_stops] == [12, 11]
    assert [s.id for s in snap.potential_stops] == [14, 13]


def test_missing_tour(store):
    with pytest.raises(TourNotFoundError):
        SnapshotBuilder(store).build(404)
