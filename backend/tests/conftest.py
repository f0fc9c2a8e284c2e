from __future__ import annotations

import pytest

import config
from modules.observability.logger import StructuredLogger
from modules.optimization.snapshot_builder import SnapshotBuilder
from modules.planning.route_optimizer import RouteOptimizer

from fakes import TODAY, sample_store


@pytest.fixture(autouse=True)
def _run_logs_in_tmp(tmp_path, monkeypatch):
    """Keep structured run logs out of the source tree."""
    monkeypatch.setattr(config, "RUN_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def store():
    return sample_store()


@pytest.fixture
def snapshot(store):
    return SnapshotBuilder(store).build(1)


@pytest.fixture
def optimizer():
    return RouteOptimizer(today=TODAY)


@pytest.fixture
def run_log(tmp_path):
    return StructuredLogger(tmp_path / "runlogs")
