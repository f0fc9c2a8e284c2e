"""
Structured JSON run log — append-only, one object per line (.jsonl).

Usage:
    from modules.observability.logger import StructuredLogger

    run_log = StructuredLogger()
    run_log.log("opt_17_a1b2c3", "optimization_start", {"tour_id": 17})

Records go to  <RUN_LOG_DIR>/<run_id>.jsonl ; RUN_LOG_DIR defaults to
logs/ under the backend/ root.

Event types written by the optimizer:
    optimization_start   tour id, method, options
    optimization_result  method, degraded flag, sequence, metrics
    ai_fallback          AI error detail when a result degraded
    apply_result         applied / skipped counts, new metrics
"""

from __future__ import annotations

import json
import os
import threading
from datetime import datetime, timezone
from pathlib import Path

import config

_DEFAULT_LOGS_DIR: Path = Path(__file__).resolve().parents[2] / "logs"


class StructuredLogger:
    """Thread-safe, append-only JSONL logger.  Each record opens, appends and closes."""

    def __init__(self, logs_dir: Path | str | None = None) -> None:
        self._logs_dir = Path(logs_dir or config.RUN_LOG_DIR or _DEFAULT_LOGS_DIR)
        self._lock = threading.Lock()

    @property
    def logs_dir(self) -> Path:
        return self._logs_dir

    def path_for(self, run_id: str) -> Path:
        return self._logs_dir / f"{run_id}.jsonl"

    def log(self, run_id: str, event_type: str, payload: dict) -> None:
        """Append one structured JSON record to ``<run_id>.jsonl``."""
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "run_id": run_id,
            "event_type": event_type,
            "payload": payload,
        }
        line = json.dumps(record, default=str, ensure_ascii=False) + "\n"

        with self._lock:
            os.makedirs(self._logs_dir, exist_ok=True)
            with open(self.path_for(run_id), "a", encoding="utf-8") as fh:
                fh.write(line)

    def read(self, run_id: str) -> list[dict]:
        """All records of one run, in write order ([] for an unknown run)."""
        path = self.path_for(run_id)
        if not path.exists():
            return []
        with open(path, encoding="utf-8") as fh:
            return [json.loads(line) for line in fh if line.strip()]
