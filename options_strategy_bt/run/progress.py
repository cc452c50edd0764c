"""
Progress / status sinks for backtest runs.

The engine only needs something with report_progress / report_result / report_error. Two
implementations are provided: a logging sink and a sink backed by a SQLite run-record table
(status pending|running|completed|error, progress 0-100, error text, result summary JSON).
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

RUN_STATUSES = ("pending", "running", "completed", "error")


class ProgressSink(Protocol):
    def report_started(self) -> None: ...

    def report_progress(self, percent: float) -> None: ...

    def report_result(self, result: Any) -> None: ...

    def report_error(self, message: str) -> None: ...


class LoggingProgressSink:
    """Writes progress and outcome to the module logger"""

    def __init__(self, label: str = "backtest"):
        self.label = label
        self.last_percent = 0.0

    def report_started(self) -> None:
        logger.info(f"[{self.label}] running")

    def report_progress(self, percent: float) -> None:
        self.last_percent = float(percent)
        logger.info(f"[{self.label}] progress {percent:.1f}%")

    def report_result(self, result: Any) -> None:
        summary = getattr(result, "summary", None) or {}
        logger.info(f"[{self.label}] completed: total P/L {summary.get('total_profit_loss', 0.0):.2f}")

    def report_error(self, message: str) -> None:
        logger.error(f"[{self.label}] error: {message}")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class RunRecordStore:
    """
    SQLite persistence for backtest run status.
    - one row per run id
    - progress updates, terminal status, cancellation flag
    """

    def __init__(self, db_path: str):
        self.db_path = str(db_path) if db_path == ":memory:" else str(Path(db_path))
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _ensure_schema(self) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS backtest_runs (
                    run_id TEXT PRIMARY KEY,
                    symbol TEXT,
                    status TEXT NOT NULL,
                    progress REAL NOT NULL DEFAULT 0,
                    error TEXT,
                    result_json TEXT,
                    cancel_requested INTEGER NOT NULL DEFAULT 0,
                    created_at_utc TEXT,
                    updated_at_utc TEXT
                );
                """
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_backtest_runs_status ON backtest_runs(status);")
            self._conn.commit()

    def _update(self, run_id: str, **fields: Any) -> None:
        if "status" in fields and fields["status"] not in RUN_STATUSES:
            raise ValueError(f"Invalid run status: {fields['status']}")
        fields["updated_at_utc"] = _utc_now()
        assignments = ", ".join(f"{k} = ?" for k in fields)
        with self._lock:
            cur = self._conn.execute(
                f"UPDATE backtest_runs SET {assignments} WHERE run_id = ?",
                [*fields.values(), run_id],
            )
            self._conn.commit()
            if cur.rowcount == 0:
                raise KeyError(f"Unknown run id: {run_id}")

    def create_run(self, symbol: str = "", run_id: Optional[str] = None) -> str:
        run_id = run_id or uuid.uuid4().hex
        now = _utc_now()
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO backtest_runs (run_id, symbol, status, progress, created_at_utc, updated_at_utc)
                VALUES (?, ?, 'pending', 0, ?, ?)
                """,
                (run_id, symbol, now, now),
            )
            self._conn.commit()
        return run_id

    def mark_running(self, run_id: str) -> None:
        self._update(run_id, status="running")

    def update_progress(self, run_id: str, percent: float) -> None:
        self._update(run_id, progress=max(0.0, min(100.0, float(percent))))

    def mark_completed(self, run_id: str, result: Optional[Dict[str, Any]] = None) -> None:
        payload = json.dumps(result, default=str) if result is not None else None
        self._update(run_id, status="completed", progress=100.0, result_json=payload, error=None)

    def mark_error(self, run_id: str, message: str) -> None:
        self._update(run_id, status="error", error=str(message))

    def request_cancel(self, run_id: str) -> None:
        self._update(run_id, cancel_requested=1)

    def is_cancel_requested(self, run_id: str) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT cancel_requested FROM backtest_runs WHERE run_id = ?", (run_id,)
            ).fetchone()
        return bool(row and row["cancel_requested"])

    def get_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self._conn.execute("SELECT * FROM backtest_runs WHERE run_id = ?", (run_id,)).fetchone()
        if row is None:
            return None
        out = dict(row)
        out["cancel_requested"] = bool(out["cancel_requested"])
        out["result"] = json.loads(out.pop("result_json")) if out.get("result_json") else None
        return out


class RunRecordSink:
    """Adapts a RunRecordStore row to the ProgressSink interface"""

    def __init__(self, store: RunRecordStore, run_id: str):
        self.store = store
        self.run_id = run_id

    def report_started(self) -> None:
        self.store.mark_running(self.run_id)

    def report_progress(self, percent: float) -> None:
        self.store.update_progress(self.run_id, percent)

    def report_result(self, result: Any) -> None:
        self.store.mark_completed(
            self.run_id,
            {"summary": getattr(result, "summary", None), "details": getattr(result, "details", None)},
        )

    def report_error(self, message: str) -> None:
        self.store.mark_error(self.run_id, message)

    def should_cancel(self) -> bool:
        return self.store.is_cancel_requested(self.run_id)
