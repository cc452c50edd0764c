"""
SQLite price-bar cache.

Daily bars are stored in a ``price_bars`` table keyed by (symbol, date). Inserts use
``INSERT OR IGNORE`` so concurrent runs filling overlapping ranges never create duplicates.
"""

import logging
import sqlite3
from datetime import date
from typing import List, Optional, Sequence

import pandas as pd

from .models import PriceBar

logger = logging.getLogger(__name__)


class SQLitePriceCache:
    """
    SQLite-backed PriceBarCache. One connection is opened lazily and held until close();
    the object is also a context manager. ':memory:' gives an in-process cache.
    """

    def __init__(self, sqlite_path: str, table: str = "price_bars"):
        self.sqlite_path = sqlite_path
        self.table = table
        self._conn: Optional[sqlite3.Connection] = None
        self._create_table()

    @property
    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            conn = sqlite3.connect(self.sqlite_path, check_same_thread=False)
            # wait on writers from other runs instead of failing with "database is locked"
            conn.execute("PRAGMA busy_timeout=5000;")
            self._conn = conn
        return self._conn

    def _create_table(self) -> None:
        self._connection.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                symbol TEXT NOT NULL,
                date TEXT NOT NULL,
                open REAL NOT NULL,
                high REAL NOT NULL,
                low REAL NOT NULL,
                close REAL NOT NULL,
                volume REAL NOT NULL DEFAULT 0,
                PRIMARY KEY (symbol, date)
            );
            """
        )
        self._connection.commit()

    def close(self):
        conn, self._conn = self._conn, None
        if conn is not None:
            conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def get_bars(self, symbol: str, start: date, end: date) -> List[PriceBar]:
        """
        Load cached bars for a symbol in [start, end], ascending by date.
        """
        conn = self._connection
        query = f"""
            SELECT date, open, high, low, close, volume
            FROM {self.table}
            WHERE symbol = ? AND date >= ? AND date <= ?
            ORDER BY date ASC
        """
        df = pd.read_sql_query(query, conn, params=(symbol.upper(), start.isoformat(), end.isoformat()))
        if df.empty:
            return []

        df["date"] = pd.to_datetime(df["date"]).dt.date
        return [
            PriceBar(
                date=row.date,
                open=float(row.open),
                high=float(row.high),
                low=float(row.low),
                close=float(row.close),
                volume=float(row.volume),
            )
            for row in df.itertuples(index=False)
        ]

    def insert_bars(self, symbol: str, bars: Sequence[PriceBar]) -> int:
        """
        Insert bars, ignoring rows whose (symbol, date) already exists.

        Returns:
            Number of rows inserted
        """
        if not bars:
            return 0
        conn = self._connection
        rows = [
            (symbol.upper(), b.date.isoformat(), float(b.open), float(b.high), float(b.low), float(b.close), float(b.volume))
            for b in bars
        ]
        before = conn.total_changes
        conn.executemany(
            f"INSERT OR IGNORE INTO {self.table} (symbol, date, open, high, low, close, volume) VALUES (?, ?, ?, ?, ?, ?, ?)",
            rows,
        )
        conn.commit()
        inserted = conn.total_changes - before
        logger.debug(f"Cached {inserted}/{len(rows)} bars for {symbol.upper()}")
        return inserted
