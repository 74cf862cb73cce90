"""Write-through store for discovered opportunities.

Records are upserted by ``match_key`` with overwrite-on-conflict, so the
table always holds the latest view of each matched event. The scanner only
ever writes here; readers are external.
"""

from __future__ import annotations

import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from crossarb.config.constants import OPPORTUNITY_TABLE
from crossarb.core.errors import PersistenceFailure
from crossarb.core.models import ArbitrageOpportunity
from crossarb.utils.logging import get_logger


logger = get_logger("store")


class OpportunityStore(ABC):
    @abstractmethod
    def upsert(self, opportunity: ArbitrageOpportunity) -> None:
        """Insert or overwrite the row for ``opportunity.match_key``.

        Raises:
            PersistenceFailure: If the write fails
        """
        raise NotImplementedError

    def close(self) -> None:
        return None


_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {OPPORTUNITY_TABLE} (
    match_key TEXT PRIMARY KEY,
    event_title TEXT NOT NULL,
    category TEXT,
    buy_platform TEXT NOT NULL,
    buy_ticker TEXT NOT NULL,
    buy_price INTEGER NOT NULL,
    sell_platform TEXT NOT NULL,
    sell_ticker TEXT NOT NULL,
    sell_price INTEGER NOT NULL,
    spread_percent REAL NOT NULL,
    estimated_profit_percent REAL NOT NULL,
    buy_volume REAL,
    sell_volume REAL,
    expires_at TEXT,
    match_score REAL,
    match_reason TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    discovered_at REAL NOT NULL,
    updated_at REAL NOT NULL
);
"""

_COLUMNS = (
    "match_key",
    "event_title",
    "category",
    "buy_platform",
    "buy_ticker",
    "buy_price",
    "sell_platform",
    "sell_ticker",
    "sell_price",
    "spread_percent",
    "estimated_profit_percent",
    "buy_volume",
    "sell_volume",
    "expires_at",
    "match_score",
    "match_reason",
)

_UPSERT = (
    f"INSERT INTO {OPPORTUNITY_TABLE} ({', '.join(_COLUMNS)}, is_active, discovered_at, updated_at) "
    f"VALUES ({', '.join('?' for _ in _COLUMNS)}, 1, ?, ?) "
    "ON CONFLICT(match_key) DO UPDATE SET "
    + ", ".join(f"{c} = excluded.{c}" for c in _COLUMNS if c != "match_key")
    + ", is_active = 1, updated_at = excluded.updated_at"
)


def _dict_factory(cursor: sqlite3.Cursor, row: tuple) -> Dict[str, Any]:
    return {col[0]: row[i] for i, col in enumerate(cursor.description)}


class SqliteOpportunityStore(OpportunityStore):
    """SQLite-backed store, safe to share between threads."""

    def __init__(self, db_path: str | Path = ":memory:"):
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.row_factory = _dict_factory
        if self._db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        logger.info("Opportunity store ready at %s", self._db_path)

    def upsert(self, opportunity: ArbitrageOpportunity) -> None:
        now = time.time()
        values = tuple(getattr(opportunity, c) for c in _COLUMNS) + (now, now)
        try:
            with self._lock:
                self._conn.execute(_UPSERT, values)
                self._conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"upsert of {opportunity.match_key} failed: {exc}") from exc

    def get(self, match_key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            cur = self._conn.execute(f"SELECT * FROM {OPPORTUNITY_TABLE} WHERE match_key = ?", (match_key,))
            return cur.fetchone()

    def all(self) -> List[Dict[str, Any]]:
        with self._lock:
            cur = self._conn.execute(f"SELECT * FROM {OPPORTUNITY_TABLE} ORDER BY spread_percent DESC")
            return cur.fetchall()

    def close(self) -> None:
        with self._lock:
            self._conn.close()
