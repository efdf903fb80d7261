"""Database layer package.

Public re-exports so callers can write::

    from coascan.db import get_connection, init_db, open_history
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

from coascan.db.connection import get_connection
from coascan.db.history import HistoryStore
from coascan.db.migrations import init_db
from coascan.db.models import ScanRecord
from coascan.db.slots import SlotStore


def open_history(
    conn: Optional[sqlite3.Connection] = None,
    db_path: Optional[Path] = None,
) -> HistoryStore:
    """Return a :class:`HistoryStore` over *conn* (or a fresh connection)."""
    if conn is None:
        conn = get_connection(db_path)
    init_db(conn)
    return HistoryStore(SlotStore(conn))


__all__ = [
    "get_connection",
    "init_db",
    "open_history",
    "HistoryStore",
    "ScanRecord",
    "SlotStore",
]
