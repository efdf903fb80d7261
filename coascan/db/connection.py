"""SQLite connection factory.

Usage::

    from coascan.db.connection import get_connection

    conn = get_connection()
    store = SlotStore(conn)
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

from coascan.config import settings


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Open and configure a SQLite connection.

    The connection is shared between the event loop and worker threads, so
    it is opened with ``check_same_thread=False``; writers are serialised by
    :class:`~coascan.db.slots.SlotStore`.

    Args:
        db_path: Override the DB path.  Defaults to ``settings.db_path``.

    Returns:
        A configured :class:`sqlite3.Connection` with ``row_factory`` set to
        :class:`sqlite3.Row` so columns can be accessed by name.
    """
    path = db_path or settings.db_path

    # Create parent directory if needed (no-op for `:memory:`)
    if str(path) != ":memory:":
        settings.ensure_workspace()

    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row

    if str(path) != ":memory:":
        conn.execute("PRAGMA journal_mode = WAL")

    return conn
