"""Key/value slot storage with change notification.

A *slot* is one row of the ``slots`` table holding a JSON document.  The
:class:`SlotStore` is the single writer for a connection: read-modify-write
cycles run under one lock so concurrent writers cannot lose each other's
updates, and every committed write is broadcast to the listeners watching
that key.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from time import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class SlotStore:
    """Serialised access to the ``slots`` table of an initialised DB."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.RLock()
        self._listeners: dict[str, list[Listener]] = {}

    # ------------------------------------------------------------------
    # Reads / writes
    # ------------------------------------------------------------------
    def get(self, key: str) -> Optional[str]:
        """Return the raw value stored under *key*, or ``None``."""
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM slots WHERE key = ?", (key,)
            ).fetchone()
        return row["value"] if row else None

    def _write(self, key: str, value: str) -> None:
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO slots (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value, int(time())),
            )

    def set(self, key: str, value: str) -> None:
        """Overwrite *key* with *value* and notify its listeners."""
        with self._lock:
            self._write(key, value)
        self._notify(key)

    def update(self, key: str, mutate: Callable[[Optional[str]], str]) -> str:
        """Apply *mutate* to the current value of *key* and store the result.

        The read, the call to *mutate* and the write happen under the store
        lock.  Listeners are notified after the lock is released.

        Returns:
            The value written.
        """
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM slots WHERE key = ?", (key,)
            ).fetchone()
            value = mutate(row["value"] if row else None)
            self._write(key, value)
        self._notify(key)
        return value

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------
    def watch(self, key: str, listener: Listener) -> None:
        """Call *listener* (no arguments) after every write to *key*."""
        with self._lock:
            self._listeners.setdefault(key, []).append(listener)

    def unwatch(self, key: str, listener: Listener) -> None:
        """Stop calling *listener* for *key*.  No-op if it is not registered."""
        with self._lock:
            listeners = self._listeners.get(key, [])
            if listener in listeners:
                listeners.remove(listener)

    def _notify(self, key: str) -> None:
        with self._lock:
            listeners = list(self._listeners.get(key, []))
        for listener in listeners:
            try:
                listener()
            except Exception:  # noqa: BLE001
                logger.exception("Listener for slot %r failed", key)
