"""Persisted scan history.

The history is a single JSON array in one slot, most recently written
record first, with at most one record per url::

    [
        {"url": "...", "extractedText": "...", "analysis": "..."},
        ...
    ]

Subscribers are told *that* the history changed, never *what* changed;
they re-read with :meth:`HistoryStore.load_all`.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from coascan.config import settings
from coascan.db.models import ScanRecord
from coascan.db.slots import Listener, SlotStore

logger = logging.getLogger(__name__)


def _parse(raw: Optional[str]) -> list[ScanRecord]:
    """Decode a stored history value; absent or unparsable values are empty."""
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Stored scan history is not valid JSON; treating as empty")
        return []
    if not isinstance(data, list):
        logger.warning("Stored scan history is not a JSON array; treating as empty")
        return []

    records: list[ScanRecord] = []
    seen: set[str] = set()
    for entry in data:
        record = ScanRecord.from_dict(entry)
        if record is None or record.url in seen:
            continue
        seen.add(record.url)
        records.append(record)
    return records


def _dump(records: list[ScanRecord]) -> str:
    return json.dumps([r.to_dict() for r in records])


class HistoryStore:
    """Ordered, url-keyed scan history backed by a :class:`SlotStore`.

    Several ``HistoryStore`` instances over the same slot store share
    notifications, so a subscriber sees writes from every one of them.

    Args:
        slots: Backing slot store.
        key: Slot key.  Defaults to ``settings.history_key``.
        limit: Maximum number of records kept after an upsert; ``0`` keeps
            everything.  Defaults to ``settings.history_limit``.
    """

    def __init__(
        self,
        slots: SlotStore,
        key: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> None:
        self._slots = slots
        self.key = key or settings.history_key
        self.limit = settings.history_limit if limit is None else limit

    def load_all(self) -> list[ScanRecord]:
        """Return the persisted history, most recent first."""
        return _parse(self._slots.get(self.key))

    def get(self, url: str) -> Optional[ScanRecord]:
        """Return the record for *url*, or ``None``."""
        for record in self.load_all():
            if record.url == url:
                return record
        return None

    def upsert(self, record: ScanRecord) -> None:
        """Replace any record for ``record.url`` and move it to the front."""

        def _mutate(raw: Optional[str]) -> str:
            records = [r for r in _parse(raw) if r.url != record.url]
            records.insert(0, record)
            if self.limit > 0 and len(records) > self.limit:
                logger.info("Dropping %d record(s) past the history limit", len(records) - self.limit)
                records = records[: self.limit]
            return _dump(records)

        self._slots.update(self.key, _mutate)
        logger.debug("Upserted history record for %s", record.url)

    def delete(self, url: str) -> None:
        """Remove the record for *url*.  Absent urls leave the history as is."""

        def _mutate(raw: Optional[str]) -> str:
            return _dump([r for r in _parse(raw) if r.url != url])

        self._slots.update(self.key, _mutate)
        logger.debug("Deleted history record for %s", url)

    def subscribe(self, listener: Listener) -> None:
        """Call *listener* after every history write by any writer."""
        self._slots.watch(self.key, listener)

    def unsubscribe(self, listener: Listener) -> None:
        self._slots.unwatch(self.key, listener)
