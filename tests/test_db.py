"""Tests for the database layer: slot storage and scan history.

All tests use an in-memory SQLite database so they are fast, isolated and
leave nothing behind in ~/.coascan_data.
"""

from __future__ import annotations

import sqlite3
import threading

import pytest

from coascan.db import HistoryStore, ScanRecord, SlotStore
from coascan.db.migrations import init_db


def _record(url: str, text: str = "text", analysis: str = "analysis") -> ScanRecord:
    return ScanRecord(url=url, extracted_text=text, analysis=analysis)


# ---------------------------------------------------------------------------
# Schema / slots
# ---------------------------------------------------------------------------

class TestSchema:
    def test_init_db_is_idempotent(self, conn: sqlite3.Connection) -> None:
        init_db(conn)
        init_db(conn)
        row = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='slots'"
        ).fetchone()
        assert row is not None

    def test_init_db_keeps_existing_slots(self, conn: sqlite3.Connection) -> None:
        SlotStore(conn).set("k", "[1]")
        init_db(conn)
        assert SlotStore(conn).get("k") == "[1]"

    def test_only_slot_table_created(self, conn: sqlite3.Connection) -> None:
        names = {
            row["name"]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        assert names == {"slots"}


class TestSlotStore:
    def test_missing_key_is_none(self, slots: SlotStore) -> None:
        assert slots.get("nothing") is None

    def test_set_then_get(self, slots: SlotStore) -> None:
        slots.set("k", "[1, 2]")
        assert slots.get("k") == "[1, 2]"

    def test_update_receives_current_value(self, slots: SlotStore) -> None:
        slots.set("k", "a")
        seen: list[object] = []

        def _mutate(raw):
            seen.append(raw)
            return raw + "b"

        assert slots.update("k", _mutate) == "ab"
        assert seen == ["a"]
        assert slots.get("k") == "ab"

    def test_watchers_fire_per_key(self, slots: SlotStore) -> None:
        calls: list[str] = []
        slots.watch("k", lambda: calls.append("k"))
        slots.watch("other", lambda: calls.append("other"))
        slots.set("k", "1")
        assert calls == ["k"]

    def test_unwatch_stops_notifications(self, slots: SlotStore) -> None:
        calls: list[int] = []
        listener = lambda: calls.append(1)  # noqa: E731
        slots.watch("k", listener)
        slots.unwatch("k", listener)
        slots.unwatch("k", listener)  # second call is a no-op
        slots.set("k", "1")
        assert calls == []

    def test_failing_listener_does_not_block_others(self, slots: SlotStore) -> None:
        calls: list[int] = []

        def _boom() -> None:
            raise RuntimeError("listener bug")

        slots.watch("k", _boom)
        slots.watch("k", lambda: calls.append(1))
        slots.set("k", "1")
        assert calls == [1]
        assert slots.get("k") == "1"


# ---------------------------------------------------------------------------
# ScanRecord
# ---------------------------------------------------------------------------

class TestScanRecord:
    def test_persisted_shape_is_camel_case(self) -> None:
        assert _record("u", "t", "a").to_dict() == {
            "url": "u",
            "extractedText": "t",
            "analysis": "a",
        }

    def test_empty_url_rejected(self) -> None:
        with pytest.raises(ValueError):
            ScanRecord(url="", extracted_text="", analysis="")

    @pytest.mark.parametrize("entry", [None, "str", 3, {}, {"url": ""}, {"url": 5}])
    def test_malformed_entries_are_none(self, entry) -> None:
        assert ScanRecord.from_dict(entry) is None


# ---------------------------------------------------------------------------
# HistoryStore
# ---------------------------------------------------------------------------

class TestHistoryStore:
    def test_empty_store_loads_empty(self, history: HistoryStore) -> None:
        assert history.load_all() == []

    @pytest.mark.parametrize("raw", ["not json", "{\"url\": \"x\"}", "42", ""])
    def test_unparsable_slot_loads_empty(self, slots: SlotStore, history: HistoryStore, raw: str) -> None:
        slots.set(history.key, raw)
        assert history.load_all() == []

    def test_malformed_entries_skipped(self, slots: SlotStore, history: HistoryStore) -> None:
        slots.set(
            history.key,
            '[{"url": "a", "extractedText": "t", "analysis": "x"}, 7, {"nope": 1}]',
        )
        assert [r.url for r in history.load_all()] == ["a"]

    def test_upsert_puts_record_first(self, history: HistoryStore) -> None:
        history.upsert(_record("a"))
        history.upsert(_record("b"))
        assert [r.url for r in history.load_all()] == ["b", "a"]

    def test_upsert_replaces_and_moves_to_front(self, history: HistoryStore) -> None:
        history.upsert(_record("a", analysis="old"))
        history.upsert(_record("b"))
        history.upsert(_record("a", analysis="new"))

        records = history.load_all()
        assert [r.url for r in records] == ["a", "b"]
        assert records[0].analysis == "new"
        assert sum(1 for r in records if r.url == "a") == 1

    def test_get_returns_latest(self, history: HistoryStore) -> None:
        history.upsert(_record("a", analysis="v1"))
        history.upsert(_record("a", analysis="v2"))
        assert history.get("a") == _record("a", analysis="v2")
        assert history.get("missing") is None

    def test_delete_keeps_others_in_order(self, history: HistoryStore) -> None:
        for url in ("a", "b", "c", "d"):
            history.upsert(_record(url))
        history.delete("b")
        assert [r.url for r in history.load_all()] == ["d", "c", "a"]

    def test_delete_absent_is_noop(self, history: HistoryStore) -> None:
        history.upsert(_record("a"))
        history.delete("zzz")
        assert [r.url for r in history.load_all()] == ["a"]

    def test_persisted_as_json_array(self, slots: SlotStore, history: HistoryStore) -> None:
        history.upsert(_record("a", "t", "x"))
        assert slots.get(history.key) == '[{"url": "a", "extractedText": "t", "analysis": "x"}]'

    def test_retention_limit_drops_oldest(self, slots: SlotStore) -> None:
        store = HistoryStore(slots, limit=3)
        for url in ("a", "b", "c", "d"):
            store.upsert(_record(url))
        assert [r.url for r in store.load_all()] == ["d", "c", "b"]

    def test_subscribers_notified_on_every_mutation(self, history: HistoryStore) -> None:
        calls: list[int] = []
        history.subscribe(lambda: calls.append(1))
        history.upsert(_record("a"))
        history.delete("a")
        assert len(calls) == 2

    def test_unsubscribe(self, history: HistoryStore) -> None:
        calls: list[int] = []
        listener = lambda: calls.append(1)  # noqa: E731
        history.subscribe(listener)
        history.unsubscribe(listener)
        history.upsert(_record("a"))
        assert calls == []

    def test_writes_from_other_instances_are_observed(self, slots: SlotStore) -> None:
        panel = HistoryStore(slots)
        scanner = HistoryStore(slots)
        seen: list[list[str]] = []
        panel.subscribe(lambda: seen.append([r.url for r in panel.load_all()]))

        scanner.upsert(_record("a"))
        scanner.upsert(_record("b"))
        scanner.delete("a")

        assert seen == [["a"], ["b", "a"], ["b"]]

    def test_interleaved_writers_lose_nothing(self, history: HistoryStore) -> None:
        urls = [f"https://x/{i}.pdf" for i in range(40)]

        def _write(url: str) -> None:
            history.upsert(_record(url))

        threads = [threading.Thread(target=_write, args=(u,)) for u in urls]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(r.url for r in history.load_all()) == sorted(urls)
