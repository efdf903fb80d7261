"""Shared fixtures: in-memory history stores and generated PDF payloads."""

from __future__ import annotations

import io
import sqlite3
from typing import Callable, Generator

import pytest
from reportlab.pdfgen import canvas

from coascan.db import HistoryStore, SlotStore
from coascan.db.connection import get_connection
from coascan.db.migrations import init_db

# Two-page COA used by the end-to-end tests.
COA_PAGES = [
    "Certificate of Analysis Blue Dream Flower Batch 2291",
    "Cannabinoids THC 21.3 percent CBD 0.4 percent Terpenes Myrcene",
]


def _build_pdf(pages: list[str]) -> bytes:
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer)
    for text in pages:
        if text:
            pdf.drawString(72, 720, text)
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


@pytest.fixture()
def make_pdf() -> Callable[[list[str]], bytes]:
    """Factory returning PDF bytes with one line of text per page."""
    return _build_pdf


@pytest.fixture()
def coa_pdf() -> bytes:
    return _build_pdf(COA_PAGES)


@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    """In-memory connection with the schema initialised."""
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture()
def slots(conn: sqlite3.Connection) -> SlotStore:
    return SlotStore(conn)


@pytest.fixture()
def history(slots: SlotStore) -> HistoryStore:
    return HistoryStore(slots, limit=0)


@pytest.fixture()
def template_file(tmp_path) -> str:
    path = tmp_path / "prompt.txt"
    path.write_text("Summarise this COA:\n\n", encoding="utf-8")
    return str(path)
