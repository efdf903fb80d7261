"""Pydantic response/request models shared by the routers."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel

from coascan.analysis.formatter import render
from coascan.db.models import ScanRecord
from coascan.pipeline.state import PipelineState

DisplayMode = Literal["structured", "plain"]


class StateOut(BaseModel):
    phase: str
    url: Optional[str] = None
    stage: Optional[str] = None


class RecordOut(BaseModel):
    url: str
    extractedText: str
    analysis: str


def state_out(state: PipelineState) -> StateOut:
    return StateOut(**state.to_dict())


def record_out(record: ScanRecord, display: DisplayMode = "plain") -> RecordOut:
    """Serialise *record*; structured display normalises the analysis text."""
    return RecordOut(
        url=record.url,
        extractedText=record.extracted_text,
        analysis=render(record.analysis, structured=display == "structured"),
    )
