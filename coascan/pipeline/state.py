"""Pipeline state machine.

Per url the pipeline moves through::

    Idle → Extracting → ExtractedReady → Analyzing → AnalysisComplete
                 ↘                            ↘
                  Error(fetch | extract)       Error(template)

:func:`transition` is a pure function of ``(state, event)`` returning the new
state and the effects the caller must carry out.  It performs no I/O; the
:class:`~coascan.pipeline.controller.PipelineController` executes the
effects and feeds their outcomes back in as new events.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from coascan.db.models import ScanRecord
from coascan.errors import InvalidTransition

# ---------------------------------------------------------------------------
# Texts stored in place of values a stage could not produce
# ---------------------------------------------------------------------------
READY_PLACEHOLDER = "Text extracted. Ready for analysis."
FETCH_FAILED_TEXT = "Failed to fetch the document from the URL."
EXTRACTION_FAILED_TEXT = "Failed to extract text from the document."
ANALYSIS_UNAVAILABLE = "Analysis unavailable: no text could be extracted from the document."
TEMPLATE_FAILED_TEXT = "Failed to load the analysis prompt template."


class Phase(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    EXTRACTED_READY = "extracted_ready"
    ANALYZING = "analyzing"
    ANALYSIS_COMPLETE = "analysis_complete"
    ERROR = "error"


class Stage(str, Enum):
    """Where an :attr:`Phase.ERROR` state came from."""

    FETCH = "fetch"
    EXTRACT = "extract"
    TEMPLATE = "template"


_FAILED_EXTRACTION_TEXT = {
    Stage.FETCH: FETCH_FAILED_TEXT,
    Stage.EXTRACT: EXTRACTION_FAILED_TEXT,
}


@dataclass(frozen=True)
class PipelineState:
    phase: Phase = Phase.IDLE
    url: Optional[str] = None
    stage: Optional[Stage] = None

    @property
    def busy(self) -> bool:
        """``True`` while a stage for this url is in flight."""
        return self.phase in (Phase.EXTRACTING, Phase.ANALYZING)

    @property
    def can_analyze(self) -> bool:
        """``True`` once an extraction for this url has produced text."""
        if self.phase in (Phase.EXTRACTED_READY, Phase.ANALYSIS_COMPLETE):
            return True
        return self.phase is Phase.ERROR and self.stage is Stage.TEMPLATE

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "url": self.url,
            "stage": self.stage.value if self.stage else None,
        }


IDLE = PipelineState()


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScanAdmitted:
    url: str


@dataclass(frozen=True)
class ExtractionSucceeded:
    url: str
    text: str


@dataclass(frozen=True)
class ExtractionFailed:
    url: str
    stage: Stage


@dataclass(frozen=True)
class AnalysisRequested:
    url: str
    extracted_text: str


@dataclass(frozen=True)
class AnalysisFinished:
    url: str
    extracted_text: str
    analysis: str


@dataclass(frozen=True)
class TemplateFailed:
    url: str
    extracted_text: str


@dataclass(frozen=True)
class RecordSelected:
    record: ScanRecord


@dataclass(frozen=True)
class Cancelled:
    url: str


Event = Union[
    ScanAdmitted,
    ExtractionSucceeded,
    ExtractionFailed,
    AnalysisRequested,
    AnalysisFinished,
    TemplateFailed,
    RecordSelected,
    Cancelled,
]


# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FetchDocument:
    url: str


@dataclass(frozen=True)
class RunAnalysis:
    url: str
    extracted_text: str


@dataclass(frozen=True)
class PersistRecord:
    record: ScanRecord


Effect = Union[FetchDocument, RunAnalysis, PersistRecord]


# ---------------------------------------------------------------------------
# Transition function
# ---------------------------------------------------------------------------

def _reject(state: PipelineState, event: Event) -> InvalidTransition:
    return InvalidTransition(state.phase.value, type(event).__name__)


def _require(state: PipelineState, event: Event, *phases: Phase) -> None:
    if state.phase not in phases:
        raise _reject(state, event)


def state_for_record(record: ScanRecord) -> PipelineState:
    """Return the display state implied by a stored *record*."""
    for stage, text in _FAILED_EXTRACTION_TEXT.items():
        if record.extracted_text == text:
            return PipelineState(Phase.ERROR, record.url, stage)
    if record.analysis == TEMPLATE_FAILED_TEXT:
        return PipelineState(Phase.ERROR, record.url, Stage.TEMPLATE)
    if record.analysis == READY_PLACEHOLDER:
        return PipelineState(Phase.EXTRACTED_READY, record.url)
    return PipelineState(Phase.ANALYSIS_COMPLETE, record.url)


def transition(
    state: PipelineState, event: Event
) -> tuple[PipelineState, tuple[Effect, ...]]:
    """Return ``(next_state, effects)`` for *event* delivered in *state*.

    Raises:
        InvalidTransition: If *state* does not accept *event*.
    """
    if isinstance(event, ScanAdmitted):
        if state.busy:
            raise _reject(state, event)
        return PipelineState(Phase.EXTRACTING, event.url), (FetchDocument(event.url),)

    if isinstance(event, ExtractionSucceeded):
        _require(state, event, Phase.EXTRACTING)
        record = ScanRecord(event.url, event.text, READY_PLACEHOLDER)
        return PipelineState(Phase.EXTRACTED_READY, event.url), (PersistRecord(record),)

    if isinstance(event, ExtractionFailed):
        _require(state, event, Phase.EXTRACTING)
        record = ScanRecord(
            event.url, _FAILED_EXTRACTION_TEXT[event.stage], ANALYSIS_UNAVAILABLE
        )
        return PipelineState(Phase.ERROR, event.url, event.stage), (PersistRecord(record),)

    if isinstance(event, AnalysisRequested):
        if not state.can_analyze:
            raise _reject(state, event)
        return (
            PipelineState(Phase.ANALYZING, event.url),
            (RunAnalysis(event.url, event.extracted_text),),
        )

    if isinstance(event, AnalysisFinished):
        _require(state, event, Phase.ANALYZING)
        record = ScanRecord(event.url, event.extracted_text, event.analysis)
        return PipelineState(Phase.ANALYSIS_COMPLETE, event.url), (PersistRecord(record),)

    if isinstance(event, TemplateFailed):
        _require(state, event, Phase.ANALYZING)
        record = ScanRecord(event.url, event.extracted_text, TEMPLATE_FAILED_TEXT)
        return (
            PipelineState(Phase.ERROR, event.url, Stage.TEMPLATE),
            (PersistRecord(record),),
        )

    if isinstance(event, RecordSelected):
        if state.busy:
            raise _reject(state, event)
        return state_for_record(event.record), ()

    if isinstance(event, Cancelled):
        return PipelineState(Phase.IDLE, event.url), ()

    raise TypeError(f"Unknown pipeline event: {event!r}")
