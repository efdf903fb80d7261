"""Orchestration of the scan-to-analysis pipeline.

:class:`PipelineController` is the scheduler for :mod:`coascan.pipeline.state`:
it feeds events into :func:`~coascan.pipeline.state.transition`, carries out
the returned effects (fetch + extract, analysis, persistence) and turns their
outcomes into the next events.

Every failure is caught at the stage where it happens and stored as text in
the history record, so nothing raised by a stage escapes the pipeline.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from coascan.analysis.engine import AnalysisEngine
from coascan.analysis.templates import PromptTemplates
from coascan.cancellation import CancellationToken
from coascan.db.history import HistoryStore
from coascan.db.models import ScanRecord
from coascan.errors import (
    ExtractionError,
    FetchError,
    InvalidTransition,
    PipelineCancelled,
    TemplateLoadError,
    UnknownRecord,
)
from coascan.pipeline.state import (
    IDLE,
    AnalysisFinished,
    AnalysisRequested,
    Cancelled,
    Effect,
    Event,
    ExtractionFailed,
    ExtractionSucceeded,
    FetchDocument,
    Phase,
    PersistRecord,
    PipelineState,
    RecordSelected,
    RunAnalysis,
    ScanAdmitted,
    Stage,
    TemplateFailed,
    transition,
)
from coascan.scanner.extractor import TextExtractor
from coascan.scanner.fetcher import DocumentFetcher
from coascan.scanner.gate import ScanGate

logger = logging.getLogger(__name__)


class PipelineController:
    """Drive scans and analyses for any number of urls.

    Stages for one url run strictly one after another (a per-url lock);
    pipelines for different urls may interleave freely.

    Args:
        history: Store that receives every record the pipeline produces.
        gate: Duplicate-suppression gate for incoming scans.
        fetcher: Document retrieval client.
        extractor: PDF text extractor.
        engine: Analysis service client.
        templates: Prompt template loader.
        template_path: Template to load for each analysis; ``None`` uses the
            loader's default.
    """

    def __init__(
        self,
        history: HistoryStore,
        gate: Optional[ScanGate] = None,
        fetcher: Optional[DocumentFetcher] = None,
        extractor: Optional[TextExtractor] = None,
        engine: Optional[AnalysisEngine] = None,
        templates: Optional[PromptTemplates] = None,
        template_path: Optional[str] = None,
    ) -> None:
        self.history = history
        self.gate = gate or ScanGate()
        self.fetcher = fetcher or DocumentFetcher()
        self.extractor = extractor or TextExtractor()
        self.engine = engine or AnalysisEngine()
        self.templates = templates or PromptTemplates()
        self.template_path = template_path
        self.current_url: Optional[str] = None
        self._states: dict[str, PipelineState] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # State exposed to the presentation layer
    # ------------------------------------------------------------------
    @property
    def state(self) -> PipelineState:
        """State of the url most recently scanned or selected."""
        if self.current_url is None:
            return IDLE
        return self.state_for(self.current_url)

    def state_for(self, url: str) -> PipelineState:
        return self._states.get(url, PipelineState(Phase.IDLE, url))

    @property
    def current_record(self) -> Optional[ScanRecord]:
        if self.current_url is None:
            return None
        return self.history.get(self.current_url)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    async def on_scan(
        self, code: str, token: Optional[CancellationToken] = None
    ) -> Optional[ScanRecord]:
        """Handle a decoded value from the scanner.

        Returns:
            The record written for the scan, or ``None`` when the value is
            blank, the gate suppressed it or the pipeline was cancelled.
        """
        if not code.strip():
            logger.warning("Ignoring blank scan value")
            return None
        if not self.gate.admit(code):
            return None
        return await self.run_scan(code, token)

    async def run_scan(
        self, url: str, token: Optional[CancellationToken] = None
    ) -> Optional[ScanRecord]:
        """Fetch and extract *url* without consulting the gate.

        Blank values are ignored and return ``None``.
        """
        if not url.strip():
            logger.warning("Ignoring blank scan value")
            return None
        self.current_url = url
        async with self._lock_for(url):
            return await self._drive(url, ScanAdmitted(url), token)

    async def request_analysis(
        self,
        url: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> Optional[ScanRecord]:
        """Analyse the extracted text stored for *url* (default: current url).

        Raises:
            UnknownRecord: If there is no history record for the url.
            InvalidTransition: If the url has no extracted text to analyse.
        """
        url = url or self.current_url
        if url is None:
            raise InvalidTransition(Phase.IDLE.value, AnalysisRequested.__name__)
        self.current_url = url

        async with self._lock_for(url):
            record = self.history.get(url)
            if record is None:
                raise UnknownRecord(url)
            if self.state_for(url).phase is Phase.IDLE:
                self._apply(url, RecordSelected(record))
            return await self._drive(url, AnalysisRequested(url, record.extracted_text), token)

    def select(self, url: str) -> ScanRecord:
        """Show a stored record without re-running extraction or analysis.

        Raises:
            UnknownRecord: If there is no history record for *url*.
        """
        record = self.history.get(url)
        if record is None:
            raise UnknownRecord(url)
        self._apply(url, RecordSelected(record))
        self.current_url = url
        return record

    # ------------------------------------------------------------------
    # Scheduler
    # ------------------------------------------------------------------
    def _lock_for(self, url: str) -> asyncio.Lock:
        lock = self._locks.get(url)
        if lock is None:
            lock = self._locks[url] = asyncio.Lock()
        return lock

    def _apply(self, url: str, event: Event) -> tuple[Effect, ...]:
        state, effects = transition(self.state_for(url), event)
        logger.debug("%s: %s -> %s", url, type(event).__name__, state.phase.value)
        self._states[url] = state
        return effects

    async def _drive(
        self, url: str, event: Event, token: Optional[CancellationToken]
    ) -> Optional[ScanRecord]:
        persisted: Optional[ScanRecord] = None
        pending: list[Event] = [event]
        while pending:
            for effect in self._apply(url, pending.pop(0)):
                try:
                    if isinstance(effect, PersistRecord):
                        if token is not None:
                            token.raise_if_cancelled()
                        self.history.upsert(effect.record)
                        persisted = effect.record
                    else:
                        pending.append(await self._execute(effect, token))
                except PipelineCancelled:
                    logger.info("Pipeline for %s cancelled; discarding result", url)
                    self._apply(url, Cancelled(url))
                    return None
        return persisted

    async def _execute(
        self, effect: Effect, token: Optional[CancellationToken]
    ) -> Event:
        if isinstance(effect, FetchDocument):
            return await self._fetch_and_extract(effect.url, token)
        if isinstance(effect, RunAnalysis):
            return await self._analyze(effect.url, effect.extracted_text, token)
        raise TypeError(f"Unknown pipeline effect: {effect!r}")

    async def _fetch_and_extract(
        self, url: str, token: Optional[CancellationToken]
    ) -> Event:
        try:
            data = await self.fetcher.fetch(url)
        except FetchError as exc:
            logger.warning("%s", exc)
            return ExtractionFailed(url, Stage.FETCH)

        if token is not None:
            token.raise_if_cancelled()

        try:
            text = await self.extractor.extract(data, token)
        except ExtractionError as exc:
            logger.warning("Extraction failed for %s: %s", url, exc)
            return ExtractionFailed(url, Stage.EXTRACT)
        except PipelineCancelled:
            raise
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected extraction failure for %s", url)
            return ExtractionFailed(url, Stage.EXTRACT)

        logger.info("Extracted %d chars from %s", len(text), url)
        return ExtractionSucceeded(url, text)

    async def _analyze(
        self, url: str, extracted_text: str, token: Optional[CancellationToken]
    ) -> Event:
        try:
            template = await self.templates.load(self.template_path)
        except TemplateLoadError as exc:
            logger.warning("%s", exc)
            return TemplateFailed(url, extracted_text)

        if token is not None:
            token.raise_if_cancelled()

        analysis = await self.engine.analyze(extracted_text, template)
        return AnalysisFinished(url, extracted_text, analysis)
