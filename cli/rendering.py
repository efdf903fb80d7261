"""Utilities for rendering scan records in the CLI."""

from __future__ import annotations

from coascan.analysis.formatter import render
from coascan.db.models import ScanRecord
from coascan.pipeline.state import PipelineState

_RULE = "=" * 72

_PHASE_ICONS = {
    "idle": "⏸",
    "extracting": "📄",
    "extracted_ready": "✅",
    "analyzing": "🤔",
    "analysis_complete": "📝",
    "error": "❌",
}


def render_state(state: PipelineState) -> str:
    """One-line summary of a pipeline state."""
    icon = _PHASE_ICONS.get(state.phase.value, "•")
    label = state.phase.value.replace("_", " ")
    if state.stage is not None:
        label = f"{label} ({state.stage.value})"
    return f"{icon} {label}"


def render_record(
    record: ScanRecord,
    structured: bool = True,
    show_text: bool = False,
) -> str:
    """Render *record* for the terminal.

    Args:
        record: Record to render.
        structured: Normalise the analysis text for markdown display.
        show_text: Include the extracted document text.
    """
    lines = [_RULE, f"URL: {record.url}", _RULE]
    if show_text:
        lines += ["Extracted text:", "", record.extracted_text.rstrip(), _RULE]
    lines += ["Analysis:", "", render(record.analysis, structured=structured), _RULE]
    return "\n".join(lines)


def render_history_line(index: int, record: ScanRecord, width: int = 60) -> str:
    """Single list entry: position, url and the start of the analysis."""
    summary = " ".join(record.analysis.split())
    if len(summary) > width:
        summary = summary[: width - 1] + "…"
    return f"{index:>3}. {record.url}\n     {summary}"
