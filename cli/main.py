"""COA scan CLI: entry-point for the scan pipeline.

Usage:
    python cli/main.py --help

Commands:
    scan      → fetch + extract a scanned url (optionally analyse it)
    analyze   → analyse a stored scan
    display   → choose structured or plain analysis display
    history   → list / show / delete stored scans
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from coascan.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import asyncio
import logging
from typing import Optional

import typer

from coascan.config import settings
from coascan.db import ScanRecord, get_connection, open_history
from coascan.errors import InvalidTransition, UnknownRecord
from coascan.pipeline import PipelineController
from cli.commands.history import history_app
from cli.context import DISPLAY_MODES, load_context, save_context
from cli.rendering import render_record, render_state

app = typer.Typer(
    name="coascan",
    help="Scan COA links, extract their PDFs and summarise them.",
    no_args_is_help=True,
)
app.add_typer(history_app, name="history")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log pipeline progress."),
) -> None:
    """Configure logging for every command."""
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Pipeline commands
# ---------------------------------------------------------------------------
async def _scan_flow(
    controller: PipelineController, code: str, analyze: bool
) -> Optional[ScanRecord]:
    record = await controller.on_scan(code)
    if record is not None and analyze and controller.state.can_analyze:
        typer.echo("[scan] Analysing …")
        record = await controller.request_analysis(code)
    return record


@app.command("scan")
def scan(
    code: str = typer.Argument(..., help="Decoded QR value (normally a COA url)."),
    analyze: bool = typer.Option(False, "--analyze", help="Run the analysis right after extraction."),
) -> None:
    """Fetch and extract the document behind a scanned url."""
    ctx = load_context()
    conn = get_connection()
    try:
        controller = PipelineController(open_history(conn))
        typer.echo(f"[scan] Fetching {code!r} …")
        record = asyncio.run(_scan_flow(controller, code, analyze))
        state = controller.state
    finally:
        conn.close()

    if record is None:
        typer.echo("[scan] Nothing stored.")
        raise typer.Exit(code=1)

    ctx.last_url = record.url
    save_context(ctx)

    typer.echo(f"[scan] {render_state(state)}")
    typer.echo(render_record(record, structured=ctx.structured, show_text=not analyze))


@app.command("analyze")
def analyze(
    url: Optional[str] = typer.Argument(None, help="Url of a stored scan (default: the last one)."),
) -> None:
    """Send a stored scan's extracted text to the analysis service."""
    ctx = load_context()
    target = url or ctx.last_url
    if not target:
        typer.echo("❌ No scan selected. Run 'scan <url>' first.")
        raise typer.Exit(code=1)

    conn = get_connection()
    try:
        controller = PipelineController(open_history(conn))
        typer.echo(f"[analyze] Analysing {target!r} …")
        record = asyncio.run(controller.request_analysis(target))
        state = controller.state
    except (UnknownRecord, InvalidTransition) as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    finally:
        conn.close()

    if record is None:
        typer.echo("[analyze] Nothing stored.")
        raise typer.Exit(code=1)

    ctx.last_url = record.url
    save_context(ctx)
    typer.echo(f"[analyze] {render_state(state)}")
    typer.echo(render_record(record, structured=ctx.structured))


@app.command("display")
def display(
    mode: str = typer.Argument(..., help="structured | plain"),
) -> None:
    """Choose how analysis text is shown."""
    if mode not in DISPLAY_MODES:
        typer.echo(f"❌ Unknown display mode {mode!r}. Use: {' | '.join(DISPLAY_MODES)}")
        raise typer.Exit(code=1)
    ctx = load_context()
    ctx.display_mode = mode
    save_context(ctx)
    typer.echo(f"Display mode: {mode}")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
