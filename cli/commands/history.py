"""History commands for browsing and pruning stored scans."""

import typer

from coascan.db import get_connection, open_history
from cli.context import load_context, save_context
from cli.rendering import render_history_line, render_record

history_app = typer.Typer(help="Browse and manage scan history.", no_args_is_help=True)


@history_app.command("list")
def history_list() -> None:
    """List stored scans, most recent first."""
    conn = get_connection()
    try:
        records = open_history(conn).load_all()
    finally:
        conn.close()

    if not records:
        typer.echo("No scans yet.")
        return
    typer.echo(f"Scan history ({len(records)}):")
    for i, record in enumerate(records, start=1):
        typer.echo(render_history_line(i, record))


@history_app.command("show")
def history_show(
    url: str = typer.Argument(..., help="Url of the stored scan."),
    plain: bool = typer.Option(False, "--plain", help="Show the analysis exactly as stored."),
    text: bool = typer.Option(False, "--text", help="Also show the extracted document text."),
) -> None:
    """Show a stored scan without re-running extraction or analysis."""
    conn = get_connection()
    try:
        record = open_history(conn).get(url)
    finally:
        conn.close()

    if record is None:
        typer.echo(f"❌ No scan record for {url!r}.")
        raise typer.Exit(code=1)

    ctx = load_context()
    ctx.last_url = record.url
    save_context(ctx)

    structured = ctx.structured and not plain
    typer.echo(render_record(record, structured=structured, show_text=text))


@history_app.command("delete")
def history_delete(
    url: str = typer.Argument(..., help="Url of the stored scan."),
) -> None:
    """Remove a stored scan."""
    conn = get_connection()
    try:
        history = open_history(conn)
        if history.get(url) is None:
            typer.echo(f"Nothing to remove for {url!r}.")
            return
        history.delete(url)
    finally:
        conn.close()
    typer.echo(f"🗑️  Removed {url}")
