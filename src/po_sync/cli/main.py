import asyncio
import json
import logging
import signal
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

import typer
import uvicorn
from rich.console import Console
from rich.table import Table

from po_sync.config import DEFAULT_DB_PATH, ENV_DB_PATH
from po_sync.context import AppContext
from po_sync.errors import NotFoundError, POSyncError
from po_sync.logging_config import configure_logging
from po_sync.schedule import format_currency

app = typer.Typer(help="Purchase order submission pipeline CLI")
console = Console()
logger = logging.getLogger("po_sync.cli")


def db_argument():
    return typer.Argument(DEFAULT_DB_PATH, envvar=ENV_DB_PATH, help="Path to SQLite database")


def db_option():
    return typer.Option(DEFAULT_DB_PATH, "--db", envvar=ENV_DB_PATH, help="Path to SQLite database")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also log to this file"),
):
    configure_logging(level=log_level, json_format=json_logs, log_file=log_file)


def run_with_context(db_path: str, action: Callable[[AppContext], Awaitable[Any]]) -> Any:
    """Open a context without the background scheduler, run action, close."""
    async def runner():
        ctx = AppContext(db_path)
        await ctx.init(start_scheduler=False)
        try:
            return await action(ctx)
        finally:
            await ctx.shutdown()

    try:
        return asyncio.run(runner())
    except POSyncError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)


@app.command()
def init(db_path: str = db_argument()):
    """Create the local store."""
    async def action(ctx: AppContext):
        return ctx.store.count()

    count = run_with_context(db_path, action)
    console.print(f"[green]Initialized local store at {db_path}[/green]")
    console.print(f"Submissions: {count}")


@app.command()
def serve(
    db_path: str = db_argument(),
    host: str = typer.Option("0.0.0.0", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to bind to"),
):
    """Start the HTTP server with the background sync scheduler."""
    from po_sync.server.http_server import create_app

    console.print(f"[bold green]Starting PO sync server on http://{host}:{port}[/bold green]")
    uvicorn.run(create_app(AppContext(db_path)), host=host, port=port)


@app.command()
def push(
    db_path: str = db_argument(),
    daemon: bool = typer.Option(False, "--daemon", "-d", help="Keep syncing until interrupted"),
    interval: Optional[float] = typer.Option(None, "--interval", "-i", help="Seconds between passes in daemon mode"),
):
    """Deliver every pending submission (one pass, or periodically)."""
    if daemon:
        async def run_daemon(ctx: AppContext):
            if interval:
                ctx.scheduler.interval = interval
            stop = asyncio.Event()
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, stop.set)
            ctx.scheduler.start()
            console.print(
                f"[green]Sync daemon started (interval={ctx.scheduler.interval}s). Press Ctrl+C to stop.[/green]"
            )
            await stop.wait()
            console.print("\n[yellow]Shutdown signal received. Stopping gracefully...[/yellow]")
            return ctx.scheduler.stats

        stats = run_with_context(db_path, run_daemon)
        console.print(f"[green]Daemon stopped.[/green] passes={stats.passes} sent={stats.sent}")
        return

    async def run_once(ctx: AppContext):
        result = await ctx.engine.push_pending(trigger="cli")
        replayed = await ctx.engine.process_retry_queue()
        return result, replayed

    result, replayed = run_with_context(db_path, run_once)
    if result.skipped:
        console.print(f"[yellow]Sync skipped: {result.skipped}[/yellow]")
        return
    if not result.attempted:
        console.print("Nothing to sync")
    else:
        console.print(f"Attempted {result.attempted}: [green]{result.sent} sent[/green], [red]{result.failed} failed[/red]")
        for submission_id, error in result.failures.items():
            console.print(f"  {submission_id}: {error}")
    if replayed:
        console.print(f"Cleared {replayed} retry queue entries")
    if result.failed:
        raise typer.Exit(code=1)


@app.command("list")
def list_submissions(
    db_path: str = db_argument(),
    status: Optional[str] = typer.Option(None, help="sent or pending"),
    query: str = typer.Option("", "--query", "-q", help="Search project, company, contractor or id"),
):
    """List submissions, newest first."""
    async def action(ctx: AppContext):
        return ctx.store.search(query, {"status": status})

    items = run_with_context(db_path, action)

    table = Table(title="Submissions")
    table.add_column("ID", style="cyan")
    table.add_column("Project")
    table.add_column("Company")
    table.add_column("Contract", justify="right")
    table.add_column("Created")
    table.add_column("Status")

    for sub in items:
        state = "[green]Sent[/green]" if sub.sent else "[yellow]Pending[/yellow]"
        table.add_row(
            str(sub.id),
            sub.project_label,
            sub.meta.company_name or "-",
            format_currency(sub.meta.contract_amount),
            sub.created_at[:10],
            state,
        )
    console.print(table)


@app.command()
def show(submission_id: int, db_path: str = db_argument()):
    """Print one submission as JSON."""
    async def action(ctx: AppContext):
        sub = ctx.store.get_by_id(submission_id)
        if sub is None:
            raise NotFoundError(submission_id)
        return sub

    sub = run_with_context(db_path, action)
    console.print_json(json.dumps(sub.to_dict()))


@app.command()
def resend(submission_ids: List[int], db_path: str = db_option()):
    """Deliver the given submissions now, whatever their state."""
    async def action(ctx: AppContext):
        return await ctx.engine.resend_many(submission_ids)

    delivered = run_with_context(db_path, action)
    console.print(f"Resent {delivered}/{len(submission_ids)}")
    if delivered < len(submission_ids):
        raise typer.Exit(code=1)


@app.command()
def delete(
    submission_ids: List[int],
    db_path: str = db_option(),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete submissions from the local store."""
    if not yes:
        typer.confirm(f"Delete {len(submission_ids)} submission(s)?", abort=True)

    async def action(ctx: AppContext):
        return await ctx.engine.delete_many(submission_ids)

    deleted = run_with_context(db_path, action)
    console.print(f"Deleted {deleted} submissions")


@app.command()
def config(
    db_path: str = db_argument(),
    endpoint: Optional[str] = typer.Option(None, help="Remote workflow URL"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="Value for the x-api-key header"),
    retry_attempts: Optional[int] = typer.Option(None, "--retry-attempts"),
    retry_delay: Optional[float] = typer.Option(None, "--retry-delay", help="Base backoff in seconds"),
):
    """Show or update the remote endpoint and delivery settings."""
    async def action(ctx: AppContext):
        if endpoint is not None or api_key is not None:
            ctx.update_remote_config(endpoint=endpoint, api_key=api_key)
        if retry_attempts is not None or retry_delay is not None:
            ctx.update_sync_settings(retry_attempts=retry_attempts, retry_delay_seconds=retry_delay)
        return ctx.remote_config, ctx.sync_settings

    remote, settings = run_with_context(db_path, action)

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("Endpoint", remote.endpoint or "(none)")
    table.add_row("API key", "set" if remote.api_key else "(none)")
    for key, value in settings.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)


@app.command("set-pin")
def set_pin(db_path: str = db_argument()):
    """Change the admin PIN."""
    current = typer.prompt("Current PIN", hide_input=True)
    new_pin = typer.prompt("New PIN", hide_input=True, confirmation_prompt=True)

    async def action(ctx: AppContext):
        if not ctx.settings.verify_admin_pin(current):
            return False
        ctx.settings.set_admin_pin(new_pin)
        return True

    changed = run_with_context(db_path, action)
    if not changed:
        console.print("[red]Incorrect PIN[/red]")
        raise typer.Exit(code=1)
    console.print("[green]PIN updated[/green]")


@app.command("test-post")
def test_post(db_path: str = db_argument()):
    """Send a test payload to the configured endpoint."""
    async def action(ctx: AppContext):
        return await ctx.engine.test_post()

    result = run_with_context(db_path, action)
    if result.success:
        console.print(f"[green]Test post succeeded[/green] ({result.status_code})")
    else:
        console.print(f"[red]Test post failed: {result.error}[/red]")
        raise typer.Exit(code=1)


@app.command()
def export(
    db_path: str = db_argument(),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to file instead of stdout"),
):
    """Export all submissions as JSON."""
    async def action(ctx: AppContext):
        return await ctx.service.export_data()

    result = run_with_context(db_path, action)
    if not result["success"]:
        console.print(f"[red]{result['error']}[/red]")
        raise typer.Exit(code=1)

    text = json.dumps(result["data"], indent=2)
    if output is None:
        console.print_json(text)
        return
    output.write_text(text)
    console.print(f"[green]Exported {len(result['data']['pos'])} submissions to {output}[/green]")


if __name__ == "__main__":
    app()
