"""Click CLI with Rich output."""

from __future__ import annotations

import json as json_lib
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .database import SignalStore
from .errors import AuthExpiredError, BatchValidationError, RateLimitExceeded
from .importer import import_signals
from .models import Actor, ImportOptions, ImportSummary, ValidationReport
from .ratelimit import RateLimiter, SQLiteBucketStore
from .schema import load_payload, validate_signals_json
from .session import EnvSession, StaticSession

console = Console()
err_console = Console(stderr=True)

_STATUS_STYLE = {"imported": "green", "skipped": "yellow", "error": "red"}


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _session(actor_id: str | None):
    if actor_id:
        return StaticSession(Actor(actor_id=actor_id))
    return EnvSession()


def _limiter(store: SignalStore) -> RateLimiter:
    return RateLimiter(SQLiteBucketStore(store.db_path))


def _enforce(limiter: RateLimiter, actor_id: str, operation: str) -> None:
    try:
        limiter.enforce(actor_id, operation)
    except RateLimitExceeded as exc:
        err_console.print(f"[red]{exc}[/red]")
        sys.exit(1)


def _print_errors(title: str, errors: list[str]) -> None:
    err_console.print(f"[red bold]{title}[/red bold]")
    for line in errors:
        err_console.print(f"  • {escape(line)}")


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool):
    """signalwatch: import threat-intel signals from JSON batches."""
    setup_logging(verbose)


@cli.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--skip-duplicates/--no-skip-duplicates",
    default=True,
    show_default=True,
    help="Skip signals whose URL or CVE id is already stored.",
)
@click.option(
    "--enrich/--no-enrich",
    default=True,
    show_default=True,
    help="Infer industries, confidence, and source type when missing.",
)
@click.option("--actor", "actor_id", help="Actor id (defaults to $SIGNALWATCH_ACTOR).")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def import_cmd(
    path: Path,
    skip_duplicates: bool,
    enrich: bool,
    actor_id: str | None,
    as_json: bool,
):
    """Import a JSON batch of signals."""
    store = SignalStore()
    session = _session(actor_id)

    actor = session.get_current_actor()
    if actor is not None:
        _enforce(_limiter(store), actor.actor_id, "IMPORT_SIGNALS")

    try:
        payload = load_payload(path)
        summary = import_signals(
            payload,
            store=store,
            session=session,
            options=ImportOptions(skip_duplicates=skip_duplicates, auto_enrich=enrich),
        )
    except BatchValidationError as exc:
        _fail(ImportSummary.rejected(exc.errors), "Batch rejected:", as_json)
    except AuthExpiredError as exc:
        _fail(ImportSummary.rejected([exc.message]), "Not imported:", as_json)

    if as_json:
        click.echo(json_lib.dumps(summary.to_dict(), indent=2))
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Reason")

    for i, detail in enumerate(summary.details, start=1):
        style = _STATUS_STYLE[detail.status]
        table.add_row(
            str(i),
            escape(detail.title),
            f"[{style}]{detail.status}[/{style}]",
            escape(detail.error or "—"),
        )

    console.print(table)
    console.print(
        f"\n[green]Done![/green] {summary.imported} imported, "
        f"{summary.skipped} skipped, {len(summary.errors)} errors."
    )


def _fail(summary: ImportSummary, title: str, as_json: bool) -> None:
    if as_json:
        click.echo(json_lib.dumps(summary.to_dict(), indent=2))
    else:
        _print_errors(title, summary.errors)
    sys.exit(1)


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--actor", "actor_id", help="Actor id (defaults to $SIGNALWATCH_ACTOR).")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def validate(path: Path, actor_id: str | None, as_json: bool):
    """Check a JSON batch without importing it."""
    store = SignalStore()
    actor = _session(actor_id).get_current_actor()
    _enforce(_limiter(store), actor.actor_id if actor else "anonymous", "IMPORT_VALIDATE")

    try:
        report = validate_signals_json(load_payload(path))
    except BatchValidationError as exc:
        report = ValidationReport(valid=False, count=0, errors=exc.errors)

    if as_json:
        click.echo(json_lib.dumps(report.to_dict(), indent=2))
    elif report.valid:
        console.print(f"[green]Valid.[/green] {report.count} signal(s) ready to import.")
    else:
        _print_errors(f"Invalid batch ({len(report.errors)} error(s)):", report.errors)

    if not report.valid:
        sys.exit(1)


@cli.command()
@click.option("--actor", "actor_id", help="Actor id (defaults to $SIGNALWATCH_ACTOR).")
def stats(actor_id: str | None):
    """Show database statistics."""
    store = SignalStore()
    actor = _session(actor_id).get_current_actor()
    _enforce(_limiter(store), actor.actor_id if actor else "anonymous", "STATS_VIEW")

    data = store.get_stats()

    if data["signals"] == 0:
        console.print(
            "[yellow]Database is empty. Run 'signalwatch import' first.[/yellow]"
        )
        return

    table = Table(title="Database Statistics", show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value")

    table.add_row("Signals", str(data["signals"]))
    table.add_row("Import runs", str(data["import_runs"]))

    if data["by_severity"]:
        table.add_section()
        for severity, count in sorted(data["by_severity"].items()):
            table.add_row(f"  Severity: {severity}", str(count))

    if data["by_category"]:
        table.add_section()
        for category, count in sorted(data["by_category"].items()):
            table.add_row(f"  Category: {category}", str(count))

    console.print(table)


@cli.command()
@click.option("--limit", default=20, show_default=True, help="Number of runs to show.")
@click.option("--actor", "actor_id", help="Actor id (defaults to $SIGNALWATCH_ACTOR).")
def history(limit: int, actor_id: str | None):
    """List recent import runs."""
    store = SignalStore()
    actor = _session(actor_id).get_current_actor()
    _enforce(_limiter(store), actor.actor_id if actor else "anonymous", "INGESTION_LIST")

    logs = store.list_ingestion_logs(limit=limit)

    if not logs:
        console.print("[yellow]No imports recorded yet.[/yellow]")
        return

    table = Table(title="Import History", show_header=True, header_style="bold")
    table.add_column("Completed")
    table.add_column("Actor")
    table.add_column("Source")
    table.add_column("Found", justify="right")
    table.add_column("Imported", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Status")

    for log in logs:
        table.add_row(
            log.completed_at.strftime("%Y-%m-%d %H:%M") if log.completed_at else "—",
            log.actor_id or "—",
            log.import_source or "—",
            str(log.signals_found),
            str(log.signals_imported),
            str(log.signals_skipped),
            str(log.signals_errored),
            log.status,
        )

    console.print(table)
