"""CLI for the ``ledger`` package.

Commands
--------
- ``init-db``: apply the Alembic migrations (tables plus the zeroed report).
- ``ingest --csv-path FILE``: ingest one CSV batch. Exit code 0 when the
  valid rows were committed, 3 when the ledger was congested, 1 otherwise.
- ``report``: print the current report.
- ``rebuild-report``: recompute the report from every stored transaction.
- ``serve``: run the HTTP API with uvicorn.

Environment variables are loaded from a local ``.env`` with python-dotenv
before any command runs; ``--database-url`` overrides ``DATABASE_URL``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .config import LedgerSettings
from .logging_setup import configure_logging
from .models import (
    Committed,
    Congested,
    IngestOutcome,
    PersistenceFailed,
    Report,
    TooLarge,
    Unavailable,
)
from .store import LedgerStore

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONGESTED = 3

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Ingest CSV transaction batches into the revenue ledger and read its report.",
)

DatabaseUrlOption = Annotated[
    str | None,
    typer.Option("--database-url", help="Override DATABASE_URL (falls back to env var)."),
]


def _settings(database_url: str | None) -> LedgerSettings:
    try:
        return LedgerSettings.from_env(database_url=database_url)
    except (RuntimeError, ValueError) as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_FAILED) from e


def _report_table(report: Report, *, title: str = "Ledger report") -> Table:
    table = Table(title=title)
    table.add_column("Metric")
    table.add_column("Amount", justify="right")
    for name, value in report.as_text().items():
        table.add_row(name.replace("_", " "), value)
    return table


def _print_outcome(outcome: IngestOutcome) -> int:
    match outcome:
        case Committed():
            console.print(
                f"[green]Committed[/green] {outcome.committed} transaction(s)"
                + (f" in batch {outcome.batch_id}" if outcome.batch_id else "")
            )
            if outcome.validation_failed:
                table = Table(title=f"Rejected rows ({len(outcome.rejected)})")
                table.add_column("Row", justify="right")
                table.add_column("Line", justify="right")
                table.add_column("Reason")
                table.add_column("Detail")
                for r in outcome.rejected:
                    table.add_row(str(r.row), str(r.line), r.reason.value, r.detail)
                console.print(table)
            if outcome.report is not None:
                console.print(_report_table(outcome.report))
            return EXIT_OK
        case Congested(reason=reason):
            err_console.print(f"[yellow]Congested:[/yellow] {reason}; retry later")
            return EXIT_CONGESTED
        case PersistenceFailed(reason=reason):
            err_console.print(f"[red]Not committed:[/red] {reason}")
            return EXIT_FAILED
        case Unavailable(reason=reason):
            err_console.print(f"[red]Unavailable:[/red] {reason}")
            return EXIT_FAILED
        case TooLarge(limit=limit):
            err_console.print(f"[red]Too large:[/red] input exceeds {limit} bytes")
            return EXIT_FAILED
    raise TypeError(f"unexpected ingest outcome: {outcome!r}")


@app.command("init-db")
def init_db_cmd(database_url: DatabaseUrlOption = None) -> None:
    """Create or upgrade the ledger schema."""

    from db.client import build_engine
    from db.migrate import current_revision, upgrade

    settings = _settings(database_url)
    engine = build_engine(settings.database_url, pool_size=1, lock_timeout=settings.lock_timeout)
    try:
        upgrade(settings.database_url, engine=engine)
        revision = current_revision(engine)
    finally:
        engine.dispose()
    console.print(f"Ledger schema at revision [bold]{revision}[/bold]")


@app.command("ingest")
def ingest_cmd(
    csv_path: Annotated[
        Path,
        typer.Option(
            "--csv-path",
            help="CSV batch to ingest (date,direction,amount,memo).",
            dir_okay=False,
            file_okay=True,
        ),
    ],
    database_url: DatabaseUrlOption = None,
) -> None:
    """Ingest one CSV batch atomically."""

    from .api import ingest_csv

    settings = _settings(database_url)
    if not csv_path.is_file():
        err_console.print(f"[red]Error:[/red] file not found: {csv_path}")
        raise typer.Exit(EXIT_FAILED)

    store = LedgerStore.from_settings(settings)
    try:
        with csv_path.open("rb") as f:
            outcome = ingest_csv(f, max_bytes=settings.max_upload_bytes, store=store)
    finally:
        store.dispose()
    raise typer.Exit(_print_outcome(outcome))


@app.command("report")
def report_cmd(database_url: DatabaseUrlOption = None) -> None:
    """Print the current report."""

    from .api import current_report

    store = LedgerStore.from_settings(_settings(database_url))
    try:
        outcome = current_report(store=store)
    finally:
        store.dispose()

    match outcome:
        case Report():
            console.print(_report_table(outcome))
        case Congested(reason=reason):
            err_console.print(f"[yellow]Congested:[/yellow] {reason}; retry later")
            raise typer.Exit(EXIT_CONGESTED)
        case Unavailable(reason=reason):
            err_console.print(f"[red]Unavailable:[/red] {reason}")
            raise typer.Exit(EXIT_FAILED)


@app.command("rebuild-report")
def rebuild_report_cmd(database_url: DatabaseUrlOption = None) -> None:
    """Recompute the report from every stored transaction."""

    from .commit import rebuild_report
    from .errors import CongestedError, LedgerError

    store = LedgerStore.from_settings(_settings(database_url))
    try:
        report = rebuild_report(store)
    except CongestedError as e:
        err_console.print(f"[yellow]Congested:[/yellow] {e}; retry later")
        raise typer.Exit(EXIT_CONGESTED) from e
    except LedgerError as e:
        err_console.print(f"[red]Error:[/red] rebuild failed: {e}")
        raise typer.Exit(EXIT_FAILED) from e
    finally:
        store.dispose()
    console.print(_report_table(report, title="Rebuilt ledger report"))


@app.command("serve")
def serve_cmd(
    host: Annotated[str, typer.Option(help="Interface to bind.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Port to listen on.")] = 8000,
    database_url: DatabaseUrlOption = None,
) -> None:
    """Run the HTTP API."""

    import uvicorn

    from .web import create_app

    settings = _settings(database_url)
    store = LedgerStore.from_settings(settings)
    try:
        uvicorn.run(
            create_app(store, max_upload_bytes=settings.max_upload_bytes),
            host=host,
            port=port,
        )
    finally:
        store.dispose()


@app.callback()
def _root() -> None:
    """Load ``.env`` from the current directory and configure logging."""

    # override=False keeps variables already set in the environment
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    try:
        configure_logging()
    except ValueError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_FAILED) from e


if __name__ == "__main__":  # pragma: no cover
    app()
