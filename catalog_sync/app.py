"""Typer CLI entrypoint for catalog-sync."""

from __future__ import annotations

import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, SyncConfig
from .engine import ProductStatus, ProductStore
from .errors import RunAbortedError, StoreError
from .infra import SQLiteManager
from .logging_conf import configure_logging, log_paths, tail_log
from .orchestrator import RunCoordinator, RunSummary
from .scheduler import APSchedulerAdapter
from .ui import ProgressReporter

app = typer.Typer(
    help="Reconcile a product feed with the product store and the document store.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    config: SyncConfig
    storage: SQLiteManager

    def coordinator(self, enrich: bool = True, workers: int | None = None) -> RunCoordinator:
        update: dict = {}
        if not enrich:
            update["enrichment"] = self.config.enrichment.model_copy(update={"enabled": False})
        if workers is not None:
            update["worker_count"] = workers
        config = self.config.model_copy(update=update) if update else self.config
        return RunCoordinator(config, storage=self.storage)

    def open_store(self) -> ProductStore:
        return ProductStore(self.storage, self.config.store.path).open()


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    config = repository.load()
    return AppState(
        repository=repository,
        config=config,
        storage=SQLiteManager(config.store.busy_timeout_ms),
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _progress_default_enabled() -> bool:
    return bool(getattr(sys.stdout, "isatty", lambda: False)())


def _render_summary(summary: RunSummary) -> Table:
    table = Table(title="Sync result", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green", justify="right")
    table.add_row("Items in feed", str(summary.total))
    table.add_row("Published", str(summary.published))
    table.add_row("Unchanged", str(summary.unchanged))
    table.add_row("Skipped", str(summary.skipped))
    table.add_row("Failed", str(summary.failed))
    table.add_row("Removed from feed", str(summary.deleted))
    return table


def _render_failures(summary: RunSummary) -> Table:
    table = Table(title="Failed items", box=box.SIMPLE_HEAD)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Stage", style="magenta")
    table.add_column("Error", style="red", overflow="fold")
    for outcome in summary.failures:
        table.add_row(outcome.identifier, outcome.stage or "-", outcome.reason or "-")
    return table


def _execute_run(
    state: AppState,
    feed_file: Path | None,
    enrich: bool,
    workers: int | None,
    progress_enabled: bool,
) -> RunSummary:
    coordinator = state.coordinator(enrich=enrich, workers=workers)
    progress = ProgressReporter(enabled=progress_enabled) if progress_enabled else None
    try:
        return coordinator.run(feed_file=feed_file, progress=progress)
    finally:
        coordinator.close()


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging.", is_flag=True),
) -> None:
    ctx.obj = build_state(verbose)


@app.command("run", help="Run one reconciliation pass.")
def run(
    ctx: typer.Context,
    feed_file: Optional[Path] = typer.Option(
        None,
        "--feed-file",
        help="Reconcile a local feed file instead of downloading the feed.",
        exists=True,
        dir_okay=False,
    ),
    no_enrich: bool = typer.Option(
        False, "--no-enrich", help="Skip headless browser enrichment.", is_flag=True
    ),
    workers: Optional[int] = typer.Option(None, "--workers", min=1, help="Worker pool size."),
    quiet: bool = typer.Option(False, "--quiet", help="Print a one-line summary.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    progress_flag = state.config.show_progress and _progress_default_enabled() and not quiet
    try:
        summary = _execute_run(state, feed_file, not no_enrich, workers, progress_flag)
    except RunAbortedError as exc:
        console.print(f"Run aborted: {exc}", style="red")
        raise typer.Exit(code=1)
    if quiet:
        console.print(
            f"published {summary.published}, unchanged {summary.unchanged}, "
            f"skipped {summary.skipped}, failed {summary.failed}, removed {summary.deleted}"
        )
        return
    console.print(_render_summary(summary))
    if summary.failures:
        console.print(_render_failures(summary))


@app.command("status", help="Show product counts by status and list records.")
def status(
    ctx: typer.Context,
    status_filter: Optional[ProductStatus] = typer.Option(
        None, "--status", help="Only list records with this status."
    ),
    limit: int = typer.Option(20, "--limit", min=0, help="Number of records to list."),
) -> None:
    state = _get_state(ctx)
    try:
        store = state.open_store()
        try:
            counts = store.count_by_status()
            records = store.list_records(status=status_filter, limit=limit) if limit else []
        finally:
            store.close()
    except StoreError as exc:
        console.print(f"Unable to read product store: {exc}", style="red")
        raise typer.Exit(code=1)

    counts_table = Table(title="Products by status", box=box.SIMPLE_HEAD)
    counts_table.add_column("Status", style="cyan")
    counts_table.add_column("Count", style="green", justify="right")
    for product_status, count in counts.items():
        counts_table.add_row(product_status.value, str(count))
    console.print(counts_table)

    if records:
        table = Table(title="Products", box=box.SIMPLE_HEAD)
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Price", justify="right")
        table.add_column("MPN")
        table.add_column("Status", style="magenta")
        table.add_column("Document", style="dim", overflow="fold")
        for record in records:
            table.add_row(
                record.identifier,
                f"{record.price:.2f}",
                record.mpn,
                record.status.value,
                record.document_id or "-",
            )
        console.print(table)


@app.command("history", help="Show superseded revisions of a product.")
def history(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Product identifier."),
) -> None:
    state = _get_state(ctx)
    try:
        store = state.open_store()
        try:
            current = store.get(identifier)
            revisions = store.history(identifier)
        finally:
            store.close()
    except StoreError as exc:
        console.print(f"Unable to read product store: {exc}", style="red")
        raise typer.Exit(code=1)
    if current is None:
        console.print(f"Product `{identifier}` not found.", style="yellow")
        raise typer.Exit(code=1)
    console.print(
        f"{current.identifier}: price {current.price:.2f}, status {current.status.value}"
    )
    if not revisions:
        console.print("No superseded revisions.", style="dim")
        return
    table = Table(title="Revisions", box=box.SIMPLE_HEAD)
    table.add_column("Superseded at", style="cyan")
    table.add_column("Price", justify="right")
    table.add_column("Status", style="magenta")
    table.add_column("Document", style="dim")
    for revision in revisions:
        table.add_row(
            revision.superseded_at,
            f"{revision.price:.2f}",
            revision.status.value,
            revision.document_id or "-",
        )
    console.print(table)


@app.command("schedule", help="Run passes periodically according to the schedule config.")
def schedule(
    ctx: typer.Context,
    no_enrich: bool = typer.Option(
        False, "--no-enrich", help="Skip headless browser enrichment.", is_flag=True
    ),
) -> None:
    state = _get_state(ctx)
    logger = configure_logging().bind(component="cli")
    scheduler = APSchedulerAdapter()

    def _scheduled_run() -> None:
        try:
            summary = _execute_run(state, None, not no_enrich, None, False)
        except RunAbortedError as exc:
            logger.error("scheduled_run_aborted", error=str(exc))
            return
        logger.info("scheduled_run_finished", **summary.as_dict())

    scheduler.schedule_run(state.config.schedule, _scheduled_run)
    scheduler.start()
    console.print(
        f"Scheduler started ({state.config.schedule.type.value}: {state.config.schedule.value}). "
        "Press Ctrl+C to stop.",
        style="green",
    )
    stop = threading.Event()
    try:
        while not stop.wait(1.0):
            pass
    except KeyboardInterrupt:
        console.print("Stopping scheduler…", style="yellow")
    finally:
        scheduler.shutdown()


@app.command("log", help="Show the most recent log lines.")
def log(
    lines: int = typer.Option(50, "--lines", min=1, help="Number of lines to show."),
    errors: bool = typer.Option(False, "--errors", help="Show the error log.", is_flag=True),
) -> None:
    path = log_paths()["error" if errors else "sync"]
    content = tail_log(path, lines)
    if not content:
        console.print(f"No log entries in {path}.", style="dim")
        return
    for line in content:
        console.print(line.rstrip("\n"), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
