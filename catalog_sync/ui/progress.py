"""Terminal progress helpers with Rich-based rendering."""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock

from rich.console import Console
from rich.errors import LiveError
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)


@dataclass
class ProgressState:
    total: int
    published: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    current_item: str | None = None


class ProgressReporter:
    """Render per-item progress of a run and keep counters for the CLI.

    ``advance`` is called from pool worker threads.
    """

    def __init__(self, enabled: bool = True, console: Console | None = None) -> None:
        self.enabled = enabled
        self._console = console
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self._lock = Lock()
        self.state: ProgressState | None = None

    def start(self, total: int) -> None:
        self.state = ProgressState(total=total)
        if not self.enabled:
            return
        if self._console is None:
            self._console = Console()
        if not self._console.is_terminal:
            # Non-interactive output: stay silent rather than printing every refresh
            self.enabled = False
            return
        self._progress = Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[bold blue]sync", justify="left"),
            BarColumn(bar_width=None, complete_style="green", finished_style="green"),
            TaskProgressColumn(show_speed=False),
            TimeElapsedColumn(),
            TextColumn("[green]↑{task.fields[published]:>3}", justify="right"),
            TextColumn("[cyan]={task.fields[unchanged]:>3}", justify="right"),
            TextColumn("[yellow]↺{task.fields[skipped]:>3}", justify="right"),
            TextColumn("[red]✗{task.fields[failed]:>3}", justify="right"),
            TextColumn("[dim]{task.fields[current_item]}", justify="left"),
            console=self._console,
            transient=True,
            expand=True,
        )
        try:
            self._progress.__enter__()
        except LiveError:
            # Another live display owns the console
            self.enabled = False
            self._progress = None
            return
        self._task_id = self._progress.add_task(
            "sync",
            total=total,
            published=0,
            unchanged=0,
            skipped=0,
            failed=0,
            current_item="waiting…",
        )

    def advance(self, status: str, current_item: str | None = None) -> None:
        """Count one finished item; ``status`` is an outcome status value."""

        if not self.state:
            raise RuntimeError("ProgressReporter.start must be called before advance")
        with self._lock:
            if status not in ("published", "unchanged", "skipped", "failed"):
                raise ValueError(f"Unknown progress status: {status}")
            setattr(self.state, status, getattr(self.state, status) + 1)
            if current_item:
                self.state.current_item = current_item
            if self._progress is not None and self._task_id is not None:
                self._progress.update(
                    self._task_id,
                    advance=1,
                    published=self.state.published,
                    unchanged=self.state.unchanged,
                    skipped=self.state.skipped,
                    failed=self.state.failed,
                    current_item=(self.state.current_item or "")[:40],
                )

    def close(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress.__exit__(None, None, None)
            self._progress = None
        self._task_id = None

    def summary(self) -> dict[str, int]:
        if not self.state:
            return {"published": 0, "unchanged": 0, "skipped": 0, "failed": 0}
        return {
            "published": self.state.published,
            "unchanged": self.state.unchanged,
            "skipped": self.state.skipped,
            "failed": self.state.failed,
        }


__all__ = ["ProgressReporter", "ProgressState"]
