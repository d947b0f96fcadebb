"""Console rendering and progress helpers for the r2m CLI."""
from __future__ import annotations

import time
from typing import Any, Dict, Optional

from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .listing.filters import calculate_filter_stats
from .listing.view import Projection
from .models import UploadStatus
from .utils.events import (
    ProgressEvent,
    RetryEvent,
    StatusEvent,
    TerminalEvent,
    TransferProgressEvent,
)

console = Console()


def _human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]r2m[/bold green]",
        subtitle="[dim]r2manager CLI[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_listing(bucket: str, path: str, projection: Projection) -> None:
    """Folders first, then objects, in projection order."""
    table = Table(title=f"{bucket}/{path}", title_justify="left")
    table.add_column("Name", style="white")
    table.add_column("Size", justify="right", style="cyan")
    table.add_column("Uploaded", style="dim")

    for folder in projection.folders:
        table.add_row(f"[bold blue]{escape(folder.name)}/[/bold blue]", "-", "-")
    for obj in projection.objects:
        table.add_row(
            escape(obj.key[len(path):] if path and obj.key.startswith(path) else obj.key),
            _human_size(obj.size),
            obj.uploaded_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)
    stats = calculate_filter_stats(projection.objects)
    console.print(
        f"[dim]{len(projection.folders)} folders, {stats.count} files, "
        f"{_human_size(stats.total_size)}[/dim]"
    )


class UploadProgressDisplay:
    """
    Renders upload events from UploadCoordinator.events.

    Usage:
        display = UploadProgressDisplay()
        display.attach(manager.upload_events)
        ...
        display.stop()
    """

    def __init__(self):
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[dim]{task.fields[detail]}"),
            TimeElapsedColumn(),
            expand=False,
            console=console,
        )
        self._live: Optional[Live] = None
        self._tasks: Dict[str, TaskID] = {}
        self._stats: Dict[str, int] = {"uploaded": 0, "failed": 0}

    def attach(self, emitter) -> None:
        emitter.on("status", self.on_status)
        emitter.on("progress", self.on_progress)
        emitter.on("retry", self.on_retry)
        emitter.on("terminal", self.on_terminal)

    def _start_live(self) -> None:
        if self._live is not None:
            return
        self._live = Live(
            self._progress,
            console=console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()

    def stop(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None

    def _task_for(self, key: str) -> TaskID:
        task_id = self._tasks.get(key)
        if task_id is None:
            self._start_live()
            task_id = self._progress.add_task("upload", label=key[:60], total=100, detail="")
            self._tasks[key] = task_id
        return task_id

    def _timeline(self, status: str, color: str, key: str, detail: str = "") -> None:
        stamp = time.strftime("%H:%M:%S")
        suffix = f" {detail}" if detail else ""
        console.print(f"[dim]{stamp}[/dim] [{color}]{status:<5}[/{color}] {escape(key + suffix)}")

    def on_status(self, event: StatusEvent) -> None:
        if event.status in (UploadStatus.UPLOADING, UploadStatus.VERIFYING):
            self._progress.update(self._task_for(event.destination_key), detail=event.status.value)

    def on_progress(self, event: ProgressEvent) -> None:
        self._progress.update(
            self._task_for(event.destination_key),
            completed=event.percent,
            detail=f"{event.completed_chunks}/{event.total_chunks} chunks",
        )

    def on_retry(self, event: RetryEvent) -> None:
        self._timeline(
            "RETRY",
            "yellow",
            event.destination_key,
            f"chunk {event.chunk_index} attempt {event.attempt}: {event.error}",
        )

    def on_terminal(self, event: TerminalEvent) -> None:
        task_id = self._tasks.pop(event.destination_key, None)
        if task_id is not None:
            self._progress.remove_task(task_id)

        if event.status == UploadStatus.COMPLETE:
            self._stats["uploaded"] += 1
            self._timeline("DONE", "green", event.destination_key, "verified" if event.verified else "")
        else:
            self._stats["failed"] += 1
            self._timeline("FAIL", "red", event.destination_key, event.error or "")

    def on_finish(self) -> None:
        self.stop()
        console.print(
            f"[bold]Finished[/bold] uploaded={self._stats['uploaded']} failed={self._stats['failed']}"
        )


class TransferProgressDisplay:
    """Prints ``completed/total`` as each transfer entry succeeds."""

    def attach(self, emitter) -> None:
        emitter.on("progress", self.on_progress)

    def on_progress(self, event: TransferProgressEvent) -> None:
        console.print(f"[green]{event.completed_count}/{event.total_count}[/green] {escape(event.key)}")
