"""
Manages a Rich Live display for concurrent jobs: a session header, overall
statistics and one progress row per job.
"""

import asyncio
import logging
from datetime import datetime
from urllib.parse import urlparse

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
)
from rich.table import Table
from rich.text import Text

from streamgrab.models.job import ProgressEvent

log = logging.getLogger("streamgrab")


def short_job_name(url: str, width: int = 40) -> str:
    """Turns a source URL into a compact label for a progress row."""
    parsed = urlparse(url)
    tail = parsed.path.rstrip("/").rsplit("/", 1)[-1] or parsed.netloc
    label = f"{parsed.netloc}/…/{tail}" if parsed.path.count("/") > 1 else url
    if len(label) > width:
        label = "…" + label[-(width - 1) :]
    return label


class ProgressManager:
    """
    Receives ProgressEvents from running jobs and renders them. In quiet mode
    nothing is drawn and events only go to the log.
    """

    def __init__(self, console: Console, quiet: bool = False):
        self.console = console
        self.quiet = quiet

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=24),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            TextColumn("{task.fields[status]}", style="dim"),
            console=console,
            transient=False,
        )

        self._live: Live | None = None
        self._layout: Layout | None = None
        self._tasks: dict[str, TaskID] = {}
        self._last_events: dict[str, ProgressEvent] = {}
        self._stats = {
            "total_jobs": 0,
            "completed": 0,
            "failed": 0,
            "warnings": 0,
            "start_time": None,
        }

    def initialize_session(self, total_jobs: int) -> None:
        self._stats["total_jobs"] = total_jobs
        self._stats["start_time"] = datetime.now()
        self._update_display()

    def add_job(self, url: str) -> None:
        if url in self._tasks:
            return
        self._tasks[url] = self.progress.add_task(
            escape(short_job_name(url)), total=100, status="queued"
        )
        self._update_display()

    def report(self, event: ProgressEvent) -> None:
        """Progress callback handed to each JobRunner."""
        self._last_events[event.job_url] = event
        name = short_job_name(event.job_url)

        # Fatal errors are logged by the job itself; only the row changes here.
        if event.message.startswith("Warning:"):
            self._stats["warnings"] += 1
            self.log_message(
                f"[yellow]⚠ {escape(name)}: {escape(event.message)}[/yellow]",
                level="warning",
            )
        else:
            log.debug(f"{event.job_url}: {event.message} ({event.percent})")

        task_id = self._tasks.get(event.job_url)
        if task_id is None:
            return
        if event.percent is not None:
            self.progress.update(
                task_id, completed=event.percent, status=escape(event.message)
            )
        else:
            self.progress.update(task_id, status=escape(event.message))
        self._update_display()

    def finish_job(self, url: str, success: bool) -> None:
        if success:
            self._stats["completed"] += 1
        else:
            self._stats["failed"] += 1
        task_id = self._tasks.get(url)
        if task_id is not None:
            if success:
                status = "[green]done[/green]"
            else:
                # The row keeps the reason the job gave up with.
                event = self.last_event(url)
                reason = event.message if event else "failed"
                status = f"[red]{escape(reason)}[/red]"
            self.progress.update(task_id, status=status)
            self.progress.stop_task(task_id)
        self._update_display()

    def last_event(self, url: str) -> ProgressEvent | None:
        return self._last_events.get(url)

    def log_message(self, message: str, level: str = "info") -> None:
        if self.quiet or not self._live:
            getattr(log, level, log.info)(message)
        else:
            self.console.print(message)

    def get_statistics(self) -> dict:
        return self._stats.copy()

    def _create_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="progress", ratio=1),
        )
        return layout

    def _generate_header(self) -> Panel:
        if self._stats["start_time"]:
            elapsed = (datetime.now() - self._stats["start_time"]).total_seconds()
            elapsed_str = (
                f"{int(elapsed // 3600):02d}:"
                f"{int((elapsed % 3600) // 60):02d}:{int(elapsed % 60):02d}"
            )
        else:
            elapsed_str = "00:00:00"
        header_text = Text()
        header_text.append("📼 streamgrab ", style="bold cyan")
        header_text.append("│ ", style="dim")
        header_text.append(f"Session: {elapsed_str}", style="yellow")
        header_text.append(" │ ", style="dim")
        header_text.append(
            f"Jobs: {self._stats['completed']}✓ {self._stats['failed']}✗ "
            f"/ {self._stats['total_jobs']}",
            style="magenta",
        )
        return Panel(header_text, border_style="cyan")

    def _generate_progress_panel(self) -> Panel:
        if not self._tasks:
            return Panel(
                Text("Waiting for jobs to start...", style="dim italic", justify="center"),
                title="[bold]📥 Jobs[/bold]",
                border_style="green",
            )
        grid = Table.grid()
        grid.add_row(self.progress)
        return Panel(
            grid, title=f"[bold]📥 Jobs ({len(self._tasks)})[/bold]", border_style="green"
        )

    def _update_display(self) -> None:
        if self.quiet or not self._layout:
            return
        self._layout["header"].update(self._generate_header())
        self._layout["progress"].update(self._generate_progress_panel())

    async def __aenter__(self):
        if self.quiet:
            return self
        self._layout = self._create_layout()
        self._update_display()
        self._live = Live(
            self._layout,
            console=self.console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._live and not self.quiet:
            await asyncio.sleep(0.2)
            self._live.stop()
            self._live = None
