"""
Manages Rich progress bars driven by yt-dlp progress hooks.
Shows an overall bar for the session and one transfer bar per file.
"""

import logging
from typing import Any

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from media_downloader.core.progress import ProgressUpdate
from media_downloader.models.stats import DownloadStats

log = logging.getLogger("media_downloader")


class ProgressManager:
    """
    Context manager owning a Rich Progress display. `hook` is handed to yt-dlp
    as a progress hook; every call updates the bar for the current file.
    """

    def __init__(self, console: Console, dry_run: bool = False):
        self.console = console
        self.dry_run = dry_run
        self.stats: DownloadStats | None = None

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            DownloadColumn(),
            "•",
            TransferSpeedColumn(),
            "•",
            TimeRemainingColumn(),
            console=console,
            transient=False,
        )
        self._overall_task_id: TaskID | None = None
        self._file_tasks: dict[str, TaskID] = {}
        self._started = False

    def log_message(self, message: str, level: str = "info"):
        """Unified logging respecting dry_run mode."""
        if self.dry_run:
            style_map = {
                "info": "cyan",
                "warning": "yellow",
                "error": "red",
                "success": "green",
            }
            style = style_map.get(level, "")
            self.console.print(f"[{style}]{message}[/{style}]" if style else message)
        else:
            getattr(log, level, log.info)(message)

    def initialize_session(self, total_items: int):
        if self.dry_run or total_items < 2:
            return
        self._overall_task_id = self.progress.add_task(
            "[bold blue]Overall", total=total_items, start=True
        )

    def advance_overall(self):
        if self._overall_task_id is not None:
            self.progress.advance(self._overall_task_id)

    def finish_item(self, success: bool):
        """Closes any file bars left open for the item and advances the session."""
        for filename, task_id in list(self._file_tasks.items()):
            task = self.progress.tasks[self._task_index(task_id)]
            if success and task.total:
                self.progress.update(task_id, completed=task.total)
            self._file_tasks.pop(filename, None)
        self.advance_overall()

    def _task_index(self, task_id: TaskID) -> int:
        for index, task in enumerate(self.progress.tasks):
            if task.id == task_id:
                return index
        raise KeyError(task_id)

    @staticmethod
    def _short_name(name: str, limit: int = 45) -> str:
        if len(name) <= limit:
            return name
        return name[: limit - 1] + "…"

    def hook(self, d: dict[str, Any]) -> None:
        """yt-dlp progress hook."""
        update = ProgressUpdate.from_hook(d)
        if self.stats is not None:
            self.stats.record(update)
        if self.dry_run:
            return

        key = update.filename or "download"
        task_id = self._file_tasks.get(key)

        if update.status == "downloading":
            if task_id is None:
                task_id = self.progress.add_task(
                    self._short_name(update.basename or key),
                    total=update.total_bytes,
                    start=True,
                )
                self._file_tasks[key] = task_id
            self.progress.update(
                task_id,
                completed=update.downloaded_bytes,
                total=update.total_bytes,
            )
        elif update.status == "finished":
            if task_id is not None:
                total = update.total_bytes or update.downloaded_bytes
                self.progress.update(task_id, completed=total, total=total)
                self._file_tasks.pop(key, None)
            log.debug(update.describe())
        elif update.status == "error":
            log.warning(f"[yellow]{update.describe()}[/yellow]")

    def __enter__(self):
        if not self.dry_run:
            self.progress.start()
            self._started = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._started:
            self.progress.stop()
            self._started = False
