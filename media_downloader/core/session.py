"""
The orchestrator for a batch of URLs: expands sources, downloads them one at a
time, and records the outcome of each.
"""

import logging
import time
from pathlib import Path

from rich.markup import escape

from media_downloader.cli.progress_manager import ProgressManager
from media_downloader.core.downloader import MediaDownloader
from media_downloader.core.options import build_ydl_options
from media_downloader.exceptions import MediaDownloaderError
from media_downloader.media.integrity import AudioIntegrityChecker
from media_downloader.models.config import DownloadConfig
from media_downloader.models.stats import DownloadStats
from media_downloader.storage.history import DownloadHistory

log = logging.getLogger(__name__)


def expand_sources(sources: list[str]) -> list[str]:
    """
    Turns a mix of URLs and URL-list files into a de-duplicated URL list.

    Files are read line by line; blank lines and '#' comments are skipped.
    """
    expanded_urls: list[str] = []
    for source in sources:
        path = Path(source)
        if path.is_file():
            log.info(f"Reading URLs from file: [dim]{source}[/dim]")
            try:
                with open(path, encoding="utf-8") as f:
                    expanded_urls.extend(
                        line.strip()
                        for line in f
                        if line.strip() and not line.lstrip().startswith("#")
                    )
            except (OSError, UnicodeDecodeError) as e:
                log.error(f"[red]Could not read file {source}: {e}[/red]")
        elif source.strip():
            expanded_urls.append(source.strip())

    unique_urls = list(dict.fromkeys(expanded_urls))
    if len(unique_urls) < len(expanded_urls):
        log.info(f"Removed {len(expanded_urls) - len(unique_urls)} duplicate URLs.")
    return unique_urls


class DownloadSession:
    """Runs a sequential download session over the configured source URLs."""

    def __init__(
        self,
        config: DownloadConfig,
        downloader: MediaDownloader,
        progress_manager: ProgressManager,
        history: DownloadHistory | None = None,
    ):
        self.config = config
        self.downloader = downloader
        self.progress_manager = progress_manager
        self.history = history
        self.stats = DownloadStats(dry_run=config.dry_run)
        self.progress_manager.stats = self.stats

    def run(self) -> DownloadStats:
        """Processes every URL. A failing URL does not stop the session."""
        urls = expand_sources(self.config.source_urls)
        if not urls:
            log.warning("[yellow]No valid URLs to process.[/yellow]")
            return self.stats

        self.progress_manager.initialize_session(len(urls))

        for index, url in enumerate(urls, 1):
            log.info(f"[cyan]({index}/{len(urls)})[/cyan] {url}")
            if self.config.dry_run:
                self._describe(url)
                continue
            self._download_one(url)

        return self.stats

    def _describe(self, url: str) -> None:
        opts = build_ydl_options(self.config)
        self.progress_manager.log_message(
            f"Would download {escape(url)} as {self.config.target_extension} "
            f"(format '{escape(opts['format'])}') to {escape(self.config.output_dir)}"
        )
        self.stats.skipped += 1
        self.progress_manager.advance_overall()

    def _download_one(self, url: str) -> None:
        started = time.time()
        try:
            success, message = self.downloader.download_media(
                url, self.config, progress_callback=self.progress_manager.hook
            )
        except MediaDownloaderError as e:
            success, message = False, str(e)

        if success and self.config.is_audio and self.config.verify_audio:
            success, message = self._verify_audio(started, message)

        self.stats.record_result(url, success)
        self.progress_manager.finish_item(success)
        if success:
            log.info(f"[green]✓ {message}[/green]")
        else:
            log.error(f"[red]✗ {message}[/red]")

        if self.history:
            self.history.record(
                url, success, message, self.config.download_type.value
            )

    def _verify_audio(self, started: float, message: str) -> tuple[bool, str]:
        files = AudioIntegrityChecker.find_output_files(self.config.output_dir, started)
        if not files:
            log.warning("[yellow]No extracted audio file found to verify.[/yellow]")
            return True, message
        broken = [f.name for f in files if not AudioIntegrityChecker.check(f)]
        if broken:
            self.stats.integrity_failures += len(broken)
            return False, f"Integrity check failed for: {', '.join(broken)}"
        return True, f"{message} (verified {len(files)} file(s))"
