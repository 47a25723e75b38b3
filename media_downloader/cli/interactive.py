"""
A prompt-driven loop for users who prefer answering questions over flags.
"""

from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt

from media_downloader import APP_NAME, __version__
from media_downloader.cli.formatters import (
    format_error_with_suggestions,
    print_formats_table,
    print_media_info,
)
from media_downloader.cli.progress_manager import ProgressManager
from media_downloader.core.downloader import MediaDownloader
from media_downloader.exceptions import ConfigurationError, MediaDownloaderError
from media_downloader.models.config import (
    AUDIO_FORMATS,
    QUALITY_PRESETS,
    VIDEO_FORMATS,
    DownloadConfig,
    DownloadType,
)
from media_downloader.storage.history import DownloadHistory

ACTIONS = ["video", "audio", "info", "quit"]
QUIT_WORDS = {"", "q", "quit", "exit"}


class DownloaderCLI:
    """Asks for a URL and an action until the user quits."""

    def __init__(
        self,
        console: Console | None = None,
        downloader: MediaDownloader | None = None,
        config: DownloadConfig | None = None,
        history: DownloadHistory | None = None,
    ):
        self.console = console or Console()
        self.downloader = downloader or MediaDownloader()
        self.config = config or DownloadConfig()
        self.history = history

    def run(self) -> int:
        self.console.print(
            Panel(
                f"[bold]{APP_NAME}[/bold] [dim]v{__version__}[/dim]\n"
                "Paste a URL, or press Enter to quit.",
                border_style="cyan",
                expand=False,
            )
        )
        deps_ok, deps_msg = self.downloader.check_dependencies()
        if not deps_ok:
            self.console.print(f"[red]{deps_msg}[/red]")
            return 1

        while True:
            url = Prompt.ask("[bold cyan]URL[/bold cyan]", default="").strip()
            if url.lower() in QUIT_WORDS:
                break

            action = Prompt.ask("Action", choices=ACTIONS, default="video")
            if action == "quit":
                break
            try:
                if action == "info":
                    self._show_info(url)
                else:
                    self._download(url, DownloadType(action))
            except MediaDownloaderError as e:
                self.console.print(format_error_with_suggestions(e))

        self.console.print("[dim]Goodbye.[/dim]")
        return 0

    def _show_info(self, url: str) -> None:
        with self.console.status("Fetching media information..."):
            info = self.downloader.get_video_info(url)
        print_media_info(info)
        if info.formats and Confirm.ask("Show all formats?", default=False):
            print_formats_table(info)

    def _ask_config(self, download_type: DownloadType) -> DownloadConfig:
        updates = {"download_type": download_type}
        if download_type == DownloadType.AUDIO:
            updates["audio_format"] = Prompt.ask(
                "Audio format",
                choices=list(AUDIO_FORMATS),
                default=self.config.audio_format,
            )
        else:
            updates["video_format"] = Prompt.ask(
                "Video format",
                choices=list(VIDEO_FORMATS),
                default=self.config.video_format,
            )
            default_quality = self.config.quality
            if default_quality not in QUALITY_PRESETS:
                default_quality = "best"
            updates["quality"] = Prompt.ask(
                "Quality", choices=list(QUALITY_PRESETS), default=default_quality
            )
            updates["download_subs"] = Confirm.ask(
                "Download subtitles?", default=self.config.download_subs
            )
        updates["output_dir"] = Prompt.ask("Save to", default=self.config.output_dir)
        try:
            return DownloadConfig(**{**self.config.model_dump(), **updates})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid download options:\n{e}") from e

    def _download(self, url: str, download_type: DownloadType) -> None:
        config = self._ask_config(download_type)
        with ProgressManager(self.console) as progress_manager:
            success, message = self.downloader.download_media(
                url, config, progress_callback=progress_manager.hook
            )
        if success:
            self.console.print(f"[green]✓ {message}[/green]")
        else:
            self.console.print(f"[red]✗ {message}[/red]")
        if self.history:
            self.history.record(url, success, message, download_type.value)
