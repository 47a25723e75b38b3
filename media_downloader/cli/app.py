"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

import aiohttp
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from media_downloader import DIST_NAME, __version__
from media_downloader.core.downloader import MediaDownloader
from media_downloader.core.session import DownloadSession
from media_downloader.distribution.metadata import AppMetadata
from media_downloader.distribution.pypi import FlatpakSource, load_sources
from media_downloader.distribution.scaffold import ScaffoldOptions, scaffold
from media_downloader.distribution.validators import ensure_valid, validate_tree
from media_downloader.exceptions import (
    ConfigurationError,
    MediaDownloaderError,
    SourceResolutionError,
)
from media_downloader.storage.config_manager import ConfigManager, get_config_dir
from media_downloader.storage.history import DownloadHistory

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_formats_table,
    print_history_table,
    print_media_info,
    print_scaffold_report,
    print_summary_panel,
    print_system_report,
    print_validation_issues,
)
from .interactive import DownloaderCLI
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("media_downloader")

app = typer.Typer(
    name=DIST_NAME,
    help=(
        "Download videos and audio from 1000+ websites, and build the desktop"
        " packages for this tool. Use 'media-downloader <command> --help' for more"
        " info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"

CONNECTIVITY_URLS = ("https://www.youtube.com", "https://pypi.org/simple/yt-dlp/")


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the effective configuration."
    ),
):
    """Media Downloader CLI"""
    if version:
        console.print(f"[bold]{DIST_NAME}[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("media_downloader").setLevel(log_level)

    if show_config:
        try:
            config_data = ConfigManager(CONFIG_FILE).get_config_as_dict()
        except ConfigurationError as e:
            console.print(f"[red]✗ {e}[/red]")
            raise typer.Exit(code=1) from e
        print_config(CONFIG_FILE, config_data)
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


def _load_config(cli_options: dict | None = None):
    try:
        return ConfigManager(CONFIG_FILE).load_config(cli_options)
    except ConfigurationError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=1) from e


def _read_urls_from_stdin() -> list[str]:
    """Reads URLs from stdin, one per line."""
    if sys.stdin.isatty():
        console.print(
            "[yellow]⚠️  No input detected on stdin. Please pipe URLs or redirect"
            " a file.[/yellow]"
        )
        console.print(
            "[dim]Examples:[/dim]\n"
            "  [cyan]cat urls.txt | media-downloader download --stdin[/cyan]\n"
            "  [cyan]media-downloader download --stdin < urls.txt[/cyan]"
        )
        raise typer.Exit(code=1)

    urls = []
    console.print("[dim]Reading URLs from stdin...[/dim]")
    try:
        for line in sys.stdin:
            line = line.strip()
            if line and not line.startswith("#"):
                urls.append(line)
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Input interrupted.[/yellow]")
        raise typer.Exit(code=1) from None

    if not urls:
        console.print("[yellow]⚠️  No valid URLs found in stdin.[/yellow]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Read {len(urls)} URLs from stdin.[/green]")
    return urls


@app.command(name="download")
def download_command(
    urls: list[str] | None = typer.Argument(  # noqa: B008
        None, help="One or more URLs or paths to files containing URLs."
    ),
    # --- Media Options ---
    audio: bool = typer.Option(
        False, "--audio", "-a", help="Extract audio only instead of video."
    ),
    video_format: str | None = typer.Option(
        None, "-f", "--format", help="Video container: mp4, webm, mkv, avi or mov."
    ),
    quality: str | None = typer.Option(
        None,
        "-q",
        "--quality",
        help=(
            "Video quality: best, 2160p, 1440p, 1080p, 720p, 480p, 360p, worst, or a"
            " yt-dlp format selector."
        ),
    ),
    audio_format: str | None = typer.Option(
        None, "--audio-format", help="Audio codec: mp3, m4a, opus, wav or flac."
    ),
    audio_quality: str | None = typer.Option(
        None,
        "--audio-quality",
        help="VBR level 0 (best) to 10, or a bitrate such as 192K.",
    ),
    # --- Extras ---
    download_subs: bool | None = typer.Option(
        None, "--subs/--no-subs", help="Download subtitles."
    ),
    download_thumb: bool | None = typer.Option(
        None, "--thumbnail/--no-thumbnail", help="Download the thumbnail image."
    ),
    embed_thumbnail: bool | None = typer.Option(
        None,
        "--embed-thumbnail/--no-embed-thumbnail",
        help="Embed the thumbnail into the media file.",
    ),
    verify_audio: bool | None = typer.Option(
        None,
        "--verify/--no-verify",
        help="Check extracted audio files for corruption after download.",
    ),
    # --- Output ---
    output_dir: str | None = typer.Option(
        None, "-o", "--output-dir", help="Directory to save downloads in."
    ),
    output_template: str | None = typer.Option(
        None,
        "--template",
        help="yt-dlp output template, e.g. '%(uploader)s/%(title)s.%(ext)s'.",
    ),
    playlist: bool = typer.Option(
        False, "--playlist", help="Download the whole playlist a URL belongs to."
    ),
    # --- Behavior ---
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show what would be downloaded without downloading.",
    ),
    stdin: bool = typer.Option(
        False, "--stdin", help="Read URLs from standard input, one URL per line."
    ),
):
    """Download videos or audio."""
    if stdin and urls:
        console.print(
            "[yellow]⚠️  Both URLs and --stdin provided. Using --stdin only.[/yellow]"
        )
        urls = _read_urls_from_stdin()
    elif stdin:
        urls = _read_urls_from_stdin()
    elif not urls:
        console.print(
            "[red]✗ No URLs provided.[/red] "
            "Use: [cyan]media-downloader download <URL>[/cyan] or [cyan]--stdin[/cyan]"
        )
        raise typer.Exit(code=1)

    cli_options = {
        key: value
        for key, value in {
            "source_urls": urls,
            "video_format": video_format,
            "quality": quality,
            "audio_format": audio_format,
            "audio_quality": audio_quality,
            "download_subs": download_subs,
            "download_thumb": download_thumb,
            "embed_thumbnail": embed_thumbnail,
            "verify_audio": verify_audio,
            "output_dir": output_dir,
            "output_template": output_template,
        }.items()
        if value is not None
    }
    if audio:
        cli_options["download_type"] = "audio"
    if playlist:
        cli_options["noplaylist"] = False
    cli_options["dry_run"] = dry_run

    config = _load_config(cli_options)
    downloader = MediaDownloader()

    if not config.dry_run:
        deps_ok, deps_msg = downloader.check_dependencies()
        if not deps_ok:
            console.print(f"[red]{deps_msg}[/red]")
            raise typer.Exit(code=1)
        if downloader.ffmpeg_path() is None:
            log.warning(
                "[yellow]ffmpeg not found: merging and audio extraction will fail.[/]"
            )

    if config.dry_run:
        console.print("[bold cyan]🎬 Starting dry run session...[/bold cyan]")
    else:
        console.print("[bold cyan]🎬 Starting download session...[/bold cyan]")

    with ProgressManager(console=console, dry_run=config.dry_run) as progress_manager:
        session = DownloadSession(
            config, downloader, progress_manager, DownloadHistory(CONFIG_DIR)
        )
        try:
            stats = session.run()
        except MediaDownloaderError as e:
            console.print(format_error_with_suggestions(e))
            raise typer.Exit(code=1) from e

    print_summary_panel(stats, stats.elapsed)
    if stats.failed:
        raise typer.Exit(code=1)


@app.command()
def info(
    url: str = typer.Argument(..., help="The URL to inspect."),
    formats: bool = typer.Option(
        False, "--formats", "-F", help="Also list every available format."
    ),
):
    """Show information about a URL without downloading."""
    downloader = MediaDownloader()
    try:
        with console.status("Fetching media information..."):
            media_info = downloader.get_video_info(url)
    except MediaDownloaderError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e

    print_media_info(media_info)
    if formats:
        print_formats_table(media_info)


async def _check_connectivity(urls: tuple[str, ...]) -> dict[str, str | None]:
    """Maps each URL to None when reachable, or to an error description."""
    results: dict[str, str | None] = {}
    timeout = aiohttp.ClientTimeout(total=10)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        for url in urls:
            try:
                async with session.get(url) as resp:
                    results[url] = None if resp.status < 400 else f"HTTP {resp.status}"
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                results[url] = str(e) or type(e).__name__
    return results


@app.command()
def doctor(
    offline: bool = typer.Option(
        False, "--offline", help="Skip the network connectivity test."
    ),
):
    """Check dependencies, the desktop session and network access."""
    console.print("\n[bold cyan]Running diagnostics...[/bold cyan]\n")
    downloader = MediaDownloader()
    deps_ok, deps_msg = downloader.check_dependencies()
    print_system_report(
        downloader.system_info,
        deps_ok,
        deps_msg,
        downloader.backend_version() if deps_ok else None,
        downloader.ffmpeg_path(),
    )
    issues_found = not deps_ok

    if CONFIG_FILE.is_file():
        try:
            ConfigManager(CONFIG_FILE).load_config()
            console.print(
                f"[green]✓[/] Config file is valid: [dim]{CONFIG_FILE}[/dim]"
            )
        except ConfigurationError as e:
            console.print(f"[red]✗ Configuration validation failed: {e}[/red]")
            issues_found = True
    else:
        console.print("[dim]No config file, using defaults.[/dim]")

    if not offline:
        console.print("\n[dim]Testing connectivity...[/dim]")
        for url, error in asyncio.run(_check_connectivity(CONNECTIVITY_URLS)).items():
            if error is None:
                console.print(f"[green]✓[/] Reached {url}")
            else:
                console.print(f"[red]✗ Could not reach {url}: {error}[/red]")
                issues_found = True

    console.print()
    if not issues_found:
        console.print(
            "[bold green]✓ All checks passed! Your setup looks good.[/bold green]\n"
        )
    else:
        console.print(
            "[bold red]✗ Some issues were found. "
            "Please review the messages above.[/bold red]\n"
        )
        raise typer.Exit(code=1)


@app.command()
def init(
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration file."
    ),
):
    """Write a configuration file with the default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    try:
        ConfigManager(CONFIG_FILE).save_new_config()
    except ConfigurationError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(
        f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]"
    )
    console.print(
        "Ready to download! Try: [cyan]media-downloader download <URL>[/cyan]"
    )


@app.command()
def history(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of entries to show."),
    clear: bool = typer.Option(False, "--clear", help="Delete the download history."),
):
    """Show recent downloads."""
    download_history = DownloadHistory(CONFIG_DIR)
    if clear:
        if download_history.clear():
            console.print("[green]✓ Download history cleared.[/green]")
            return
        console.print("[red]✗ Failed to clear download history.[/red]")
        raise typer.Exit(code=1)
    print_history_table(download_history.recent(limit))


@app.command()
def interactive():
    """Answer prompts instead of passing options."""
    cli = DownloaderCLI(
        console=console, config=_load_config(), history=DownloadHistory(CONFIG_DIR)
    )
    code = cli.run()
    if code:
        raise typer.Exit(code=code)


@app.command()
def gui(
    url: str | None = typer.Argument(None, help="Prefill the URL field."),
):
    """Open the graphical interface."""
    from media_downloader.__main__ import gui_main

    code = gui_main([url] if url else [])
    if code:
        raise typer.Exit(code=code)


def _read_sources_file(path: Path) -> dict[str, list[FlatpakSource]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise SourceResolutionError(f"Could not read sources file {path}: {e}") from e
    return load_sources(data)


@app.command(name="scaffold")
def scaffold_command(
    target: Path = typer.Argument(  # noqa: B008
        ..., help="Directory to write the packaging files into."
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite existing files."),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="List the files without writing them."
    ),
    ytdlp_version: str | None = typer.Option(
        None, "--ytdlp-version", help="yt-dlp release to bundle (default: latest)."
    ),
    ytdlp_url: str | None = typer.Option(
        None, "--ytdlp-url", help="Explicit yt-dlp download URL for the Flatpak."
    ),
    ytdlp_sha256: str | None = typer.Option(
        None, "--ytdlp-sha256", help="sha256 of the file given with --ytdlp-url."
    ),
    offline: bool = typer.Option(
        False,
        "--offline",
        help="Never query PyPI; every runtime dependency needs a pinned source.",
    ),
    sources_file: Path | None = typer.Option(  # noqa: B008
        None,
        "--sources-file",
        help="Pinned Flatpak sources from a previous run (python-sources.json).",
    ),
    check: bool = typer.Option(
        True, "--check/--no-check", help="Validate the generated files afterwards."
    ),
):
    """Generate the desktop entry, AppStream, RPM and Flatpak files."""
    if bool(ytdlp_url) != bool(ytdlp_sha256):
        console.print(
            "[red]✗ --ytdlp-url and --ytdlp-sha256 must be given together.[/red]"
        )
        raise typer.Exit(code=1)

    try:
        source = (
            FlatpakSource(url=ytdlp_url, sha256=ytdlp_sha256) if ytdlp_url else None
        )
    except ValidationError as e:
        messages = "; ".join(err["msg"] for err in e.errors())
        console.print(f"[red]✗ Invalid yt-dlp source: {messages}[/red]")
        raise typer.Exit(code=1) from e

    meta = AppMetadata.default()
    try:
        options = ScaffoldOptions(
            force=force,
            dry_run=dry_run,
            offline=offline,
            ytdlp_version=ytdlp_version,
            ytdlp_source=source,
            sources=_read_sources_file(sources_file) if sources_file else None,
        )
        result = scaffold(target, meta, options)
        print_scaffold_report(result)
        if check and not dry_run:
            ensure_valid(result.target, meta)
            console.print("[green]✓ Generated files passed validation.[/green]")
    except MediaDownloaderError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e


@app.command(name="check-package")
def check_package(
    target: Path = typer.Argument(  # noqa: B008
        ..., help="Directory produced by the scaffold command."
    ),
    external: bool = typer.Option(
        False,
        "--external/--no-external",
        help="Also run desktop-file-validate and appstream-util when installed.",
    ),
):
    """Validate a generated packaging tree."""
    if not target.is_dir():
        console.print(f"[red]✗ '{target}' is not a directory.[/red]")
        raise typer.Exit(code=1)

    issues = validate_tree(target, AppMetadata.default(), external=external)
    print_validation_issues(target, issues)
    if any(issue.is_error for issue in issues):
        raise typer.Exit(code=1)
