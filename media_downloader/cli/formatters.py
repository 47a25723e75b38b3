"""
Functions for formatting and displaying data in the console using Rich.
"""

import time
from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from media_downloader.core.downloader import SystemInfo
from media_downloader.distribution.scaffold import ScaffoldResult
from media_downloader.distribution.validators import ERROR, WARNING, ValidationIssue
from media_downloader.models.media import MediaInfo
from media_downloader.models.stats import DownloadStats
from media_downloader.utils.formatting import format_count, format_duration, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "DependencyMissingError": [
            "• Install yt-dlp with `sudo dnf install yt-dlp`.",
            "• Or, for your user only: `pip install --user yt-dlp`.",
            "• Run `media-downloader doctor` to check your setup.",
        ],
        "MetadataError": [
            "• Check that the URL is correct and publicly reachable.",
            "• The site may have changed; update yt-dlp to the latest release.",
        ],
        "DownloadFailedError": [
            "• Try a lower quality with the -q flag.",
            "• Audio extraction and merging need ffmpeg on PATH.",
            "• Update yt-dlp, extractors break when sites change.",
        ],
        "OutputDirectoryError": [
            "• Check that the output directory is writable.",
            "• Choose another location with -o/--output-dir.",
        ],
        "ConfigurationError": [
            "• Fix the reported value in the configuration file.",
            "• Run `media-downloader init --force` to write a fresh configuration.",
        ],
        "ScaffoldError": [
            "• Make sure the target directory is writable.",
            "• Use --force to overwrite files from a previous run.",
        ],
        "SourceResolutionError": [
            "• PyPI could not be reached. Check your internet connection.",
            "• Pass --sources-file with the python-sources.json of an earlier run.",
        ],
        "PackageValidationError": [
            "• Regenerate the tree with `media-downloader scaffold --force`.",
            "• Run `media-downloader check-package` for the full report.",
        ],
        "ClientResponseError": [
            "• A network connection issue occurred.",
            "• Please try again in a few minutes.",
        ],
        "TimeoutError": [
            "• A request timed out, which may indicate network throttling.",
            "• Check your internet connection.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the effective configuration."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        if isinstance(value, list):
            value = ", ".join(value)
        content += f"{key} = {value}\n"

    source = str(config_path) if config_path.is_file() else "built-in defaults"
    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{source}[/dim])",
            border_style="cyan",
        )
    )


def print_media_info(info: MediaInfo):
    """Displays the metadata of a single URL."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Title:", info.title)
    table.add_row("Uploader:", info.uploader)
    table.add_row("Duration:", info.duration_display)
    table.add_row("Views:", format_count(info.view_count))
    table.add_row("Upload Date:", info.upload_date_display)
    if info.extractor:
        table.add_row("Site:", info.extractor)
    if heights := info.best_heights():
        table.add_row("Resolutions:", ", ".join(f"{h}p" for h in heights))
    table.add_row("Formats:", str(len(info.formats)))

    console.print(
        Panel(table, title="[bold]Media Information[/bold]", border_style="cyan")
    )


def print_formats_table(info: MediaInfo):
    """Lists every format the extractor reported."""
    console = Console()
    if not info.formats:
        console.print("[dim]No format information available.[/dim]")
        return

    table = Table(title="Available Formats", box=box.ROUNDED)
    table.add_column("ID", style="bold magenta", no_wrap=True)
    table.add_column("Ext")
    table.add_column("Resolution", justify="right")
    table.add_column("Type")
    table.add_column("Size", justify="right", style="green")
    table.add_column("Note", style="dim")

    for fmt in info.formats:
        if fmt.is_audio_only:
            kind = "audio only"
        elif fmt.is_video_only:
            kind = "video only"
        elif fmt.vcodec == "none":
            kind = "other"
        else:
            kind = "video+audio"
        table.add_row(
            fmt.format_id,
            fmt.ext,
            f"{fmt.height}p" if fmt.height else "-",
            kind,
            format_size(fmt.filesize) if fmt.filesize else "-",
            fmt.note,
        )
    console.print(table)


def print_summary_panel(stats: DownloadStats, duration_s: float):
    """Displays the final summary of the download session."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    if stats.dry_run:
        stats_table.add_row("○ Planned:", f"[yellow]{stats.skipped}[/yellow]")
    else:
        stats_table.add_row(
            "✓ Downloaded:", f"[bold green]{stats.downloaded}[/bold green]"
        )
        if stats.failed > 0:
            stats_table.add_row("✗ Failed:", f"[bold red]{stats.failed}[/bold red]")
        if stats.integrity_failures > 0:
            stats_table.add_row(
                "⚠ Corrupt Files:", f"[yellow]{stats.integrity_failures}[/yellow]"
            )

        stats_table.add_row("", "")
        stats_table.add_row(
            "Total Size:", f"[cyan]{format_size(stats.total_bytes)}[/cyan]"
        )
        avg_speed = stats.total_bytes / duration_s if duration_s > 0 else 0
        stats_table.add_row(
            "Avg. Speed:", f"[magenta]{format_size(int(avg_speed))}/s[/magenta]"
        )
        if stats.peak_speed_bps > 0:
            stats_table.add_row(
                "Peak Speed:",
                f"[magenta]{format_size(int(stats.peak_speed_bps))}/s[/magenta]",
            )

    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if stats.failed_urls:
        stats_table.add_row("", "")
        for url in stats.failed_urls:
            stats_table.add_row("[red]Failed URL:[/red]", f"[dim]{url}[/dim]")

    if stats.dry_run:
        title = "🔍 [bold]Dry Run Summary[/bold]"
        border_color = "yellow"
    elif stats.failed:
        title = "⚠ [bold]Download Finished With Errors[/bold]"
        border_color = "red"
    else:
        title = "🎬 [bold]Download Complete![/bold]"
        border_color = "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()


def print_system_report(
    system_info: SystemInfo,
    deps_ok: bool,
    deps_message: str,
    backend_version: str | None,
    ffmpeg_path: str | None,
):
    """Displays the dependency check and desktop session details."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row(
        "yt-dlp:",
        f"[green]✓ {backend_version or 'installed'}[/green]"
        if deps_ok
        else "[red]✗ missing[/red]",
    )
    table.add_row(
        "ffmpeg:",
        f"[green]✓ {ffmpeg_path}[/green]"
        if ffmpeg_path
        else "[yellow]✗ not found[/yellow]",
    )
    table.add_row("Session Type:", system_info.session_type)
    table.add_row("Desktop:", system_info.desktop)
    table.add_row("Display:", "available" if system_info.has_display else "none")
    table.add_row("Home:", f"[dim]{system_info.home}[/dim]")

    console.print(
        Panel(
            table,
            title="[bold]System Report[/bold]",
            border_style="green" if deps_ok else "red",
        )
    )
    if not deps_ok or ffmpeg_path is None:
        console.print(Text(deps_message, style="yellow" if deps_ok else "red"))


def print_history_table(entries: list[dict[str, Any]]):
    """Displays recent entries from the download history."""
    console = Console()
    if not entries:
        console.print("[dim]No downloads recorded yet.[/dim]")
        return

    table = Table(title="Download History", box=box.ROUNDED)
    table.add_column("When", style="dim", no_wrap=True)
    table.add_column("Type")
    table.add_column("", justify="center")
    table.add_column("URL", style="cyan", overflow="fold")
    table.add_column("Message", overflow="fold")

    for entry in entries:
        timestamp = entry.get("timestamp")
        when = (
            time.strftime("%Y-%m-%d %H:%M", time.localtime(timestamp))
            if isinstance(timestamp, (int, float))
            else "?"
        )
        table.add_row(
            when,
            str(entry.get("type", "?")),
            "[green]✓[/green]" if entry.get("success") else "[red]✗[/red]",
            str(entry.get("url", "")),
            str(entry.get("message", "")),
        )
    console.print(table)


def print_scaffold_report(result: ScaffoldResult):
    """Lists the files the scaffolder wrote or left alone."""
    console = Console()
    verb = "Would write" if result.dry_run else "Wrote"

    for path in result.written:
        console.print(f"[green]✓[/green] {verb} [dim]{_relative(path, result)}[/dim]")
    for path in result.skipped:
        name = _relative(path, result)
        console.print(f"[yellow]○[/yellow] Skipped existing [dim]{name}[/dim]")

    summary = f"{len(result.written)} file(s) {verb.lower()}"
    if result.skipped:
        summary += f", {len(result.skipped)} skipped (use --force to overwrite)"
    console.print(f"\n[bold]{summary}[/bold] in [cyan]{result.target}[/cyan]")


def _relative(path: Path, result: ScaffoldResult) -> str:
    try:
        return str(path.relative_to(result.target))
    except ValueError:
        return str(path)


def print_validation_issues(target: Path, issues: list[ValidationIssue]):
    """Displays the result of validating a generated package tree."""
    console = Console()
    styles = {ERROR: "bold red", WARNING: "yellow"}

    if issues:
        table = Table(title=f"Package Check: {target}", box=box.ROUNDED)
        table.add_column("Severity", no_wrap=True)
        table.add_column("Artifact", style="cyan")
        table.add_column("Message", overflow="fold")
        for issue in issues:
            style = styles.get(issue.severity, "dim")
            table.add_row(
                f"[{style}]{issue.severity}[/{style}]", issue.artifact, issue.message
            )
        console.print(table)

    errors = sum(1 for i in issues if i.is_error)
    if errors:
        console.print(f"[bold red]✗ {errors} error(s) found.[/bold red]")
    else:
        console.print("[bold green]✓ Package tree is valid.[/bold green]")
