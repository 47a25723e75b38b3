"""
Main entry points for the media-downloader application.

`main` picks the GUI when a display and tkinter are available and the CLI
otherwise; `gui_main` and `cli_main` force one interface.
"""

import asyncio
import importlib.util
import logging
import os
import sys

import click
import typer
from rich.console import Console

from media_downloader import DIST_NAME
from media_downloader.cli.app import app
from media_downloader.cli.formatters import format_error_with_suggestions
from media_downloader.core.downloader import MediaDownloader
from media_downloader.exceptions import ConfigurationError, MediaDownloaderError
from media_downloader.models.config import DownloadConfig
from media_downloader.storage.config_manager import ConfigManager, get_config_dir
from media_downloader.storage.history import DownloadHistory

TKINTER_HINT = "Install tkinter: sudo dnf install python3-tkinter"


def _gui_available() -> bool:
    if importlib.util.find_spec("tkinter") is None:
        return False
    return MediaDownloader.get_system_info().has_display


def cli_main(args: list[str] | None = None) -> int:
    """Runs the Typer application and maps errors to exit codes."""
    if os.name == "nt":
        try:
            sys.stdout.reconfigure(encoding="utf-8")
            sys.stderr.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass

    log = logging.getLogger("media_downloader")
    console = Console()

    try:
        result = app(args=args, prog_name=DIST_NAME, standalone_mode=False)
    except (typer.Abort, KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]⚠️  Operation cancelled by user.[/yellow]")
        return 0
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except MediaDownloaderError as e:
        console.print(f"\n{format_error_with_suggestions(e)}")
        return 1
    except Exception as e:
        console.print(f"\n{format_error_with_suggestions(e, {'type': 'Unexpected'})}")
        log.debug("Full traceback:", exc_info=True)
        return 1
    return result if isinstance(result, int) else 0


def gui_main(args: list[str] | None = None) -> int:
    """Opens the Tk window, prefilled with the first URL passed by the desktop."""
    args = sys.argv[1:] if args is None else args
    urls = [a for a in args if a.startswith(("http://", "https://"))]

    try:
        import tkinter as tk
        from tkinter import messagebox

        from media_downloader.gui import DownloaderGUI
    except ImportError as e:
        print(f"GUI not available: {e}")
        print(TKINTER_HINT)
        return 1

    try:
        root = tk.Tk()
    except tk.TclError as e:
        print(f"GUI failed: {e}")
        return 1

    config_dir = get_config_dir()
    try:
        config = ConfigManager(config_dir / "config.ini").load_config()
    except ConfigurationError as e:
        messagebox.showwarning("Configuration Error", f"{e}\n\nUsing defaults.")
        config = DownloadConfig()

    window = DownloaderGUI(
        root,
        config=config,
        history=DownloadHistory(config_dir),
        initial_url=urls[0] if urls else "",
    )

    deps_ok, deps_msg = window.downloader.check_dependencies()
    if not deps_ok:
        messagebox.showerror("Dependencies Missing", deps_msg)
        root.destroy()
        return 1

    root.mainloop()
    return 0


def main(args: list[str] | None = None) -> int:
    """Auto-detects the best interface."""
    args = sys.argv[1:] if args is None else list(args)

    if args:
        return cli_main([a for a in args if a != "--cli"] if "--cli" in args else args)

    if _gui_available():
        return gui_main([])

    print("GUI not available, using CLI mode")
    return cli_main(["interactive"])


if __name__ == "__main__":
    sys.exit(main())
