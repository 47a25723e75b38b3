"""
The Tk desktop front end.

Metadata queries and downloads run on a worker thread. The worker never
touches widgets: it posts events to a queue that the Tk main loop drains
with `root.after`.
"""

import logging
import queue
import threading
import tkinter as tk
from tkinter import filedialog, messagebox, scrolledtext, ttk
from typing import Any

from pydantic import ValidationError

from media_downloader import APP_NAME, __version__
from media_downloader.core.downloader import MediaDownloader
from media_downloader.core.progress import ProgressUpdate
from media_downloader.exceptions import ConfigurationError, MediaDownloaderError
from media_downloader.models.config import (
    AUDIO_FORMATS,
    QUALITY_PRESETS,
    VIDEO_FORMATS,
    DownloadConfig,
    DownloadType,
)
from media_downloader.models.media import MediaInfo
from media_downloader.storage.history import DownloadHistory
from media_downloader.utils.formatting import format_count

log = logging.getLogger(__name__)

POLL_INTERVAL_MS = 100
AUDIO_QUALITIES = ["0", "2", "5", "7", "9", "320K", "256K", "192K", "128K"]


class DownloaderGUI:
    """Form-style main window: URL, options, actions, progress and a log."""

    def __init__(
        self,
        root: tk.Tk,
        downloader: MediaDownloader | None = None,
        config: DownloadConfig | None = None,
        history: DownloadHistory | None = None,
        initial_url: str = "",
    ):
        self.root = root
        self.downloader = downloader or MediaDownloader()
        self.config = config or DownloadConfig()
        self.history = history
        self.events: queue.Queue[tuple[str, Any]] = queue.Queue()
        self.worker: threading.Thread | None = None

        self.root.title(f"{APP_NAME} {__version__}")
        self.root.minsize(620, 520)

        self.url_var = tk.StringVar(value=initial_url)
        self.type_var = tk.StringVar(value=self.config.download_type.value)
        self.video_format_var = tk.StringVar(value=self.config.video_format)
        self.quality_var = tk.StringVar(value=self.config.quality)
        self.audio_format_var = tk.StringVar(value=self.config.audio_format)
        self.audio_quality_var = tk.StringVar(value=self.config.audio_quality)
        self.subs_var = tk.BooleanVar(value=self.config.download_subs)
        self.thumb_var = tk.BooleanVar(value=self.config.download_thumb)
        self.output_var = tk.StringVar(value=self.config.output_dir)
        self.status_var = tk.StringVar(value="Ready")
        self.progress_var = tk.DoubleVar(value=0.0)

        self._build_widgets()
        self._on_type_change()
        self.root.after(POLL_INTERVAL_MS, self._poll_events)

    def _build_widgets(self) -> None:
        main = ttk.Frame(self.root, padding=12)
        main.grid(row=0, column=0, sticky="nsew")
        self.root.columnconfigure(0, weight=1)
        self.root.rowconfigure(0, weight=1)
        main.columnconfigure(1, weight=1)

        ttk.Label(main, text="URL:").grid(row=0, column=0, sticky="w", pady=4)
        url_entry = ttk.Entry(main, textvariable=self.url_var)
        url_entry.grid(row=0, column=1, columnspan=2, sticky="ew", pady=4)
        url_entry.focus_set()

        type_frame = ttk.Frame(main)
        type_frame.grid(row=1, column=1, columnspan=2, sticky="w", pady=4)
        ttk.Label(main, text="Download:").grid(row=1, column=0, sticky="w")
        for label, value in (("Video", "video"), ("Audio only", "audio")):
            ttk.Radiobutton(
                type_frame,
                text=label,
                value=value,
                variable=self.type_var,
                command=self._on_type_change,
            ).pack(side="left", padx=(0, 12))

        options = ttk.LabelFrame(main, text="Options", padding=8)
        options.grid(row=2, column=0, columnspan=3, sticky="ew", pady=6)
        options.columnconfigure(1, weight=1)
        options.columnconfigure(3, weight=1)

        ttk.Label(options, text="Video format:").grid(row=0, column=0, sticky="w")
        self.video_format_box = ttk.Combobox(
            options,
            textvariable=self.video_format_var,
            values=list(VIDEO_FORMATS),
            state="readonly",
            width=8,
        )
        self.video_format_box.grid(row=0, column=1, sticky="w", padx=4, pady=2)

        ttk.Label(options, text="Quality:").grid(row=0, column=2, sticky="w")
        self.quality_box = ttk.Combobox(
            options,
            textvariable=self.quality_var,
            values=list(QUALITY_PRESETS),
            width=10,
        )
        self.quality_box.grid(row=0, column=3, sticky="w", padx=4, pady=2)

        ttk.Label(options, text="Audio format:").grid(row=1, column=0, sticky="w")
        self.audio_format_box = ttk.Combobox(
            options,
            textvariable=self.audio_format_var,
            values=list(AUDIO_FORMATS),
            state="readonly",
            width=8,
        )
        self.audio_format_box.grid(row=1, column=1, sticky="w", padx=4, pady=2)

        ttk.Label(options, text="Audio quality:").grid(row=1, column=2, sticky="w")
        self.audio_quality_box = ttk.Combobox(
            options,
            textvariable=self.audio_quality_var,
            values=AUDIO_QUALITIES,
            width=10,
        )
        self.audio_quality_box.grid(row=1, column=3, sticky="w", padx=4, pady=2)

        ttk.Checkbutton(options, text="Subtitles", variable=self.subs_var).grid(
            row=2, column=0, columnspan=2, sticky="w", pady=2
        )
        ttk.Checkbutton(options, text="Thumbnail", variable=self.thumb_var).grid(
            row=2, column=2, columnspan=2, sticky="w", pady=2
        )

        ttk.Label(main, text="Save to:").grid(row=3, column=0, sticky="w", pady=4)
        ttk.Entry(main, textvariable=self.output_var).grid(
            row=3, column=1, sticky="ew", pady=4
        )
        ttk.Button(main, text="Browse...", command=self._browse).grid(
            row=3, column=2, sticky="e", padx=(4, 0)
        )

        buttons = ttk.Frame(main)
        buttons.grid(row=4, column=0, columnspan=3, pady=8)
        self.info_button = ttk.Button(buttons, text="Get Info", command=self.get_info)
        self.info_button.pack(side="left", padx=4)
        self.download_button = ttk.Button(
            buttons, text="Download", command=self.start_download
        )
        self.download_button.pack(side="left", padx=4)

        self.progress_bar = ttk.Progressbar(
            main, variable=self.progress_var, maximum=100, mode="determinate"
        )
        self.progress_bar.grid(row=5, column=0, columnspan=3, sticky="ew")
        ttk.Label(main, textvariable=self.status_var).grid(
            row=6, column=0, columnspan=3, sticky="w", pady=(2, 6)
        )

        self.log_text = scrolledtext.ScrolledText(main, height=10, state="disabled")
        self.log_text.grid(row=7, column=0, columnspan=3, sticky="nsew")
        main.rowconfigure(7, weight=1)

    def _on_type_change(self) -> None:
        audio = self.type_var.get() == DownloadType.AUDIO.value
        self.video_format_box.configure(state="disabled" if audio else "readonly")
        self.quality_box.configure(state="disabled" if audio else "normal")
        self.audio_format_box.configure(state="readonly" if audio else "disabled")
        self.audio_quality_box.configure(state="normal" if audio else "disabled")

    def _browse(self) -> None:
        directory = filedialog.askdirectory(initialdir=self.output_var.get())
        if directory:
            self.output_var.set(directory)

    def log(self, message: str) -> None:
        self.log_text.configure(state="normal")
        self.log_text.insert("end", message + "\n")
        self.log_text.see("end")
        self.log_text.configure(state="disabled")

    def collect_config(self) -> DownloadConfig:
        """The form values as a validated DownloadConfig."""
        values = self.config.model_dump()
        values.update(
            download_type=self.type_var.get(),
            video_format=self.video_format_var.get(),
            quality=self.quality_var.get(),
            audio_format=self.audio_format_var.get(),
            audio_quality=self.audio_quality_var.get(),
            download_subs=self.subs_var.get(),
            download_thumb=self.thumb_var.get(),
            output_dir=self.output_var.get(),
        )
        try:
            return DownloadConfig(**values)
        except ValidationError as e:
            messages = "; ".join(err["msg"] for err in e.errors())
            raise ConfigurationError(messages) from e

    def _get_url(self) -> str | None:
        url = self.url_var.get().strip()
        if not url:
            messagebox.showwarning(APP_NAME, "Please enter a URL.")
            return None
        return url

    @property
    def busy(self) -> bool:
        return self.worker is not None and self.worker.is_alive()

    def _start_worker(self, target, *args) -> None:
        self._set_busy(True)
        self.worker = threading.Thread(target=target, args=args, daemon=True)
        self.worker.start()

    def _set_busy(self, busy: bool) -> None:
        state = "disabled" if busy else "normal"
        self.info_button.configure(state=state)
        self.download_button.configure(state=state)

    def get_info(self) -> None:
        if self.busy or (url := self._get_url()) is None:
            return
        self.status_var.set("Fetching information...")
        self._start_worker(self._info_worker, url)

    def start_download(self) -> None:
        if self.busy or (url := self._get_url()) is None:
            return
        try:
            config = self.collect_config()
        except ConfigurationError as e:
            messagebox.showerror(APP_NAME, f"Invalid options: {e}")
            return
        self.progress_var.set(0)
        self.status_var.set("Starting download...")
        self.log(f"Downloading {url} as {config.target_extension}")
        self._start_worker(self._download_worker, url, config)

    # Worker thread side

    def _info_worker(self, url: str) -> None:
        try:
            self.events.put(("info", self.downloader.get_video_info(url)))
        except MediaDownloaderError as e:
            self.events.put(("error", str(e)))
        finally:
            self.events.put(("done", None))

    def _run_download(self, url: str, config: DownloadConfig) -> tuple[bool, str]:
        try:
            return self.downloader.download_media(
                url, config, progress_callback=self._progress_hook
            )
        except MediaDownloaderError as e:
            log.debug("Download raised", exc_info=True)
            return False, str(e)

    def _download_worker(self, url: str, config: DownloadConfig) -> None:
        try:
            success, message = self._run_download(url, config)
            if self.history:
                self.history.record(url, success, message, config.download_type.value)
            self.events.put(("result", (success, message)))
        finally:
            self.events.put(("done", None))

    def _progress_hook(self, d: dict[str, Any]) -> None:
        self.events.put(("progress", ProgressUpdate.from_hook(d)))

    # Main loop side

    def _poll_events(self) -> None:
        while True:
            try:
                kind, payload = self.events.get_nowait()
            except queue.Empty:
                break
            self.handle_event(kind, payload)
        self.root.after(POLL_INTERVAL_MS, self._poll_events)

    def handle_event(self, kind: str, payload: Any) -> None:
        if kind == "progress":
            update: ProgressUpdate = payload
            if update.percent is not None:
                self.progress_var.set(update.percent)
            if update.status == "finished":
                self.progress_var.set(100)
                self.log(update.describe())
            self.status_var.set(update.describe())
        elif kind == "info":
            self._show_info(payload)
        elif kind == "result":
            success, message = payload
            self.status_var.set(message)
            self.log(("✓ " if success else "✗ ") + message)
            if success:
                self.progress_var.set(100)
            else:
                messagebox.showerror(APP_NAME, message)
        elif kind == "error":
            self.status_var.set("Error")
            self.log(f"✗ {payload}")
            messagebox.showerror(APP_NAME, payload)
        elif kind == "done":
            self._set_busy(False)

    def _show_info(self, info: MediaInfo) -> None:
        self.status_var.set("Ready")
        lines = [
            f"Title: {info.title}",
            f"Uploader: {info.uploader}",
            f"Duration: {info.duration_display}",
            f"Views: {format_count(info.view_count)}",
            f"Upload date: {info.upload_date_display}",
        ]
        if heights := info.best_heights():
            lines.append("Resolutions: " + ", ".join(f"{h}p" for h in heights))
        for line in lines:
            self.log(line)
