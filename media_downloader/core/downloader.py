"""
Core media downloader functionality.

The MediaDownloader formats option dictionaries and forwards calls to yt-dlp.
All extraction, format negotiation and muxing is done by the library.
"""

import importlib
import importlib.util
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from media_downloader.core.options import ProgressHook, build_ydl_options
from media_downloader.exceptions import (
    ConfigurationError,
    DependencyMissingError,
    DownloadFailedError,
    MetadataError,
    OutputDirectoryError,
)
from media_downloader.models.config import DownloadConfig
from media_downloader.models.media import MediaInfo

log = logging.getLogger(__name__)

INSTALL_INSTRUCTIONS = """yt-dlp is not installed.

Installation options for Fedora:
1. Using DNF (recommended):
   sudo dnf install yt-dlp

2. Using pip (user installation):
   pip install --user yt-dlp

3. Using Flatpak (bundles yt-dlp):
   flatpak-builder --user --install build-dir com.example.MediaDownloader.json"""

FFMPEG_WARNING = (
    "Warning: ffmpeg was not found on PATH. Audio extraction and merging of "
    "separate video/audio streams will not work (sudo dnf install ffmpeg)."
)

# Keyword arguments accepted by the original download_media signature
_LEGACY_KWARGS = {
    "download_type",
    "video_format",
    "quality",
    "audio_format",
    "audio_quality",
    "download_subs",
    "download_thumb",
}


@dataclass(frozen=True)
class SystemInfo:
    session_type: str
    desktop: str
    home: str

    @property
    def has_display(self) -> bool:
        return bool(os.environ.get("DISPLAY") or os.environ.get("WAYLAND_DISPLAY"))


def _load_backend() -> Any:
    """Imports yt_dlp lazily so a missing install can be reported cleanly."""
    try:
        return importlib.import_module("yt_dlp")
    except ImportError as e:
        raise DependencyMissingError(INSTALL_INSTRUCTIONS) from e


class MediaDownloader:
    """Thin facade over yt_dlp.YoutubeDL for metadata queries and downloads."""

    def __init__(self):
        self.system_info = self.get_system_info()

    @staticmethod
    def get_system_info() -> SystemInfo:
        """Get Linux desktop session information."""
        return SystemInfo(
            session_type=os.environ.get("XDG_SESSION_TYPE") or "unknown",
            desktop=os.environ.get("XDG_CURRENT_DESKTOP") or "unknown",
            home=os.path.expanduser("~"),
        )

    @staticmethod
    def ffmpeg_path() -> str | None:
        return shutil.which("ffmpeg")

    def check_dependencies(self) -> tuple[bool, str]:
        """
        Checks that yt-dlp is importable.

        Returns:
            A (ok, message) tuple. When yt-dlp is missing the message holds
            installation instructions. A missing ffmpeg is reported as a
            warning without failing the check.
        """
        if importlib.util.find_spec("yt_dlp") is None:
            return False, INSTALL_INSTRUCTIONS

        message = "All dependencies found!"
        if self.ffmpeg_path() is None:
            message = f"{message}\n{FFMPEG_WARNING}"
        return True, message

    def backend_version(self) -> str | None:
        """The installed yt-dlp version, if any."""
        try:
            backend = _load_backend()
        except DependencyMissingError:
            return None
        return getattr(getattr(backend, "version", None), "__version__", None)

    def get_video_info(self, url: str) -> MediaInfo:
        """Get media information without downloading."""
        yt_dlp = _load_backend()
        ydl_opts = {"quiet": True, "no_warnings": True}
        try:
            with yt_dlp.YoutubeDL(ydl_opts) as ydl:
                info = ydl.extract_info(url, download=False)
        except Exception as e:
            raise MetadataError(f"Error getting video info: {e}") from e

        if not info:
            raise MetadataError(f"Error getting video info: no data returned for {url}")
        return MediaInfo.from_info_dict(info)

    def download_media(
        self,
        url: str,
        config: DownloadConfig | str | None = None,
        progress_callback: ProgressHook | None = None,
        **legacy_options: Any,
    ) -> tuple[bool, str]:
        """
        Download media with the specified options.

        `config` is either a DownloadConfig or, as in the original call
        signature, an output directory path combined with keyword options
        such as download_type='audio' or quality='720p'.

        Returns:
            A (success, message) tuple.

        Raises:
            OutputDirectoryError: If the output directory cannot be created.
            DependencyMissingError: If yt-dlp is not installed.
        """
        config = self._coerce_config(config, legacy_options)

        try:
            os.makedirs(config.output_dir, mode=0o755, exist_ok=True)
        except OSError as e:
            raise OutputDirectoryError(f"Error creating directory: {e}") from e

        hooks = [progress_callback] if progress_callback else None
        ydl_opts = build_ydl_options(config, progress_hooks=hooks)

        yt_dlp = _load_backend()
        log.debug(f"Starting download of {url} with format '{ydl_opts['format']}'")
        try:
            self._run_download(yt_dlp, url, ydl_opts)
        except DownloadFailedError as e:
            return False, str(e)
        return True, "Download completed successfully!"

    @staticmethod
    def _run_download(yt_dlp: Any, url: str, ydl_opts: dict[str, Any]) -> None:
        """
        Raises:
            DownloadFailedError: If yt-dlp raises or exits with an error code.
        """
        try:
            with yt_dlp.YoutubeDL(ydl_opts) as ydl:
                retcode = ydl.download([url])
        except Exception as e:
            log.debug("yt-dlp raised during download", exc_info=True)
            raise DownloadFailedError(f"Download failed: {e}") from e
        if retcode:
            raise DownloadFailedError(
                f"Download failed: yt-dlp exited with code {retcode}"
            )

    @staticmethod
    def _coerce_config(
        config: DownloadConfig | str | None, legacy_options: dict[str, Any]
    ) -> DownloadConfig:
        if isinstance(config, DownloadConfig) and not legacy_options:
            return config

        unknown = set(legacy_options) - _LEGACY_KWARGS - {"output_dir"}
        if unknown:
            raise TypeError(
                f"Unexpected download options: {', '.join(sorted(unknown))}"
            )

        values: dict[str, Any] = {}
        if isinstance(config, DownloadConfig):
            values = config.model_dump()
        elif isinstance(config, (str, Path)):
            values["output_dir"] = str(config)
        values.update(legacy_options)
        try:
            return DownloadConfig(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid download options:\n{e}") from e
