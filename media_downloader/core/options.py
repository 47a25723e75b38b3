"""
Translates a DownloadConfig into the option dictionary understood by yt_dlp.YoutubeDL.
"""

import os
from collections.abc import Callable, Sequence
from typing import Any

from media_downloader.models.config import (
    MERGEABLE_FORMATS,
    DownloadConfig,
    resolve_quality,
)

ProgressHook = Callable[[dict[str, Any]], None]


def build_format_selector(config: DownloadConfig) -> str:
    """
    Prefers the requested container at the requested quality, then any
    container at that quality, then the best available stream.
    """
    if config.is_audio:
        return "bestaudio/best"
    quality = resolve_quality(config.quality)
    fmt = config.video_format
    return f"{quality}[ext={fmt}]/best[ext={fmt}]/{quality}/best"


def build_ydl_options(
    config: DownloadConfig,
    progress_hooks: Sequence[ProgressHook] | None = None,
    quiet: bool = True,
) -> dict[str, Any]:
    """Builds the YoutubeDL parameters for a single download."""
    opts: dict[str, Any] = {
        "format": build_format_selector(config),
        "outtmpl": os.path.join(config.output_dir, config.output_template),
        "noplaylist": config.noplaylist,
        "quiet": quiet,
        "no_warnings": quiet,
        "noprogress": quiet,
        # Keep the download time as mtime so session output can be found again
        "updatetime": False,
    }
    postprocessors: list[dict[str, Any]] = []

    if config.is_audio:
        postprocessors.append(
            {
                "key": "FFmpegExtractAudio",
                "preferredcodec": config.audio_format,
                "preferredquality": config.audio_quality,
            }
        )
    elif config.video_format in MERGEABLE_FORMATS:
        opts["merge_output_format"] = config.video_format

    if config.download_subs:
        opts["writesubtitles"] = True
        opts["writeautomaticsub"] = True
        opts["subtitleslangs"] = list(config.subtitle_langs)

    if config.download_thumb:
        opts["writethumbnail"] = True
        if config.embed_thumbnail:
            postprocessors.append({"key": "EmbedThumbnail"})

    if postprocessors:
        opts["postprocessors"] = postprocessors

    if progress_hooks:
        opts["progress_hooks"] = list(progress_hooks)

    return opts
