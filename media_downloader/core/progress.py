"""
Normalises the progress dictionaries yt-dlp passes to its progress hooks.
"""

import os
from dataclasses import dataclass
from typing import Any

from media_downloader.utils.formatting import format_duration, format_size


@dataclass(frozen=True)
class ProgressUpdate:
    """A typed view over one yt-dlp progress hook call."""

    status: str
    filename: str = ""
    downloaded_bytes: int = 0
    total_bytes: int | None = None
    speed: float | None = None
    eta: int | None = None

    @classmethod
    def from_hook(cls, d: dict[str, Any]) -> "ProgressUpdate":
        total = d.get("total_bytes") or d.get("total_bytes_estimate")
        return cls(
            status=d.get("status", "unknown"),
            filename=d.get("filename") or d.get("tmpfilename") or "",
            downloaded_bytes=int(d.get("downloaded_bytes") or 0),
            total_bytes=int(total) if total else None,
            speed=d.get("speed"),
            eta=d.get("eta"),
        )

    @property
    def percent(self) -> float | None:
        if not self.total_bytes:
            return None
        return min(100.0, self.downloaded_bytes / self.total_bytes * 100)

    @property
    def basename(self) -> str:
        return os.path.basename(self.filename)

    def describe(self) -> str:
        """A one-line human-readable status, shared by the CLI and the GUI."""
        if self.status == "finished":
            return f"Downloaded {self.basename or 'file'}, post-processing..."
        if self.status == "error":
            return f"Error while downloading {self.basename or 'file'}"

        parts = []
        if self.percent is not None:
            parts.append(f"{self.percent:.1f}%")
        if self.total_bytes:
            parts.append(
                f"{format_size(self.downloaded_bytes)} / {format_size(self.total_bytes)}"
            )
        else:
            parts.append(format_size(self.downloaded_bytes))
        if self.speed:
            parts.append(f"{format_size(int(self.speed))}/s")
        if self.eta is not None:
            parts.append(f"ETA {format_duration(self.eta)}")
        return "Downloading: " + " | ".join(parts)
