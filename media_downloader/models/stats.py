"""
Dataclass for tracking download session statistics.
"""

import time
from dataclasses import dataclass, field

from media_downloader.core.progress import ProgressUpdate


@dataclass
class DownloadStats:
    """Tracks statistics for a download session, including peak speed."""

    downloaded: int = 0
    failed: int = 0
    skipped: int = 0
    integrity_failures: int = 0
    total_bytes: int = 0
    peak_speed_bps: float = 0.0
    dry_run: bool = False
    failed_urls: list[str] = field(default_factory=list)
    _start: float = field(default_factory=time.monotonic, repr=False)

    def record(self, update: ProgressUpdate) -> None:
        """Consumes a progress update from the extraction library."""
        if update.speed:
            self.peak_speed_bps = max(self.peak_speed_bps, update.speed)
        if update.status == "finished":
            self.total_bytes += update.total_bytes or update.downloaded_bytes or 0

    def record_result(self, url: str, success: bool) -> None:
        if success:
            self.downloaded += 1
        else:
            self.failed += 1
            self.failed_urls.append(url)

    @property
    def processed(self) -> int:
        return self.downloaded + self.failed + self.skipped

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._start
