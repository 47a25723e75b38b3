"""
An append-only JSON Lines log of past downloads.
"""

import json
import logging
import time
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)


class DownloadHistory:
    """Records one line per attempted download in `history.jsonl`."""

    FILE_NAME = "history.jsonl"

    def __init__(self, config_dir_path: Path):
        self.history_file = config_dir_path / self.FILE_NAME

    def record(
        self, url: str, success: bool, message: str, download_type: str = "video"
    ) -> None:
        """Appends an entry. Failing to write the history never fails a download."""
        entry = {
            "timestamp": int(time.time()),
            "url": url,
            "type": download_type,
            "success": success,
            "message": message,
        }
        try:
            self.history_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.history_file, "a", encoding="utf-8") as f:
                json.dump(entry, f)
                f.write("\n")
        except OSError as e:
            log.warning(f"[yellow]Could not save download history:[/] {e}")

    def recent(self, limit: int = 20) -> list[dict[str, Any]]:
        """Returns up to `limit` entries, newest first."""
        if not self.history_file.is_file():
            return []
        entries = []
        try:
            with open(self.history_file, encoding="utf-8") as f:
                for line_no, line in enumerate(f, 1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(json.loads(line))
                    except json.JSONDecodeError:
                        log.debug(f"Skipping malformed history line {line_no}")
        except OSError as e:
            log.warning(f"Could not read download history: {e}")
            return []
        entries.reverse()
        return entries[:limit] if limit > 0 else entries

    def clear(self) -> bool:
        """Removes all history entries."""
        try:
            self.history_file.unlink(missing_ok=True)
            return True
        except OSError as e:
            log.error(f"Failed to clear history: {e}")
            return False
