"""
Tests for the JSON Lines download history.
"""

import json
from pathlib import Path

from media_downloader.storage.history import DownloadHistory


def test_record_and_recent(tmp_path: Path) -> None:
    history = DownloadHistory(tmp_path / "nested")
    history.record("https://a", True, "ok")
    history.record("https://b", False, "Download failed: 404", "audio")

    entries = history.recent()
    assert [e["url"] for e in entries] == ["https://b", "https://a"]
    assert entries[0]["success"] is False
    assert entries[0]["type"] == "audio"
    assert isinstance(entries[0]["timestamp"], int)
    assert history.recent(limit=1)[0]["url"] == "https://b"


def test_missing_file_is_empty(tmp_path: Path) -> None:
    assert DownloadHistory(tmp_path).recent() == []


def test_malformed_lines_are_skipped(tmp_path: Path) -> None:
    history = DownloadHistory(tmp_path)
    history.history_file.write_text(
        json.dumps({"url": "https://a"}) + "\n{broken\n\n", encoding="utf-8"
    )
    assert [e["url"] for e in history.recent()] == ["https://a"]


def test_clear(tmp_path: Path) -> None:
    history = DownloadHistory(tmp_path)
    history.record("https://a", True, "ok")
    assert history.clear() is True
    assert history.recent() == []
    assert history.clear() is True


def test_write_errors_are_not_raised(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory", encoding="utf-8")
    history = DownloadHistory(blocker)
    history.record("https://a", True, "ok")
    assert history.recent() == []
