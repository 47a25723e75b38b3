"""
Tests for AppMetadata.
"""

import pytest
from pydantic import ValidationError

from media_downloader import __version__
from media_downloader.distribution.metadata import AppMetadata


def test_default_metadata() -> None:
    meta = AppMetadata.default()
    assert meta.app_id == "com.example.MediaDownloader"
    assert meta.version == __version__
    assert meta.releases[0].version == __version__
    assert meta.flatpak_python == "3.12"
    assert meta.desktop_file_name == "com.example.MediaDownloader.desktop"
    assert meta.metainfo_file_name == "com.example.MediaDownloader.metainfo.xml"
    assert meta.flatpak_manifest_name == "com.example.MediaDownloader.json"
    assert meta.rpm_spec_name == "media-downloader.spec"
    assert meta.developer_id == "com.example"
    assert meta.wheel_name == "media_downloader"


def test_binaries_and_entry_points() -> None:
    meta = AppMetadata.default()
    assert meta.gui_binary == "media-downloader-gui"
    assert meta.cli_binary == "media-downloader-cli"
    assert meta.entry_points == [
        ("media-downloader", "media_downloader.__main__:main"),
        ("media-downloader-gui", "media_downloader.__main__:gui_main"),
        ("media-downloader-cli", "media_downloader.__main__:cli_main"),
    ]


def test_release_follows_version_override() -> None:
    meta = AppMetadata.default(version="2.1.0")
    assert meta.releases[0].version == "2.1.0"


def test_single_binary_fallbacks() -> None:
    meta = AppMetadata(binaries=["media-downloader"])
    assert meta.gui_binary == "media-downloader"
    assert meta.cli_binary == "media-downloader"
    assert meta.releases == []


@pytest.mark.parametrize(
    "field,value",
    [
        ("app_id", "MediaDownloader"),
        ("app_id", "com.example"),
        ("version", "1.0-beta"),
        ("binaries", []),
    ],
)
def test_invalid_metadata(field: str, value) -> None:
    with pytest.raises(ValidationError):
        AppMetadata(**{field: value})


def test_metadata_is_frozen() -> None:
    meta = AppMetadata.default()
    with pytest.raises(ValidationError):
        meta.version = "9.9.9"
