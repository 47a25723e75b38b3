"""
Tests for the DownloadConfig model.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from media_downloader.models.config import (
    DEFAULT_SUBTITLE_LANGS,
    DownloadConfig,
    DownloadType,
    default_output_dir,
    resolve_quality,
)


def test_defaults(tmp_path: Path) -> None:
    """The defaults match the original application."""
    config = DownloadConfig(output_dir=str(tmp_path))
    assert config.download_type == DownloadType.VIDEO
    assert config.video_format == "mp4"
    assert config.quality == "1080p"
    assert config.audio_format == "mp3"
    assert config.audio_quality == "5"
    assert config.subtitle_langs == DEFAULT_SUBTITLE_LANGS
    assert config.noplaylist is True
    assert config.target_extension == "mp4"


def test_default_output_dir_honours_xdg() -> None:
    with patch.dict(os.environ, {"XDG_DOWNLOAD_DIR": "/data/dl"}):
        assert default_output_dir() == str(Path("/data/dl") / "Media Downloader")


def test_output_dir_is_expanded() -> None:
    config = DownloadConfig(output_dir="~/Videos")
    assert config.output_dir == str(Path("~/Videos").expanduser())


def test_formats_are_normalised(tmp_path: Path) -> None:
    config = DownloadConfig(output_dir=str(tmp_path), video_format=".MKV")
    assert config.video_format == "mkv"


@pytest.mark.parametrize(
    "field,value",
    [("video_format", "flv"), ("audio_format", "aac"), ("quality", "ultra")],
)
def test_unknown_choices_are_rejected(tmp_path: Path, field: str, value: str) -> None:
    with pytest.raises(ValidationError):
        DownloadConfig(output_dir=str(tmp_path), **{field: value})


def test_quality_presets_and_raw_selectors(tmp_path: Path) -> None:
    """The original 'worst[height>=1080]' default is accepted verbatim."""
    config = DownloadConfig(output_dir=str(tmp_path), quality="worst[height>=1080]")
    assert config.quality == "worst[height>=1080]"
    assert resolve_quality("1080p") == "best[height<=1080]"
    assert resolve_quality("bestvideo+bestaudio/best") == "bestvideo+bestaudio/best"


def test_audio_quality_forms(tmp_path: Path) -> None:
    assert DownloadConfig(output_dir=str(tmp_path), audio_quality=3).audio_quality == "3"
    assert (
        DownloadConfig(output_dir=str(tmp_path), audio_quality="192k").audio_quality
        == "192K"
    )
    with pytest.raises(ValidationError):
        DownloadConfig(output_dir=str(tmp_path), audio_quality="11")
    with pytest.raises(ValidationError):
        DownloadConfig(output_dir=str(tmp_path), audio_quality="high")


def test_subtitle_langs_from_string(tmp_path: Path) -> None:
    config = DownloadConfig(output_dir=str(tmp_path), subtitle_langs=" en, de ,")
    assert config.subtitle_langs == ["en", "de"]
    config = DownloadConfig(output_dir=str(tmp_path), subtitle_langs="")
    assert config.subtitle_langs == DEFAULT_SUBTITLE_LANGS


@pytest.mark.parametrize(
    "template",
    ["../%(title)s.%(ext)s", "/abs/%(title)s.%(ext)s", "%(ext)s", ""],
)
def test_bad_output_templates(tmp_path: Path, template: str) -> None:
    with pytest.raises(ValidationError):
        DownloadConfig(output_dir=str(tmp_path), output_template=template)


def test_nested_output_template(tmp_path: Path) -> None:
    template = "%(uploader)s/%(title)s [%(id)s].%(ext)s"
    config = DownloadConfig(output_dir=str(tmp_path), output_template=template)
    assert config.output_template == template


def test_embed_thumbnail_implies_download(tmp_path: Path) -> None:
    config = DownloadConfig(output_dir=str(tmp_path), embed_thumbnail=True)
    assert config.download_thumb is True


def test_audio_target_extension(tmp_path: Path) -> None:
    config = DownloadConfig(
        output_dir=str(tmp_path), download_type="audio", audio_format="opus"
    )
    assert config.is_audio
    assert config.target_extension == "opus"


def test_ini_keys_exclude_internal_fields() -> None:
    keys = DownloadConfig.get_ini_keys()
    assert "source_urls" not in keys
    assert "dry_run" not in keys
    assert {"quality", "output_dir", "verify_audio"} <= keys
