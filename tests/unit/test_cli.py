"""
Tests for the Typer command-line interface.
"""

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest
from typer.testing import CliRunner

import media_downloader.cli.app as cli_module
from media_downloader.cli.app import app
from media_downloader.core.downloader import SystemInfo
from media_downloader.distribution.pypi import dump_sources
from media_downloader.exceptions import MetadataError
from media_downloader.models.media import FormatInfo, MediaInfo
from media_downloader.storage.history import DownloadHistory

runner = CliRunner()

SHA = "a" * 64
YTDLP_URL = "https://files.pythonhosted.org/packages/yt_dlp-2024.8.6-py3-none-any.whl"


@pytest.fixture(autouse=True)
def config_dir(monkeypatch, tmp_path: Path) -> Path:
    """Points the CLI at a throwaway configuration directory."""
    directory = tmp_path / "config"
    monkeypatch.setattr(cli_module, "CONFIG_DIR", directory)
    monkeypatch.setattr(cli_module, "CONFIG_FILE", directory / "config.ini")
    return directory


@pytest.fixture
def downloader():
    with patch("media_downloader.cli.app.MediaDownloader") as factory:
        instance = factory.return_value
        instance.check_dependencies.return_value = (True, "All dependencies found!")
        instance.ffmpeg_path.return_value = "/usr/bin/ffmpeg"
        instance.backend_version.return_value = "2024.08.06"
        instance.system_info = SystemInfo("wayland", "GNOME", "/home/user")
        instance.download_media.return_value = (
            True,
            "Download completed successfully!",
        )
        yield instance


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "media-downloader version 1.0.0" in result.stdout


def test_show_config_defaults() -> None:
    result = runner.invoke(app, ["--show-config"])
    assert result.exit_code == 0
    assert "built-in defaults" in result.stdout
    assert "quality = 1080p" in result.stdout


def test_download_without_urls() -> None:
    result = runner.invoke(app, ["download"])
    assert result.exit_code == 1
    assert "No URLs provided" in result.stdout


def test_download_success(downloader, config_dir: Path, tmp_path: Path) -> None:
    result = runner.invoke(
        app, ["download", "https://example.com/v", "-o", str(tmp_path), "-q", "720p"]
    )
    assert result.exit_code == 0, result.stdout
    assert "Download Complete!" in result.stdout

    config = downloader.download_media.call_args.args[1]
    assert config.quality == "720p"
    assert config.output_dir == str(tmp_path)
    assert DownloadHistory(config_dir).recent()[0]["success"] is True


def test_download_audio_options(downloader, tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        [
            "download",
            "https://example.com/v",
            "--audio",
            "--audio-format",
            "flac",
            "--playlist",
            "-o",
            str(tmp_path),
        ],
    )
    assert result.exit_code == 0, result.stdout
    config = downloader.download_media.call_args.args[1]
    assert config.is_audio
    assert config.audio_format == "flac"
    assert config.noplaylist is False


def test_download_failure_exit_code(downloader, tmp_path: Path) -> None:
    downloader.download_media.return_value = (False, "Download failed: 404")
    result = runner.invoke(app, ["download", "https://example.com/v", "-o", str(tmp_path)])
    assert result.exit_code == 1
    assert "Download Finished With Errors" in result.stdout


def test_download_missing_dependencies(downloader, tmp_path: Path) -> None:
    downloader.check_dependencies.return_value = (False, "yt-dlp is not installed.")
    result = runner.invoke(app, ["download", "https://example.com/v", "-o", str(tmp_path)])
    assert result.exit_code == 1
    assert "yt-dlp is not installed." in result.stdout
    downloader.download_media.assert_not_called()


def test_download_invalid_option(downloader, tmp_path: Path) -> None:
    result = runner.invoke(
        app, ["download", "https://example.com/v", "-f", "flv", "-o", str(tmp_path)]
    )
    assert result.exit_code == 1
    assert "Error:" in result.stdout


def test_download_dry_run_from_stdin(downloader, tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        ["download", "--stdin", "--dry-run", "-o", str(tmp_path)],
        input="https://example.com/a\n# comment\nhttps://example.com/b\n",
    )
    assert result.exit_code == 0, result.stdout
    assert "Read 2 URLs from stdin" in result.stdout
    assert "Dry Run Summary" in result.stdout
    downloader.check_dependencies.assert_not_called()
    downloader.download_media.assert_not_called()


def test_info(downloader) -> None:
    downloader.get_video_info.return_value = MediaInfo(
        title="Clip",
        formats=[FormatInfo(format_id="22", ext="mp4", height=720, vcodec="avc1")],
    )
    result = runner.invoke(app, ["info", "https://example.com/v", "--formats"])
    assert result.exit_code == 0
    assert "Clip" in result.stdout
    assert "Available Formats" in result.stdout


def test_info_error(downloader) -> None:
    downloader.get_video_info.side_effect = MetadataError("Error getting video info: 404")
    result = runner.invoke(app, ["info", "https://example.com/v"])
    assert result.exit_code == 1
    assert "An Error Occurred" in result.stdout


def test_init_and_overwrite_prompt(config_dir: Path) -> None:
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0
    assert (config_dir / "config.ini").is_file()

    result = runner.invoke(app, ["init"], input="n\n")
    assert result.exit_code == 1

    result = runner.invoke(app, ["init", "--force"])
    assert result.exit_code == 0


def test_history(config_dir: Path) -> None:
    result = runner.invoke(app, ["history"])
    assert "No downloads recorded yet." in result.stdout

    DownloadHistory(config_dir).record("https://example.com/v", True, "ok")
    result = runner.invoke(app, ["history", "-n", "5"])
    assert result.exit_code == 0
    assert "Download History" in result.stdout

    result = runner.invoke(app, ["history", "--clear"])
    assert "Download history cleared." in result.stdout
    assert DownloadHistory(config_dir).recent() == []


def test_doctor_offline(downloader) -> None:
    result = runner.invoke(app, ["doctor", "--offline"])
    assert result.exit_code == 0, result.stdout
    assert "System Report" in result.stdout
    assert "All checks passed!" in result.stdout


def test_doctor_reports_unreachable_hosts(downloader) -> None:
    check = AsyncMock(
        return_value={"https://www.youtube.com": None, "https://pypi.org": "HTTP 503"}
    )
    with patch("media_downloader.cli.app._check_connectivity", check):
        result = runner.invoke(app, ["doctor"])
    assert result.exit_code == 1
    assert "Could not reach https://pypi.org: HTTP 503" in result.stdout


def test_doctor_missing_dependencies(downloader) -> None:
    downloader.check_dependencies.return_value = (False, "yt-dlp is not installed.")
    result = runner.invoke(app, ["doctor", "--offline"])
    assert result.exit_code == 1
    downloader.backend_version.assert_not_called()


def test_interactive_command() -> None:
    with patch("media_downloader.cli.app.DownloaderCLI") as factory:
        factory.return_value.run.return_value = 0
        result = runner.invoke(app, ["interactive"])
    assert result.exit_code == 0
    factory.return_value.run.assert_called_once_with()


def test_gui_command() -> None:
    with patch("media_downloader.__main__.gui_main", return_value=1) as gui_main:
        result = runner.invoke(app, ["gui", "https://example.com/v"])
    assert result.exit_code == 1
    gui_main.assert_called_once_with(["https://example.com/v"])


@pytest.fixture
def sources_file(tmp_path: Path, flatpak_sources) -> Path:
    path = tmp_path / "python-sources.json"
    path.write_text(json.dumps(dump_sources(flatpak_sources)), encoding="utf-8")
    return path


def test_scaffold_and_check(tmp_path: Path, sources_file: Path) -> None:
    target = tmp_path / "dist"
    result = runner.invoke(
        app,
        ["scaffold", str(target), "--offline", "--sources-file", str(sources_file)],
    )
    assert result.exit_code == 0, result.stdout
    assert "Generated files passed validation." in result.stdout
    assert (target / "com.example.MediaDownloader.json").is_file()
    assert (target / "src" / "media_downloader" / "__main__.py").is_file()

    result = runner.invoke(app, ["check-package", str(target)])
    assert result.exit_code == 0
    assert "Package tree is valid." in result.stdout


def test_scaffold_offline_without_source(tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        [
            "scaffold",
            str(tmp_path / "dist"),
            "--offline",
            "--ytdlp-url",
            YTDLP_URL,
            "--ytdlp-sha256",
            SHA,
        ],
    )
    assert result.exit_code == 1
    assert "Offline mode" in result.stdout


def test_scaffold_unreadable_sources_file(tmp_path: Path) -> None:
    broken = tmp_path / "sources.json"
    broken.write_text("{not json", encoding="utf-8")
    result = runner.invoke(
        app, ["scaffold", str(tmp_path / "dist"), "--sources-file", str(broken)]
    )
    assert result.exit_code == 1
    assert "Could not read sources file" in result.stdout


def test_scaffold_source_arguments(tmp_path: Path) -> None:
    result = runner.invoke(app, ["scaffold", str(tmp_path), "--ytdlp-url", YTDLP_URL])
    assert result.exit_code == 1
    assert "must be given together" in result.stdout

    result = runner.invoke(
        app,
        ["scaffold", str(tmp_path), "--ytdlp-url", YTDLP_URL, "--ytdlp-sha256", "x"],
    )
    assert result.exit_code == 1
    assert "Invalid yt-dlp source" in result.stdout


def test_scaffold_dry_run(tmp_path: Path, sources_file: Path) -> None:
    target = tmp_path / "dist"
    result = runner.invoke(
        app,
        ["scaffold", str(target), "--dry-run", "--sources-file", str(sources_file)],
    )
    assert result.exit_code == 0
    assert "Would write" in result.stdout
    assert not target.exists()


def test_check_package_errors(tmp_path: Path) -> None:
    result = runner.invoke(app, ["check-package", str(tmp_path)])
    assert result.exit_code == 1
    assert "error(s) found" in result.stdout

    result = runner.invoke(app, ["check-package", str(tmp_path / "missing")])
    assert result.exit_code == 1
    assert "is not a directory" in result.stdout


def test_check_package_passes_external_flag(tmp_path: Path) -> None:
    with patch(
        "media_downloader.cli.app.validate_tree", return_value=[]
    ) as validate:
        result = runner.invoke(app, ["check-package", str(tmp_path), "--external"])
    assert result.exit_code == 0
    assert validate.call_args.kwargs["external"] is True


def test_check_connectivity() -> None:
    ok = MagicMock(status=200)
    session = MagicMock()
    session.get.return_value.__aenter__.side_effect = [
        ok,
        aiohttp.ClientConnectionError("refused"),
    ]
    session.get.return_value.__aexit__.return_value = False
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = session
    factory.return_value.__aexit__.return_value = False

    with patch("aiohttp.ClientSession", factory):
        results = asyncio.run(cli_module._check_connectivity(("https://a", "https://b")))
    assert results == {"https://a": None, "https://b": "refused"}
