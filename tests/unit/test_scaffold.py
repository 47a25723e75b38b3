"""
Tests for generating the distribution tree.
"""

import json
import os
import re
from datetime import date
from pathlib import Path
from unittest.mock import patch

import pytest

from media_downloader.distribution.metadata import RUNTIME_REQUIREMENTS, AppMetadata
from media_downloader.distribution.pypi import (
    FlatpakSource,
    load_sources,
    requirement_name,
)
from media_downloader.distribution.scaffold import (
    ScaffoldOptions,
    _changelog_date,
    build_flatpak_manifest,
    render_desktop_entry,
    render_manifest_in,
    render_metainfo,
    render_pyproject,
    render_readme,
    render_rpm_spec,
    scaffold,
)
from media_downloader.exceptions import ScaffoldError

SOURCE = FlatpakSource(
    url="https://files.pythonhosted.org/packages/yt_dlp-2024.8.6-py3-none-any.whl",
    sha256="a" * 64,
)

EXPECTED_FILES = [
    "data/applications/com.example.MediaDownloader.desktop",
    "data/metainfo/com.example.MediaDownloader.metainfo.xml",
    "data/icons/com.example.MediaDownloader.svg",
    "media-downloader.spec",
    "com.example.MediaDownloader.json",
    "python-sources.json",
    "scripts/install.sh",
    "scripts/build.sh",
    "README.md",
    "pyproject.toml",
    "MANIFEST.in",
    "src/media_downloader",
]


@pytest.fixture
def meta() -> AppMetadata:
    return AppMetadata.default()


@pytest.fixture
def options(flatpak_sources) -> ScaffoldOptions:
    return ScaffoldOptions(sources=flatpak_sources)


def test_scaffold_writes_tree(tmp_path: Path, options: ScaffoldOptions) -> None:
    result = scaffold(tmp_path, options=options)

    assert [p.relative_to(tmp_path).as_posix() for p in result.written] == EXPECTED_FILES
    assert result.skipped == []
    for name in EXPECTED_FILES[:-1]:
        assert (tmp_path / name).is_file()
    assert os.access(tmp_path / "scripts/install.sh", os.X_OK)
    assert os.access(tmp_path / "scripts/build.sh", os.X_OK)


def test_default_tree_can_be_installed_by_its_scripts(
    tmp_path: Path, options: ScaffoldOptions
) -> None:
    scaffold(tmp_path, options=options)

    install = (tmp_path / "scripts/install.sh").read_text(encoding="utf-8")
    assert "pip3 install --user ." in install
    assert (tmp_path / "pyproject.toml").is_file()

    package_dir = tmp_path / "src" / "media_downloader"
    assert (package_dir / "__main__.py").is_file()
    assert (package_dir / "distribution" / "templates" / "app.spec").is_file()
    assert not list(package_dir.rglob("__pycache__"))

    pyproject = (tmp_path / "pyproject.toml").read_text(encoding="utf-8")
    assert 'media-downloader-gui = "media_downloader.__main__:gui_main"' in pyproject
    assert '"yt-dlp>=2024.1.0"' in pyproject
    assert 'where = ["src"]' in pyproject


def test_existing_files_are_skipped_unless_forced(
    tmp_path: Path, flatpak_sources
) -> None:
    readme = tmp_path / "README.md"
    readme.write_text("custom", encoding="utf-8")

    result = scaffold(tmp_path, options=ScaffoldOptions(sources=flatpak_sources))
    assert result.skipped == [readme]
    assert readme.read_text(encoding="utf-8") == "custom"

    result = scaffold(
        tmp_path, options=ScaffoldOptions(sources=flatpak_sources, force=True)
    )
    assert result.skipped == []
    assert readme.read_text(encoding="utf-8").startswith("# Media Downloader")


def test_dry_run_writes_nothing(tmp_path: Path, flatpak_sources) -> None:
    target = tmp_path / "dist"
    result = scaffold(
        target, options=ScaffoldOptions(sources=flatpak_sources, dry_run=True)
    )
    assert result.dry_run is True
    assert len(result.written) == len(EXPECTED_FILES)
    assert not target.exists()


def test_offline_needs_pinned_sources(tmp_path: Path) -> None:
    with pytest.raises(ScaffoldError, match="Offline mode") as excinfo:
        scaffold(tmp_path, options=ScaffoldOptions(offline=True, ytdlp_source=SOURCE))
    assert "typer" in str(excinfo.value)
    assert "yt-dlp," not in str(excinfo.value)


def test_missing_sources_are_resolved_from_pypi(
    tmp_path: Path, flatpak_sources
) -> None:
    pinned = {k: v for k, v in flatpak_sources.items() if k not in ("yt-dlp", "rich")}
    resolved = {
        "yt-dlp": flatpak_sources["yt-dlp"],
        "rich": flatpak_sources["rich"],
    }
    with patch(
        "media_downloader.distribution.scaffold.resolve_dependency_sources",
        return_value=resolved,
    ) as resolve:
        scaffold(
            tmp_path,
            options=ScaffoldOptions(sources=pinned, ytdlp_version="2024.8.6"),
        )

    requirements, python_version, versions = resolve.call_args.args
    assert requirements == ["yt-dlp>=2024.1.0", "rich>=13.7"]
    assert python_version == "3.12"
    assert versions == {"yt-dlp": "2024.8.6"}


def test_explicit_ytdlp_source_wins(tmp_path: Path, flatpak_sources) -> None:
    scaffold(
        tmp_path,
        options=ScaffoldOptions(sources=flatpak_sources, ytdlp_source=SOURCE),
    )
    manifest = json.loads(
        (tmp_path / "com.example.MediaDownloader.json").read_text(encoding="utf-8")
    )
    ytdlp = manifest["modules"][0]
    assert ytdlp["name"] == "python3-yt-dlp"
    assert ytdlp["sources"] == [{"type": "file", "url": SOURCE.url, "sha256": "a" * 64}]


def test_sources_file_round_trips(tmp_path: Path, flatpak_sources) -> None:
    scaffold(tmp_path, options=ScaffoldOptions(sources=flatpak_sources))
    data = json.loads((tmp_path / "python-sources.json").read_text(encoding="utf-8"))
    assert list(data) == [requirement_name(r) for r in RUNTIME_REQUIREMENTS]
    assert load_sources(data) == flatpak_sources


def test_file_target_is_rejected(tmp_path: Path, options: ScaffoldOptions) -> None:
    target = tmp_path / "file"
    target.write_text("x", encoding="utf-8")
    with pytest.raises(ScaffoldError, match="not a directory"):
        scaffold(target, options=options)


def test_desktop_entry(meta: AppMetadata) -> None:
    text = render_desktop_entry(meta)
    assert "Exec=media-downloader-gui %U" in text
    assert "Icon=com.example.MediaDownloader" in text
    assert "Categories=AudioVideo;Video;Audio;Network;" in text
    assert "[Desktop Action cli]\nName=Command Line Interface\n" in text
    assert "Exec=media-downloader-cli" in text


def test_metainfo_is_escaped() -> None:
    meta = AppMetadata.default(summary="Fast & simple")
    text = render_metainfo(meta)
    assert "<summary>Fast &amp; simple</summary>" in text
    assert '<release version="1.0.0" date="2024-01-01">' in text
    assert "<launchable type=\"desktop-id\">com.example.MediaDownloader.desktop" in text


def test_rpm_spec(meta: AppMetadata) -> None:
    text = render_rpm_spec(meta)
    assert "Version:        1.0.0" in text
    assert "Source0:        %{pypi_source media_downloader}" in text
    assert "%{_bindir}/media-downloader-cli" in text
    assert (
        "* Mon Jan 01 2024 Media Downloader Team <support@example.com> - 1.0.0-1"
        in text
    )


def test_rpm_spec_can_import_check_the_gui(meta: AppMetadata) -> None:
    text = render_rpm_spec(meta)
    build_requires = re.findall(r"^BuildRequires:\s+(\S+)", text, re.MULTILINE)
    assert "python3-tkinter" in build_requires
    assert "%pyproject_check_import" in text


def test_sdist_includes_installed_data(meta: AppMetadata) -> None:
    """%install and the Flatpak module read data/ from the unpacked sdist."""
    lines = render_manifest_in(meta).splitlines()
    assert "graft data" in lines
    assert "graft scripts" in lines
    assert "include README.md" in lines


def test_changelog_date() -> None:
    assert _changelog_date(date(2024, 1, 1)) == "Mon Jan 01 2024"
    assert _changelog_date(date(2025, 12, 7)) == "Sun Dec 07 2025"


def test_flatpak_manifest(meta: AppMetadata, flatpak_sources) -> None:
    manifest = build_flatpak_manifest(meta, flatpak_sources)
    assert manifest["app-id"] == "com.example.MediaDownloader"
    assert manifest["command"] == "media-downloader-gui"
    assert "--share=network" in manifest["finish-args"]
    *deps, app = manifest["modules"]
    assert deps[0]["sources"] == [s.to_manifest() for s in flatpak_sources["yt-dlp"]]
    assert app["name"] == "media-downloader"
    assert "--no-deps" in app["build-commands"][0]
    # Must round-trip as JSON for flatpak-builder
    assert json.loads(json.dumps(manifest)) == manifest


def test_flatpak_manifest_installs_every_runtime_requirement(
    meta: AppMetadata, flatpak_sources
) -> None:
    manifest = build_flatpak_manifest(meta, flatpak_sources)
    modules = {m["name"]: m for m in manifest["modules"]}

    for requirement in RUNTIME_REQUIREMENTS:
        name = requirement_name(requirement)
        module = modules[f"python3-{name}"]
        assert f'"{name}"' in module["build-commands"][0]
        assert "--no-index" in module["build-commands"][0]
        assert module["sources"]
        assert all(len(s["sha256"]) == 64 for s in module["sources"])


def test_flatpak_manifest_without_a_source(meta: AppMetadata, flatpak_sources) -> None:
    del flatpak_sources["mutagen"]
    with pytest.raises(ScaffoldError, match="mutagen"):
        build_flatpak_manifest(meta, flatpak_sources)


def test_arch_specific_sources(meta: AppMetadata, flatpak_sources) -> None:
    flatpak_sources["pydantic"] = [
        FlatpakSource(
            url="https://files.pythonhosted.org/pydantic_core-2.23.4-cp312-cp312-"
            "manylinux_2_17_x86_64.manylinux2014_x86_64.whl",
            sha256="e" * 64,
            only_arches=["x86_64"],
        )
    ]
    manifest = build_flatpak_manifest(meta, flatpak_sources)
    module = next(m for m in manifest["modules"] if m["name"] == "python3-pydantic")
    assert module["sources"][0]["only-arches"] == ["x86_64"]


def test_pyproject_lists_entry_points(meta: AppMetadata) -> None:
    text = render_pyproject(meta)
    assert 'media-downloader = "media_downloader.__main__:main"' in text
    assert 'media-downloader-cli = "media_downloader.__main__:cli_main"' in text
    assert '"packaging>=23.2"' in text


def test_readme_does_not_promise_a_test_suite(meta: AppMetadata) -> None:
    text = render_readme(meta)
    assert "[test]" not in text
    assert "pytest" not in text
    assert "pip install -e ." in text
