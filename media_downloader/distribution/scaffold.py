"""
Generates the distribution tree around the package: desktop entry, AppStream
metadata, icon, RPM spec, Flatpak manifest, install/build scripts, README, and
the package source with the pyproject.toml and MANIFEST.in that build it.

Every artifact is rendered from one AppMetadata instance, so the version and
application name only exist in one place.
"""

import json
import logging
import shutil
import textwrap
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from media_downloader.distribution.metadata import RUNTIME_REQUIREMENTS, AppMetadata
from media_downloader.distribution.pypi import (
    FlatpakSource,
    dump_sources,
    requirement_name,
    resolve_dependency_sources,
)
from media_downloader.exceptions import ScaffoldError

log = logging.getLogger(__name__)

SOURCES_FILE_NAME = "python-sources.json"

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
PACKAGE_DIR = Path(__file__).resolve().parents[1]

FLATPAK_FINISH_ARGS = [
    "--share=ipc",
    "--socket=fallback-x11",
    "--socket=wayland",
    "--device=dri",
    "--share=network",
    "--filesystem=xdg-download",
    "--filesystem=xdg-videos",
    "--filesystem=xdg-music",
]


def _get_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["xml", "svg"]),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def _changelog_date(value: date) -> str:
    """RPM changelog dates, e.g. 'Mon Jan 01 2024', independent of the locale."""
    day = "MonTueWedThuFriSatSun"[value.weekday() * 3 :][:3]
    month = "JanFebMarAprMayJunJulAugSepOctNovDec"[(value.month - 1) * 3 :][:3]
    return f"{day} {month} {value.day:02d} {value.year}"


def _render(template_name: str, meta: AppMetadata, **context: Any) -> str:
    template = _get_env().get_template(template_name)
    return template.render(meta=meta, **context)


def render_desktop_entry(meta: AppMetadata) -> str:
    return _render("desktop_entry.desktop", meta)


def render_metainfo(meta: AppMetadata) -> str:
    return _render("metainfo.xml", meta)


def render_icon(meta: AppMetadata) -> str:
    return _render("icon.svg", meta)


def render_rpm_spec(meta: AppMetadata) -> str:
    description = "\n\n".join(textwrap.fill(p, width=79) for p in meta.description)
    return _render(
        "app.spec",
        meta,
        rpm_description=description or meta.summary,
        changelog_date=_changelog_date,
    )


def render_install_script(meta: AppMetadata) -> str:
    return _render("install.sh", meta)


def render_build_script(meta: AppMetadata) -> str:
    return _render("build.sh", meta)


def render_readme(meta: AppMetadata) -> str:
    return _render("README.md", meta)


def render_pyproject(meta: AppMetadata) -> str:
    return _render(
        "pyproject.toml",
        meta,
        requirements=RUNTIME_REQUIREMENTS,
        entry_points=meta.entry_points,
    )


def render_manifest_in(meta: AppMetadata) -> str:
    return _render("MANIFEST.in", meta)


def flatpak_module_name(requirement: str) -> str:
    return f"python3-{requirement_name(requirement)}"


def _pip_module(requirement: str, sources: list[FlatpakSource]) -> dict[str, Any]:
    """One module per requirement, carrying the files of its whole closure."""
    return {
        "name": flatpak_module_name(requirement),
        "buildsystem": "simple",
        "build-commands": [
            "pip3 install --verbose --exists-action=i --no-index"
            ' --find-links="file://${PWD}" --prefix=${FLATPAK_DEST}'
            f' "{requirement_name(requirement)}" --no-build-isolation'
        ],
        "sources": [source.to_manifest() for source in sources],
    }


def build_flatpak_manifest(
    meta: AppMetadata, sources: dict[str, list[FlatpakSource]]
) -> dict[str, Any]:
    """
    The flatpak-builder manifest as a plain dictionary.

    `sources` maps each runtime requirement's project name to its pinned
    files, as returned by `resolve_dependency_sources`.

    Raises:
        ScaffoldError: If a runtime requirement has no sources.
    """
    modules = []
    for requirement in RUNTIME_REQUIREMENTS:
        files = sources.get(requirement_name(requirement))
        if not files:
            raise ScaffoldError(f"No Flatpak source resolved for '{requirement}'.")
        modules.append(_pip_module(requirement, files))

    share = "${FLATPAK_DEST}/share"
    modules.append(
        {
            "name": meta.dist_name,
            "buildsystem": "simple",
            "build-commands": [
                "pip3 install --verbose --no-deps --no-build-isolation"
                " --prefix=${FLATPAK_DEST} .",
                f"install -Dm644 data/applications/{meta.desktop_file_name}"
                f" {share}/applications/{meta.desktop_file_name}",
                f"install -Dm644 data/metainfo/{meta.metainfo_file_name}"
                f" {share}/metainfo/{meta.metainfo_file_name}",
                f"install -Dm644 data/icons/{meta.icon_file_name}"
                f" {share}/icons/hicolor/scalable/apps/{meta.icon_file_name}",
            ],
            "sources": [{"type": "dir", "path": "."}],
        }
    )
    return {
        "app-id": meta.app_id,
        "runtime": meta.flatpak_runtime,
        "runtime-version": meta.flatpak_runtime_version,
        "sdk": meta.flatpak_sdk,
        "command": meta.gui_binary,
        "finish-args": list(FLATPAK_FINISH_ARGS),
        "modules": modules,
    }


def render_flatpak_manifest(
    meta: AppMetadata, sources: dict[str, list[FlatpakSource]]
) -> str:
    return json.dumps(build_flatpak_manifest(meta, sources), indent=4) + "\n"


def render_sources_file(sources: dict[str, list[FlatpakSource]]) -> str:
    """The resolved sources, readable again with `--sources-file`."""
    ordered = {
        requirement_name(r): sources[requirement_name(r)]
        for r in RUNTIME_REQUIREMENTS
        if requirement_name(r) in sources
    }
    return json.dumps(dump_sources(ordered), indent=4) + "\n"


@dataclass(frozen=True)
class Artifact:
    """A single file of the distribution tree."""

    path: Path
    content: str
    executable: bool = False


@dataclass
class ScaffoldOptions:
    force: bool = False
    dry_run: bool = False
    offline: bool = False
    ytdlp_version: str | None = None
    ytdlp_source: FlatpakSource | None = None
    # Pre-resolved sources by project name, e.g. from a previous run
    sources: dict[str, list[FlatpakSource]] | None = None


@dataclass
class ScaffoldResult:
    target: Path
    written: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)
    dry_run: bool = False


def plan_artifacts(
    meta: AppMetadata, sources: dict[str, list[FlatpakSource]]
) -> list[Artifact]:
    """Lists every file to be written, relative to the target directory."""
    return [
        Artifact(
            Path("data/applications") / meta.desktop_file_name,
            render_desktop_entry(meta),
        ),
        Artifact(
            Path("data/metainfo") / meta.metainfo_file_name, render_metainfo(meta)
        ),
        Artifact(Path("data/icons") / meta.icon_file_name, render_icon(meta)),
        Artifact(Path(meta.rpm_spec_name), render_rpm_spec(meta)),
        Artifact(
            Path(meta.flatpak_manifest_name), render_flatpak_manifest(meta, sources)
        ),
        Artifact(Path(SOURCES_FILE_NAME), render_sources_file(sources)),
        Artifact(
            Path("scripts/install.sh"), render_install_script(meta), executable=True
        ),
        Artifact(Path("scripts/build.sh"), render_build_script(meta), executable=True),
        Artifact(Path("README.md"), render_readme(meta)),
        Artifact(Path("pyproject.toml"), render_pyproject(meta)),
        Artifact(Path("MANIFEST.in"), render_manifest_in(meta)),
    ]


def _resolve_sources(
    meta: AppMetadata, options: ScaffoldOptions
) -> dict[str, list[FlatpakSource]]:
    sources = dict(options.sources or {})
    if options.ytdlp_source is not None:
        sources["yt-dlp"] = [options.ytdlp_source]

    missing = [r for r in RUNTIME_REQUIREMENTS if requirement_name(r) not in sources]
    if not missing:
        return sources
    if options.offline:
        names = ", ".join(requirement_name(r) for r in missing)
        raise ScaffoldError(
            f"Offline mode needs pinned sources for: {names}. "
            "Pass --sources-file, or --ytdlp-url and --ytdlp-sha256 for yt-dlp."
        )

    log.info(f"Resolving {len(missing)} Flatpak dependencies from PyPI...")
    sources.update(
        resolve_dependency_sources(
            missing, meta.flatpak_python, {"yt-dlp": options.ytdlp_version}
        )
    )
    return sources


def _write_artifact(artifact: Artifact, destination: Path) -> None:
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(artifact.content, encoding="utf-8")
        if artifact.executable:
            destination.chmod(0o755)
    except OSError as e:
        raise ScaffoldError(f"Could not write {destination}: {e}") from e


def _copy_source(meta: AppMetadata, target: Path, result: ScaffoldResult, force: bool):
    destination = target / "src" / meta.package
    if destination.exists() and not force:
        result.skipped.append(destination)
        return
    if result.dry_run:
        result.written.append(destination)
        return
    try:
        shutil.copytree(
            PACKAGE_DIR,
            destination,
            ignore=shutil.ignore_patterns("__pycache__", "*.pyc"),
            dirs_exist_ok=True,
        )
    except (OSError, shutil.Error) as e:
        raise ScaffoldError(f"Could not copy package source: {e}") from e
    result.written.append(destination)


def scaffold(
    target: Path,
    meta: AppMetadata | None = None,
    options: ScaffoldOptions | None = None,
) -> ScaffoldResult:
    """
    Writes the distribution tree into `target`.

    The tree is self-contained: the package source, its pyproject.toml and
    MANIFEST.in sit next to the scripts, RPM spec and Flatpak manifest that
    build it. Existing files are left alone unless `options.force` is set;
    they are reported in `ScaffoldResult.skipped`.

    Raises:
        ScaffoldError: If the target is not a directory, a file cannot be
            written, or a Flatpak source cannot be resolved.
    """
    meta = meta or AppMetadata.default()
    options = options or ScaffoldOptions()
    target = Path(target).expanduser()

    if target.exists() and not target.is_dir():
        raise ScaffoldError(f"Target '{target}' exists and is not a directory.")

    sources = _resolve_sources(meta, options)
    result = ScaffoldResult(target=target, dry_run=options.dry_run)

    for artifact in plan_artifacts(meta, sources):
        destination = target / artifact.path
        if destination.exists() and not options.force:
            log.debug(f"Skipping existing file {destination}")
            result.skipped.append(destination)
            continue
        if not options.dry_run:
            _write_artifact(artifact, destination)
        result.written.append(destination)

    _copy_source(meta, target, result, options.force)
    return result
