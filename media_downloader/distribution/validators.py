"""
Structural validation of a generated distribution tree.

Covers the desktop entry, AppStream metadata, Flatpak manifest, RPM spec and
the project files they build from.
When the reference tools (desktop-file-validate, appstream-util) are
installed they can be run as well.
"""

import configparser
import json
import logging
import re
import shutil
import subprocess
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path

from jsonschema import Draft7Validator

from media_downloader.distribution.metadata import RUNTIME_REQUIREMENTS, AppMetadata
from media_downloader.distribution.scaffold import flatpak_module_name
from media_downloader.exceptions import PackageValidationError

log = logging.getLogger(__name__)

ERROR = "error"
WARNING = "warning"
INFO = "info"

_SHA256_RE = re.compile(r"^[0-9a-f]{64}$")

FLATPAK_MANIFEST_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "flatpak-builder manifest (subset)",
    "type": "object",
    "properties": {
        "app-id": {"type": "string", "pattern": r"^[A-Za-z][\w-]*(\.[\w-]+){2,}$"},
        "runtime": {"type": "string", "minLength": 1},
        "runtime-version": {"type": "string", "minLength": 1},
        "sdk": {"type": "string", "minLength": 1},
        "command": {"type": "string", "minLength": 1},
        "finish-args": {"type": "array", "items": {"type": "string"}},
        "modules": {
            "type": "array",
            "minItems": 1,
            "items": {
                "anyOf": [
                    {"type": "string"},
                    {
                        "type": "object",
                        "required": ["name", "sources"],
                        "properties": {
                            "name": {"type": "string", "minLength": 1},
                            "buildsystem": {
                                "enum": [
                                    "autotools",
                                    "cmake",
                                    "cmake-ninja",
                                    "meson",
                                    "simple",
                                    "qmake",
                                ]
                            },
                            "build-commands": {
                                "type": "array",
                                "items": {"type": "string"},
                            },
                            "sources": {
                                "type": "array",
                                "items": {
                                    "type": "object",
                                    "required": ["type"],
                                    "properties": {
                                        "type": {
                                            "enum": [
                                                "archive",
                                                "file",
                                                "dir",
                                                "git",
                                                "patch",
                                                "script",
                                                "shell",
                                            ]
                                        },
                                    },
                                },
                            },
                        },
                    },
                ]
            },
        },
    },
    "required": ["app-id", "runtime", "runtime-version", "sdk", "command", "modules"],
}

RPM_REQUIRED_TAGS = (
    "Name",
    "Version",
    "Release",
    "Summary",
    "License",
    "URL",
    "Source0",
)
RPM_REQUIRED_SECTIONS = (
    "%description",
    "%prep",
    "%build",
    "%install",
    "%files",
    "%changelog",
)


@dataclass(frozen=True)
class ValidationIssue:
    artifact: str
    message: str
    severity: str = ERROR

    @property
    def is_error(self) -> bool:
        return self.severity == ERROR


def _read(path: Path, issues: list[ValidationIssue]) -> str | None:
    if not path.is_file():
        issues.append(ValidationIssue(path.name, "File is missing."))
        return None
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        issues.append(ValidationIssue(path.name, f"Could not read file: {e}"))
        return None


def validate_desktop_entry(path: Path) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    text = _read(path, issues)
    if text is None:
        return issues

    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str
    try:
        parser.read_string(text, source=str(path))
    except configparser.Error as e:
        return [ValidationIssue(path.name, f"Not a valid key file: {e}")]

    if not parser.has_section("Desktop Entry"):
        return [ValidationIssue(path.name, "Missing [Desktop Entry] group.")]

    entry = parser["Desktop Entry"]
    for key in ("Type", "Name", "Exec"):
        if not entry.get(key):
            issues.append(ValidationIssue(path.name, f"Missing required key '{key}'."))

    declared = {a for a in entry.get("Actions", "").split(";") if a}
    groups = {
        s.removeprefix("Desktop Action ")
        for s in parser.sections()
        if s.startswith("Desktop Action ")
    }
    for action in sorted(declared - groups):
        issues.append(
            ValidationIssue(
                path.name, f"Action '{action}' has no [Desktop Action] group."
            )
        )
    for action in sorted(groups - declared):
        issues.append(
            ValidationIssue(
                path.name, f"[Desktop Action {action}] is not listed in Actions."
            )
        )
    for action in sorted(groups):
        group = parser[f"Desktop Action {action}"]
        if not group.get("Name") or not group.get("Exec"):
            issues.append(
                ValidationIssue(path.name, f"Action '{action}' needs Name and Exec.")
            )
    return issues


def validate_metainfo(path: Path, meta: AppMetadata) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    text = _read(path, issues)
    if text is None:
        return issues

    try:
        root = ET.fromstring(text.encode("utf-8"))
    except ET.ParseError as e:
        return [ValidationIssue(path.name, f"Invalid XML: {e}")]

    if root.tag != "component" or root.get("type") != "desktop-application":
        issues.append(
            ValidationIssue(
                path.name, 'Root must be <component type="desktop-application">.'
            )
        )

    for tag in ("id", "name", "summary", "metadata_license", "project_license"):
        if not (root.findtext(tag) or "").strip():
            issues.append(ValidationIssue(path.name, f"Missing <{tag}>."))

    if (root.findtext("id") or "").strip() not in ("", meta.app_id):
        issues.append(
            ValidationIssue(path.name, f"<id> does not match app id '{meta.app_id}'.")
        )

    launchable = root.find("launchable")
    if launchable is None or (launchable.text or "").strip() != meta.desktop_file_name:
        issues.append(
            ValidationIssue(
                path.name, f"<launchable> must reference '{meta.desktop_file_name}'."
            )
        )

    releases = root.findall("releases/release")
    if not releases:
        issues.append(ValidationIssue(path.name, "No <release> entries."))
    elif releases[0].get("version") != meta.version:
        issues.append(
            ValidationIssue(
                path.name,
                f"Latest release {releases[0].get('version')} does not match "
                f"version {meta.version}.",
            )
        )

    if root.find("content_rating") is None:
        issues.append(ValidationIssue(path.name, "Missing <content_rating>.", WARNING))
    return issues


def validate_flatpak_manifest(path: Path, meta: AppMetadata) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    text = _read(path, issues)
    if text is None:
        return issues

    try:
        manifest = json.loads(text)
    except json.JSONDecodeError as e:
        return [ValidationIssue(path.name, f"Invalid JSON: {e}")]

    validator = Draft7Validator(FLATPAK_MANIFEST_SCHEMA)
    for error in sorted(validator.iter_errors(manifest), key=lambda e: list(e.path)):
        location = ".".join(str(p) for p in error.path) if error.path else "root"
        issues.append(ValidationIssue(path.name, f"{location}: {error.message}"))
    if issues:
        return issues

    if manifest["app-id"] != meta.app_id:
        issues.append(
            ValidationIssue(path.name, f"app-id does not match '{meta.app_id}'.")
        )
    if manifest["command"] not in meta.binaries:
        issues.append(
            ValidationIssue(
                path.name, f"command '{manifest['command']}' is not installed."
            )
        )

    names = {m["name"] for m in manifest["modules"] if isinstance(m, dict)}
    for requirement in RUNTIME_REQUIREMENTS:
        if flatpak_module_name(requirement) not in names:
            issues.append(
                ValidationIssue(path.name, f"No module installs '{requirement}'.")
            )

    for module in manifest["modules"]:
        if not isinstance(module, dict):
            continue
        for source in module.get("sources", []):
            if source.get("type") not in ("file", "archive"):
                continue
            if not source.get("url"):
                issues.append(
                    ValidationIssue(path.name, f"{module['name']}: source has no url.")
                )
            if not _SHA256_RE.match(str(source.get("sha256", ""))):
                issues.append(
                    ValidationIssue(
                        path.name,
                        f"{module['name']}: sha256 is missing or a placeholder.",
                    )
                )
    return issues


def validate_rpm_spec(path: Path, meta: AppMetadata) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    text = _read(path, issues)
    if text is None:
        return issues

    tags: dict[str, str] = {}
    for line in text.splitlines():
        match = re.match(r"^([A-Za-z][A-Za-z0-9]*):\s*(.+)$", line)
        if match:
            tags.setdefault(match.group(1), match.group(2).strip())

    for tag in RPM_REQUIRED_TAGS:
        if tag not in tags:
            issues.append(ValidationIssue(path.name, f"Missing tag '{tag}:'."))

    sections = {line.split()[0] for line in text.splitlines() if line.startswith("%")}
    for section in RPM_REQUIRED_SECTIONS:
        if section not in sections:
            issues.append(ValidationIssue(path.name, f"Missing section '{section}'."))

    if "%check" not in sections:
        issues.append(ValidationIssue(path.name, "No %check section.", WARNING))

    if tags.get("Version") and tags["Version"] != meta.version:
        issues.append(
            ValidationIssue(
                path.name,
                f"Version {tags['Version']} does not match {meta.version}.",
            )
        )
    return issues


def validate_project_files(target: Path, meta: AppMetadata) -> list[ValidationIssue]:
    """The files the scripts, RPM and Flatpak build from."""
    issues: list[ValidationIssue] = []
    for relative in (
        Path("pyproject.toml"),
        Path("MANIFEST.in"),
        Path("src") / meta.package / "__main__.py",
    ):
        if not (target / relative).is_file():
            issues.append(ValidationIssue(relative.as_posix(), "File is missing."))

    manifest_in = target / "MANIFEST.in"
    text = _read(manifest_in, issues) if manifest_in.is_file() else None
    if text is not None:
        grafts = set(re.findall(r"^graft\s+(\S+)", text, re.MULTILINE))
        for directory in sorted({"data", "scripts"} - grafts):
            issues.append(
                ValidationIssue(
                    manifest_in.name, f"'{directory}' is not included in the sdist."
                )
            )
    return issues


def _run_tool(command: list[str], artifact: str) -> list[ValidationIssue]:
    tool = command[0]
    if shutil.which(tool) is None:
        return [ValidationIssue(artifact, f"{tool} not installed, skipped.", INFO)]
    try:
        proc = subprocess.run(
            command, capture_output=True, text=True, check=False, timeout=60
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        return [ValidationIssue(artifact, f"{tool} could not run: {e}", WARNING)]
    if proc.returncode != 0:
        output = (proc.stdout + proc.stderr).strip() or f"exit code {proc.returncode}"
        return [ValidationIssue(artifact, f"{tool}: {output}")]
    log.debug(f"{tool} passed for {artifact}")
    return []


def validate_tree(
    target: Path, meta: AppMetadata | None = None, external: bool = False
) -> list[ValidationIssue]:
    """Validates every generated artifact under `target`."""
    meta = meta or AppMetadata.default()
    target = Path(target)
    desktop = target / "data" / "applications" / meta.desktop_file_name
    metainfo = target / "data" / "metainfo" / meta.metainfo_file_name

    issues = [
        *validate_desktop_entry(desktop),
        *validate_metainfo(metainfo, meta),
        *validate_flatpak_manifest(target / meta.flatpak_manifest_name, meta),
        *validate_rpm_spec(target / meta.rpm_spec_name, meta),
        *validate_project_files(target, meta),
    ]

    if external:
        if desktop.is_file():
            issues.extend(
                _run_tool(["desktop-file-validate", str(desktop)], desktop.name)
            )
        if metainfo.is_file():
            issues.extend(
                _run_tool(
                    ["appstream-util", "validate-relax", "--nonet", str(metainfo)],
                    metainfo.name,
                )
            )
    return issues


def ensure_valid(
    target: Path, meta: AppMetadata | None = None, external: bool = False
) -> list[ValidationIssue]:
    """
    Like validate_tree, but raises when any error-level issue is found.

    Returns:
        The remaining warning and info issues.
    """
    issues = validate_tree(target, meta, external)
    errors = [i for i in issues if i.is_error]
    if errors:
        summary = "\n".join(f"{i.artifact}: {i.message}" for i in errors)
        raise PackageValidationError(f"Generated package is invalid:\n{summary}")
    return issues
