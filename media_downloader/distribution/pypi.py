"""
Resolves release download URLs and checksums from the PyPI JSON API, so the
Flatpak manifest never ships a placeholder checksum.

Each runtime requirement is resolved together with its dependency closure,
evaluated for the Python of the Flatpak runtime. The result pins one file
per package, or one wheel per architecture for compiled packages.
"""

import asyncio
import logging
import re
from collections import deque

import aiohttp
from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import (
    InvalidWheelFilename,
    canonicalize_name,
    parse_wheel_filename,
)
from packaging.version import InvalidVersion, Version
from pydantic import BaseModel, Field, field_validator

from media_downloader.exceptions import SourceResolutionError

log = logging.getLogger(__name__)

PYPI_JSON_URL = "https://pypi.org/pypi/{package}/json"
PYPI_VERSION_JSON_URL = "https://pypi.org/pypi/{package}/{version}/json"

FLATPAK_ARCHES = ("x86_64", "aarch64")

_SHA256_RE = re.compile(r"^[0-9a-f]{64}$")


class FlatpakSource(BaseModel):
    """A `file` source entry for a flatpak-builder module."""

    url: str
    sha256: str
    only_arches: list[str] = Field(default_factory=list)

    @field_validator("sha256")
    @classmethod
    def validate_sha256(cls, v: str) -> str:
        v = v.strip().lower()
        if not _SHA256_RE.match(v):
            raise ValueError("sha256 must be 64 hexadecimal characters.")
        return v

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith("https://"):
            raise ValueError("Source URL must use https.")
        return v

    def to_manifest(self) -> dict:
        entry: dict = {"type": "file", "url": self.url, "sha256": self.sha256}
        if self.only_arches:
            entry["only-arches"] = list(self.only_arches)
        return entry


def requirement_name(requirement: str) -> str:
    """The normalized project name of a requirement string, e.g. 'yt-dlp'."""
    try:
        return canonicalize_name(Requirement(requirement).name)
    except InvalidRequirement as e:
        raise SourceResolutionError(f"Invalid requirement '{requirement}': {e}") from e


def marker_environment(python_version: str) -> dict[str, str]:
    """Marker values for the Flatpak runtime's interpreter."""
    return {
        "python_version": python_version,
        "python_full_version": f"{python_version}.0",
        "implementation_name": "cpython",
        "platform_python_implementation": "CPython",
        "os_name": "posix",
        "sys_platform": "linux",
        "platform_system": "Linux",
        "extra": "",
    }


def _is_pure_wheel(filename: str) -> bool:
    try:
        tags = parse_wheel_filename(filename)[3]
    except InvalidWheelFilename:
        return False
    return any(
        t.interpreter == "py3" and t.abi == "none" and t.platform == "any" for t in tags
    )


def _wheel_supports(filename: str, python_version: str, arch: str) -> bool:
    """True for manylinux CPython wheels usable on the given interpreter and arch."""
    try:
        tags = parse_wheel_filename(filename)[3]
    except InvalidWheelFilename:
        return False
    cp = "cp" + python_version.replace(".", "")
    minor = int(python_version.split(".")[1])
    for tag in tags:
        if not (tag.platform.startswith("manylinux") and tag.platform.endswith(arch)):
            continue
        if tag.interpreter == cp and tag.abi == cp:
            return True
        if (
            tag.abi == "abi3"
            and tag.interpreter.startswith("cp3")
            and tag.interpreter[3:].isdigit()
            and int(tag.interpreter[3:]) <= minor
        ):
            return True
    return False


def select_release_files(
    files: list[dict],
    package: str,
    python_version: str | None = None,
    arches: tuple[str, ...] = FLATPAK_ARCHES,
) -> list[FlatpakSource]:
    """
    Picks the files flatpak-builder should fetch for one release.

    A pure-Python wheel installs offline without a build backend, so it wins.
    Compiled packages get one manylinux wheel per architecture when a
    `python_version` is given and every architecture is covered. The sdist is
    the fallback.
    """
    pure: FlatpakSource | None = None
    sdist: FlatpakSource | None = None
    per_arch: dict[str, FlatpakSource] = {}

    for entry in files:
        sha256 = (entry.get("digests") or {}).get("sha256")
        url = entry.get("url")
        if not url or not sha256:
            continue
        filename = entry.get("filename") or url.rsplit("/", 1)[-1]
        packagetype = entry.get("packagetype")
        if packagetype == "bdist_wheel":
            if _is_pure_wheel(filename):
                pure = pure or FlatpakSource(url=url, sha256=sha256)
                continue
            if python_version is None:
                continue
            for arch in arches:
                if arch not in per_arch and _wheel_supports(
                    filename, python_version, arch
                ):
                    per_arch[arch] = FlatpakSource(
                        url=url, sha256=sha256, only_arches=[arch]
                    )
        elif packagetype == "sdist":
            sdist = sdist or FlatpakSource(url=url, sha256=sha256)

    if pure is not None:
        return [pure]
    if per_arch and len(per_arch) == len(arches):
        return [per_arch[arch] for arch in arches]
    if sdist is not None:
        return [sdist]
    raise SourceResolutionError(f"No installable release file published for {package}.")


def _satisfies(requirement: Requirement, version: str) -> bool:
    try:
        return requirement.specifier.contains(Version(version), prereleases=True)
    except InvalidVersion:
        return False


def _pick_version(payload: dict, requirement: Requirement) -> str | None:
    """The newest non-prerelease version in `payload` allowed by `requirement`."""
    candidates = []
    for raw, files in (payload.get("releases") or {}).items():
        try:
            version = Version(raw)
        except InvalidVersion:
            continue
        if version.is_prerelease or not files:
            continue
        if requirement.specifier.contains(version):
            candidates.append(version)
    return str(max(candidates)) if candidates else None


class PyPIResolver:
    """
    Resolves requirements to pinned Flatpak sources over one aiohttp session.

    Release payloads are cached per package, so dependencies shared between
    requirements are fetched once.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        python_version: str,
        arches: tuple[str, ...] = FLATPAK_ARCHES,
    ):
        self.session = session
        self.python_version = python_version
        self.arches = arches
        self.environment = marker_environment(python_version)
        self._releases: dict[str, tuple[str, list[FlatpakSource], list[str]]] = {}

    async def _get_json(self, package: str, version: str | None = None) -> dict:
        url = (
            PYPI_VERSION_JSON_URL.format(package=package, version=version)
            if version
            else PYPI_JSON_URL.format(package=package)
        )
        async with self.session.get(
            url, headers={"Accept": "application/json"}
        ) as resp:
            if resp.status == 404:
                wanted = f"{package}=={version}" if version else package
                raise SourceResolutionError(f"{wanted} was not found on PyPI.")
            resp.raise_for_status()
            return await resp.json()

    async def release(
        self, requirement: Requirement, version: str | None = None
    ) -> tuple[str, list[FlatpakSource], list[str]]:
        """(version, sources, requires_dist) of the release chosen for `requirement`."""
        name = canonicalize_name(requirement.name)
        if name in self._releases:
            chosen = self._releases[name][0]
            if not _satisfies(requirement, chosen):
                log.warning(
                    f"[yellow]{name} {chosen} does not satisfy '{requirement}'.[/]"
                )
            return self._releases[name]

        payload = await self._get_json(name, version)
        latest = (payload.get("info") or {}).get("version", "")
        if version is None and not _satisfies(requirement, latest):
            version = _pick_version(payload, requirement)
            if version is None:
                raise SourceResolutionError(
                    f"No release of {name} satisfies '{requirement}'."
                )
            payload = await self._get_json(name, version)
            latest = version

        sources = select_release_files(
            payload.get("urls") or [], name, self.python_version, self.arches
        )
        requires = (payload.get("info") or {}).get("requires_dist") or []
        self._releases[name] = (latest, sources, requires)
        log.debug(f"Resolved {name} {latest}: {', '.join(s.url for s in sources)}")
        return self._releases[name]

    async def closure(
        self, requirement: str, version: str | None = None
    ) -> list[FlatpakSource]:
        """Sources for `requirement` followed by those of all its dependencies."""
        try:
            root = Requirement(requirement)
        except InvalidRequirement as e:
            raise SourceResolutionError(
                f"Invalid requirement '{requirement}': {e}"
            ) from e

        sources: list[FlatpakSource] = []
        seen: set[str] = set()
        queue: deque[tuple[Requirement, str | None]] = deque([(root, version)])
        while queue:
            req, pinned = queue.popleft()
            name = canonicalize_name(req.name)
            if name in seen:
                continue
            seen.add(name)
            _, files, requires = await self.release(req, pinned)
            sources.extend(s for s in files if s not in sources)
            for line in requires:
                try:
                    dep = Requirement(line)
                except InvalidRequirement:
                    log.debug(f"Ignoring unparsable requirement '{line}' of {name}")
                    continue
                if dep.marker is not None and not dep.marker.evaluate(
                    self.environment
                ):
                    continue
                queue.append((dep, None))
        return sources


async def fetch_dependency_sources(
    requirements: list[str],
    python_version: str,
    versions: dict[str, str | None] | None = None,
    timeout_s: float = 15.0,
) -> dict[str, list[FlatpakSource]]:
    """
    Maps each requirement's project name to the pinned sources of its closure.

    `versions` pins top-level projects to an exact release by name.
    """
    versions = versions or {}
    timeout = aiohttp.ClientTimeout(total=timeout_s)
    resolved: dict[str, list[FlatpakSource]] = {}
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            resolver = PyPIResolver(session, python_version)
            for requirement in requirements:
                name = requirement_name(requirement)
                resolved[name] = await resolver.closure(
                    requirement, versions.get(name)
                )
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise SourceResolutionError(f"Could not query PyPI: {e}") from e
    return resolved


def resolve_dependency_sources(
    requirements: list[str],
    python_version: str,
    versions: dict[str, str | None] | None = None,
) -> dict[str, list[FlatpakSource]]:
    """Synchronous wrapper for use from the scaffolder."""
    return asyncio.run(
        fetch_dependency_sources(requirements, python_version, versions)
    )


def load_sources(data: dict) -> dict[str, list[FlatpakSource]]:
    """Reads a sources mapping as written by `dump_sources`."""
    try:
        return {
            canonicalize_name(name): [
                FlatpakSource(
                    url=entry["url"],
                    sha256=entry["sha256"],
                    only_arches=entry.get("only-arches", []),
                )
                for entry in entries
            ]
            for name, entries in data.items()
        }
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise SourceResolutionError(f"Invalid sources file: {e}") from e


def dump_sources(sources: dict[str, list[FlatpakSource]]) -> dict:
    return {
        name: [source.to_manifest() for source in entries]
        for name, entries in sources.items()
    }
