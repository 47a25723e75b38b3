"""
The single source of application metadata for every generated packaging artifact.
"""

import re
from datetime import date

from pydantic import BaseModel, ConfigDict, Field, field_validator

from media_downloader import (
    APP_ID,
    APP_NAME,
    DIST_NAME,
    __author__,
    __license__,
    __version__,
)

_APP_ID_RE = re.compile(r"^[A-Za-z][\w-]*(\.[A-Za-z_][\w-]*){2,}$")
_VERSION_RE = re.compile(r"^\d+(\.\d+)*$")

HOMEPAGE = "https://github.com/yourusername/media-downloader"

# Runtime requirements declared by the generated pyproject.toml
RUNTIME_REQUIREMENTS = [
    "yt-dlp>=2024.1.0",
    "typer>=0.12",
    "click>=8.1",
    "rich>=13.7",
    "pydantic>=2.5",
    "jinja2>=3.1",
    "jsonschema>=4.20",
    "aiohttp>=3.9",
    "pathvalidate>=3.2",
    "mutagen>=1.47",
    "packaging>=23.2",
]

# Binary suffix -> function in <package>.__main__
ENTRY_POINTS = {"": "main", "-gui": "gui_main", "-cli": "cli_main"}


class Release(BaseModel):
    version: str
    date: date
    notes: list[str] = Field(default_factory=list)
    summary: str = ""


class Screenshot(BaseModel):
    caption: str
    image: str
    default: bool = False


class AppMetadata(BaseModel):
    """Everything the desktop entry, AppStream, RPM and Flatpak files need."""

    model_config = ConfigDict(frozen=True)

    app_id: str = APP_ID
    name: str = APP_NAME
    generic_name: str = "Video and Audio Downloader"
    dist_name: str = DIST_NAME
    package: str = "media_downloader"
    version: str = __version__
    summary: str = "Download videos and audio from 1000+ websites"
    description: list[str] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)
    author: str = __author__
    author_email: str = "support@example.com"
    license: str = __license__
    metadata_license: str = "CC0-1.0"
    homepage: str = HOMEPAGE
    bugtracker: str = f"{HOMEPAGE}/issues"
    help_url: str = f"{HOMEPAGE}/wiki"
    categories: list[str] = Field(
        default_factory=lambda: ["AudioVideo", "Video", "Audio", "Network"]
    )
    keywords: list[str] = Field(
        default_factory=lambda: ["download", "video", "audio", "youtube", "media"]
    )
    mime_types: list[str] = Field(
        default_factory=lambda: ["x-scheme-handler/http", "x-scheme-handler/https"]
    )
    binaries: list[str] = Field(
        default_factory=lambda: [
            DIST_NAME,
            f"{DIST_NAME}-gui",
            f"{DIST_NAME}-cli",
        ]
    )
    screenshots: list[Screenshot] = Field(default_factory=list)
    releases: list[Release] = Field(default_factory=list)
    flatpak_runtime: str = "org.gnome.Platform"
    flatpak_sdk: str = "org.gnome.Sdk"
    flatpak_runtime_version: str = "47"
    flatpak_python: str = "3.12"
    python_requires: str = ">=3.10"

    @field_validator("app_id")
    @classmethod
    def validate_app_id(cls, v: str) -> str:
        """Reverse-DNS with at least three components, as Flatpak requires."""
        if not _APP_ID_RE.match(v):
            raise ValueError(
                f"App ID must be reverse-DNS with at least three parts, got '{v}'."
            )
        return v

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        if not _VERSION_RE.match(v):
            raise ValueError(f"Version must be dotted numeric, got '{v}'.")
        return v

    @field_validator("binaries")
    @classmethod
    def validate_binaries(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("At least one binary must be provided.")
        return v

    @classmethod
    def default(cls, **overrides) -> "AppMetadata":
        """Metadata for this package, with the current version as first release."""
        values = {
            "description": [
                f"{APP_NAME} is a modern application that allows you to download "
                "videos and audio from over 1000 websites including YouTube, Vimeo, "
                "Twitter, Instagram, and many more.",
                "It offers both a graphical interface and a command-line interface.",
            ],
            "features": [
                "Clean, intuitive GUI interface",
                "Command-line interface for advanced users",
                "Multiple video formats (MP4, WebM, MKV, AVI, MOV)",
                "Multiple audio formats (MP3, M4A, OPUS, WAV, FLAC)",
                "Quality selection from 360p to best available",
                "Subtitle and thumbnail download support",
                "Real-time download progress",
                "Native Linux integration",
            ],
            "screenshots": [
                Screenshot(
                    caption="Main application window",
                    image="https://example.com/screenshots/main-window.png",
                    default=True,
                ),
                Screenshot(
                    caption="Download progress",
                    image="https://example.com/screenshots/download-progress.png",
                ),
            ],
            "releases": [
                Release(
                    version=overrides.get("version", __version__),
                    date=date(2024, 1, 1),
                    summary="Initial release with GUI and CLI interfaces",
                    notes=[
                        "Tk GUI",
                        "Command-line interface",
                        "Support for 1000+ websites",
                        "Multiple format support",
                        "Quality selection",
                        "Subtitle and thumbnail download",
                    ],
                )
            ],
        }
        values.update(overrides)
        return cls(**values)

    @property
    def desktop_file_name(self) -> str:
        return f"{self.app_id}.desktop"

    @property
    def metainfo_file_name(self) -> str:
        return f"{self.app_id}.metainfo.xml"

    @property
    def icon_file_name(self) -> str:
        return f"{self.app_id}.svg"

    @property
    def flatpak_manifest_name(self) -> str:
        return f"{self.app_id}.json"

    @property
    def rpm_spec_name(self) -> str:
        return f"{self.dist_name}.spec"

    @property
    def gui_binary(self) -> str:
        return next((b for b in self.binaries if b.endswith("-gui")), self.binaries[0])

    @property
    def cli_binary(self) -> str:
        return next((b for b in self.binaries if b.endswith("-cli")), self.binaries[0])

    @property
    def wheel_name(self) -> str:
        return self.dist_name.replace("-", "_")

    @property
    def developer_id(self) -> str:
        return self.app_id.rsplit(".", 1)[0]

    @property
    def entry_points(self) -> list[tuple[str, str]]:
        """(binary, 'module:function') pairs for the console scripts."""
        points = []
        for binary in self.binaries:
            suffix = binary[len(self.dist_name) :]
            func = ENTRY_POINTS.get(suffix)
            if func and binary.startswith(self.dist_name):
                points.append((binary, f"{self.package}.__main__:{func}"))
        return points
