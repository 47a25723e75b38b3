"""
Pydantic model for download configuration.
Provides robust validation for all settings.
"""

import os
from enum import Enum
from pathlib import Path

from pathvalidate import ValidationError as PathValidationError
from pathvalidate import validate_filepath
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

VIDEO_FORMATS = ("mp4", "webm", "mkv", "avi", "mov")
AUDIO_FORMATS = ("mp3", "m4a", "opus", "wav", "flac")

# Containers yt-dlp can merge separate video/audio streams into
MERGEABLE_FORMATS = ("mp4", "webm", "mkv", "mov", "avi")

# Maps user-facing quality names to yt-dlp format selectors
QUALITY_PRESETS = {
    "best": "best",
    "2160p": "best[height<=2160]",
    "1440p": "best[height<=1440]",
    "1080p": "best[height<=1080]",
    "720p": "best[height<=720]",
    "480p": "best[height<=480]",
    "360p": "best[height<=360]",
    "worst": "worst",
}

DEFAULT_SUBTITLE_LANGS = ["en", "en-US", "en-GB"]
DEFAULT_OUTPUT_TEMPLATE = "%(title)s.%(ext)s"


def default_output_dir() -> str:
    """~/Downloads/Media Downloader, honouring XDG_DOWNLOAD_DIR when exported."""
    base = os.environ.get("XDG_DOWNLOAD_DIR") or "~/Downloads"
    return str(Path(base).expanduser() / "Media Downloader")


def is_raw_selector(value: str) -> bool:
    """True when a quality string is already a yt-dlp format selector."""
    return "[" in value or "/" in value


def resolve_quality(quality: str) -> str:
    """Translates a quality preset into a yt-dlp selector."""
    return QUALITY_PRESETS.get(quality, quality)


class DownloadType(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"


class DownloadConfig(BaseModel):
    """A validated configuration model for a download session."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    download_type: DownloadType = DownloadType.VIDEO

    # Video
    video_format: str = "mp4"
    quality: str = "1080p"

    # Audio
    audio_format: str = "mp3"
    audio_quality: str = "5"

    # Extras
    download_subs: bool = False
    subtitle_langs: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SUBTITLE_LANGS)
    )
    download_thumb: bool = False
    embed_thumbnail: bool = False
    noplaylist: bool = True
    verify_audio: bool = False
    dry_run: bool = False

    # Output
    output_dir: str = Field(default_factory=default_output_dir)
    output_template: str = DEFAULT_OUTPUT_TEMPLATE

    # Internal fields not loaded from INI file
    source_urls: list[str] = Field(default_factory=list, repr=False)

    @field_validator("video_format", "audio_format", mode="before")
    @classmethod
    def normalise_format(cls, v: str) -> str:
        return str(v).strip().lower().lstrip(".")

    @field_validator("video_format")
    @classmethod
    def validate_video_format(cls, v: str) -> str:
        if v not in VIDEO_FORMATS:
            raise ValueError(
                f"Video format must be one of: {', '.join(VIDEO_FORMATS)}."
            )
        return v

    @field_validator("audio_format")
    @classmethod
    def validate_audio_format(cls, v: str) -> str:
        if v not in AUDIO_FORMATS:
            raise ValueError(
                f"Audio format must be one of: {', '.join(AUDIO_FORMATS)}."
            )
        return v

    @field_validator("quality")
    @classmethod
    def validate_quality(cls, v: str) -> str:
        """Accepts a preset name or a raw yt-dlp selector."""
        if not v:
            raise ValueError("Quality cannot be empty.")
        if v in QUALITY_PRESETS or is_raw_selector(v):
            return v
        raise ValueError(
            f"Quality must be one of {', '.join(QUALITY_PRESETS)} "
            "or a yt-dlp format selector."
        )

    @field_validator("audio_quality", mode="before")
    @classmethod
    def validate_audio_quality(cls, v: str | int) -> str:
        """VBR level 0 (best) to 10 (worst), or a bitrate such as '192K'."""
        value = str(v).strip()
        if value.isdigit() and 0 <= int(value) <= 10:
            return value
        if value[:-1].isdigit() and value[-1:].upper() == "K":
            return value[:-1] + "K"
        raise ValueError(
            "Audio quality must be a VBR level 0-10 or a bitrate like '192K'."
        )

    @field_validator("subtitle_langs", mode="before")
    @classmethod
    def split_langs(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            v = v.split(",")
        langs = [lang.strip() for lang in v if lang and lang.strip()]
        return langs or list(DEFAULT_SUBTITLE_LANGS)

    @field_validator("output_dir")
    @classmethod
    def validate_output_dir(cls, v: str) -> str:
        if not v:
            raise ValueError("Output directory cannot be empty.")
        expanded = str(Path(v).expanduser())
        try:
            validate_filepath(expanded, platform="auto")
        except PathValidationError as e:
            raise ValueError(f"Invalid output directory: {e}") from e
        return expanded

    @field_validator("output_template")
    @classmethod
    def validate_template(cls, v: str) -> str:
        """Validates the yt-dlp output template."""
        if not v:
            raise ValueError("Output template cannot be empty.")
        if ".." in v or v.startswith(("/", "\\")):
            raise ValueError(
                "Output template cannot contain relative '..' or absolute paths."
            )
        if "%(title)s" not in v and "%(id)s" not in v:
            raise ValueError("Output template must contain %(title)s or %(id)s.")
        try:
            # Placeholders are not part of the final name, check the literal parts
            validate_filepath(v.replace("%(", "").replace(")s", ""), platform="auto")
        except PathValidationError as e:
            raise ValueError(f"Invalid output template: {e}") from e
        return v

    @model_validator(mode="after")
    def apply_option_implications(self) -> "DownloadConfig":
        """Embedding a thumbnail requires fetching it first."""
        if self.embed_thumbnail and not self.download_thumb:
            # Bypass validate_assignment to avoid re-entering this validator
            object.__setattr__(self, "download_thumb", True)
        return self

    @property
    def is_audio(self) -> bool:
        return self.download_type == DownloadType.AUDIO

    @property
    def target_extension(self) -> str:
        return self.audio_format if self.is_audio else self.video_format

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"source_urls", "dry_run"}
        return {key for key in cls.model_fields if key not in internal_fields}
