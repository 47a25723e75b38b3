"""
Pydantic models for the media information reported by yt-dlp.
"""

from typing import Any

from pydantic import BaseModel, Field

UNKNOWN = "Unknown"


class FormatInfo(BaseModel):
    """A single downloadable format as listed by the extractor."""

    format_id: str
    ext: str = ""
    height: int | None = None
    vcodec: str = "none"
    acodec: str = "none"
    filesize: int | None = None
    note: str = ""

    @property
    def is_audio_only(self) -> bool:
        return self.vcodec == "none" and self.acodec != "none"

    @property
    def is_video_only(self) -> bool:
        return self.vcodec != "none" and self.acodec == "none"

    @classmethod
    def from_format_dict(cls, fmt: dict[str, Any]) -> "FormatInfo":
        return cls(
            format_id=str(fmt.get("format_id", "?")),
            ext=fmt.get("ext") or "",
            height=fmt.get("height"),
            vcodec=fmt.get("vcodec") or "none",
            acodec=fmt.get("acodec") or "none",
            filesize=fmt.get("filesize") or fmt.get("filesize_approx"),
            note=fmt.get("format_note") or "",
        )


class MediaInfo(BaseModel):
    """Metadata for a single media URL, fetched without downloading."""

    title: str = UNKNOWN
    uploader: str = UNKNOWN
    duration: int | float | str = UNKNOWN
    view_count: int | str = UNKNOWN
    upload_date: str = UNKNOWN
    webpage_url: str = ""
    extractor: str = ""
    formats: list[FormatInfo] = Field(default_factory=list)

    @classmethod
    def from_info_dict(cls, info: dict[str, Any]) -> "MediaInfo":
        """Builds a MediaInfo, substituting 'Unknown' for missing fields."""

        def _get(key: str) -> Any:
            value = info.get(key)
            return UNKNOWN if value is None else value

        return cls(
            title=_get("title"),
            uploader=_get("uploader"),
            duration=_get("duration"),
            view_count=_get("view_count"),
            upload_date=str(_get("upload_date")),
            webpage_url=info.get("webpage_url") or "",
            extractor=info.get("extractor_key") or info.get("extractor") or "",
            formats=[
                FormatInfo.from_format_dict(f)
                for f in info.get("formats") or []
                if isinstance(f, dict)
            ],
        )

    @property
    def duration_display(self) -> str:
        """Formats the duration as H:MM:SS (or M:SS under an hour)."""
        if not isinstance(self.duration, (int, float)):
            return UNKNOWN
        total = int(self.duration)
        hours, remainder = divmod(total, 3600)
        minutes, seconds = divmod(remainder, 60)
        if hours:
            return f"{hours}:{minutes:02d}:{seconds:02d}"
        return f"{minutes}:{seconds:02d}"

    @property
    def upload_date_display(self) -> str:
        """Converts yt-dlp's YYYYMMDD into YYYY-MM-DD."""
        date = self.upload_date
        if len(date) == 8 and date.isdigit():
            return f"{date[:4]}-{date[4:6]}-{date[6:]}"
        return date

    def best_heights(self) -> list[int]:
        """Distinct video heights available, highest first."""
        return sorted(
            {f.height for f in self.formats if f.height and f.vcodec != "none"},
            reverse=True,
        )
