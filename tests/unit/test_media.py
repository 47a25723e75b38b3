"""
Tests for the MediaInfo and FormatInfo models.
"""

from media_downloader.models.media import FormatInfo, MediaInfo

INFO = {
    "title": "Big Buck Bunny",
    "uploader": "Blender",
    "duration": 3725,
    "view_count": 1234567,
    "upload_date": "20240115",
    "webpage_url": "https://example.com/watch?v=1",
    "extractor_key": "Youtube",
    "formats": [
        {"format_id": "140", "ext": "m4a", "vcodec": "none", "acodec": "mp4a.40.2"},
        {"format_id": "137", "ext": "mp4", "height": 1080, "vcodec": "avc1"},
        {"format_id": "22", "ext": "mp4", "height": 720, "vcodec": "avc1",
         "acodec": "mp4a", "filesize_approx": 1000},
        {"format_id": "136", "ext": "mp4", "height": 720, "vcodec": "avc1"},
    ],
}


def test_from_info_dict() -> None:
    info = MediaInfo.from_info_dict(INFO)
    assert info.title == "Big Buck Bunny"
    assert info.extractor == "Youtube"
    assert len(info.formats) == 4
    assert info.duration_display == "1:02:05"
    assert info.upload_date_display == "2024-01-15"
    assert info.best_heights() == [1080, 720]


def test_missing_fields_become_unknown() -> None:
    info = MediaInfo.from_info_dict({"title": None})
    assert info.title == "Unknown"
    assert info.uploader == "Unknown"
    assert info.duration_display == "Unknown"
    assert info.upload_date_display == "Unknown"
    assert info.formats == []


def test_short_duration() -> None:
    assert MediaInfo(duration=65).duration_display == "1:05"


def test_format_kinds() -> None:
    audio, video_only, muxed = (
        FormatInfo.from_format_dict(INFO["formats"][0]),
        FormatInfo.from_format_dict(INFO["formats"][1]),
        FormatInfo.from_format_dict(INFO["formats"][2]),
    )
    assert audio.is_audio_only and not audio.is_video_only
    assert video_only.is_video_only
    assert not muxed.is_audio_only and not muxed.is_video_only
    assert muxed.filesize == 1000

