"""
Data Models Layer.

This package contains Pydantic models and dataclasses that define the core data
structures used throughout the application, such as configuration, media
information and statistics.
"""

from .config import DownloadConfig, DownloadType
from .media import FormatInfo, MediaInfo
from .stats import DownloadStats

__all__ = ["DownloadConfig", "DownloadStats", "DownloadType", "FormatInfo", "MediaInfo"]
