"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class MediaDownloaderError(Exception):
    """Base exception for all application-specific errors."""


class DependencyMissingError(MediaDownloaderError):
    """Raised when yt-dlp (or another runtime requirement) cannot be imported."""


class MetadataError(MediaDownloaderError):
    """Raised when media information cannot be extracted from a URL."""


class DownloadFailedError(MediaDownloaderError):
    """Raised when the extraction library reports a failed download."""


class OutputDirectoryError(MediaDownloaderError):
    """Raised when the output directory cannot be created or written to."""


class ConfigurationError(MediaDownloaderError):
    """Raised for issues related to configuration loading or validation."""


class ScaffoldError(MediaDownloaderError):
    """Raised when the distribution tree cannot be generated."""


class SourceResolutionError(ScaffoldError):
    """Raised when a Flatpak module source cannot be resolved from PyPI."""


class PackageValidationError(MediaDownloaderError):
    """Raised when a generated distribution tree fails validation."""
