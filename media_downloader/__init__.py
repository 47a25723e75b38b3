"""
Media Downloader - combined audio/video downloader.
A desktop GUI and command-line front end over yt-dlp.
"""

__version__ = "1.0.0"
__author__ = "Media Downloader Team"
__license__ = "GPL-3.0-or-later"

APP_ID = "com.example.MediaDownloader"
APP_NAME = "Media Downloader"
DIST_NAME = "media-downloader"
