"""
Core application engine.

`MediaDownloader` is the facade over yt-dlp, `build_ydl_options` turns a
`DownloadConfig` into library options, and `DownloadSession` coordinates a
batch of URLs for the command-line interface.
"""
