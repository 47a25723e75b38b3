"""
Storage Layer.

This package handles all data persistence: the INI configuration file and the
download history log.
"""

from .config_manager import ConfigManager, get_config_dir
from .history import DownloadHistory

__all__ = ["ConfigManager", "DownloadHistory", "get_config_dir"]
