"""
Tk graphical interface. Importing this package requires tkinter.
"""

from .app import DownloaderGUI

__all__ = ["DownloaderGUI"]
