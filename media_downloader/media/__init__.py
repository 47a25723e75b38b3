"""
Media Handling Layer.

Post-download inspection of the files produced by the extraction library.
"""

from .integrity import AudioIntegrityChecker

__all__ = ["AudioIntegrityChecker"]
