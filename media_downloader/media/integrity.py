"""
Provides methods for checking the integrity of extracted audio files.
"""

import logging
from pathlib import Path

import mutagen
from mutagen import MutagenError

from media_downloader.models.config import AUDIO_FORMATS

log = logging.getLogger(__name__)


class AudioIntegrityChecker:
    """A collection of static methods for validating downloaded audio files."""

    @staticmethod
    def check(filepath: str | Path) -> bool:
        """
        Performs a basic integrity check on an audio file.

        Checks if the file can be opened by mutagen and has valid stream info.

        Args:
            filepath: Path to the audio file.

        Returns:
            True if the file appears to be a valid audio file, False otherwise.
        """
        try:
            audio = mutagen.File(filepath)
        except MutagenError as e:
            log.warning(f"Integrity check failed for '{filepath}': {e}")
            return False
        except OSError as e:
            log.warning(f"Integrity check could not read '{filepath}': {e}")
            return False

        if audio is None:
            log.warning(
                f"Integrity check failed for '{filepath}': Unrecognised audio format."
            )
            return False

        info = getattr(audio, "info", None)
        if info is not None and getattr(info, "length", 0) > 0:
            return True

        log.warning(f"Integrity check failed for '{filepath}': No valid stream info.")
        return False

    @staticmethod
    def find_output_files(directory: str | Path, since: float) -> list[Path]:
        """Audio files in `directory` modified at or after the `since` timestamp."""
        directory = Path(directory)
        if not directory.is_dir():
            return []
        found = []
        for path in directory.iterdir():
            if not path.is_file():
                continue
            if path.suffix.lstrip(".").lower() not in AUDIO_FORMATS:
                continue
            try:
                if path.stat().st_mtime >= since:
                    found.append(path)
            except OSError as e:
                log.debug(f"Could not stat '{path}': {e}")
        return sorted(found)
