"""
Provides a basic readability check for downloaded audio files.
"""

import logging
from typing import Optional

import mutagen
from mutagen import MutagenError
from rich.markup import escape

log = logging.getLogger(__name__)


class FileIntegrityChecker:
    """A collection of static methods for validating media file integrity."""

    @staticmethod
    def audio_length(filepath: str) -> Optional[float]:
        """
        Opens an audio file with mutagen and returns its stream length.

        Args:
            filepath: Path to an mp3, opus or other mutagen-supported file.

        Returns:
            Length in seconds, or None if the file is unreadable or has no
            valid stream info.
        """
        name = escape(str(filepath))
        try:
            audio = mutagen.File(filepath)
        except MutagenError as e:
            log.warning(f"Integrity check failed for '{name}': {e}")
            return None
        except OSError as e:
            log.warning(f"Integrity check could not open '{name}': {e}")
            return None

        if audio is None or audio.info is None:
            log.warning(
                f"Integrity check failed for '{name}': Unrecognised audio format."
            )
            return None
        length = getattr(audio.info, "length", 0) or 0
        if length <= 0:
            log.warning(f"Integrity check failed for '{name}': No valid stream info.")
            return None
        return float(length)

    @classmethod
    def check_audio(cls, filepath: str) -> bool:
        return cls.audio_length(filepath) is not None
