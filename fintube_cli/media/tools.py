"""
Locates the external tools the pipeline drives and reports which optional
stages they make possible.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rich.markup import escape

from fintube_cli.exceptions import ConfigurationError
from fintube_cli.models.config import FinTubeConfig

log = logging.getLogger(__name__)

PROBE_NAME = "ffprobe"


def resolve_executable(path: str) -> Optional[str]:
    """
    Returns the usable path of an executable, or None if it does not exist.

    Absolute and relative paths must name an existing file. A bare command
    name (no directory part) is also looked up on PATH.
    """
    if not path:
        return None
    candidate = Path(path).expanduser()
    if candidate.is_file():
        return str(candidate)
    if candidate.name == path:
        return shutil.which(path)
    return None


def probe_path_for(trim_tool_path: str) -> str:
    """The probe tool lives next to the trim tool, under its own name."""
    trim_tool = Path(trim_tool_path)
    return str(trim_tool.with_name(PROBE_NAME + trim_tool.suffix))


@dataclass(frozen=True)
class ToolAvailability:
    """Resolved tool paths. None means the tool is not available."""

    ytdl: str
    id3: Optional[str] = None
    ffmpeg: Optional[str] = None
    ffprobe: Optional[str] = None

    @property
    def has_tagger(self) -> bool:
        return self.id3 is not None

    @property
    def has_trimmer(self) -> bool:
        """Trimming needs both the filter tool and the duration probe."""
        return self.ffmpeg is not None and self.ffprobe is not None


class ToolLocator:
    """Checks the configured tool paths once per job."""

    def __init__(self, config: FinTubeConfig):
        self.config = config

    def locate(self) -> ToolAvailability:
        """
        Resolves every configured tool.

        Raises:
            ConfigurationError: If the download tool cannot be found.
        """
        ytdl = resolve_executable(self.config.exec_ytdl)
        if ytdl is None:
            raise ConfigurationError(
                f"YT-DL executable configured incorrectly: '{self.config.exec_ytdl}'"
            )

        id3 = resolve_executable(self.config.exec_id3)
        if id3 is None:
            log.info(
                f"Tagging tool not found at '{escape(self.config.exec_id3)}', "
                "tagging disabled."
            )

        ffmpeg = resolve_executable(self.config.exec_ffmpeg)
        ffprobe = resolve_executable(probe_path_for(ffmpeg)) if ffmpeg else None
        if ffmpeg is None or ffprobe is None:
            log.info(
                f"ffmpeg/{PROBE_NAME} not found next to "
                f"'{escape(self.config.exec_ffmpeg)}', "
                "non-music removal disabled."
            )
            ffmpeg = ffprobe = None

        return ToolAvailability(ytdl=ytdl, id3=id3, ffmpeg=ffmpeg, ffprobe=ffprobe)
