"""
Utilities for building target paths and filenames, and for parsing content ids
out of watch URLs.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from pathvalidate import sanitize_filename

from fintube_cli.exceptions import FilesystemError

if TYPE_CHECKING:
    from fintube_cli.models.job import JobRequest

log = logging.getLogger(__name__)

# (audio_only, prefer_free_format) -> extension
EXTENSION_MAP = {
    (True, True): ".opus",
    (True, False): ".mp3",
    (False, True): ".webm",
    (False, False): ".mp4",
}

TRIM_SUFFIX = "-nmr"

_CONTENT_URL_PATTERN = re.compile(
    r"(?:youtube\.com/(?:watch\?(?:[^#]*&)?v=|shorts/|embed/|live/)|youtu\.be/)"
    r"(?P<id>[\w-]{11})"
)


def parse_content_id(value: str) -> str:
    """
    Extracts the video id from a watch/share URL. Anything that does not look
    like a known URL is returned unchanged (stripped), as a bare id.
    """
    value = value.strip()
    match = _CONTENT_URL_PATTERN.search(value)
    if match:
        return match.group("id")
    return value


def normalize_subfolder(folder: str) -> str:
    """Splits on '/', drops empty components and rejoins with a single '/'."""
    return "/".join(part for part in folder.split("/") if part)


def join_library_path(library: str, folder: str) -> str:
    """Concatenates library root and subfolder with exactly one separator."""
    folder = normalize_subfolder(folder)
    if library.endswith("/"):
        return library + folder
    return library + "/" + folder


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    try:
        directory_path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(
            f"Directory '{directory_path}' could not be created: {e}"
        ) from e
    if not directory_path.is_dir():
        raise FilesystemError(f"Directory '{directory_path}' could not be created")


def select_extension(audio_only: bool, prefer_free_format: bool) -> str:
    return EXTENSION_MAP[(audio_only, prefer_free_format)]


def select_base_filename(request: "JobRequest") -> str:
    """
    Audio jobs that carry tags and a real title are named after the title;
    everything else is named after the content id.
    """
    title = request.tags.title
    if request.audio_only and request.tags.has_tags() and len(title) > 1:
        safe_title = sanitize_filename(title, platform="auto").strip()
        if safe_title:
            return safe_title
        log.debug(f"Title {title!r} is empty once sanitized, using content id.")
    return request.content_id


@dataclass(frozen=True)
class ResolvedTarget:
    """Where a job writes its file."""

    directory: Path
    base_name: str
    extension: str

    @property
    def base_path(self) -> Path:
        """Directory and base name without extension, as handed to yt-dlp."""
        return self.directory / self.base_name

    @property
    def final_path(self) -> Path:
        return self.directory / f"{self.base_name}{self.extension}"

    @property
    def trim_path(self) -> Path:
        """Temporary sibling written by the trim stage."""
        return self.directory / f"{self.base_name}{TRIM_SUFFIX}{self.extension}"


class PathResolver:
    """
    Builds the target directory, filename and extension for a job request.
    """

    def build(self, request: "JobRequest") -> ResolvedTarget:
        """Computes the target without touching the filesystem."""
        directory = Path(
            join_library_path(request.target_library, request.target_folder)
        )
        directory = directory.expanduser().absolute()
        return ResolvedTarget(
            directory=directory,
            base_name=select_base_filename(request),
            extension=select_extension(request.audio_only, request.prefer_free_format),
        )

    def resolve(self, request: "JobRequest") -> ResolvedTarget:
        """Computes the target and creates its directory."""
        target = self.build(request)
        create_dir(target.directory)
        return target

    @staticmethod
    def check_collision(target: ResolvedTarget) -> None:
        """A pre-existing target file is never overwritten."""
        if target.final_path.exists():
            raise FilesystemError(f"File {target.final_path} already exists")
