"""
Data structures describing a single fetch job: the request, its lifecycle
states, and the final result handed back to the caller.
"""

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fintube_cli.utils.path import normalize_subfolder, parse_content_id


class Segment(NamedTuple):
    """A time interval in seconds, start <= end."""

    start: float
    end: float

    @property
    def length(self) -> float:
        return self.end - self.start


class TagFields(BaseModel):
    """Tag values written into audio files after download."""

    model_config = ConfigDict(str_strip_whitespace=True)

    artist: str = ""
    album: str = ""
    title: str = ""
    track: int = 0

    @field_validator("track")
    @classmethod
    def validate_track(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Track number cannot be negative.")
        return v

    def has_tags(self) -> bool:
        """
        True when the tag fields carry more than a single character in total.
        The track number always counts with its string length, so an untouched
        request (track 0, empty strings) has no tags.
        """
        combined = (
            len(self.title) + len(self.album) + len(self.artist) + len(str(self.track))
        )
        return combined > 1


class JobRequest(BaseModel):
    """Everything needed to fetch one media item into a library folder."""

    model_config = ConfigDict(str_strip_whitespace=True)

    content_id: str
    target_library: str
    target_folder: str = ""
    audio_only: bool = False
    prefer_free_format: bool = False
    video_resolution: Optional[str] = None
    tags: TagFields = Field(default_factory=TagFields)
    remove_non_music: bool = False
    embed_thumbnail: bool = False
    embed_metadata: bool = False

    @field_validator("content_id", mode="before")
    @classmethod
    def validate_content_id(cls, v: str) -> str:
        """Accepts bare ids or full watch URLs."""
        content_id = parse_content_id(str(v))
        if not content_id:
            raise ValueError("Content ID cannot be empty.")
        if "/" in content_id or "\\" in content_id or content_id in (".", ".."):
            raise ValueError(f"Invalid content ID: {content_id!r}")
        return content_id

    @field_validator("target_library")
    @classmethod
    def validate_library(cls, v: str) -> str:
        if not v:
            raise ValueError("Target library cannot be empty.")
        return v

    @field_validator("target_folder")
    @classmethod
    def validate_folder(cls, v: str) -> str:
        folder = normalize_subfolder(v)
        if ".." in folder.split("/"):
            raise ValueError("Target folder cannot contain '..'.")
        return folder

    @field_validator("video_resolution")
    @classmethod
    def validate_resolution(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        match = re.fullmatch(r"(\d+)p?", v, re.IGNORECASE)
        if not match:
            raise ValueError(f"Video resolution must be a number like 720, got: {v}")
        return match.group(1)


class JobState(Enum):
    """Lifecycle states of a job, in pipeline order."""

    INIT = "init"
    DOWNLOAD_FORMAT_VALID = "download_format_valid"
    DOWNLOADED = "downloaded"
    TRIM_SKIPPED = "trim_skipped"
    DURATION_PROBED = "duration_probed"
    SEGMENTS_FETCHED = "segments_fetched"
    TRIMMED = "trimmed"
    TAGGED = "tagged"
    TAG_SKIPPED = "tag_skipped"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class JobResult:
    """
    Outcome of one job. Created once when the job ends and never modified.

    Attributes:
        content_id: The id of the fetched item.
        state: Terminal state, DONE or FAILED.
        status: Human-readable status trail, one entry per stage event.
        history: Every state the job passed through, in order.
        output_path: Final media file path, once it was resolved.
        error: Error message when the job failed.
        error_kind: Exception class name of the failure.
    """

    content_id: str
    state: JobState
    status: tuple[str, ...]
    history: tuple[JobState, ...]
    output_path: Optional[Path] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.state is JobState.DONE

    @property
    def trimmed(self) -> bool:
        return JobState.TRIMMED in self.history

    @property
    def tagged(self) -> bool:
        return JobState.TAGGED in self.history

    @property
    def message(self) -> str:
        """The status trail as a single block of text."""
        return "\n".join(self.status)
