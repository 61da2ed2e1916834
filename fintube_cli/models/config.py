"""
Pydantic model for application configuration.
Provides validation for tool paths and download settings.
"""

import shlex

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_YTDL_PATH = "/usr/local/bin/yt-dlp"
DEFAULT_ID3_PATH = "/usr/bin/id3v2"
DEFAULT_FFMPEG_PATH = "/usr/bin/ffmpeg"
DEFAULT_SPONSORBLOCK_URL = "https://sponsor.ajay.app/api/skipSegments"


class FinTubeConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # External tools
    exec_ytdl: str = DEFAULT_YTDL_PATH
    exec_id3: str = DEFAULT_ID3_PATH
    exec_ffmpeg: str = DEFAULT_FFMPEG_PATH

    # Download tool customisation
    custom_ytdl_args: str = ""
    custom_ytdl_output_template: str = ""

    # Skip-segment service
    sponsorblock_url: str = DEFAULT_SPONSORBLOCK_URL
    request_timeout: float = 300.0

    # Session settings
    max_workers: int = 2
    libraries: list[str] = Field(default_factory=list)
    default_library: str = ""

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    @field_validator("exec_ytdl")
    @classmethod
    def validate_ytdl(cls, v: str) -> str:
        """The download tool is the only tool that cannot be disabled."""
        if not v:
            raise ValueError("exec_ytdl cannot be empty.")
        return v

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Ensures a reasonable number of workers."""
        if v < 1 or v > 32:
            raise ValueError("Max workers must be between 1 and 32.")
        return v

    @field_validator("request_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Request timeout must be positive.")
        return v

    @field_validator("sponsorblock_url")
    @classmethod
    def validate_sponsorblock_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"SponsorBlock URL must be http(s), got: {v}")
        return v

    @field_validator("custom_ytdl_args")
    @classmethod
    def validate_custom_args(cls, v: str) -> str:
        try:
            shlex.split(v)
        except ValueError as e:
            raise ValueError(f"custom_ytdl_args cannot be split: {e}") from e
        return v

    @field_validator("custom_ytdl_output_template")
    @classmethod
    def validate_output_template(cls, v: str) -> str:
        """
        The template is appended to the resolved base filename, so it must not
        leave the target directory and must keep the extension placeholder.
        """
        if not v:
            return v
        if "/" in v or "\\" in v or ".." in v:
            raise ValueError(
                "Output template cannot contain path separators or '..'."
            )
        if not v.endswith("%(ext)s"):
            raise ValueError("Output template must end with '%(ext)s'.")
        return v

    @field_validator("libraries")
    @classmethod
    def validate_libraries(cls, v: list[str]) -> list[str]:
        return [lib.strip() for lib in v if lib and lib.strip()]

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
