"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class FinTubeError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(FinTubeError):
    """Raised for issues related to configuration loading, validation, or missing tools."""


class FilesystemError(FinTubeError):
    """
    Raised when the target directory cannot be created or the target file
    already exists.
    """


class ProcessError(FinTubeError):
    """Raised when an external tool exits with a non-zero code or cannot be started."""

    def __init__(
        self, message: str, returncode: int | None = None, stderr: str | None = None
    ):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr

    def __str__(self) -> str:
        base = super().__str__()
        if not self.stderr or not self.stderr.strip():
            return base
        # Only the last lines, a full yt-dlp/ffmpeg log is far too long
        lines = self.stderr.strip().splitlines()
        tail = lines[-10:]
        return f"{base}\n" + "\n".join(tail)


class ParseError(FinTubeError):
    """Raised when tool output or a remote payload cannot be decoded."""


class RemoteServiceError(FinTubeError):
    """
    Raised when the skip-segment service cannot be reached. Never fatal for a
    job: the trim stage is skipped instead.
    """
