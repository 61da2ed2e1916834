"""
Dataclass for tracking job session statistics.
"""

import time
from dataclasses import dataclass, field

from fintube_cli.models.job import JobResult


@dataclass
class JobStats:
    """Tracks statistics for a session of fetch jobs."""

    jobs_completed: int = 0
    jobs_failed: int = 0
    jobs_trimmed: int = 0
    jobs_tagged: int = 0
    duplicates_skipped: int = 0
    total_size_written: int = 0
    failures_by_kind: dict[str, int] = field(default_factory=dict)
    _start_time: float = field(default_factory=time.monotonic, repr=False)

    def record(self, result: JobResult) -> None:
        """Folds one finished job into the session totals."""
        if not result.success:
            self.jobs_failed += 1
            kind = result.error_kind or "Unknown"
            self.failures_by_kind[kind] = self.failures_by_kind.get(kind, 0) + 1
            return

        self.jobs_completed += 1
        if result.trimmed:
            self.jobs_trimmed += 1
        if result.tagged:
            self.jobs_tagged += 1
        if result.output_path and result.output_path.is_file():
            self.total_size_written += result.output_path.stat().st_size

    @property
    def total_jobs(self) -> int:
        return self.jobs_completed + self.jobs_failed

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._start_time
