"""
The session orchestrator: expands the user's sources into job requests and
runs them concurrently through a shared JobRunner.
"""

import asyncio
import logging
from pathlib import Path
from typing import Iterable, Optional, Sequence

from rich.markup import escape

from fintube_cli.models.config import FinTubeConfig
from fintube_cli.models.job import JobRequest, JobResult
from fintube_cli.models.stats import JobStats

from .job_runner import JobRunner

log = logging.getLogger(__name__)


def expand_sources(sources: Iterable[str]) -> list[str]:
    """
    Expands sources into content ids or URLs. A source naming an existing file
    contributes one entry per non-empty line; lines starting with '#' are
    comments. Duplicates are dropped, keeping the first occurrence.
    """
    expanded: list[str] = []
    for source in sources:
        if Path(source).is_file():
            log.info(f"Reading ids from file: [dim]{escape(source)}[/dim]")
            try:
                with open(source, "r", encoding="utf-8") as f:
                    expanded.extend(
                        line.strip()
                        for line in f
                        if line.strip() and not line.strip().startswith("#")
                    )
            except (OSError, UnicodeDecodeError) as e:
                log.error(f"[red]Could not read file {escape(source)}: {e}[/red]")
        elif source.strip():
            expanded.append(source.strip())

    unique = list(dict.fromkeys(expanded))
    if len(unique) < len(expanded):
        log.info(f"Removed {len(expanded) - len(unique)} duplicate entries.")
    return unique


class JobManager:
    """Runs a batch of jobs, bounded by the configured number of workers."""

    def __init__(self, config: FinTubeConfig, runner: Optional[JobRunner] = None):
        self.config = config
        self.runner = runner or JobRunner(config)
        self.stats = JobStats()
        self.semaphore = asyncio.Semaphore(config.max_workers)

    async def execute_jobs(self, requests: Sequence[JobRequest]) -> list[JobResult]:
        """
        Runs every request and returns the results in submission order.
        Identical requests are only run once.
        """
        unique: dict[str, JobRequest] = {}
        for request in requests:
            unique.setdefault(request.model_dump_json(), request)

        duplicates = len(requests) - len(unique)
        if duplicates:
            self.stats.duplicates_skipped += duplicates
            log.info(f"Skipped {duplicates} duplicate job(s).")

        if not unique:
            log.info("No jobs to run. Nothing to do.")
            return []

        tasks = [self._run_one(request) for request in unique.values()]
        return list(await asyncio.gather(*tasks))

    async def _run_one(self, request: JobRequest) -> JobResult:
        async with self.semaphore:
            result = await self.runner.run(request)
        self.stats.record(result)
        return result
