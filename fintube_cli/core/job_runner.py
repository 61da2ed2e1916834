"""
Runs a single fetch job: download, optional non-music removal, optional tagging.
"""

import asyncio
import glob
import logging
import math
import os
import re
import shlex
from collections import OrderedDict
from pathlib import Path
from typing import Optional

from rich.markup import escape

from fintube_cli.api.sponsorblock import SegmentFetcher
from fintube_cli.exceptions import (
    ConfigurationError,
    FilesystemError,
    FinTubeError,
    ParseError,
    RemoteServiceError,
)
from fintube_cli.media import (
    FileIntegrityChecker,
    ProcessRunner,
    ToolAvailability,
    ToolLocator,
    build_filter_expression,
    keep_segments,
)
from fintube_cli.media.process import format_command
from fintube_cli.models.config import FinTubeConfig
from fintube_cli.models.job import JobRequest, JobResult, JobState
from fintube_cli.utils.formatting import format_duration
from fintube_cli.utils.path import PathResolver, ResolvedTarget

log = logging.getLogger(__name__)

DEFAULT_VIDEO_OUTPUT_SUFFIX = "-%(title)s.%(ext)s"

# One yt-dlp template field, e.g. %(title)s or %(autonumber)03d
_TEMPLATE_FIELD = re.compile(r"%\([^)]*\)[-#0 +]*\d*(?:\.\d+)?[a-zA-Z]")


def output_glob(base_path: Path, suffix: str) -> str:
    """
    Turns the output template yt-dlp was given into a glob matching only the
    files it can produce: every template field becomes a wildcard, the rest
    is matched literally.
    """
    literal_parts = _TEMPLATE_FIELD.split(suffix)
    return glob.escape(str(base_path)) + "*".join(
        glob.escape(part) for part in literal_parts
    )


def parse_duration(output: str) -> float:
    """
    Parses the duration printed by ffprobe with csv=p=0 (e.g. '213.456000').

    Raises:
        ParseError: If the output holds no finite, non-negative number.
    """
    lines = [line.strip() for line in output.splitlines() if line.strip()]
    if not lines:
        raise ParseError("Duration probe returned no output")
    try:
        duration = float(lines[0])
    except ValueError as e:
        raise ParseError(f"Could not parse duration from {lines[0]!r}") from e
    if not math.isfinite(duration) or duration < 0:
        raise ParseError(f"Invalid duration {lines[0]!r}")
    return duration


class _JobTrail:
    """Collects the status lines and state history while a job runs."""

    def __init__(self, request: JobRequest):
        self.request = request
        self.status: list[str] = []
        self.history: list[JobState] = [JobState.INIT]
        self.target: Optional[ResolvedTarget] = None

    @property
    def state(self) -> JobState:
        return self.history[-1]

    def add(self, line: str) -> None:
        self.status.append(line)

    def advance(self, state: JobState) -> None:
        log.debug(f"{self.request.content_id}: {self.state.value} -> {state.value}")
        self.history.append(state)

    def finish(self, output_path: Optional[Path]) -> JobResult:
        self.add("File Saved!")
        self.history.append(JobState.DONE)
        return JobResult(
            content_id=self.request.content_id,
            state=JobState.DONE,
            status=tuple(self.status),
            history=tuple(self.history),
            output_path=output_path,
        )

    def fail(self, error: Exception) -> JobResult:
        self.history.append(JobState.FAILED)
        return JobResult(
            content_id=self.request.content_id,
            state=JobState.FAILED,
            status=tuple(self.status),
            history=tuple(self.history),
            error=str(error) or type(error).__name__,
            error_kind=type(error).__name__,
        )


class JobRunner:
    """
    Sequences the external tools for one job at a time.

    A runner can be shared by concurrent jobs: jobs resolving to the same
    target file are serialized by a per-path lock, so the later one sees the
    earlier one's file and fails the collision check.
    """

    def __init__(
        self,
        config: FinTubeConfig,
        process_runner: Optional[ProcessRunner] = None,
        segment_fetcher: Optional[SegmentFetcher] = None,
        tool_locator: Optional[ToolLocator] = None,
        path_resolver: Optional[PathResolver] = None,
    ):
        self.config = config
        self.process_runner = process_runner or ProcessRunner()
        self.segment_fetcher = segment_fetcher or SegmentFetcher(
            config.sponsorblock_url, timeout=config.request_timeout
        )
        self.tool_locator = tool_locator or ToolLocator(config)
        self.path_resolver = path_resolver or PathResolver()
        self._path_locks: OrderedDict[str, asyncio.Lock] = OrderedDict()
        self._max_locks = 1000
        self._path_lock_main = asyncio.Lock()

    async def _get_path_lock(self, path: Path) -> asyncio.Lock:
        """Gets or creates the lock guarding one target file."""
        key = str(path)
        async with self._path_lock_main:
            if key in self._path_locks:
                self._path_locks.move_to_end(key)
                return self._path_locks[key]

            lock = asyncio.Lock()
            self._path_locks[key] = lock

            # Evict the oldest idle locks once over the limit
            if len(self._path_locks) > self._max_locks:
                for old_key in list(self._path_locks):
                    if len(self._path_locks) <= self._max_locks:
                        break
                    if old_key != key and not self._path_locks[old_key].locked():
                        del self._path_locks[old_key]

            return lock

    async def run(self, request: JobRequest) -> JobResult:
        """
        Runs the whole job. Job failures are returned, not raised.

        Returns:
            A JobResult in state DONE, or FAILED with the error message and
            the status trail collected up to the failure.
        """
        log.info(
            f"Job {escape(request.content_id)} to "
            f"{escape(request.target_library)}/{escape(request.target_folder)}, "
            f"prefer free format: {request.prefer_free_format}, "
            f"audio only: {request.audio_only}"
        )
        trail = _JobTrail(request)
        try:
            output_path = await self._execute(trail)
        except FinTubeError as e:
            log.error(f"[red]✗ {escape(request.content_id)}: {escape(str(e))}[/red]")
            return trail.fail(e)
        except Exception as e:
            log.error(
                f"[red]✗ Unexpected error for {escape(request.content_id)}: {e}[/red]",
                exc_info=True,
            )
            return trail.fail(e)

        log.info(f"[green]✓ {escape(request.content_id)} saved.[/green]")
        return trail.finish(output_path)

    async def _execute(self, trail: _JobTrail) -> Optional[Path]:
        request = trail.request

        tools = self.tool_locator.locate()
        target = self.path_resolver.resolve(request)
        trail.target = target

        lock = await self._get_path_lock(target.final_path)
        async with lock:
            self.path_resolver.check_collision(target)
            trail.add(f"Filename: {target.base_path}")

            download_cmd = self.build_download_command(tools.ytdl, request, target)
            trail.advance(JobState.DOWNLOAD_FORMAT_VALID)

            trail.add(f"Exec: {format_command(download_cmd)}")
            await self.process_runner.run_checked(download_cmd, "yt-dlp")
            trail.advance(JobState.DOWNLOADED)

            if request.audio_only:
                await self._check_integrity(trail, target)

            await self._remove_non_music(trail, tools, target)
            await self._tag(trail, tools, target)

            return self._locate_output(request, target)

    @property
    def video_output_suffix(self) -> str:
        return self.config.custom_ytdl_output_template or DEFAULT_VIDEO_OUTPUT_SUFFIX

    def build_download_command(
        self, ytdl: str, request: JobRequest, target: ResolvedTarget
    ) -> list[str]:
        """
        Builds the yt-dlp argument list. Custom arguments from the configuration
        come first so the job's own flags win on conflicts.

        Raises:
            ConfigurationError: If the custom arguments cannot be split.
        """
        try:
            custom_args = shlex.split(self.config.custom_ytdl_args)
        except ValueError as e:
            raise ConfigurationError(f"Invalid custom_ytdl_args: {e}") from e

        cmd = [ytdl, *custom_args]

        if request.audio_only:
            cmd.append("-x")
            if request.prefer_free_format:
                cmd.append("--prefer-free-format")
            else:
                cmd.extend(["--audio-format", "mp3"])
            output_template = f"{target.base_path}.%(ext)s"
        else:
            if request.prefer_free_format:
                cmd.append("--prefer-free-format")
            else:
                cmd.extend(["-f", "mp4"])
            if request.video_resolution:
                cmd.extend(["-S", f"res:{request.video_resolution}"])
            output_template = f"{target.base_path}{self.video_output_suffix}"

        if request.embed_thumbnail:
            cmd.append("--embed-thumbnail")
        if request.embed_metadata:
            cmd.append("--embed-metadata")

        # Ids may start with '-', so end option parsing before the id
        cmd.extend(["-o", output_template, "--", request.content_id])
        return cmd

    @staticmethod
    def build_probe_command(ffprobe: str, media_path: Path) -> list[str]:
        return [
            ffprobe,
            "-i",
            str(media_path),
            "-show_entries",
            "format=duration",
            "-v",
            "quiet",
            "-of",
            "csv=p=0",
        ]

    @staticmethod
    def build_trim_command(
        ffmpeg: str, target: ResolvedTarget, filter_expression: str
    ) -> list[str]:
        return [
            ffmpeg,
            "-y",
            "-i",
            str(target.final_path),
            "-af",
            filter_expression,
            str(target.trim_path),
        ]

    @staticmethod
    def build_tag_command(id3: str, request: JobRequest, media_path: Path) -> list[str]:
        tags = request.tags
        return [
            id3,
            "-a",
            tags.artist,
            "-A",
            tags.album,
            "-t",
            tags.title,
            "-T",
            str(tags.track),
            str(media_path),
        ]

    async def _check_integrity(self, trail: _JobTrail, target: ResolvedTarget) -> None:
        """Reports whether the downloaded audio is readable. Never fatal."""
        if not target.final_path.is_file():
            log.warning(
                f"[yellow]Expected file {escape(str(target.final_path))} "
                "was not produced.[/yellow]"
            )
            trail.add(f"Warning: {target.final_path.name} not found after download")
            return

        length = await asyncio.to_thread(
            FileIntegrityChecker.audio_length, str(target.final_path)
        )
        if length is None:
            trail.add("Warning: downloaded audio could not be verified")
        else:
            trail.add(f"Downloaded {format_duration(length)} of audio")

    async def probe_duration(self, ffprobe: str, media_path: Path) -> float:
        """
        Raises:
            ProcessError: If the probe exits with a non-zero code.
            ParseError: If its output is not a duration.
        """
        cmd = self.build_probe_command(ffprobe, media_path)
        result = await self.process_runner.run_checked(cmd, "Ffprobe")
        return parse_duration(result.stdout)

    async def _remove_non_music(
        self, trail: _JobTrail, tools: ToolAvailability, target: ResolvedTarget
    ) -> None:
        request = trail.request

        if not (request.remove_non_music and request.audio_only):
            trail.advance(JobState.TRIM_SKIPPED)
            return
        if not tools.has_trimmer:
            trail.add("Non-music removal skipped: ffmpeg/ffprobe not available")
            trail.advance(JobState.TRIM_SKIPPED)
            return

        duration = await self.probe_duration(tools.ffprobe, target.final_path)
        trail.add(f"Duration: {duration:.3f}s")
        trail.advance(JobState.DURATION_PROBED)

        try:
            discard = await self.segment_fetcher.fetch(request.content_id)
        except RemoteServiceError as e:
            log.warning(f"[yellow]{escape(str(e))}. Skipping non-music removal.[/yellow]")
            trail.add(f"Non-music removal skipped: {e}")
            trail.advance(JobState.TRIM_SKIPPED)
            return

        if not discard:
            trail.add("Non-music removal skipped: no segments found")
            trail.advance(JobState.TRIM_SKIPPED)
            return
        trail.advance(JobState.SEGMENTS_FETCHED)

        keep = keep_segments(discard, duration)
        if not keep:
            trail.add("Non-music removal skipped: segments cover the whole file")
            trail.advance(JobState.TRIM_SKIPPED)
            return

        trim_cmd = self.build_trim_command(
            tools.ffmpeg, target, build_filter_expression(keep)
        )
        trail.add(f"Exec: {format_command(trim_cmd)}")
        await self.process_runner.run_checked(trim_cmd, "FFMpeg")

        try:
            os.replace(target.trim_path, target.final_path)
        except OSError as e:
            raise FilesystemError(
                f"Could not move trimmed file into place: {e}"
            ) from e

        removed = sum(seg.length for seg in discard)
        trail.add(
            f"Removed {len(discard)} non-music segment(s), {removed:.1f}s in total"
        )
        trail.advance(JobState.TRIMMED)

    async def _tag(
        self, trail: _JobTrail, tools: ToolAvailability, target: ResolvedTarget
    ) -> None:
        request = trail.request

        if not (request.audio_only and request.tags.has_tags()):
            trail.advance(JobState.TAG_SKIPPED)
            return
        if not tools.has_tagger:
            trail.add("Tagging skipped: id3v2 not available")
            trail.advance(JobState.TAG_SKIPPED)
            return

        tag_cmd = self.build_tag_command(tools.id3, request, target.final_path)
        trail.add(f"Exec: {format_command(tag_cmd)}")
        result = await self.process_runner.run(tag_cmd)
        if not result.ok:
            log.warning(
                f"[yellow]id3v2 exited with code {result.returncode} "
                f"for {escape(target.final_path.name)}[/yellow]"
            )
            trail.add(f"Warning: id3v2 exited with code {result.returncode}")
        trail.advance(JobState.TAGGED)

    def _locate_output(
        self, request: JobRequest, target: ResolvedTarget
    ) -> Optional[Path]:
        """
        Audio jobs write exactly final_path. Video jobs append the output
        template to the base name, so the produced file is looked up by that
        template.
        """
        if target.final_path.is_file():
            return target.final_path
        if request.audio_only:
            return None
        pattern = output_glob(target.base_path, self.video_output_suffix)
        candidates = sorted(Path(p) for p in glob.glob(pattern) if Path(p).is_file())
        return candidates[0] if candidates else None
