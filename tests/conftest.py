"""pytest configuration and shared fixtures."""

import asyncio
from pathlib import Path
from typing import Optional, Sequence

import pytest

from fintube_cli.core.job_runner import JobRunner
from fintube_cli.media.process import ProcessResult, ProcessRunner
from fintube_cli.models.config import FinTubeConfig
from fintube_cli.models.job import Segment


class FakeProcessRunner(ProcessRunner):
    """
    Stands in for the external tools. Each call is recorded; yt-dlp and ffmpeg
    write the file they would produce, ffprobe prints a fixed duration.
    """

    def __init__(self, probe_output: str = "20.000000\n"):
        self.calls: list[list[str]] = []
        self.probe_output = probe_output
        self.returncodes: dict[str, int] = {}

    async def run(self, cmd: Sequence[str]) -> ProcessResult:
        await asyncio.sleep(0)
        cmd = list(cmd)
        self.calls.append(cmd)
        tool = Path(cmd[0]).name
        returncode = self.returncodes.get(tool, 0)
        stdout = ""
        if returncode == 0:
            if tool == "yt-dlp":
                self._write_download(cmd)
            elif tool == "ffprobe":
                stdout = self.probe_output
            elif tool == "ffmpeg":
                Path(cmd[-1]).write_bytes(b"trimmed")
        stderr = f"{tool}: something went wrong\n" if returncode else ""
        return ProcessResult(tuple(cmd), returncode, stdout, stderr)

    @staticmethod
    def _write_download(cmd: list[str]) -> None:
        template = cmd[cmd.index("-o") + 1]
        if "-x" in cmd:
            ext = "opus" if "--prefer-free-format" in cmd else "mp3"
        else:
            ext = "webm" if "--prefer-free-format" in cmd else "mp4"
        path = template.replace("%(title)s", "Some Title").replace("%(ext)s", ext)
        Path(path).write_bytes(b"media")

    def calls_for(self, tool: str) -> list[list[str]]:
        return [call for call in self.calls if Path(call[0]).name == tool]


class FakeSegmentFetcher:
    """Returns preset discard segments, or raises a preset error."""

    def __init__(self):
        self.result: Optional[list[Segment]] = None
        self.error: Optional[Exception] = None
        self.requested: list[str] = []

    async def fetch(self, content_id: str) -> Optional[list[Segment]]:
        self.requested.append(content_id)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def tool_dir(tmp_path: Path) -> Path:
    """A folder holding placeholder files for every external tool."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    for name in ("yt-dlp", "id3v2", "ffmpeg", "ffprobe"):
        (bin_dir / name).write_text("#!/bin/sh\n")
    return bin_dir


@pytest.fixture
def library(tmp_path: Path) -> Path:
    path = tmp_path / "library"
    path.mkdir()
    return path


@pytest.fixture
def config(tool_dir: Path, library: Path) -> FinTubeConfig:
    return FinTubeConfig(
        exec_ytdl=str(tool_dir / "yt-dlp"),
        exec_id3=str(tool_dir / "id3v2"),
        exec_ffmpeg=str(tool_dir / "ffmpeg"),
        libraries=[str(library)],
        default_library=str(library),
    )


@pytest.fixture
def process_runner() -> FakeProcessRunner:
    return FakeProcessRunner()


@pytest.fixture
def segment_fetcher() -> FakeSegmentFetcher:
    return FakeSegmentFetcher()


@pytest.fixture
def job_runner(
    config: FinTubeConfig,
    process_runner: FakeProcessRunner,
    segment_fetcher: FakeSegmentFetcher,
) -> JobRunner:
    return JobRunner(
        config, process_runner=process_runner, segment_fetcher=segment_fetcher
    )
