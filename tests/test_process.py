"""ProcessRunner tests against real subprocesses."""

import asyncio
import logging
import sys

import pytest
from rich.text import Text

from fintube_cli.exceptions import ProcessError
from fintube_cli.media.process import ProcessRunner, format_command


def test_format_command_quotes_arguments() -> None:
    assert format_command(["yt-dlp", "-o", "My Song.%(ext)s"]) == (
        "yt-dlp -o 'My Song.%(ext)s'"
    )


class TestProcessRunner:
    @pytest.fixture
    def runner(self) -> ProcessRunner:
        return ProcessRunner()

    def test_captures_output(self, runner: ProcessRunner) -> None:
        cmd = [
            sys.executable,
            "-c",
            "import sys; print('out'); print('err', file=sys.stderr)",
        ]

        result = asyncio.run(runner.run(cmd))

        assert result.ok
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"
        assert result.args == tuple(cmd)

    def test_non_zero_exit_is_returned(self, runner: ProcessRunner) -> None:
        result = asyncio.run(runner.run([sys.executable, "-c", "raise SystemExit(3)"]))

        assert not result.ok
        assert result.returncode == 3

    def test_run_checked_raises(self, runner: ProcessRunner) -> None:
        cmd = [
            sys.executable,
            "-c",
            "import sys; print('bad input', file=sys.stderr); sys.exit(2)",
        ]

        with pytest.raises(ProcessError) as exc_info:
            asyncio.run(runner.run_checked(cmd, "Tool"))

        assert exc_info.value.returncode == 2
        assert str(exc_info.value) == "Tool failed with code 2\nbad input"

    def test_missing_executable(self, runner: ProcessRunner, tmp_path) -> None:
        with pytest.raises(ProcessError, match="Could not start"):
            asyncio.run(runner.run([str(tmp_path / "missing-tool")]))

    def test_command_is_logged_literally(
        self, runner: ProcessRunner, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.INFO, logger="fintube_cli")

        asyncio.run(runner.run([sys.executable, "-c", "pass", "[bold]Song[/bold]"]))

        messages = [r.getMessage() for r in caplog.records]
        (message,) = [m for m in messages if m.startswith("Running")]
        assert "\\[bold]Song\\[/bold]" in message
        assert "'[bold]Song[/bold]'" in Text.from_markup(message).plain


class TestProcessError:
    def test_only_stderr_tail_is_shown(self) -> None:
        stderr = "\n".join(f"line {i}" for i in range(30))
        error = ProcessError("yt-dlp failed with code 1", returncode=1, stderr=stderr)

        lines = str(error).splitlines()

        assert lines[0] == "yt-dlp failed with code 1"
        assert lines[1:] == [f"line {i}" for i in range(20, 30)]
