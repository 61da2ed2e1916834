"""
Runs one external command to completion and captures its exit code and output.
"""

import asyncio
import logging
import shlex
from dataclasses import dataclass
from typing import Sequence

from rich.markup import escape

from fintube_cli.exceptions import ProcessError

log = logging.getLogger(__name__)


def format_command(cmd: Sequence[str]) -> str:
    """Renders an argument list as a copy-pasteable shell command."""
    return shlex.join(cmd)


@dataclass(frozen=True)
class ProcessResult:
    """Exit code and decoded output of a finished command."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ProcessRunner:
    """
    Thin wrapper around asyncio subprocesses.

    Commands are argument lists executed without a shell. There is no timeout:
    a call waits until the tool exits on its own.
    """

    async def run(self, cmd: Sequence[str]) -> ProcessResult:
        """
        Executes a command and waits for it to exit.

        Raises:
            ProcessError: If the executable cannot be started at all.
        """
        log.info(f"Running: [dim]{escape(format_command(cmd))}[/dim]")
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProcessError(f"Could not start '{cmd[0]}': {e}") from e

        stdout, stderr = await process.communicate()
        result = ProcessResult(
            args=tuple(cmd),
            returncode=process.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
        log.debug(f"'{escape(cmd[0])}' exited with code {result.returncode}")
        return result

    async def run_checked(self, cmd: Sequence[str], tool_name: str) -> ProcessResult:
        """
        Executes a command and raises if it exits with a non-zero code.

        Raises:
            ProcessError: On start failure or non-zero exit code.
        """
        result = await self.run(cmd)
        if not result.ok:
            log.error(f"{tool_name} failed with code {result.returncode}")
            raise ProcessError(
                f"{tool_name} failed with code {result.returncode}",
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result
