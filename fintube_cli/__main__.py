"""
Entry point for ``fintube`` and ``python -m fintube_cli``.

Errors that escape the CLI are shown as a panel with suggestions and mapped
to an exit code.
"""

import asyncio
import logging
import sys
from typing import Optional, Sequence

import typer
from rich.console import Console

from fintube_cli.cli.app import app
from fintube_cli.cli.formatters import format_error_with_suggestions
from fintube_cli.exceptions import ConfigurationError, FinTubeError

log = logging.getLogger("fintube_cli")

EXIT_FAILURE = 1
EXIT_BAD_CONFIG = 2
EXIT_CANCELLED = 130


def exit_code_for(error: BaseException) -> int:
    if isinstance(error, ConfigurationError):
        return EXIT_BAD_CONFIG
    if isinstance(error, (KeyboardInterrupt, asyncio.CancelledError)):
        return EXIT_CANCELLED
    return EXIT_FAILURE


def main(argv: Optional[Sequence[str]] = None) -> None:
    console = Console()
    args = list(argv) if argv is not None else None

    try:
        app(args=args, prog_name="fintube")
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError) as e:
        console.print("\n[yellow]Cancelled; jobs in flight were abandoned.[/yellow]")
        sys.exit(exit_code_for(e))
    except FinTubeError as e:
        console.print(format_error_with_suggestions(e))
        sys.exit(exit_code_for(e))
    except Exception as e:
        console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        log.debug("Full traceback:", exc_info=True)
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
