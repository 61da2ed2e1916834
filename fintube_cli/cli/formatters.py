"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from fintube_cli.media.tools import ToolAvailability
from fintube_cli.models.config import FinTubeConfig
from fintube_cli.models.job import JobResult
from fintube_cli.models.stats import JobStats
from fintube_cli.utils.formatting import format_duration, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Check the tool paths with `fintube diagnose`.",
            "• Run `fintube init --force` to write a fresh configuration.",
            "• Use `fintube --show-config` to review the current values.",
        ],
        "FilesystemError": [
            "• The target file may already exist. Remove it or pick another folder.",
            "• Check that the library directory is writable.",
        ],
        "ProcessError": [
            "• The external tool reported an error, see its output above.",
            "• yt-dlp may be outdated. Try `yt-dlp -U`.",
        ],
        "ParseError": [
            "• A tool or the skip-segment service returned unexpected output.",
            "• Run the command with -vv for detailed logs.",
        ],
        "RemoteServiceError": [
            "• The skip-segment service could not be reached.",
            "• Check your internet connection or `sponsorblock_url`.",
        ],
        "ValidationError": [
            "• One of the job options has an invalid value.",
            "• See `fintube download --help` for the accepted formats.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        if isinstance(value, list):
            value = ", ".join(value)
        content += f"{key} = {escape(str(value))}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def _tool_cell(path: str | None, configured: str) -> str:
    if path:
        return f"[green]✓[/green] {escape(path)}"
    return f"[red]✗[/red] [dim]{escape(configured or '(disabled)')}[/dim]"


def print_tools_table(config: FinTubeConfig, tools: ToolAvailability):
    """Displays which external tools were found."""
    console = Console()
    table = Table(title="External Tools", box=box.ROUNDED)
    table.add_column("Tool", style="bold cyan")
    table.add_column("Path")
    table.add_column("Enables")

    table.add_row("yt-dlp", _tool_cell(tools.ytdl, config.exec_ytdl), "Download")
    table.add_row("id3v2", _tool_cell(tools.id3, config.exec_id3), "Tagging")
    table.add_row(
        "ffmpeg", _tool_cell(tools.ffmpeg, config.exec_ffmpeg), "Non-music removal"
    )
    table.add_row("ffprobe", _tool_cell(tools.ffprobe, ""), "Non-music removal")
    console.print(table)


def print_validation_table(config: FinTubeConfig):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("yt-dlp:", escape(config.exec_ytdl))
    table.add_row("id3v2:", escape(config.exec_id3) or "[dim](disabled)[/dim]")
    table.add_row("ffmpeg:", escape(config.exec_ffmpeg) or "[dim](disabled)[/dim]")
    table.add_row("Max Workers:", str(config.max_workers))
    table.add_row("Skip Segments:", f"[dim]{escape(config.sponsorblock_url)}[/dim]")
    table.add_row("Request Timeout:", f"{config.request_timeout:g}s")
    table.add_row(
        "Custom Arguments:",
        f"[dim]{escape(config.custom_ytdl_args)}[/dim]"
        if config.custom_ytdl_args
        else "-",
    )
    table.add_row(
        "Output Template:",
        f"[dim]{escape(config.custom_ytdl_output_template)}[/dim]"
        if config.custom_ytdl_output_template
        else "-",
    )
    table.add_row(
        "Libraries:",
        escape(", ".join(config.libraries)) if config.libraries else "[dim]none[/dim]",
    )

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_libraries(config: FinTubeConfig):
    """Lists the configured library roots, marking the default one."""
    console = Console()
    if not config.libraries:
        console.print(
            "[yellow]No libraries configured.[/yellow] "
            "Add them with [cyan]fintube init --library <PATH>[/cyan]."
        )
        return

    table = Table(title="Libraries", box=box.ROUNDED)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Path", style="cyan")
    table.add_column("Exists", justify="center")
    table.add_column("Default", justify="center")
    for i, library in enumerate(config.libraries, 1):
        exists = Path(library).expanduser().is_dir()
        table.add_row(
            str(i),
            escape(library),
            "[green]✓[/green]" if exists else "[red]✗[/red]",
            "★" if library == config.default_library else "",
        )
    console.print(table)


def print_job_result(result: JobResult):
    """Displays the status trail of one finished job."""
    console = Console()
    lines = [escape(line) for line in result.status]
    if result.success:
        title = f"[bold green]✓ {escape(result.content_id)}[/bold green]"
        border = "green"
    else:
        kind = escape(result.error_kind or "Error")
        lines.append(f"[bold red]{kind}:[/bold red] {escape(result.error or '')}")
        title = f"[bold red]✗ {escape(result.content_id)}[/bold red]"
        border = "red"

    console.print(
        Panel(
            "\n".join(lines) or "[dim]No output.[/dim]",
            title=title,
            border_style=border,
            expand=False,
        )
    )


def print_summary_panel(stats: JobStats, duration_s: float):
    """Displays the final summary of a fetch session."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row("✓ Saved:", f"[bold green]{stats.jobs_completed}[/bold green]")
    if stats.jobs_trimmed > 0:
        stats_table.add_row("✂ Trimmed:", f"[cyan]{stats.jobs_trimmed}[/cyan]")
    if stats.jobs_tagged > 0:
        stats_table.add_row("♫ Tagged:", f"[cyan]{stats.jobs_tagged}[/cyan]")
    if stats.duplicates_skipped > 0:
        stats_table.add_row(
            "○ Duplicates:", f"[yellow]{stats.duplicates_skipped}[/yellow]"
        )

    if stats.jobs_failed > 0:
        failures = ", ".join(
            f"{count} {kind}" for kind, count in sorted(stats.failures_by_kind.items())
        )
        stats_table.add_row(
            "✗ Failed:",
            f"[bold red]{stats.jobs_failed}[/bold red] [dim]({failures})[/dim]",
        )

    stats_table.add_row("", "")  # Spacer

    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.total_size_written)}[/cyan]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if stats.jobs_failed:
        title = "⚠ [bold]Session Finished With Errors[/bold]"
        border_color = "yellow"
    else:
        title = "🎵 [bold]Session Complete![/bold]"
        border_color = "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()
