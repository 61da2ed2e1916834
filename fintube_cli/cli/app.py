"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import sys
import time
from pathlib import Path

import aiohttp
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from fintube_cli import __version__
from fintube_cli.api.sponsorblock import SEGMENT_CATEGORY, SegmentFetcher
from fintube_cli.core.job_manager import JobManager, expand_sources
from fintube_cli.core.job_runner import JobRunner
from fintube_cli.exceptions import FinTubeError
from fintube_cli.media.tools import ToolLocator
from fintube_cli.models.config import (
    DEFAULT_FFMPEG_PATH,
    DEFAULT_ID3_PATH,
    DEFAULT_YTDL_PATH,
    FinTubeConfig,
)
from fintube_cli.models.job import JobRequest, TagFields
from fintube_cli.storage.config_manager import ConfigManager

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_job_result,
    print_libraries,
    print_summary_panel,
    print_tools_table,
    print_validation_table,
)

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("fintube_cli")

app = typer.Typer(
    name="fintube",
    help=(
        "Fetch music and videos with yt-dlp into your media libraries, with"
        " optional non-music removal and tagging. Use 'fintube <command> --help'"
        " for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

# Any well-known id works, the service answers 404 for ids without segments
CONNECTIVITY_CHECK_ID = "dQw4w9WgXcQ"


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "fintube"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """FinTube CLI"""
    if version:
        console.print(f"[bold]fintube[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("fintube_cli").setLevel(log_level)

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]fintube init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        config_manager = ConfigManager(CONFIG_FILE)
        config = config_manager.load_config()
        config_data = config.model_dump(include=FinTubeConfig.get_ini_keys())
        print_config(CONFIG_FILE, dict(sorted(config_data.items())))
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    libraries: list[str] | None = typer.Option(  # noqa: B008
        None,
        "--library",
        "-l",
        help="A library root folder. Repeat for several libraries.",
    ),
    ytdl: str = typer.Option(DEFAULT_YTDL_PATH, "--ytdl", help="Path to yt-dlp."),
    id3: str = typer.Option(
        DEFAULT_ID3_PATH, "--id3", help="Path to id3v2. Empty disables tagging."
    ),
    ffmpeg: str = typer.Option(
        DEFAULT_FFMPEG_PATH,
        "--ffmpeg",
        help="Path to ffmpeg. ffprobe must sit next to it. Empty disables trimming.",
    ),
    workers: int = typer.Option(
        2, "-w", "--workers", help="Number of jobs run at the same time."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration."
    ),
):
    """Write a new configuration file."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    library_list = [str(Path(lib).expanduser()) for lib in libraries or []]
    settings = {
        "exec_ytdl": ytdl,
        "exec_id3": id3,
        "exec_ffmpeg": ffmpeg,
        "max_workers": workers,
        "libraries": library_list,
        "default_library": library_list[0] if library_list else "",
    }
    config_manager = ConfigManager(CONFIG_FILE)
    try:
        config_manager.save_new_config(settings)
    except FinTubeError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    console.print(
        f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]"
    )
    console.print("Check your tools with: [cyan]fintube diagnose[/cyan]")


def _read_ids_from_stdin() -> list[str]:
    """Reads ids or URLs from stdin, one per line."""
    if sys.stdin.isatty():
        console.print(
            "[yellow]⚠️  No input detected on stdin. Please pipe ids or redirect"
            " a file.[/yellow]"
        )
        console.print(
            "[dim]Examples:[/dim]\n"
            "  [cyan]cat ids.txt | fintube download --stdin[/cyan]\n"
            "  [cyan]fintube download --stdin < ids.txt[/cyan]"
        )
        raise typer.Exit(code=1)

    ids = []
    console.print("[dim]Reading ids from stdin...[/dim]")
    try:
        for line in sys.stdin:
            line = line.strip()
            if line and not line.startswith("#"):
                ids.append(line)
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Input interrupted.[/yellow]")
        raise typer.Exit(code=1) from None

    if not ids:
        console.print("[yellow]⚠️  No valid ids found in stdin.[/yellow]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Read {len(ids)} ids from stdin.[/green]")
    return ids


def resolve_library(config: FinTubeConfig, library: str | None) -> str:
    """
    Picks the library root for a session: an explicit path, a 1-based index
    into the configured libraries, or the configured default.
    """
    if library:
        if library.isdigit() and 1 <= int(library) <= len(config.libraries):
            return config.libraries[int(library) - 1]
        return library
    if config.default_library:
        return config.default_library
    if config.libraries:
        return config.libraries[0]
    console.print(
        "[red]✗ No library given.[/red] Use [cyan]--library <PATH>[/cyan] or"
        " configure one with [cyan]fintube init --library <PATH>[/cyan]."
    )
    raise typer.Exit(code=1)


@app.command(name="download")
def download_command(
    sources: list[str] | None = typer.Argument(  # noqa: B008
        None, help="Video ids, watch URLs, or paths to files listing them."
    ),
    # --- Target Options ---
    library: str | None = typer.Option(
        None,
        "-l",
        "--library",
        help="Library root folder, or its number from 'fintube libraries'.",
    ),
    folder: str = typer.Option(
        "", "-f", "--folder", help="Subfolder inside the library."
    ),
    # --- Format Options ---
    audio_only: bool = typer.Option(
        False, "-a", "--audio-only", help="Extract audio instead of keeping video."
    ),
    free_format: bool = typer.Option(
        False,
        "--free-format",
        help="Prefer free formats (opus/webm) over mp3/mp4.",
    ),
    resolution: str | None = typer.Option(
        None, "-r", "--resolution", help="Preferred video resolution, e.g. 720p."
    ),
    # --- Audio Post-Processing ---
    artist: str = typer.Option("", "--artist", help="Artist tag (audio only)."),
    album: str = typer.Option("", "--album", help="Album tag (audio only)."),
    title: str = typer.Option(
        "", "--title", help="Title tag, also used as the file name (audio only)."
    ),
    track: int = typer.Option(0, "--track", help="Track number tag (audio only)."),
    remove_non_music: bool = typer.Option(
        False,
        "--remove-non-music",
        help="Cut non-music sections reported by SponsorBlock (audio only).",
    ),
    embed_thumbnail: bool = typer.Option(
        False, "--embed-thumbnail", help="Embed the thumbnail into the file."
    ),
    embed_metadata: bool = typer.Option(
        False, "--embed-metadata", help="Embed the source metadata into the file."
    ),
    # --- Behavior ---
    workers: int | None = typer.Option(
        None,
        "-w",
        "--workers",
        help="Number of jobs run at the same time (overrides the config).",
    ),
    stdin: bool = typer.Option(
        False, "--stdin", help="Read ids from standard input, one per line."
    ),
):
    """Fetch one or more items into a library."""
    if stdin and sources:
        console.print(
            "[yellow]⚠️  Both ids and --stdin provided. Using --stdin only.[/yellow]"
        )
        sources = _read_ids_from_stdin()
    elif stdin:
        sources = _read_ids_from_stdin()
    elif not sources:
        console.print(
            "[red]✗ No ids provided.[/red] "
            "Use: [cyan]fintube download <ID>[/cyan] or [cyan]--stdin[/cyan]"
        )
        raise typer.Exit(code=1)

    cli_options = {"max_workers": workers} if workers is not None else {}

    try:
        config = ConfigManager(CONFIG_FILE).load_config(cli_options)
    except FinTubeError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e

    target_library = resolve_library(config, library)
    content_ids = expand_sources(sources)

    requests: list[JobRequest] = []
    invalid = 0
    for content_id in content_ids:
        try:
            requests.append(
                JobRequest(
                    content_id=content_id,
                    target_library=target_library,
                    target_folder=folder,
                    audio_only=audio_only,
                    prefer_free_format=free_format,
                    video_resolution=resolution,
                    tags=TagFields(artist=artist, album=album, title=title, track=track),
                    remove_non_music=remove_non_music,
                    embed_thumbnail=embed_thumbnail,
                    embed_metadata=embed_metadata,
                )
            )
        except ValidationError as e:
            invalid += 1
            console.print(
                format_error_with_suggestions(e, {"source": content_id})
            )

    async def _download_async() -> JobManager:
        timeout = aiohttp.ClientTimeout(total=config.request_timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            fetcher = SegmentFetcher(
                config.sponsorblock_url, config.request_timeout, session=session
            )
            manager = JobManager(config, JobRunner(config, segment_fetcher=fetcher))
            console.print(
                f"[bold cyan]🎵 Starting session: {len(requests)} job(s) into"
                f" {escape(target_library)}[/bold cyan]"
            )
            results = await manager.execute_jobs(requests)
        for result in results:
            print_job_result(result)
        return manager

    start_time = time.monotonic()
    manager = asyncio.run(_download_async())
    duration = time.monotonic() - start_time

    print_summary_panel(manager.stats, duration)
    if invalid or manager.stats.jobs_failed:
        raise typer.Exit(code=1)


@app.command()
def libraries():
    """List the configured library folders."""
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
    except FinTubeError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e
    print_libraries(config)


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config_manager = ConfigManager(CONFIG_FILE)
        config = config_manager.load_config()
        print_validation_table(config)
    except FinTubeError as e:
        console.print(f"[red]✗ Configuration is invalid: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e


@app.command()
def diagnose():
    """Diagnose tool paths and connectivity to the skip-segment service."""
    console.print("\n[bold cyan]Running diagnostics...[/bold cyan]\n")
    issues_found = False
    if CONFIG_FILE.is_file():
        console.print(f"[green]✓[/] Config file exists at: [dim]{CONFIG_FILE}[/dim]")
    else:
        console.print("[red]✗ Config file not found.[/] Run [cyan]fintube init[/cyan].")
        raise typer.Exit(code=1)
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
        console.print("[green]✓[/] Configuration file is valid and can be loaded.")
    except FinTubeError as e:
        console.print(f"[red]✗ Configuration validation failed: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    try:
        tools = ToolLocator(config).locate()
        print_tools_table(config, tools)
        if not tools.has_tagger:
            console.print("[yellow]⚠ Tagging is disabled.[/yellow]")
        if not tools.has_trimmer:
            console.print("[yellow]⚠ Non-music removal is disabled.[/yellow]")
    except FinTubeError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        issues_found = True

    console.print("\n[dim]Testing connectivity to the skip-segment service...[/dim]")

    async def test_connection():
        params = {"videoID": CONNECTIVITY_CHECK_ID, "category": SEGMENT_CATEGORY}
        try:
            timeout = aiohttp.ClientTimeout(total=10)
            async with (
                aiohttp.ClientSession(timeout=timeout) as session,
                session.get(config.sponsorblock_url, params=params) as resp,
            ):
                if resp.status in (200, 404):
                    console.print("[green]✓[/] Skip-segment service is reachable.")
                    return True
                console.print(
                    "[red]✗ Unexpected answer from the skip-segment service "
                    f"(Status: {resp.status}).[/red]"
                )
                return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            console.print(f"[red]✗ Connection test failed: {escape(str(e))}[/red]")
            return False

    if not asyncio.run(test_connection()):
        issues_found = True
    console.print()
    if not issues_found:
        console.print(
            "[bold green]✓ All checks passed! Your setup looks good.[/bold green]\n"
        )
    else:
        console.print(
            "[bold red]✗ Some issues were found. "
            "Please review the messages above.[/bold red]\n"
        )
        raise typer.Exit(code=1)
