"""
Defines the command-line interface for the application using Typer.
Supports reading source URLs from stdin.
"""

import asyncio
import logging
import os
import sys
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from streamgrab import __version__
from streamgrab.core.download_manager import DownloadManager
from streamgrab.exceptions import StreamGrabError
from streamgrab.hls.parser import fetch_manifest
from streamgrab.media.fetcher import build_session, close_connection_pool
from streamgrab.storage.config_manager import ConfigManager

from .formatters import print_config, print_manifest, print_summary_panel
from .progress_manager import ProgressManager

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
log = logging.getLogger("streamgrab")

app = typer.Typer(
    name="streamgrab",
    help=(
        "Download HLS streams and direct media files with concurrent, retrying"
        " segment fetches. Use 'streamgrab <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "streamgrab"


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
        False, "--show-config", help="Display the effective configuration."
    ),
):
    """streamgrab CLI"""
    if version:
        console.print(f"[bold]streamgrab[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("streamgrab").setLevel(log_level)

    if show_config:
        _show_config()
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


def _show_config() -> None:
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
    except StreamGrabError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
    print_config(CONFIG_FILE, config)


@app.command(name="show-config")
def show_config_command():
    """Display the effective configuration."""
    _show_config()


@app.command()
def init(
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing config without asking."
    ),
):
    """Write a configuration file with default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    try:
        ConfigManager(CONFIG_FILE).save_new_config()
    except StreamGrabError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")


def _read_urls_from_stdin() -> list[str]:
    """Reads URLs from stdin, one per line."""
    if sys.stdin.isatty():
        console.print(
            "[yellow]⚠️  No input detected on stdin. Please pipe URLs or redirect"
            " a file.[/yellow]"
        )
        console.print(
            "[dim]Examples:[/dim]\n"
            "  [cyan]cat urls.txt | streamgrab grab --stdin[/cyan]\n"
            "  [cyan]streamgrab grab --stdin < urls.txt[/cyan]"
        )
        raise typer.Exit(code=1)

    urls = []
    console.print("[dim]Reading URLs from stdin...[/dim]")
    try:
        for line in sys.stdin:
            line = line.strip()
            if line and not line.startswith("#"):
                urls.append(line)
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Input interrupted.[/yellow]")
        raise typer.Exit(code=1) from None

    if not urls:
        console.print("[yellow]⚠️  No valid URLs found in stdin.[/yellow]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Read {len(urls)} URLs from stdin.[/green]")
    return urls


@app.command(name="grab")
def grab_command(
    urls: list[str] | None = typer.Argument(  # noqa: B008
        None, help="Playlist (.m3u8) or media URLs, or files containing URLs."
    ),
    workers: int | None = typer.Option(
        None,
        "-w",
        "--workers",
        help="Concurrent segment requests per job (default 8).",
    ),
    output_dir: str | None = typer.Option(
        None, "-o", "--output", help="Directory the finished files are written to."
    ),
    retries: int | None = typer.Option(
        None, "--retries", help="Extra attempts per segment after the first (default 3)."
    ),
    retry_delay: float | None = typer.Option(
        None, "--retry-delay", help="Base backoff in seconds; grows linearly per attempt."
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", help="Per-request timeout in seconds (default: none)."
    ),
    pool: bool | None = typer.Option(
        None,
        "--pool/--window",
        help="Keep segment requests flowing continuously instead of in windows.",
    ),
    name: str | None = typer.Option(
        None, "--name", "-n", help="File name for the download (single URL only)."
    ),
    page_url: str = typer.Option(
        "", "--page-url", help="The page the media was found on, passed with each job."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Do not draw the live progress display."
    ),
    stdin: bool = typer.Option(
        False, "--stdin", help="Read URLs from standard input, one URL per line."
    ),
):
    """Download one or more streams."""
    if stdin and urls:
        console.print(
            "[yellow]⚠️  Both URLs and --stdin provided. Using --stdin only.[/yellow]"
        )
        urls = _read_urls_from_stdin()
    elif stdin:
        urls = _read_urls_from_stdin()
    elif not urls:
        console.print(
            "[red]✗ No URLs provided.[/red] "
            "Use: [cyan]streamgrab grab <URL>[/cyan] or [cyan]--stdin[/cyan]"
        )
        raise typer.Exit(code=1)

    cli_options = {
        key: value
        for key, value in {
            "source_urls": urls,
            "concurrency_limit": workers,
            "output_dir": output_dir,
            "max_retries": retries,
            "retry_delay": retry_delay,
            "request_timeout": timeout,
            "scheduler_mode": None if pool is None else ("pool" if pool else "window"),
        }.items()
        if value is not None
    }

    async def _grab_async():
        manager = None
        duration = 0.0
        progress_stats = None

        async with ProgressManager(console=console, quiet=quiet) as progress_manager:
            try:
                config = ConfigManager(CONFIG_FILE).load_config(cli_options)
                manager = DownloadManager(
                    config,
                    progress_manager,
                    page_context_url=page_url,
                    suggested_filename=name,
                )
                console.print("[bold cyan]📼 Starting download session...[/bold cyan]")

                start_time = time.monotonic()
                try:
                    await manager.execute_downloads()
                except asyncio.CancelledError:
                    manager.cancel_all()
                    raise
                duration = time.monotonic() - start_time
                progress_stats = progress_manager.get_statistics()

            except StreamGrabError as e:
                console.print(f"[bold red]Error: {e}[/bold red]")
                raise typer.Exit(code=1) from e
            finally:
                await close_connection_pool()

        if manager:
            print_summary_panel(manager.stats, duration, progress_stats)
            if manager.stats.jobs_failed:
                raise typer.Exit(code=1)

    asyncio.run(_grab_async())


@app.command()
def inspect(
    url: str = typer.Argument(..., help="The playlist (.m3u8) URL to inspect."),
):
    """Fetch a playlist and show its variants, segments and encryption."""

    async def _inspect_async():
        config = ConfigManager(CONFIG_FILE).load_config()
        async with build_session(
            config.concurrency_limit, config.request_timeout, config.user_agent
        ) as session:
            return await fetch_manifest(session, url)

    try:
        manifest = asyncio.run(_inspect_async())
    except StreamGrabError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    print_manifest(url, manifest)
