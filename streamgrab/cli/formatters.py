"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from streamgrab.hls.variants import select_variant
from streamgrab.models.config import GrabConfig
from streamgrab.models.manifest import Manifest
from streamgrab.models.stats import SessionStats
from streamgrab.utils.formatting import format_duration, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ManifestFetchError": [
            "• Check that the playlist URL is reachable from this machine.",
            "• Signed playlist URLs often expire. Capture a fresh one.",
        ],
        "ManifestEmptyError": [
            "• The playlist lists no media segments.",
            "• Make sure the URL points at an HLS (.m3u8) playlist.",
        ],
        "KeyFetchError": [
            "• The key server refused the request; the key URL may be signed.",
            "• Try again right after capturing the playlist URL.",
        ],
        "AllSegmentsFailedError": [
            "• Every segment request failed. The CDN may require a Referer.",
            "• Try again with fewer `--workers`.",
        ],
        "ConfigurationError": [
            "• Check the values in your configuration file.",
            "• Run `streamgrab init --force` to write a fresh default config.",
        ],
        "ClientResponseError": [
            "• A network connection issue occurred.",
            "• Please try again in a few minutes.",
        ],
        "TimeoutError": [
            "• A request timed out, which may indicate network throttling.",
            "• Raise `--timeout` or reduce `--workers`.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config: GrabConfig) -> None:
    """Displays the effective configuration."""
    console = Console()
    content = ""
    for key in sorted(GrabConfig.get_ini_keys()):
        value = getattr(config, key)
        content += f"{key} = {'' if value is None else value}\n"

    console.print(
        Panel(
            escape(content.strip()),
            title=f"Configuration ([dim]{escape(str(config_path))}[/dim])",
            border_style="cyan",
        )
    )


def print_manifest(url: str, manifest: Manifest) -> None:
    """Describes a parsed playlist: variants, segments and encryption."""
    console = Console()
    summary = Table(show_header=False, box=None, padding=(0, 2))
    summary.add_column(style="bold cyan")
    summary.add_column()

    summary.add_row("Type:", "Master" if manifest.is_master else "Media")
    summary.add_row("Segments:", str(len(manifest.segments)))
    summary.add_row("Media Sequence:", str(manifest.media_sequence))
    if manifest.encryption:
        iv = manifest.encryption.iv_hex or "derived from sequence"
        summary.add_row(
            "Encryption:",
            f"[yellow]{manifest.encryption.method.value}[/yellow] (IV: {escape(iv)})",
        )
        summary.add_row("Key URL:", f"[dim]{escape(manifest.encryption.key_url)}[/dim]")
    else:
        summary.add_row("Encryption:", "[green]none[/green]")

    console.print(
        Panel(summary, title=f"[bold]{escape(url)}[/bold]", border_style="cyan")
    )

    if manifest.variants:
        best = select_variant(manifest.variants)
        table = Table(title="Variants")
        table.add_column("#", style="dim")
        table.add_column("Bandwidth", justify="right", style="green")
        table.add_column("Resolution", style="cyan")
        table.add_column("URL", style="dim", overflow="fold")
        for i, variant in enumerate(manifest.variants, 1):
            marker = " ★" if variant is best else ""
            table.add_row(
                f"{i}{marker}",
                f"{variant.kbps} kbps",
                variant.resolution or "unknown",
                escape(variant.url),
            )
        console.print(table)


def print_summary_panel(
    stats: SessionStats, duration_s: float, progress_stats: dict[str, Any] | None = None
) -> None:
    """Displays a final summary of the download session."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row("✓ Completed:", f"[bold green]{stats.jobs_completed}[/bold green]")
    if stats.jobs_failed > 0:
        stats_table.add_row("✗ Failed:", f"[bold red]{stats.jobs_failed}[/bold red]")
    if stats.segments_failed > 0:
        stats_table.add_row(
            "⚠ Segments Lost:", f"[yellow]{stats.segments_failed}[/yellow]"
        )
    if stats.decrypt_failures > 0:
        stats_table.add_row(
            "⚠ Not Decrypted:", f"[yellow]{stats.decrypt_failures}[/yellow]"
        )

    stats_table.add_row("", "")
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.total_size_saved)}[/cyan]"
    )
    avg_speed = stats.total_size_saved / duration_s if duration_s > 0 else 0
    stats_table.add_row(
        "Avg. Speed:", f"[magenta]{format_size(int(avg_speed))}/s[/magenta]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if progress_stats and progress_stats.get("warnings"):
        stats_table.add_row(
            "Warnings:", f"[yellow]{progress_stats['warnings']}[/yellow]"
        )

    border = "green" if stats.jobs_failed == 0 else "yellow"
    console.print(
        Panel(
            stats_table,
            title="[bold]📊 Session Summary[/bold]",
            border_style=border,
            expand=False,
        )
    )
