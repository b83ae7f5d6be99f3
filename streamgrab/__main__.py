"""
Console entry point for streamgrab: runs the Typer app and turns whatever
escapes it into an exit code and a readable message.

Exit codes:
    0   success, or the command chose to stop (--help, --version, Abort)
    1   a download, playlist or configuration error
    130 the session was cancelled; unfinished jobs were dropped
"""

import asyncio
import logging
import os
import sys

import typer
from rich.console import Console

from streamgrab.cli.app import CONFIG_FILE, app
from streamgrab.cli.formatters import format_error_with_suggestions
from streamgrab.exceptions import (
    ConfigurationError,
    JobCancelledError,
    StreamGrabError,
)

EXIT_CANCELLED = 130


def _force_utf8_console() -> None:
    # Progress rows and status glyphs are not representable in cp1252.
    if os.name != "nt":
        return
    try:
        sys.stdout.reconfigure(encoding="utf-8")
        sys.stderr.reconfigure(encoding="utf-8")
    except (TypeError, AttributeError):
        pass


def main() -> None:
    _force_utf8_console()
    log = logging.getLogger("streamgrab")
    console = Console()

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError, JobCancelledError):
        console.print(
            "\n[yellow]⚠️  Download cancelled. Unfinished jobs were dropped and "
            "no partial files were written.[/yellow]"
        )
        sys.exit(EXIT_CANCELLED)
    except ConfigurationError as e:
        console.print(
            f"\n{format_error_with_suggestions(e, {'config_file': str(CONFIG_FILE)})}"
        )
        sys.exit(1)
    except StreamGrabError as e:
        console.print(f"\n{format_error_with_suggestions(e)}")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n{format_error_with_suggestions(e, {'type': 'Unexpected'})}")
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
