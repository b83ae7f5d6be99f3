"""
Writes finished artifacts to the output directory.
"""

import asyncio
import logging
from pathlib import Path

import aiofiles

from streamgrab.media.assembler import Artifact
from streamgrab.utils.path import create_dir, unique_output_path

log = logging.getLogger(__name__)


class ArtifactWriter:
    """
    The save collaborator: takes ownership of an artifact, writes it to disk
    under its suggested name and releases the buffer.
    """

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir
        self.saved_paths: list[Path] = []
        self._name_lock = asyncio.Lock()

    async def save(self, artifact: Artifact) -> Path:
        with artifact.acquire() as data:
            # Pick the name under a lock so two jobs never claim the same file.
            async with self._name_lock:
                await asyncio.to_thread(create_dir, self.output_dir)
                destination = unique_output_path(
                    self.output_dir, artifact.suggested_filename
                )
                destination.touch()

            async with aiofiles.open(destination, "wb") as f:
                await f.write(data)

        self.saved_paths.append(destination)
        log.info(f"[green]✓ Saved[/green] [dim]{destination}[/dim]")
        return destination
