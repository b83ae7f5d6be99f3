"""
Reassembles downloaded segments into one artifact and manages the lifetime of
the artifact's buffer.
"""

import asyncio
import logging
import time
from contextlib import contextmanager
from typing import Iterator

from streamgrab.exceptions import (
    AllSegmentsFailedError,
    ArtifactReleasedError,
    EmptyAssemblyError,
)

log = logging.getLogger(__name__)

DEFAULT_RELEASE_DELAY = 30.0


class Artifact:
    """
    The finished, concatenated media handed to the save collaborator.

    The consumer should hold the buffer via `acquire()` and let go of it when
    done. A release timer (30s by default) is armed as soon as the artifact is
    scheduled, as an upper bound on how long the buffer is kept around.
    """

    def __init__(self, data: bytes, suggested_filename: str):
        self._data: bytes | None = data
        self.suggested_filename = suggested_filename
        self.size = len(data)
        self._timer: asyncio.TimerHandle | None = None

    @property
    def released(self) -> bool:
        return self._data is None

    @property
    def data(self) -> bytes:
        if self._data is None:
            raise ArtifactReleasedError(
                f"Artifact '{self.suggested_filename}' has already been released."
            )
        return self._data

    def schedule_release(self, delay: float = DEFAULT_RELEASE_DELAY) -> None:
        """Arms the safety-net timer. Must be called from a running event loop."""
        if self._timer:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(delay, self.release)

    def release(self) -> None:
        if self._timer:
            self._timer.cancel()
            self._timer = None
        if self._data is not None:
            self._data = None
            log.debug(f"Released artifact buffer for '{self.suggested_filename}'.")

    @contextmanager
    def acquire(self) -> Iterator[bytes]:
        """Yields the artifact bytes and releases them when the block exits."""
        data = self.data
        try:
            yield data
        finally:
            self.release()


def default_capture_filename() -> str:
    return f"capture_{int(time.time() * 1000)}.mp4"


class Assembler:
    """Concatenates successful segment payloads in ascending index order."""

    def __init__(self, release_delay: float = DEFAULT_RELEASE_DELAY):
        self.release_delay = release_delay

    def assemble(
        self, payloads: list[bytes], suggested_filename: str | None = None
    ) -> Artifact:
        """
        Builds the artifact from a job's successful payloads, already in
        ascending segment order (see `Job.present_results`). Failed segments
        are simply absent, so the output is shorter rather than padded.

        Raises:
            AllSegmentsFailedError: If there are no payloads.
            EmptyAssemblyError: If the payloads add up to zero bytes.
        """
        if not payloads:
            raise AllSegmentsFailedError("All segments failed to download")

        data = b"".join(payloads)
        if not data:
            raise EmptyAssemblyError("Assembled file is empty")
        return self.finalize(data, suggested_filename)

    def finalize(self, data: bytes, suggested_filename: str | None = None) -> Artifact:
        """
        The completion path shared by playlist and direct downloads: wraps the
        bytes in an Artifact and arms its release timer.
        """
        artifact = Artifact(data, suggested_filename or default_capture_filename())
        artifact.schedule_release(self.release_delay)
        return artifact
