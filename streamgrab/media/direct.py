"""
Streams a single non-playlist media URL into memory with adaptive chunk sizing,
reporting byte-level progress as it goes.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable

import aiohttp

from streamgrab.exceptions import MediaFetchError
from streamgrab.models.stats import TransferClock
from streamgrab.utils.cancellation import CancellationToken
from streamgrab.utils.formatting import format_eta, format_megabytes, percent_of

log = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass
class DirectPayload:
    """Everything a direct download produced."""

    chunks: list[bytes]
    received: int
    content_disposition: str | None = None


class DirectFetcher:
    """A streaming downloader for one media file."""

    MIN_CHUNK_SIZE = 131072  # 128 KB
    MAX_CHUNK_SIZE = 1048576  # 1 MB

    def __init__(
        self,
        session: aiohttp.ClientSession,
        report: Callable[[str, int | None], None],
        cancel_token: CancellationToken | None = None,
    ):
        self.session = session
        self.report = report
        self.cancel_token = cancel_token

    @classmethod
    def _adapt_chunk_size(cls, current_speed_bps: float) -> int:
        """Picks a read size based on the measured network speed."""
        if current_speed_bps > 10 * MB:
            return cls.MAX_CHUNK_SIZE
        if current_speed_bps > 5 * MB:
            return 524288  # 512 KB
        if current_speed_bps > 1 * MB:
            return 262144  # 256 KB
        return cls.MIN_CHUNK_SIZE

    def _report_chunk(self, clock: TransferClock, received: int, total: int) -> None:
        if total > 0:
            speed, eta = clock.estimate(received, total)
            progress = min(percent_of(received, total), 100)
            self.report(
                f"{progress}% - {format_megabytes(speed)}MB/s ({format_eta(eta)}s left)",
                progress,
            )
        else:
            self.report(f"Downloaded: {format_megabytes(received)}MB", None)

    async def fetch(self, url: str) -> DirectPayload:
        """
        Reads the whole response body.

        Raises:
            MediaFetchError: On a non-success status or if the stream breaks.
        """
        chunks: list[bytes] = []
        received = 0
        clock = TransferClock()

        try:
            async with self.session.get(url, allow_redirects=True) as response:
                if not response.ok:
                    raise MediaFetchError(f"HTTP {response.status}")

                try:
                    content_length = int(response.headers.get("Content-Length") or 0)
                except ValueError:
                    content_length = 0

                chunk_size = self.MIN_CHUNK_SIZE
                last_speed_check = clock.started_at

                while True:
                    if self.cancel_token:
                        self.cancel_token.raise_if_cancelled()
                    chunk = await response.content.read(chunk_size)
                    if not chunk:
                        break
                    chunks.append(chunk)
                    received += len(chunk)
                    self._report_chunk(clock, received, content_length)

                    now = time.monotonic()
                    if now - last_speed_check > 2.0:
                        speed, _ = clock.estimate(received, content_length, now)
                        chunk_size = self._adapt_chunk_size(speed)
                        last_speed_check = now

                return DirectPayload(
                    chunks=chunks,
                    received=received,
                    content_disposition=response.headers.get("Content-Disposition"),
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise MediaFetchError(f"Download failed: {e}") from e
