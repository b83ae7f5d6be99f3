"""
Bounded-concurrency download of every segment in a job.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Literal

from streamgrab.exceptions import DecryptError
from streamgrab.hls.crypto import EncryptionContext, decrypt_segment
from streamgrab.media.fetcher import SegmentFetcher
from streamgrab.models.job import Job
from streamgrab.models.stats import TransferClock
from streamgrab.utils.cancellation import CancellationToken
from streamgrab.utils.formatting import format_eta, percent_of

log = logging.getLogger(__name__)

# The last few percent are left for assembly.
DOWNLOAD_PERCENT_CAP = 95

SchedulerMode = Literal["window", "pool"]


async def _gather_or_cancel(coros: Iterable[Awaitable[None]]) -> None:
    """
    Runs the coroutines concurrently. If one of them fails, the others are
    cancelled and awaited before the error is re-raised, so no segment task
    outlives its window.
    """
    tasks = [asyncio.ensure_future(coro) for coro in coros]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class BatchScheduler:
    """
    Fetches (and decrypts) all segments of a job, writing each payload into
    its own slot of `job.results`.

    In "window" mode segments go out in fixed windows of `job.concurrency_limit`
    and the whole window must settle before the next one starts. "pool" mode
    keeps up to `concurrency_limit` requests in flight at all times. Either way
    the slot index, not completion order, decides the final byte order.
    """

    def __init__(
        self,
        fetcher: SegmentFetcher,
        report: Callable[[str, int | None], None],
        mode: SchedulerMode = "window",
        cancel_token: CancellationToken | None = None,
    ):
        self.fetcher = fetcher
        self.report = report
        self.mode = mode
        self.cancel_token = cancel_token

    def _check_cancel(self) -> None:
        if self.cancel_token:
            self.cancel_token.raise_if_cancelled()

    async def _process_segment(
        self, job: Job, index: int, encryption: EncryptionContext | None
    ) -> None:
        data = await self.fetcher.fetch(job.segments[index])
        if data is None:
            job.failed_count += 1
            return

        if encryption:
            self._check_cancel()
            try:
                data = await asyncio.to_thread(
                    decrypt_segment, data, encryption.key, encryption.iv_for(index)
                )
            except DecryptError as e:
                # Keep the ciphertext so the segment is not silently dropped.
                job.decrypt_failures += 1
                log.warning(f"[yellow]Decrypt failed for segment {index}: {e}[/yellow]")

        job.store_result(index, data)

    def _report_progress(self, job: Job, completed: int, clock: TransferClock) -> None:
        total = job.total
        _, eta = clock.estimate(completed, total)
        self.report(
            f"{completed}/{total} segments ({format_eta(eta)}s remaining)",
            min(percent_of(completed, total), DOWNLOAD_PERCENT_CAP),
        )

    async def _run_windows(
        self, job: Job, encryption: EncryptionContext | None, clock: TransferClock
    ) -> None:
        total = job.total
        window = job.concurrency_limit
        for start in range(0, total, window):
            self._check_cancel()
            end = min(start + window, total)
            await _gather_or_cancel(
                self._process_segment(job, i, encryption) for i in range(start, end)
            )
            self._report_progress(job, end, clock)

    async def _run_pool(
        self, job: Job, encryption: EncryptionContext | None, clock: TransferClock
    ) -> None:
        semaphore = asyncio.Semaphore(job.concurrency_limit)
        completed = 0

        async def worker(index: int) -> None:
            nonlocal completed
            async with semaphore:
                self._check_cancel()
                await self._process_segment(job, index, encryption)
            completed += 1
            self._report_progress(job, completed, clock)

        await _gather_or_cancel(worker(i) for i in range(job.total))

    async def run(self, job: Job, encryption: EncryptionContext | None = None) -> None:
        """Downloads every segment of `job`. Failed segments only bump `job.failed_count`."""
        clock = TransferClock(started_at=job.started_at)
        log.debug(
            f"Downloading {job.total} segments ({self.mode} mode, "
            f"concurrency={job.concurrency_limit})"
        )
        if self.mode == "pool":
            await self._run_pool(job, encryption, clock)
        else:
            await self._run_windows(job, encryption, clock)
