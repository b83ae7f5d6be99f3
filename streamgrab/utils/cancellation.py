"""
Cooperative cancellation for jobs.

A token is checked at every suspension point of a job (network fetch, decrypt,
window join, retry backoff). Cancelling it makes the next check raise
JobCancelledError, which the job runner treats like any other fatal error.
"""

import asyncio

from streamgrab.exceptions import JobCancelledError


class CancellationToken:
    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason = "Job cancelled."

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> None:
        if reason:
            self.reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise JobCancelledError(self.reason)

    async def sleep(self, delay: float) -> None:
        """Sleeps for `delay` seconds, waking early (and raising) on cancellation."""
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise JobCancelledError(self.reason)
