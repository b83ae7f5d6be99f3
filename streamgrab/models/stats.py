"""
Transfer-rate estimation and session statistics.
"""

import asyncio
import time
from dataclasses import dataclass, field


@dataclass
class TransferClock:
    """Estimates speed and remaining time for a transfer that started at `started_at`."""

    started_at: float = field(default_factory=time.monotonic)

    def elapsed(self, now: float | None = None) -> float:
        return (time.monotonic() if now is None else now) - self.started_at

    def estimate(
        self, done: float, total: float, now: float | None = None
    ) -> tuple[float, int | None]:
        """
        Returns (units per second, seconds remaining). Remaining time is None
        while no rate can be measured yet.
        """
        elapsed = self.elapsed(now)
        speed = done / elapsed if elapsed > 0 else 0.0
        eta = round((total - done) / speed) if speed > 0 else None
        return speed, eta


@dataclass
class SessionStats:
    """Tracks statistics across every job in a session."""

    jobs_completed: int = 0
    jobs_failed: int = 0
    segments_failed: int = 0
    decrypt_failures: int = 0
    total_size_saved: int = 0
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    async def record_success(
        self, size: int, segments_failed: int = 0, decrypt_failures: int = 0
    ) -> None:
        async with self._lock:
            self.jobs_completed += 1
            self.total_size_saved += size
            self.segments_failed += segments_failed
            self.decrypt_failures += decrypt_failures

    async def record_failure(self, segments_failed: int = 0) -> None:
        async with self._lock:
            self.jobs_failed += 1
            self.segments_failed += segments_failed
