"""
Handles the low-level HTTP side of segment retrieval: the shared connection
pool and a per-segment fetcher with linear-backoff retry.
"""

import asyncio
import logging

import aiohttp

from streamgrab.exceptions import SegmentFetchError
from streamgrab.models.config import DEFAULT_USER_AGENT
from streamgrab.models.job import RetryPolicy
from streamgrab.utils.cancellation import CancellationToken

log = logging.getLogger(__name__)

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()


def build_session(
    max_workers: int = 8,
    request_timeout: float | None = None,
    user_agent: str = DEFAULT_USER_AGENT,
) -> aiohttp.ClientSession:
    """
    Creates an aiohttp ClientSession tuned for many small segment requests.

    Args:
        max_workers: Concurrent segment requests per job (config.concurrency_limit).
        request_timeout: Total seconds allowed per request; None keeps the
            transport defaults.
    """
    connector = aiohttp.TCPConnector(
        limit=max_workers * 4,  # Several jobs can share the pool
        limit_per_host=max_workers,
        ttl_dns_cache=600,  # 10 minutes
        keepalive_timeout=30,
        enable_cleanup_closed=True,
        force_close=False,
    )
    timeout = aiohttp.ClientTimeout(
        total=request_timeout, sock_connect=15, sock_read=request_timeout or 90
    )
    return aiohttp.ClientSession(
        connector=connector,
        timeout=timeout,
        headers={"User-Agent": user_agent},
    )


async def get_connection_pool(
    max_workers: int = 8,
    request_timeout: float | None = None,
    user_agent: str = DEFAULT_USER_AGENT,
) -> aiohttp.ClientSession:
    """
    Gets or creates the shared ClientSession used by every job of a run.

    The session is the only object jobs share, and they never mutate it.
    """
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        _connection_pool = build_session(max_workers, request_timeout, user_agent)
        log.debug(f"Created download pool with limit_per_host={max_workers}")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            _connection_pool = None
            log.debug("Shared connection pool closed.")


class SegmentFetcher:
    """
    Fetches a single segment, retrying transient failures.

    A 404 is final and never retried. Any other failure is retried up to
    `retry_policy.max_retries` times, waiting `retry_delay * attempt` seconds
    between attempts.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        retry_policy: RetryPolicy | None = None,
        cancel_token: CancellationToken | None = None,
    ):
        self.session = session
        self.retry_policy = retry_policy or RetryPolicy()
        self.cancel_token = cancel_token

    async def _fetch_once(self, url: str) -> bytes | None:
        async with self.session.get(url) as response:
            if response.status == 404:
                return None
            if not response.ok:
                raise SegmentFetchError(f"HTTP {response.status}")
            return await response.read()

    async def _backoff(self, attempt: int) -> None:
        delay = self.retry_policy.retry_delay * attempt
        if self.cancel_token:
            await self.cancel_token.sleep(delay)
        else:
            await asyncio.sleep(delay)

    async def fetch(self, url: str) -> bytes | None:
        """Returns the segment bytes, or None once the segment has failed for good."""
        max_attempts = self.retry_policy.max_retries + 1
        for attempt in range(1, max_attempts + 1):
            if self.cancel_token:
                self.cancel_token.raise_if_cancelled()
            try:
                data = await self._fetch_once(url)
                if data is None:
                    log.debug(f"Segment not found (404), not retrying: {url}")
                return data
            except (SegmentFetchError, aiohttp.ClientError, asyncio.TimeoutError) as e:
                log.debug(
                    f"Segment attempt {attempt}/{max_attempts} for '{url}' failed: {e}"
                )
                if attempt == max_attempts:
                    break
            await self._backoff(attempt)

        log.debug(f"Giving up on segment after {max_attempts} attempts: {url}")
        return None
