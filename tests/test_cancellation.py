from __future__ import annotations

import asyncio

import pytest

from streamgrab.exceptions import JobCancelledError
from streamgrab.utils.cancellation import CancellationToken


def test_fresh_token_is_not_cancelled():
    token = CancellationToken()
    assert not token.cancelled
    token.raise_if_cancelled()


def test_cancel_with_reason():
    token = CancellationToken()
    token.cancel("User closed the tab.")
    assert token.cancelled
    with pytest.raises(JobCancelledError, match="User closed the tab."):
        token.raise_if_cancelled()


def test_default_reason():
    token = CancellationToken()
    token.cancel()
    with pytest.raises(JobCancelledError, match="Job cancelled."):
        token.raise_if_cancelled()


@pytest.mark.asyncio
async def test_sleep_returns_after_delay():
    await CancellationToken().sleep(0.01)


@pytest.mark.asyncio
async def test_sleep_wakes_up_on_cancel():
    token = CancellationToken()
    loop = asyncio.get_running_loop()
    loop.call_later(0.01, token.cancel)

    with pytest.raises(JobCancelledError):
        await asyncio.wait_for(token.sleep(10), timeout=1)
