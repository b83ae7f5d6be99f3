"""Tests for the job state machine and its results buffer."""

from __future__ import annotations

import pytest

from streamgrab.exceptions import InvalidTransitionError
from streamgrab.models.job import Job, JobDescriptor, JobStatus, RetryPolicy
from streamgrab.models.stats import SessionStats, TransferClock

HLS_PATH = [
    JobStatus.FETCHING_MANIFEST,
    JobStatus.MASTER_DETECTED,
    JobStatus.SELECTING_VARIANT,
    JobStatus.FETCHING_VARIANT,
    JobStatus.FETCHING_KEY,
    JobStatus.DOWNLOADING_SEGMENTS,
    JobStatus.ASSEMBLING,
    JobStatus.COMPLETE,
]


@pytest.fixture
def job():
    return Job(JobDescriptor("https://x/index.m3u8"))


class TestTransitions:
    def test_full_master_path(self, job):
        for status in HLS_PATH:
            job.transition(status)
        assert job.status is JobStatus.COMPLETE

    def test_media_playlist_skips_variant_states(self, job):
        job.transition(JobStatus.FETCHING_MANIFEST)
        job.transition(JobStatus.DOWNLOADING_SEGMENTS)
        assert job.status is JobStatus.DOWNLOADING_SEGMENTS

    def test_direct_path(self, job):
        job.transition(JobStatus.DOWNLOADING_SEGMENTS)
        job.transition(JobStatus.ASSEMBLING)
        job.transition(JobStatus.COMPLETE)
        assert job.status.is_terminal

    def test_backwards_transition_is_rejected(self, job):
        job.transition(JobStatus.FETCHING_MANIFEST)
        job.transition(JobStatus.DOWNLOADING_SEGMENTS)
        with pytest.raises(InvalidTransitionError):
            job.transition(JobStatus.FETCHING_MANIFEST)

    def test_skipping_ahead_is_rejected(self, job):
        with pytest.raises(InvalidTransitionError):
            job.transition(JobStatus.COMPLETE)

    @pytest.mark.parametrize("steps", range(len(HLS_PATH)))
    def test_failed_is_reachable_from_every_active_state(self, job, steps):
        for status in HLS_PATH[:steps]:
            job.transition(status)
        job.transition(JobStatus.FAILED)
        assert job.status is JobStatus.FAILED

    @pytest.mark.parametrize("terminal", [JobStatus.COMPLETE, JobStatus.FAILED])
    def test_terminal_states_are_final(self, job, terminal):
        job.status = terminal
        with pytest.raises(InvalidTransitionError):
            job.transition(JobStatus.FAILED)


class TestResults:
    def test_load_segments_sizes_the_buffer(self, job):
        job.load_segments(["a", "b", "c"])
        assert job.total == 3
        assert job.results == [None, None, None]

    def test_slot_is_written_once(self, job):
        job.load_segments(["a"])
        job.store_result(0, b"x")
        with pytest.raises(ValueError):
            job.store_result(0, b"y")

    def test_present_results_skip_gaps(self, job):
        job.load_segments(["a", "b", "c"])
        job.store_result(2, b"c")
        job.store_result(0, b"a")
        assert job.present_results() == [b"a", b"c"]

    def test_defaults(self, job):
        assert job.concurrency_limit == 8
        assert job.retry_policy == RetryPolicy(max_retries=3, retry_delay=1.0)
        assert job.url == "https://x/index.m3u8"


class TestTransferClock:
    def test_estimate(self):
        clock = TransferClock(started_at=100.0)
        speed, eta = clock.estimate(25, 100, now=105.0)
        assert speed == 5.0
        assert eta == 15

    def test_no_rate_yet(self):
        clock = TransferClock(started_at=100.0)
        assert clock.estimate(0, 100, now=100.0) == (0.0, None)


@pytest.mark.asyncio
async def test_session_stats_accumulate():
    stats = SessionStats()
    await stats.record_success(1000, segments_failed=2, decrypt_failures=1)
    await stats.record_success(500)
    await stats.record_failure(segments_failed=4)

    assert stats.jobs_completed == 2
    assert stats.jobs_failed == 1
    assert stats.total_size_saved == 1500
    assert stats.segments_failed == 6
    assert stats.decrypt_failures == 1
