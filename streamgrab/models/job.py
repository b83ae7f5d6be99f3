"""
Job bookkeeping: descriptor, state machine and the per-job results buffer.
"""

import time
from dataclasses import dataclass, field
from enum import Enum

from streamgrab.exceptions import InvalidTransitionError, StreamGrabError

DEFAULT_CONCURRENCY = 8
MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 1.0


class JobStatus(Enum):
    IDLE = "idle"
    FETCHING_MANIFEST = "fetching_manifest"
    MASTER_DETECTED = "master_detected"
    SELECTING_VARIANT = "selecting_variant"
    FETCHING_VARIANT = "fetching_variant_manifest"
    FETCHING_KEY = "fetching_key"
    DOWNLOADING_SEGMENTS = "downloading_segments"
    ASSEMBLING = "assembling"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETE, JobStatus.FAILED)


# Forward-only transition table. FAILED is reachable from any non-terminal state.
_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.IDLE: {JobStatus.FETCHING_MANIFEST, JobStatus.DOWNLOADING_SEGMENTS},
    JobStatus.FETCHING_MANIFEST: {
        JobStatus.MASTER_DETECTED,
        JobStatus.FETCHING_KEY,
        JobStatus.DOWNLOADING_SEGMENTS,
    },
    JobStatus.MASTER_DETECTED: {JobStatus.SELECTING_VARIANT},
    JobStatus.SELECTING_VARIANT: {JobStatus.FETCHING_VARIANT},
    JobStatus.FETCHING_VARIANT: {
        JobStatus.FETCHING_KEY,
        JobStatus.DOWNLOADING_SEGMENTS,
    },
    JobStatus.FETCHING_KEY: {JobStatus.DOWNLOADING_SEGMENTS},
    JobStatus.DOWNLOADING_SEGMENTS: {JobStatus.ASSEMBLING},
    JobStatus.ASSEMBLING: {JobStatus.COMPLETE},
    JobStatus.COMPLETE: set(),
    JobStatus.FAILED: set(),
}


@dataclass(frozen=True)
class JobDescriptor:
    """What the caller asks for: a source URL plus the page it was found on."""

    source_url: str
    page_context_url: str = ""
    suggested_filename: str | None = None


@dataclass(frozen=True)
class ProgressEvent:
    """A single progress report. `percent` is None for indeterminate progress."""

    job_url: str
    message: str
    percent: int | None = None


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = MAX_RETRIES
    retry_delay: float = RETRY_DELAY_SECONDS


@dataclass
class Job:
    """
    One download request. Owns its results buffer exclusively; nothing here is
    shared with other jobs, so no locking is needed.
    """

    descriptor: JobDescriptor
    concurrency_limit: int = DEFAULT_CONCURRENCY
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    status: JobStatus = JobStatus.IDLE
    segments: list[str] = field(default_factory=list)
    results: list[bytes | None] = field(default_factory=list, repr=False)
    failed_count: int = 0
    decrypt_failures: int = 0
    error: StreamGrabError | None = None
    started_at: float = field(default_factory=time.monotonic, repr=False)

    @property
    def url(self) -> str:
        return self.descriptor.source_url

    @property
    def total(self) -> int:
        return len(self.segments)

    def transition(self, new_status: JobStatus) -> None:
        """Moves the job forward, rejecting anything the state machine forbids."""
        if self.status.is_terminal:
            raise InvalidTransitionError(
                f"Job is already {self.status.value}; cannot move to {new_status.value}."
            )
        if new_status is JobStatus.FAILED:
            self.status = new_status
            return
        if new_status not in _TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Invalid transition {self.status.value} -> {new_status.value}."
            )
        self.status = new_status

    def load_segments(self, segments: list[str]) -> None:
        """Fixes the segment list and sizes the results buffer to match."""
        self.segments = list(segments)
        self.results = [None] * len(self.segments)

    def store_result(self, index: int, data: bytes) -> None:
        if self.results[index] is not None:
            raise ValueError(f"Result slot {index} has already been written.")
        self.results[index] = data

    def present_results(self) -> list[bytes]:
        """Successful payloads in ascending segment order."""
        return [data for data in self.results if data is not None]
