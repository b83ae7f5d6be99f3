"""
Data Models Layer.

This package contains the data structures used throughout the application:
the Pydantic configuration model, parsed playlists, jobs and statistics.
"""

from .config import GrabConfig
from .job import Job, JobDescriptor, JobStatus, ProgressEvent, RetryPolicy
from .manifest import EncryptionInfo, EncryptionMethod, Manifest, Variant
from .stats import SessionStats, TransferClock

__all__ = [
    "EncryptionInfo",
    "EncryptionMethod",
    "GrabConfig",
    "Job",
    "JobDescriptor",
    "JobStatus",
    "Manifest",
    "ProgressEvent",
    "RetryPolicy",
    "SessionStats",
    "TransferClock",
    "Variant",
]
