"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class StreamGrabError(Exception):
    """Base exception for all application-specific errors."""


class ManifestFetchError(StreamGrabError):
    """Raised when a playlist (master or variant) cannot be retrieved."""


class ManifestEmptyError(StreamGrabError):
    """Raised when a playlist resolves to zero media segments."""


class KeyFetchError(StreamGrabError):
    """Raised when the AES-128 key referenced by a playlist cannot be retrieved."""


class SegmentFetchError(StreamGrabError):
    """
    Raised (and caught) when a single segment fails permanently.
    Never aborts a job; failures are aggregated into the job's failed count.
    """


class DecryptError(StreamGrabError):
    """Raised when a segment cannot be decrypted with the active key and IV."""


class AllSegmentsFailedError(StreamGrabError):
    """Raised when not a single segment of a job could be downloaded."""


class EmptyAssemblyError(StreamGrabError):
    """Raised when the assembled artifact contains zero bytes."""


class MediaFetchError(StreamGrabError):
    """Raised when a direct (non-playlist) media download fails."""


class JobCancelledError(StreamGrabError):
    """Raised at a suspension point after a job has been cancelled."""


class InvalidTransitionError(StreamGrabError):
    """Raised when a job is moved backwards through its state machine."""


class ConfigurationError(StreamGrabError):
    """Raised for issues related to configuration loading or validation."""


class ArtifactReleasedError(StreamGrabError):
    """Raised when an artifact's bytes are read after its buffer was released."""
