"""
Drives a single download job through its state machine, from playlist fetch
to the finished artifact.
"""

import logging
from typing import Awaitable, Callable, Optional

import aiohttp
from rich.markup import escape

from streamgrab.exceptions import (
    AllSegmentsFailedError,
    ManifestEmptyError,
    StreamGrabError,
)
from streamgrab.hls.crypto import KeyResolver
from streamgrab.hls.parser import fetch_manifest
from streamgrab.hls.variants import select_variant
from streamgrab.media.assembler import Artifact, Assembler
from streamgrab.media.direct import DirectFetcher
from streamgrab.media.fetcher import SegmentFetcher
from streamgrab.models.config import GrabConfig
from streamgrab.models.job import (
    Job,
    JobDescriptor,
    JobStatus,
    ProgressEvent,
    RetryPolicy,
)
from streamgrab.utils.cancellation import CancellationToken
from streamgrab.utils.formatting import format_megabytes
from streamgrab.utils.path import direct_download_filename, is_manifest_url

from .scheduler import BatchScheduler

log = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]
ArtifactHandler = Callable[[Artifact], Awaitable[None]]


class JobRunner:
    """
    Runs one job to a terminal state. Fatal errors never propagate out of
    `run()`: they move the job to FAILED and are reported as a single
    "Error: ..." event.
    """

    def __init__(
        self,
        descriptor: JobDescriptor,
        session: aiohttp.ClientSession,
        config: GrabConfig,
        on_progress: Optional[ProgressCallback] = None,
        on_artifact: Optional[ArtifactHandler] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        self.session = session
        self.config = config
        self.on_progress = on_progress
        self.on_artifact = on_artifact
        self.cancel_token = cancel_token or CancellationToken()
        self.job = Job(
            descriptor=descriptor,
            concurrency_limit=config.concurrency_limit,
            retry_policy=RetryPolicy(
                max_retries=config.max_retries, retry_delay=config.retry_delay
            ),
        )
        self.assembler = Assembler(release_delay=config.release_delay)

    def cancel(self, reason: str | None = None) -> None:
        self.cancel_token.cancel(reason)

    def _report(self, message: str, percent: int | None = None) -> None:
        if self.on_progress:
            self.on_progress(ProgressEvent(self.job.url, message, percent))

    def _advance(
        self, status: JobStatus, message: str, percent: int | None = None
    ) -> None:
        self.job.transition(status)
        log.debug(f"{self.job.url} -> {status.value}")
        self._report(message, percent)

    async def run(self) -> Artifact | None:
        """
        Routes the job to the playlist or the direct pipeline and hands a
        finished artifact to the save collaborator.
        """
        if is_manifest_url(self.job.url):
            artifact = await self.run_hls()
        else:
            artifact = await self.run_direct()

        if artifact and self.on_artifact:
            await self.on_artifact(artifact)
        return artifact

    def _complete(self, artifact: Artifact) -> Artifact:
        self.job.transition(JobStatus.COMPLETE)
        self._report(f"Complete: {format_megabytes(artifact.size)}MB", 100)
        return artifact

    def _fail(self, error: StreamGrabError) -> None:
        self.job.error = error
        self.job.transition(JobStatus.FAILED)
        log.error(f"[red]✗ {escape(self.job.url)}: {escape(str(error))}[/red]")
        self._report(f"Error: {error}", None)

    async def run_hls(self) -> Artifact | None:
        job = self.job
        try:
            self._advance(JobStatus.FETCHING_MANIFEST, "Fetching playlist...", 0)
            manifest = await fetch_manifest(
                self.session, job.url, cancel_token=self.cancel_token
            )

            if manifest.is_master and manifest.variants:
                self._advance(
                    JobStatus.MASTER_DETECTED,
                    f"Master playlist with {len(manifest.variants)} variants",
                    1,
                )
                best = select_variant(manifest.variants)
                self._advance(
                    JobStatus.SELECTING_VARIANT,
                    f"Selected: {best.resolution or 'unknown'} ({best.kbps}kbps)",
                    2,
                )
                self._advance(
                    JobStatus.FETCHING_VARIANT, "Fetching variant playlist...", 3
                )
                # Relative URLs inside the variant resolve against the variant's URL.
                manifest = await fetch_manifest(
                    self.session,
                    best.url,
                    label="Variant playlist",
                    cancel_token=self.cancel_token,
                )

            if not manifest.segments:
                raise ManifestEmptyError("No segments found in playlist")

            job.load_segments(manifest.segments)
            self._report(f"Found {job.total} segments", 5)

            encryption = None
            if manifest.is_encrypted:
                self._advance(JobStatus.FETCHING_KEY, "Fetching encryption key...")
                resolver = KeyResolver(self.session, self.cancel_token)
                encryption = await resolver.resolve(manifest)

            self._advance(
                JobStatus.DOWNLOADING_SEGMENTS, f"Downloading {job.total} segments...", 5
            )
            fetcher = SegmentFetcher(self.session, job.retry_policy, self.cancel_token)
            scheduler = BatchScheduler(
                fetcher, self._report, self.config.scheduler_mode, self.cancel_token
            )
            await scheduler.run(job, encryption)

            if job.failed_count == job.total:
                raise AllSegmentsFailedError("All segments failed to download")
            if job.failed_count > 0:
                self._report(
                    f"Warning: {job.failed_count}/{job.total} segments failed"
                )
            if job.decrypt_failures > 0:
                self._report(
                    f"Warning: {job.decrypt_failures}/{job.total} segments could not "
                    "be decrypted and were kept as-is"
                )

            self._advance(JobStatus.ASSEMBLING, "Assembling video file...", 96)
            artifact = self.assembler.assemble(
                job.present_results(), job.descriptor.suggested_filename
            )
            return self._complete(artifact)

        except StreamGrabError as e:
            self._fail(e)
        return None

    async def run_direct(self) -> Artifact | None:
        job = self.job
        try:
            self._advance(JobStatus.DOWNLOADING_SEGMENTS, "Starting download...", 0)
            fetcher = DirectFetcher(self.session, self._report, self.cancel_token)
            payload = await fetcher.fetch(job.url)

            self._advance(JobStatus.ASSEMBLING, "Finalizing...", 98)
            filename = direct_download_filename(
                job.url,
                job.descriptor.suggested_filename,
                payload.content_disposition,
            )
            artifact = self.assembler.finalize(b"".join(payload.chunks), filename)
            return self._complete(artifact)

        except StreamGrabError as e:
            self._fail(e)
        return None
