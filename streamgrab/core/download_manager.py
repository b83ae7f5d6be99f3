"""
The main orchestrator for a session: expands the source list, runs one job per
URL concurrently and hands finished artifacts to the writer.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional

import aiohttp
from rich.markup import escape

from streamgrab.cli.progress_manager import ProgressManager
from streamgrab.exceptions import StreamGrabError
from streamgrab.media.fetcher import get_connection_pool
from streamgrab.models.config import GrabConfig
from streamgrab.models.job import Job, JobDescriptor, JobStatus
from streamgrab.models.stats import SessionStats
from streamgrab.storage.artifact_writer import ArtifactWriter

from .job_runner import JobRunner

log = logging.getLogger(__name__)


class DownloadManager:
    """
    Orchestrates the entire download session.

    Jobs share nothing but the connection pool; each runner owns its own
    results buffer and progress stream.
    """

    def __init__(
        self,
        config: GrabConfig,
        progress_manager: ProgressManager,
        writer: Optional[ArtifactWriter] = None,
        session: Optional[aiohttp.ClientSession] = None,
        page_context_url: str = "",
        suggested_filename: Optional[str] = None,
    ):
        self.config = config
        self.progress_manager = progress_manager
        self.writer = writer or ArtifactWriter(Path(config.output_dir))
        self.stats = SessionStats()
        self.start_time = time.monotonic()
        self.page_context_url = page_context_url
        self.suggested_filename = suggested_filename
        self.jobs: list[Job] = []
        self._session = session
        self._runners: list[JobRunner] = []

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = await get_connection_pool(
                self.config.concurrency_limit,
                self.config.request_timeout,
                self.config.user_agent,
            )
        return self._session

    def expand_sources(self, sources: list[str]) -> list[str]:
        """Reads URL list files, drops comments and duplicates."""
        expanded_urls = []
        for source in sources:
            if Path(source).is_file():
                log.info(f"Reading URLs from file: [dim]{source}[/dim]")
                try:
                    with open(source, "r", encoding="utf-8") as f:
                        expanded_urls.extend(
                            line.strip()
                            for line in f
                            if line.strip() and not line.startswith("#")
                        )
                except (IOError, UnicodeDecodeError) as e:
                    log.error(f"[red]Could not read file {source}: {e}[/red]")
            else:
                expanded_urls.append(source)

        unique_urls = list(dict.fromkeys(expanded_urls))
        if len(unique_urls) < len(expanded_urls):
            log.info(f"Removed {len(expanded_urls) - len(unique_urls)} duplicate URLs.")
        return unique_urls

    async def execute_downloads(self) -> None:
        """Processes all URLs from the config and executes downloads."""
        if not self.config.source_urls:
            log.info("No source URLs provided. Nothing to do.")
            return

        unique_urls = self.expand_sources(self.config.source_urls)
        if not unique_urls:
            log.warning("[yellow]No unique or valid URLs to process. Exiting.[/yellow]")
            return

        # A custom name only makes sense for a single download.
        suggested = self.suggested_filename if len(unique_urls) == 1 else None
        if self.suggested_filename and suggested is None:
            log.warning(
                "[yellow]--name ignored: more than one URL was given.[/yellow]"
            )

        session = await self._get_session()
        self.progress_manager.initialize_session(total_jobs=len(unique_urls))
        tasks = [self._process_url(session, url, suggested) for url in unique_urls]
        await asyncio.gather(*tasks)

    def cancel_all(self, reason: str = "Cancelled by user.") -> None:
        for runner in self._runners:
            runner.cancel(reason)

    async def _process_url(
        self,
        session: aiohttp.ClientSession,
        url: str,
        suggested_filename: Optional[str] = None,
    ) -> None:
        """Runs a single job and records its outcome."""
        descriptor = JobDescriptor(
            source_url=url,
            page_context_url=self.page_context_url,
            suggested_filename=suggested_filename,
        )
        self.progress_manager.add_job(url)
        runner = JobRunner(
            descriptor,
            session,
            self.config,
            on_progress=self.progress_manager.report,
            on_artifact=self.writer.save,
        )
        self._runners.append(runner)
        self.jobs.append(runner.job)

        try:
            artifact = await runner.run()
        except (OSError, StreamGrabError) as e:
            artifact = None
            log.error(f"[red]✗ Could not save {escape(url)}: {e}[/red]")
        except Exception as e:
            artifact = None
            log.error(
                f"[red]✗ An unexpected error occurred for {escape(url)}: {e}[/red]",
                exc_info=log.getEffectiveLevel() == logging.DEBUG,
            )

        job = runner.job
        if artifact is not None and job.status is JobStatus.COMPLETE:
            await self.stats.record_success(
                artifact.size, job.failed_count, job.decrypt_failures
            )
            self.progress_manager.finish_job(url, success=True)
        else:
            await self.stats.record_failure(job.failed_count)
            self.progress_manager.finish_job(url, success=False)
