"""Crawl job lifecycle management.

A :class:`JobRegistry` owns one state machine per crawl request::

    pending -> running -> completed | failed | cancelled

Terminal states are final; any later transition attempt is ignored. Each job
runs as its own asyncio task holding one browser from the shared pool, with
its own cancellation event and an overall wall-clock budget.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping, Optional, Union

from flowcrawl.config import settings
from flowcrawl.constants import (
    PROGRESS_BROWSER_READY,
    PROGRESS_DONE,
    PROGRESS_RUNNING,
    PROGRESS_TRAVERSAL_SPAN,
)
from flowcrawl.crawl_options import CrawlOptions
from flowcrawl.errors import (
    CancelledByCaller,
    CrawlTimeout,
    FlowCrawlError,
    JobAlreadyTerminal,
    JobNotCompleted,
    JobNotFound,
    UnsafeUrl,
)
from flowcrawl.flow_crawler import FlowCrawler
from flowcrawl.images import ScreenshotStore
from flowcrawl.infrastructure import BrowserPool
from flowcrawl.models import (
    TRANSITIONS,
    CrawlJob,
    CrawlResult,
    FlowNode,
    JobSnapshot,
    JobStatus,
)
from flowcrawl.urls import normalize
from flowcrawl.validation import ValidationResult

logger = logging.getLogger(__name__)

UrlValidator = Callable[[str], ValidationResult]
CrawlerFactory = Callable[..., FlowCrawler]


def generate_job_id() -> str:
    return f"job_{uuid.uuid4().hex[:9]}_{int(time.time() * 1000)}"


class JobRegistry:
    """Tracks crawl jobs and runs them against a shared browser pool.

    Usage:
        registry = JobRegistry(BrowserPool())
        job_id = registry.submit("https://example.com", {"max_pages": 5})
        snapshot = await registry.wait(job_id)
    """

    def __init__(
        self,
        pool: BrowserPool,
        screenshot_dir: Optional[str] = None,
        job_timeout: Optional[float] = None,
        url_validator: Optional[UrlValidator] = None,
        crawler_factory: CrawlerFactory = FlowCrawler,
        user_agent: Optional[str] = None,
    ):
        """Initialize the registry.

        Args:
            pool: Browser pool shared by every job of this registry
            screenshot_dir: Directory snapshots are written to
            job_timeout: Default overall budget per job, in seconds
            url_validator: Optional safety check run on submitted URLs
            crawler_factory: Builds the crawler for a job
            user_agent: Default user agent for jobs that do not set one
        """
        self.pool = pool
        self.store = ScreenshotStore(screenshot_dir or settings.SCREENSHOT_DIR)
        self.job_timeout = job_timeout if job_timeout is not None else settings.JOB_TIMEOUT
        self.user_agent = user_agent or settings.USER_AGENT
        self._url_validator = url_validator
        self._crawler_factory = crawler_factory

        self._jobs: dict[str, CrawlJob] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._cancel_events: dict[str, asyncio.Event] = {}
        self._crawlers: dict[str, FlowCrawler] = {}

    # ------------------------------------------------------------------
    # Caller-facing operations
    # ------------------------------------------------------------------

    def submit(
        self,
        url: str,
        options: Union[CrawlOptions, Mapping[str, Any], None] = None,
    ) -> str:
        """Validate a crawl request and start it in the background.

        Must be called from a running event loop.

        Args:
            url: Start URL (scheme optional)
            options: CrawlOptions or a mapping of option values

        Returns:
            The new job id

        Raises:
            InvalidUrl: The URL cannot be parsed
            UnsafeUrl: The configured validator rejected the URL
            pydantic.ValidationError: The options are invalid
        """
        if options is None:
            options = CrawlOptions()
        elif not isinstance(options, CrawlOptions):
            options = CrawlOptions.model_validate(dict(options))

        canonical = normalize(url)
        if self._url_validator is not None:
            verdict = self._url_validator(canonical)
            if not verdict.valid:
                raise UnsafeUrl(
                    f"URL rejected: {'; '.join(verdict.errors)}",
                    url=canonical,
                    reasons=verdict.errors,
                )

        job = CrawlJob(job_id=generate_job_id(), url=canonical, options=options)
        self._jobs[job.job_id] = job
        self._cancel_events[job.job_id] = asyncio.Event()
        self._tasks[job.job_id] = asyncio.create_task(self._run(job), name=f"crawl-{job.job_id}")

        logger.info(f"Submitted {job.job_id} for {canonical}")
        return job.job_id

    def get_status(self, job_id: str) -> JobSnapshot:
        return self._get(job_id).snapshot()

    def get_result(self, job_id: str) -> JobSnapshot:
        """Get a completed job.

        Raises:
            JobNotFound: Unknown job id
            JobNotCompleted: The job has not (or not successfully) completed
        """
        job = self._get(job_id)
        if job.status is not JobStatus.COMPLETED:
            raise JobNotCompleted(
                f"Job {job_id} has not completed (status: {job.status.value})",
                status=job.status.value,
            )
        return job.snapshot()

    def cancel(self, job_id: str) -> JobSnapshot:
        """Cancel a pending or running job.

        The job turns ``cancelled`` immediately; a pending job is moved through
        ``running`` first so every job records a start time. Its traversal
        stops before the next page; a page already being captured finishes
        first.

        Raises:
            JobNotFound: Unknown job id
            JobAlreadyTerminal: The job already finished
        """
        job = self._get(job_id)
        if job.status.is_terminal:
            raise JobAlreadyTerminal(f"Job {job_id} already {job.status.value}")

        self._cancel(job, "Cancelled by user")
        return job.snapshot()

    def list_jobs(self) -> list[JobSnapshot]:
        return [job.snapshot() for job in self._jobs.values()]

    async def wait(self, job_id: str, timeout: Optional[float] = None) -> JobSnapshot:
        """Wait until a job's task has finished and return its final snapshot."""
        self._get(job_id)
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        return self.get_status(job_id)

    def purge_finished(self, older_than: float = 0.0) -> int:
        """Forget terminal jobs that ended more than ``older_than`` seconds ago."""
        cutoff = datetime.now() - timedelta(seconds=older_than)
        stale = [
            job_id for job_id, job in self._jobs.items()
            if job.status.is_terminal and job.end_time is not None and job.end_time <= cutoff
            and (job_id not in self._tasks or self._tasks[job_id].done())
        ]
        for job_id in stale:
            self._jobs.pop(job_id, None)
            self._tasks.pop(job_id, None)
            self._cancel_events.pop(job_id, None)
        return len(stale)

    async def shutdown(self) -> None:
        """Cancel outstanding jobs, wait for their tasks and stop the pool."""
        for job in self._jobs.values():
            if not job.status.is_terminal:
                self._cancel(job, "Cancelled at shutdown")

        tasks = [task for task in self._tasks.values() if not task.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self.pool.stop()

    # ------------------------------------------------------------------
    # Job execution
    # ------------------------------------------------------------------

    async def _run(self, job: CrawlJob) -> None:
        if not self._transition(job, JobStatus.RUNNING, progress=PROGRESS_RUNNING, message="Preparing browser"):
            return

        loop = asyncio.get_running_loop()
        budget = job.options.job_timeout or self.job_timeout
        deadline = loop.time() + budget
        timer = loop.call_later(budget, self._on_timeout, job, budget)

        try:
            async with self.pool.acquire() as handle:
                self._update(job, progress=PROGRESS_BROWSER_READY, message="Crawling pages")
                crawler = self._crawler_factory(
                    job.options,
                    self.store,
                    cancel_event=self._cancel_events[job.job_id],
                    deadline=deadline,
                    on_page=lambda node, count: self._on_page(job, node, count),
                    user_agent=self.user_agent,
                )
                self._crawlers[job.job_id] = crawler
                result = await crawler.crawl(handle, job.url)

            self._finish(
                job,
                JobStatus.COMPLETED,
                result=result,
                progress=PROGRESS_DONE,
                message=f"Crawl complete: {result.total_pages} pages",
            )
        except CancelledByCaller:
            self._finish(job, JobStatus.CANCELLED, message="Cancelled by user")
        except CrawlTimeout as e:
            self._fail(job, e, f"Crawl timed out after {budget:g}s")
        except FlowCrawlError as e:
            self._fail(job, e, f"Crawl failed: {e.message}")
        except asyncio.CancelledError:
            self._finish(job, JobStatus.CANCELLED, message="Crawl task cancelled")
            raise
        except Exception as e:
            logger.exception(f"Unexpected error in {job.job_id}")
            self._finish(job, JobStatus.FAILED, error="internal_error", message=f"Crawl failed: {e}")
        finally:
            timer.cancel()
            self._crawlers.pop(job.job_id, None)

    def _on_timeout(self, job: CrawlJob, budget: float) -> None:
        if job.status is not JobStatus.RUNNING:
            return
        logger.warning(f"{job.job_id} exceeded its {budget:g}s budget")
        self._cancel_events[job.job_id].set()
        self._fail(job, CrawlTimeout("Crawl exceeded its overall time budget"), f"Crawl timed out after {budget:g}s")

    def _on_page(self, job: CrawlJob, node: FlowNode, count: int) -> None:
        max_pages = job.options.max_pages
        self._update(
            job,
            pages_captured=count,
            progress=PROGRESS_BROWSER_READY + PROGRESS_TRAVERSAL_SPAN * min(count, max_pages) // max_pages,
            message=f"Captured {count}/{max_pages} pages",
        )

    def _cancel(self, job: CrawlJob, message: str) -> None:
        self._cancel_events[job.job_id].set()
        if job.status is JobStatus.PENDING:
            self._transition(job, JobStatus.RUNNING, progress=PROGRESS_RUNNING, message="Cancelling")
        self._finish(job, JobStatus.CANCELLED, message=message)

    def _fail(self, job: CrawlJob, error: FlowCrawlError, message: str) -> None:
        self._finish(job, JobStatus.FAILED, error=error.tag, message=message)

    def _finish(self, job: CrawlJob, status: JobStatus, result: Optional[CrawlResult] = None, **fields) -> None:
        crawler = self._crawlers.get(job.job_id)
        if crawler is not None:
            fields["page_errors"] = list(crawler.errors)
            fields["pages_captured"] = len(crawler.nodes)
        if result is not None:
            fields["result"] = result
        if self._transition(job, status, **fields):
            log = logger.info if status is not JobStatus.FAILED else logger.error
            log(f"{job.job_id} {status.value}: {job.message}")

    def _update(self, job: CrawlJob, **fields) -> None:
        """Change advisory fields of a running job."""
        if job.status is not JobStatus.RUNNING:
            return
        for name, value in fields.items():
            setattr(job, name, value)

    def _transition(self, job: CrawlJob, status: JobStatus, **fields) -> bool:
        if status not in TRANSITIONS[job.status]:
            logger.debug(f"{job.job_id}: ignoring {job.status.value} -> {status.value}")
            return False

        job.status = status
        now = datetime.now()
        if status is JobStatus.RUNNING:
            job.start_time = now
        if status.is_terminal:
            job.end_time = now
        for name, value in fields.items():
            setattr(job, name, value)
        return True

    def _get(self, job_id: str) -> CrawlJob:
        try:
            return self._jobs[job_id]
        except KeyError:
            raise JobNotFound(job_id) from None

    def __len__(self) -> int:
        return len(self._jobs)
