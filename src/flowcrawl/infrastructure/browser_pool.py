"""
Browser Pool Management.

This module manages a bounded set of reusable headless browser processes
and gates how many crawl jobs may hold one at the same time.

Two limits apply:
- max_pool_size bounds the idle browsers kept alive between jobs
- max_concurrent_jobs bounds the browsers borrowed at once

A handle is always in exactly one state: idle in the pool, borrowed by one
job, or closed.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from flowcrawl.constants import (
    BROWSER_LAUNCH_ARGS,
    BROWSER_LAUNCH_TIMEOUT_MS,
    MAX_CONCURRENT_JOBS,
    MAX_JOBS_PER_BROWSER,
    MAX_POOL_SIZE,
)
from flowcrawl.errors import LaunchFailed, PoolExhausted

logger = logging.getLogger(__name__)

BrowserFactory = Callable[[], Awaitable[Any]]


class HandleState(Enum):
    """Ownership state of a browser handle."""
    IDLE = "idle"
    BORROWED = "borrowed"
    CLOSED = "closed"


@dataclass
class PoolStatus:
    """Current status of the browser pool."""
    idle: int
    active_jobs: int
    max_pool_size: int
    max_concurrent_jobs: int
    launched: int
    recycled: int
    uptime_seconds: float


@dataclass
class BrowserMetrics:
    """Usage metrics for one browser process."""
    handle_id: int
    created_at: datetime
    jobs_served: int = 0
    last_used: datetime | None = None

    def record_borrow(self) -> None:
        self.jobs_served += 1
        self.last_used = datetime.now()


class BrowserHandle:
    """A running browser process owned by a :class:`BrowserPool`."""

    def __init__(self, handle_id: int, browser: Any):
        self.handle_id = handle_id
        self.browser = browser
        self.state = HandleState.IDLE
        self.metrics = BrowserMetrics(handle_id=handle_id, created_at=datetime.now())

    async def is_alive(self) -> bool:
        """Liveness probe: the process is connected and answers."""
        if self.state is HandleState.CLOSED:
            return False
        try:
            return bool(self.browser.is_connected() and self.browser.version)
        except PlaywrightError as e:
            logger.debug(f"Browser {self.handle_id} failed liveness probe: {e}")
            return False

    async def new_context(self, **kwargs) -> Any:
        """Open an isolated browser context on this process."""
        return await self.browser.new_context(**kwargs)

    async def close(self) -> None:
        if self.state is HandleState.CLOSED:
            return
        self.state = HandleState.CLOSED
        try:
            await self.browser.close()
        except PlaywrightError as e:
            logger.warning(f"Error closing browser {self.handle_id}: {e}")

    def __repr__(self) -> str:
        return f"BrowserHandle(id={self.handle_id}, state={self.state.value})"


class BrowserPool:
    """
    Manages a pool of browser processes shared by crawl jobs.

    Features:
    - Fail-fast admission: acquiring beyond max_concurrent_jobs raises PoolExhausted
    - Reuse of idle browsers after a liveness probe
    - Recycling of browsers after MAX_JOBS_PER_BROWSER borrows
    - Scoped acquisition with guaranteed release
    - Graceful shutdown

    Usage:
        async with BrowserPool() as pool:
            async with pool.acquire() as handle:
                context = await handle.new_context()
    """

    def __init__(
        self,
        max_pool_size: int = MAX_POOL_SIZE,
        max_concurrent_jobs: int = MAX_CONCURRENT_JOBS,
        headless: bool = True,
        launch_args: Optional[list[str]] = None,
        browser_factory: Optional[BrowserFactory] = None,
    ):
        """
        Initialize browser pool.

        Args:
            max_pool_size: Maximum idle browsers kept between jobs
            max_concurrent_jobs: Maximum browsers borrowed at once
            headless: Run browsers in headless mode
            launch_args: Chromium launch arguments
            browser_factory: Coroutine function returning a new browser.
                Defaults to launching Chromium through Playwright.
        """
        if max_pool_size < 0:
            raise ValueError("max_pool_size must be >= 0")
        if max_concurrent_jobs < 1:
            raise ValueError("max_concurrent_jobs must be >= 1")

        self.max_pool_size = max_pool_size
        self.max_concurrent_jobs = max_concurrent_jobs
        self.headless = headless
        self.launch_args = list(BROWSER_LAUNCH_ARGS if launch_args is None else launch_args)

        self._browser_factory = browser_factory
        self._playwright = None
        self._idle: list[BrowserHandle] = []
        self._borrowed: set[BrowserHandle] = set()
        self._active_jobs = 0
        self._lock = asyncio.Lock()
        self._closed = False
        self._start_time = datetime.now()
        self._launched = 0
        self._recycled = 0
        self._next_handle_id = 0

    async def __aenter__(self) -> "BrowserPool":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _launch_browser(self) -> Any:
        if self._browser_factory is not None:
            return await self._browser_factory()

        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return await self._playwright.chromium.launch(
            headless=self.headless,
            args=self.launch_args,
            timeout=BROWSER_LAUNCH_TIMEOUT_MS,
        )

    async def _create_handle(self) -> BrowserHandle:
        try:
            browser = await self._launch_browser()
        except (PlaywrightError, OSError) as e:
            raise LaunchFailed(f"Could not launch browser: {e}") from e

        handle_id = self._next_handle_id
        self._next_handle_id += 1
        self._launched += 1
        logger.info(f"Launched browser {handle_id}")
        return BrowserHandle(handle_id, browser)

    async def _take_idle(self) -> Optional[BrowserHandle]:
        """Pop idle browsers until a live one is found."""
        while True:
            async with self._lock:
                if not self._idle:
                    return None
                handle = self._idle.pop()

            if await handle.is_alive():
                logger.debug(f"Reusing browser {handle.handle_id} ({len(self._idle)} idle left)")
                return handle

            logger.warning(f"Discarding dead browser {handle.handle_id}")
            await handle.close()

    async def checkout(self) -> BrowserHandle:
        """
        Borrow a browser for one job.

        Prefer :meth:`acquire`, which guarantees the matching release.

        Raises:
            PoolExhausted: max_concurrent_jobs browsers are already borrowed
            LaunchFailed: a new browser process could not be started
        """
        async with self._lock:
            if self._closed:
                raise RuntimeError("Browser pool is stopped")
            if self._active_jobs >= self.max_concurrent_jobs:
                raise PoolExhausted(
                    f"Too many active crawl jobs ({self._active_jobs}/"
                    f"{self.max_concurrent_jobs}); try again later"
                )
            self._active_jobs += 1

        try:
            handle = await self._take_idle()
            if handle is None:
                handle = await self._create_handle()
        except BaseException:
            async with self._lock:
                self._active_jobs -= 1
            raise

        handle.state = HandleState.BORROWED
        handle.metrics.record_borrow()
        self._borrowed.add(handle)
        logger.info(
            f"Browser {handle.handle_id} borrowed "
            f"(active jobs: {self._active_jobs}/{self.max_concurrent_jobs})"
        )
        return handle

    async def release(self, handle: BrowserHandle) -> None:
        """
        Return a borrowed browser.

        The browser goes back to the idle list when there is room and it is
        still alive; otherwise it is closed. The active-job count drops by
        exactly one either way.
        """
        if handle not in self._borrowed:
            raise ValueError(f"{handle!r} is not borrowed from this pool")
        self._borrowed.discard(handle)

        try:
            worn_out = handle.metrics.jobs_served >= MAX_JOBS_PER_BROWSER
            alive = not worn_out and await handle.is_alive()

            async with self._lock:
                keep = alive and not self._closed and len(self._idle) < self.max_pool_size
                if keep:
                    handle.state = HandleState.IDLE
                    self._idle.append(handle)

            if not keep:
                if worn_out:
                    self._recycled += 1
                    logger.info(f"Recycling browser {handle.handle_id} after {handle.metrics.jobs_served} jobs")
                await handle.close()
        finally:
            async with self._lock:
                self._active_jobs -= 1
            logger.info(
                f"Browser {handle.handle_id} released "
                f"(active jobs: {self._active_jobs}/{self.max_concurrent_jobs})"
            )
            if self._closed and not self._borrowed:
                await self._stop_playwright()

    @asynccontextmanager
    async def acquire(self):
        """
        Borrow a browser for the duration of a block.

        Usage:
            async with pool.acquire() as handle:
                ...

        Yields:
            BrowserHandle exclusively owned by the caller
        """
        handle = await self.checkout()
        try:
            yield handle
        finally:
            await self.release(handle)

    async def stop(self) -> None:
        """
        Shutdown the pool.

        Closes idle browsers now; borrowed ones are closed when released.
        """
        async with self._lock:
            self._closed = True
            idle, self._idle = self._idle, []

        for handle in idle:
            await handle.close()

        if not self._borrowed:
            await self._stop_playwright()

        logger.info("Browser pool stopped")

    async def _stop_playwright(self) -> None:
        if self._playwright is None:
            return
        try:
            await self._playwright.stop()
        except PlaywrightError as e:
            logger.warning(f"Error stopping playwright: {e}")
        self._playwright = None

    def get_status(self) -> PoolStatus:
        """Get current pool status."""
        return PoolStatus(
            idle=len(self._idle),
            active_jobs=self._active_jobs,
            max_pool_size=self.max_pool_size,
            max_concurrent_jobs=self.max_concurrent_jobs,
            launched=self._launched,
            recycled=self._recycled,
            uptime_seconds=(datetime.now() - self._start_time).total_seconds(),
        )

    @property
    def active_jobs(self) -> int:
        """Number of browsers currently borrowed."""
        return self._active_jobs

    @property
    def idle_count(self) -> int:
        """Number of idle browsers ready for reuse."""
        return len(self._idle)

    @property
    def is_stopped(self) -> bool:
        return self._closed
