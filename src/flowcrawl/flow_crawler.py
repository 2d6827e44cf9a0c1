"""Breadth-first flow crawler.

One crawl runs in a single browser tab on a borrowed browser. Pages are
captured strictly in discovery order (FIFO frontier), so a fixed site always
yields the same visitation order.
"""

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Callable, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, Route

from flowcrawl.capture import PageCapturer
from flowcrawl.constants import BLOCKED_RESOURCE_HOSTS, DEFAULT_USER_AGENT
from flowcrawl.crawl_options import CrawlOptions, LoginCredentials
from flowcrawl.errors import (
    CancelledByCaller,
    CaptureFailed,
    CrawlTimeout,
    FlowCrawlError,
    LaunchFailed,
    LoginFailed,
    NavigationFailed,
)
from flowcrawl.flow_graph import build_flow_chart
from flowcrawl.images import ScreenshotStore
from flowcrawl.infrastructure import BrowserHandle
from flowcrawl.models import CrawlResult, FlowNode, PageError
from flowcrawl.urls import hostname_of, normalize

logger = logging.getLogger(__name__)

PageCallback = Callable[[FlowNode, int], None]


@dataclass(frozen=True)
class FrontierEntry:
    """A page waiting to be captured."""
    url: str
    depth: int
    parent_url: Optional[str] = None


class FlowCrawler:
    """Crawls a site breadth-first and captures every page it reaches.

    The crawl stops when the frontier is empty, when max_pages pages have
    been captured, or when it is interrupted. Interruption (cancellation or
    the job deadline) is checked before each frontier entry; a page already
    being captured is allowed to finish.
    """

    def __init__(
        self,
        options: CrawlOptions,
        store: ScreenshotStore,
        capturer: Optional[PageCapturer] = None,
        cancel_event: Optional[asyncio.Event] = None,
        deadline: Optional[float] = None,
        on_page: Optional[PageCallback] = None,
        user_agent: Optional[str] = None,
    ):
        """Initialize the crawler.

        Args:
            options: Validated crawl options
            store: Where snapshots are written
            capturer: Page capture pipeline (built from options when omitted)
            cancel_event: Set by the owner to stop the crawl
            deadline: Event-loop time after which the crawl times out
            on_page: Called with each captured node and the captured count
            user_agent: Fallback user agent when options do not set one
        """
        self.options = options
        self.store = store
        self.capturer = capturer or PageCapturer(options, store)
        self.cancel_event = cancel_event or asyncio.Event()
        self.deadline = deadline
        self.on_page = on_page
        self.user_agent = options.user_agent or user_agent or DEFAULT_USER_AGENT

        self.visited_urls: set[str] = set()
        self.frontier: deque[FrontierEntry] = deque()
        self.nodes: list[FlowNode] = []
        self.errors: list[PageError] = []
        self._first_failure: Optional[FlowCrawlError] = None

    async def crawl(self, handle: BrowserHandle, start_url: str) -> CrawlResult:
        """Crawl a site on a borrowed browser.

        Args:
            handle: Browser borrowed from the pool for this job
            start_url: Where the crawl starts

        Returns:
            CrawlResult with captured nodes, the flow chart and page errors

        Raises:
            InvalidUrl: start_url cannot be parsed
            LaunchFailed: No browser context could be opened
            LoginFailed: The scripted login step failed
            NavigationFailed, CaptureFailed: Not a single page could be captured
            CrawlTimeout, CancelledByCaller: The crawl was interrupted
        """
        start_url = normalize(start_url)
        logger.info(f"Starting flow crawl from: {start_url}")
        logger.info(f"Max pages: {self.options.max_pages}, max depth: {self.options.max_depth}")

        async with self.open_session(handle) as page:
            if self.options.login is not None:
                await self.login(page, self.options.login, start_url)
            await self.traverse(page, start_url)

        if not self.nodes and self._first_failure is not None:
            raise self._first_failure

        logger.info(
            f"Crawl complete! Captured {len(self.nodes)} pages, {len(self.errors)} failed"
        )
        return self.build_result()

    def build_result(self) -> CrawlResult:
        return CrawlResult(
            nodes=tuple(self.nodes),
            flow_chart=build_flow_chart(self.nodes),
            errors=tuple(self.errors),
        )

    async def traverse(self, page: Page, start_url: str) -> None:
        """Run the BFS loop from a canonical start URL."""
        max_pages = self.options.max_pages
        max_depth = self.options.max_depth
        base_host = hostname_of(start_url)

        self.frontier.append(FrontierEntry(start_url, 0, None))

        while self.frontier and len(self.visited_urls) < max_pages:
            self._check_interrupted()

            entry = self.frontier.popleft()
            if entry.url in self.visited_urls or entry.depth > max_depth:
                continue

            logger.info(
                f"[D{entry.depth}] Capturing ({len(self.visited_urls) + 1}/{max_pages}): {entry.url}"
            )
            try:
                capture = await self.capturer.capture(
                    page,
                    entry.url,
                    entry.depth,
                    entry.parent_url,
                    base_host=base_host,
                    visited=self.visited_urls,
                    collect_links=entry.depth < max_depth,
                )
            except (NavigationFailed, CaptureFailed) as e:
                self._record_failure(entry, e)
                continue

            self.visited_urls.add(entry.url)
            self.nodes.append(capture.node)
            if self.on_page is not None:
                self.on_page(capture.node, len(self.nodes))

            queued = 0
            for link in capture.links:
                if link not in self.visited_urls and entry.depth + 1 <= max_depth:
                    self.frontier.append(FrontierEntry(link, entry.depth + 1, entry.url))
                    queued += 1
            if queued:
                logger.info(f"  → Queued {queued} links for depth {entry.depth + 1}")

    def _check_interrupted(self) -> None:
        if self.cancel_event.is_set():
            raise CancelledByCaller("Crawl cancelled by caller")
        if self.deadline is not None and asyncio.get_running_loop().time() >= self.deadline:
            raise CrawlTimeout("Crawl exceeded its overall time budget")

    def _record_failure(self, entry: FrontierEntry, error: FlowCrawlError) -> None:
        if self._first_failure is None:
            self._first_failure = error
        self.errors.append(PageError(
            url=entry.url,
            error_type=error.tag,
            message=error.message,
            depth=entry.depth,
            parent_url=entry.parent_url,
        ))
        logger.warning(f"  ❌ Failed to capture {entry.url}: {error.message}")

    @asynccontextmanager
    async def open_session(self, handle: BrowserHandle):
        """Open an isolated browser context and tab for this crawl.

        Yields:
            Page configured with the crawl's viewport, headers and blocking rules
        """
        viewport = self.options.viewport
        context_options = {
            "viewport": {"width": viewport.width, "height": viewport.height},
            "device_scale_factor": 1,
            "is_mobile": viewport.is_mobile,
            "has_touch": viewport.has_touch,
            "user_agent": self.user_agent,
            "ignore_https_errors": True,
            "reduced_motion": "reduce" if self.options.reduce_motion else "no-preference",
        }
        if self.options.headers:
            context_options["extra_http_headers"] = dict(self.options.headers)

        try:
            context = await handle.new_context(**context_options)
        except PlaywrightError as e:
            raise LaunchFailed(f"Could not open browser context: {e}") from e

        try:
            context.set_default_timeout(self.options.timeout_ms)
            page = await context.new_page()
            page.on("pageerror", lambda error: logger.debug(f"Page script error: {error}"))
            if self.options.block_resources:
                await page.route("**/*", self._route_request)
            yield page
        finally:
            try:
                await context.close()
            except PlaywrightError as e:
                logger.warning(f"Error closing browser context: {e}")

    async def _route_request(self, route: Route) -> None:
        request_url = route.request.url
        if any(host in request_url for host in BLOCKED_RESOURCE_HOSTS):
            logger.debug(f"Blocked request: {request_url[:200]}")
            await route.abort()
        else:
            await route.continue_()

    async def login(self, page: Page, credentials: LoginCredentials, start_url: str) -> None:
        """Run the scripted login step.

        Raises:
            LoginFailed: Any step of the login could not be completed
        """
        login_url = credentials.login_url or start_url
        timeout_ms = self.options.timeout_ms
        logger.info(f"Logging in at {login_url}")

        try:
            await page.goto(login_url, wait_until="networkidle", timeout=timeout_ms)

            if credentials.username_selector and credentials.username:
                await page.wait_for_selector(credentials.username_selector, timeout=timeout_ms)
                await page.fill(credentials.username_selector, credentials.username)

            if credentials.password_selector and credentials.password:
                await page.wait_for_selector(credentials.password_selector, timeout=timeout_ms)
                await page.fill(credentials.password_selector, credentials.password)

            if credentials.submit_selector:
                async with page.expect_navigation(wait_until="networkidle", timeout=timeout_ms):
                    await page.click(credentials.submit_selector)
        except PlaywrightError as e:
            raise LoginFailed(f"Login failed: {e}", url=login_url) from e

        logger.info("Login complete")
