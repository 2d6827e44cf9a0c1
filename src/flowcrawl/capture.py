"""Page render and capture pipeline.

Loads one URL in an already-open browser tab, waits for the page to settle,
stores a full-page snapshot and reports the internal links it found.

Readiness waits are independent, individually bounded steps. Each yields a
:class:`StepResult`; a timeout or script error is tolerated, a closed page is
fatal.
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Collection, Iterable, Optional, Sequence
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from flowcrawl.constants import (
    ANIMATION_FRAME_WAIT_MS,
    FONT_WAIT_MS,
    IMAGE_WAIT_MS,
    NON_NAVIGABLE_LINK_PREFIXES,
    SCROLL_PASS_WAIT_MS,
    SCROLL_STEP_DELAY_MS,
    SELECTOR_WAIT_MS,
    SETTLE_ANIMATION_FRAMES,
    SETTLE_DELAY_MS,
    STYLESHEET_WAIT_MS,
)
from flowcrawl.crawl_options import CrawlOptions
from flowcrawl.errors import CaptureFailed, NavigationFailed
from flowcrawl.images import ScreenshotStore, resize_to_width
from flowcrawl.models import FlowNode
from flowcrawl.urls import identity, is_ignored, is_same_site, try_normalize

logger = logging.getLogger(__name__)


STYLESHEETS_READY_JS = """() => {
    const sheets = Array.from(document.styleSheets);
    return sheets.every(sheet => {
        try {
            return sheet.cssRules !== null;
        } catch (e) {
            // Cross-origin sheets are not readable; treat them as applied
            return true;
        }
    });
}"""

FONTS_READY_JS = """() => document.fonts ? document.fonts.ready.then(() => true) : true"""

IMAGES_READY_JS = """() => Array.from(document.images).every(img => img.complete)"""

SCROLL_PASS_JS = """(stepDelay) => new Promise(resolve => {
    const step = () => {
        window.scrollBy(0, window.innerHeight);
        const bottom = window.scrollY + window.innerHeight >= document.body.scrollHeight;
        if (bottom) {
            window.scrollTo(0, 0);
            resolve(true);
        } else {
            setTimeout(step, stepDelay);
        }
    };
    step();
})"""

ANIMATION_FRAMES_JS = """(frames) => new Promise(resolve => {
    let count = 0;
    const tick = () => {
        count += 1;
        if (count >= frames) {
            resolve(true);
        } else {
            requestAnimationFrame(tick);
        }
    };
    requestAnimationFrame(tick);
})"""


class StepOutcome(Enum):
    """Result of one readiness step."""
    SUCCEEDED = "succeeded"
    TOLERATED = "tolerated"
    FATAL = "fatal"


@dataclass(frozen=True)
class StepResult:
    name: str
    outcome: StepOutcome
    elapsed: float
    detail: str = ""


@dataclass
class PageCapture:
    """Everything produced by capturing one page."""
    node: FlowNode
    links: list[str] = field(default_factory=list)
    steps: list[StepResult] = field(default_factory=list)


def is_target_closed(error: Exception) -> bool:
    """True when Playwright reports the page, context or browser is gone."""
    message = str(error).lower()
    return "target" in message and "closed" in message


def extract_links(
    html: str,
    page_url: str,
    current_url: str,
    base_host: str,
    visited: Collection[str] = (),
    ignore_patterns: Sequence[str] = (),
    ignore_regexes: Iterable[re.Pattern] = (),
) -> list[str]:
    """Extract canonical same-site links from rendered HTML.

    Args:
        html: Rendered page HTML
        page_url: URL the browser ended on, used to resolve relative hrefs
        current_url: Canonical URL of the page being captured
        base_host: Host of the crawl's start URL
        visited: Canonical URLs already captured
        ignore_patterns: Literal substrings to exclude
        ignore_regexes: Compiled patterns to exclude

    Returns:
        Canonical URLs in document order, without duplicates
    """
    soup = BeautifulSoup(html, "html.parser")
    ignore_regexes = list(ignore_regexes)
    links: list[str] = []
    seen: set[str] = set()

    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.lower().startswith(NON_NAVIGABLE_LINK_PREFIXES):
            continue

        absolute = urljoin(page_url, href)
        if urlsplit(absolute).scheme.lower() not in ("http", "https"):
            continue

        canonical = try_normalize(absolute)
        if canonical is None or canonical == current_url:
            continue
        if not is_same_site(canonical, base_host):
            continue
        if canonical in seen or canonical in visited:
            continue
        if is_ignored(canonical, ignore_patterns, ignore_regexes):
            continue

        seen.add(canonical)
        links.append(canonical)

    return links


class PageCapturer:
    """Renders pages in a browser tab and turns them into flow nodes."""

    def __init__(self, options: CrawlOptions, store: ScreenshotStore):
        self.options = options
        self.store = store
        self._ignore_regexes = options.compiled_ignore_regexes()

    async def capture(
        self,
        page: Page,
        url: str,
        depth: int,
        parent_url: Optional[str],
        base_host: str,
        visited: Collection[str] = (),
        collect_links: bool = True,
    ) -> PageCapture:
        """Capture one page.

        Raises:
            NavigationFailed: The page did not load with a success status
            CaptureFailed: The page closed during readiness or the snapshot failed
        """
        await self.navigate(page, url)

        steps = await self.wait_until_ready(page, url)
        title = await self._page_title(page)

        data = await self.take_snapshot(page, url)
        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, resize_to_width, data, self.options.capture_width)
        try:
            path = await loop.run_in_executor(None, self.store.save, url, data)
        except OSError as e:
            raise CaptureFailed(f"Could not store snapshot: {e}", url=url) from e

        links: list[str] = []
        if collect_links:
            links = await self._collect_links(page, url, base_host, visited)

        node = FlowNode(
            id=identity(url),
            url=url,
            title=title,
            screenshot_path=str(path),
            depth=depth,
            parent_url=parent_url,
        )
        return PageCapture(node=node, links=links, steps=steps)

    async def navigate(self, page: Page, url: str) -> None:
        """Load a URL and require a 2xx/3xx final response."""
        timeout_ms = self.options.timeout_ms
        try:
            response = await page.goto(url, wait_until=self.options.wait_until, timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationFailed(f"Navigation timed out after {timeout_ms}ms", url=url) from e
        except PlaywrightError as e:
            raise NavigationFailed(f"Navigation failed: {e}", url=url) from e

        if response is None:
            raise NavigationFailed("No response received", url=url)
        if not response.ok:
            raise NavigationFailed(f"HTTP {response.status}", url=url, status=response.status)
        logger.debug(f"Loaded {url} (status {response.status})")

    async def wait_until_ready(self, page: Page, url: str) -> list[StepResult]:
        """Run the layered readiness waits before a snapshot.

        Raises:
            CaptureFailed: A step found the page closed
        """
        steps = [
            await self._run_step(
                "stylesheets",
                lambda: page.wait_for_function(STYLESHEETS_READY_JS, timeout=STYLESHEET_WAIT_MS),
                STYLESHEET_WAIT_MS,
            ),
            await self._run_step("fonts", lambda: page.evaluate(FONTS_READY_JS), FONT_WAIT_MS),
            await self._run_step(
                "images",
                lambda: page.wait_for_function(IMAGES_READY_JS, timeout=IMAGE_WAIT_MS),
                IMAGE_WAIT_MS,
            ),
        ]

        for selector in self.options.wait_for_selectors:
            steps.append(await self._run_step(
                f"selector:{selector}",
                lambda selector=selector: page.wait_for_selector(selector, timeout=SELECTOR_WAIT_MS),
                SELECTOR_WAIT_MS,
            ))

        steps.append(await self._run_step(
            "scroll",
            lambda: page.evaluate(SCROLL_PASS_JS, SCROLL_STEP_DELAY_MS),
            SCROLL_PASS_WAIT_MS,
        ))
        steps.append(await self._run_step(
            "animation_frames",
            lambda: page.evaluate(ANIMATION_FRAMES_JS, SETTLE_ANIMATION_FRAMES),
            ANIMATION_FRAME_WAIT_MS,
        ))

        fatal = [step for step in steps if step.outcome is StepOutcome.FATAL]
        if fatal:
            raise CaptureFailed(f"Page closed while waiting for {fatal[0].name}: {fatal[0].detail}", url=url)

        await asyncio.sleep(SETTLE_DELAY_MS / 1000)
        return steps

    async def _run_step(
        self,
        name: str,
        action: Callable[[], Awaitable[object]],
        timeout_ms: int,
    ) -> StepResult:
        start = time.monotonic()
        try:
            await asyncio.wait_for(action(), timeout=timeout_ms / 1000)
        except (asyncio.TimeoutError, PlaywrightTimeoutError):
            logger.warning(f"  ⚠ Readiness step '{name}' timed out after {timeout_ms}ms, continuing")
            return StepResult(name, StepOutcome.TOLERATED, time.monotonic() - start, "timed out")
        except PlaywrightError as e:
            if is_target_closed(e):
                return StepResult(name, StepOutcome.FATAL, time.monotonic() - start, str(e))
            logger.warning(f"  ⚠ Readiness step '{name}' failed ({e}), continuing")
            return StepResult(name, StepOutcome.TOLERATED, time.monotonic() - start, str(e))

        elapsed = time.monotonic() - start
        logger.debug(f"Readiness step '{name}' done in {elapsed * 1000:.0f}ms")
        return StepResult(name, StepOutcome.SUCCEEDED, elapsed)

    async def take_snapshot(self, page: Page, url: str) -> bytes:
        try:
            return await page.screenshot(full_page=self.options.full_page_capture, type="png")
        except PlaywrightError as e:
            raise CaptureFailed(f"Screenshot failed: {e}", url=url) from e

    async def _page_title(self, page: Page) -> str:
        try:
            return (await page.title()).strip()
        except PlaywrightError as e:
            logger.debug(f"Could not read page title: {e}")
            return ""

    async def _collect_links(
        self,
        page: Page,
        url: str,
        base_host: str,
        visited: Collection[str],
    ) -> list[str]:
        try:
            html = await page.content()
        except PlaywrightError as e:
            logger.warning(f"  ⚠ Link extraction failed for {url}: {e}")
            return []

        return extract_links(
            html,
            page_url=page.url or url,
            current_url=url,
            base_host=base_host,
            visited=visited,
            ignore_patterns=self.options.ignore_patterns,
            ignore_regexes=self._ignore_regexes,
        )
