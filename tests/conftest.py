"""Shared fakes for crawler tests.

No real browser is launched: the pool gets a fake browser factory and the
crawler gets a scripted capturer that serves an in-memory site graph.
"""

import asyncio
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from flowcrawl.capture import PageCapture
from flowcrawl.errors import NavigationFailed
from flowcrawl.flow_crawler import FlowCrawler
from flowcrawl.models import FlowNode
from flowcrawl.urls import identity


class FakeCapturer:
    """Serves pages from a dict of ``url -> list of links``.

    URLs listed in ``failures`` raise the given exception instead of
    producing a node. Every capture sleeps ``delay`` seconds first.
    """

    def __init__(self, site: dict, failures: Optional[dict] = None, delay: float = 0.0, titles: Optional[dict] = None):
        self.site = site
        self.failures = failures or {}
        self.delay = delay
        self.titles = titles or {}
        self.calls: list[str] = []

    async def capture(self, page, url, depth, parent_url, base_host, visited=(), collect_links=True):
        self.calls.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if url in self.failures:
            raise self.failures[url]
        if url not in self.site:
            raise NavigationFailed("HTTP 404", url=url, status=404)

        links = []
        if collect_links:
            links = [link for link in self.site[url] if link not in visited and link != url]

        node = FlowNode(
            id=identity(url),
            url=url,
            title=self.titles.get(url, ""),
            screenshot_path=f"/tmp/shots/{identity(url)}.png",
            depth=depth,
            parent_url=parent_url,
        )
        return PageCapture(node=node, links=links)


def make_context():
    page = MagicMock()
    page.route = AsyncMock()
    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()
    return context


def make_browser(connected: bool = True):
    browser = MagicMock()
    browser.is_connected.return_value = connected
    browser.version = "120.0.6099.28"
    browser.close = AsyncMock()
    browser.new_context = AsyncMock(side_effect=lambda **kwargs: make_context())
    return browser


def make_handle():
    """Browser handle stand-in whose context and page accept every call."""
    context = make_context()
    handle = MagicMock()
    handle.new_context = AsyncMock(return_value=context)
    return handle, context


def crawler_factory_for(capturer: FakeCapturer):
    """Crawler factory for JobRegistry that swaps in the fake capturer."""
    def factory(options, store, **kwargs):
        return FlowCrawler(options, store, capturer=capturer, **kwargs)
    return factory


@pytest.fixture
def simple_site():
    """ex.com/ -> {/a, /b}, /a -> {/c}."""
    return {
        "https://ex.com/": ["https://ex.com/a", "https://ex.com/b"],
        "https://ex.com/a": ["https://ex.com/c"],
        "https://ex.com/b": [],
        "https://ex.com/c": [],
    }


@pytest.fixture
def browser_factory():
    return AsyncMock(side_effect=lambda: make_browser())
