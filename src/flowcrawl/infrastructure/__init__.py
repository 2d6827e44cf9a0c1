"""
Infrastructure Package.

Provides the browser pool shared by crawl jobs.
"""

from .browser_pool import (
    BrowserPool,
    BrowserHandle,
    BrowserMetrics,
    HandleState,
    PoolStatus,
)

__all__ = [
    "BrowserPool",
    "BrowserHandle",
    "BrowserMetrics",
    "HandleState",
    "PoolStatus",
]
