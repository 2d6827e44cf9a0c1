"""Flow crawler: full-page snapshots and navigation flow charts for websites."""

__version__ = "0.1.0"

from flowcrawl.crawl_options import CrawlOptions, LoginCredentials, Viewport
from flowcrawl.errors import (
    CancelledByCaller,
    CaptureFailed,
    CrawlTimeout,
    FlowCrawlError,
    InvalidUrl,
    JobAlreadyTerminal,
    JobNotCompleted,
    JobNotFound,
    LaunchFailed,
    LoginFailed,
    NavigationFailed,
    PoolExhausted,
    UnsafeUrl,
)
from flowcrawl.models import (
    ChartEdge,
    ChartNode,
    CrawlResult,
    FlowChart,
    FlowNode,
    JobSnapshot,
    JobStatus,
    PageError,
)
from flowcrawl.flow_crawler import FlowCrawler
from flowcrawl.flow_graph import build_flow_chart
from flowcrawl.jobs import JobRegistry
from flowcrawl.urls import identity, normalize
from flowcrawl.validation import check_robots_permission, validate_url
from flowcrawl.config import settings

# Infrastructure
from flowcrawl.infrastructure import (
    BrowserPool,
    BrowserHandle,
    PoolStatus,
)

__all__ = [
    # Options
    "CrawlOptions",
    "LoginCredentials",
    "Viewport",
    # Errors
    "FlowCrawlError",
    "InvalidUrl",
    "UnsafeUrl",
    "PoolExhausted",
    "LaunchFailed",
    "NavigationFailed",
    "CaptureFailed",
    "LoginFailed",
    "CrawlTimeout",
    "CancelledByCaller",
    "JobNotFound",
    "JobNotCompleted",
    "JobAlreadyTerminal",
    # Models
    "JobStatus",
    "JobSnapshot",
    "FlowNode",
    "PageError",
    "ChartNode",
    "ChartEdge",
    "FlowChart",
    "CrawlResult",
    # Crawling
    "FlowCrawler",
    "JobRegistry",
    "build_flow_chart",
    "identity",
    "normalize",
    "validate_url",
    "check_robots_permission",
    "settings",
    # Infrastructure
    "BrowserPool",
    "BrowserHandle",
    "PoolStatus",
]
