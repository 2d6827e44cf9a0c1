"""Exception taxonomy for crawl jobs.

Every crawl failure carries a stable ``tag`` that ends up as the job's
``error`` field, so callers can branch on the cause without parsing messages.
"""

from typing import Optional


class FlowCrawlError(Exception):
    """Base class for all crawler errors."""

    tag = "internal_error"

    def __init__(self, message: str, url: Optional[str] = None):
        self.message = message
        self.url = url
        super().__init__(message)


class InvalidUrl(FlowCrawlError):
    """Raised when a URL cannot be parsed as an absolute http(s) URL."""
    tag = "invalid_url"


class UnsafeUrl(InvalidUrl):
    """Raised when a URL is rejected by the safety validator."""
    tag = "unsafe_url"

    def __init__(self, message: str, url: Optional[str] = None, reasons: Optional[list] = None):
        self.reasons = list(reasons or [])
        super().__init__(message, url)


class PoolExhausted(FlowCrawlError):
    """Raised when the pool already serves its maximum number of jobs."""
    tag = "pool_exhausted"


class LaunchFailed(FlowCrawlError):
    """Raised when a browser process cannot be started."""
    tag = "launch_failed"


class NavigationFailed(FlowCrawlError):
    """Raised when a page cannot be loaded successfully."""
    tag = "navigation_failed"

    def __init__(self, message: str, url: Optional[str] = None, status: Optional[int] = None):
        self.status = status
        super().__init__(message, url)


class CaptureFailed(FlowCrawlError):
    """Raised when a loaded page cannot be snapshotted."""
    tag = "capture_failed"


class LoginFailed(FlowCrawlError):
    """Raised when the scripted login step fails."""
    tag = "login_failed"


class CrawlTimeout(FlowCrawlError):
    """Raised when a job exceeds its overall wall-clock budget."""
    tag = "timeout"


class CancelledByCaller(FlowCrawlError):
    """Raised inside a traversal once its job has been cancelled."""
    tag = "cancelled"


class JobNotFound(KeyError):
    """Raised when a job id is unknown to the registry."""


class JobNotCompleted(FlowCrawlError):
    """Raised when a result is requested for a job that has not completed."""
    tag = "not_completed"

    def __init__(self, message: str, status: str):
        self.status = status
        super().__init__(message)


class JobAlreadyTerminal(FlowCrawlError):
    """Raised when cancelling a job that already finished."""
    tag = "already_terminal"
