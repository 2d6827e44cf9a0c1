# src/flowcrawl/constants.py
"""Centralized constants for the flow crawler.

This module contains magic numbers and defaults that are used across
multiple modules. For user-configurable options, see crawl_options.py
and config.py.
"""

# =============================================================================
# Browser Pool Constants
# =============================================================================

# Maximum idle browser processes kept alive between jobs
MAX_POOL_SIZE = 3

# Maximum crawl jobs holding a browser at the same time
MAX_CONCURRENT_JOBS = 2

# Borrows after which a browser is closed instead of returned to the pool
MAX_JOBS_PER_BROWSER = 50

# Browser process launch timeout (milliseconds)
BROWSER_LAUNCH_TIMEOUT_MS = 20000

BROWSER_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-first-run",
    "--no-zygote",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--disable-extensions",
]


# =============================================================================
# Crawl Defaults
# =============================================================================

DEFAULT_MAX_PAGES = 20
DEFAULT_MAX_DEPTH = 3

# Per-page navigation timeout (milliseconds)
DEFAULT_PAGE_TIMEOUT_MS = 30000

# Overall wall-clock budget for one job (seconds)
DEFAULT_JOB_TIMEOUT_SECONDS = 180.0

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

VIEWPORT_PRESETS = {
    "desktop": (1920, 1080),
    "tablet": (768, 1024),
    "mobile": (375, 667),
}

# Requests to these hosts are aborted when resource blocking is enabled
BLOCKED_RESOURCE_HOSTS = (
    "googlesyndication.com",
    "doubleclick.net",
    "facebook.com/tr",
)

# Link prefixes that never lead to a capturable page
NON_NAVIGABLE_LINK_PREFIXES = ("#", "javascript:", "mailto:", "tel:")


# =============================================================================
# Readiness & Capture Constants (milliseconds unless noted)
# =============================================================================

STYLESHEET_WAIT_MS = 10000
FONT_WAIT_MS = 5000
IMAGE_WAIT_MS = 8000
SELECTOR_WAIT_MS = 5000
SCROLL_PASS_WAIT_MS = 15000
ANIMATION_FRAME_WAIT_MS = 2000

# requestAnimationFrame ticks to wait after scrolling
SETTLE_ANIMATION_FRAMES = 3

# Fixed delay before capturing
SETTLE_DELAY_MS = 500

# Delay between scroll steps in the lazy-load pass
SCROLL_STEP_DELAY_MS = 100

# Snapshot width after resize (pixels)
DEFAULT_CAPTURE_WIDTH = 1440

SCREENSHOT_FORMAT = "png"


# =============================================================================
# Job Progress Markers (percent)
# =============================================================================

PROGRESS_RUNNING = 10
PROGRESS_BROWSER_READY = 30
PROGRESS_TRAVERSAL_SPAN = 60
PROGRESS_DONE = 100

EDGE_LABEL = "navigates to"
