"""Command line entry point - capture a site's page flow from the terminal."""

import argparse
import asyncio
import json
import logging
import subprocess
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from flowcrawl.config import Config
from flowcrawl.constants import (
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_PAGES,
    DEFAULT_PAGE_TIMEOUT_MS,
    VIEWPORT_PRESETS,
)
from flowcrawl.crawl_options import CrawlOptions
from flowcrawl.errors import InvalidUrl
from flowcrawl.infrastructure import BrowserPool
from flowcrawl.jobs import JobRegistry
from flowcrawl.logging_config import setup_logging
from flowcrawl.models import JobSnapshot, JobStatus
from flowcrawl.urls import normalize
from flowcrawl.validation import check_robots_permission, validate_url

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 1.0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flowcrawl",
        description="Capture full-page snapshots of a site and map how its pages link together",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    crawl = subparsers.add_parser("crawl", help="Crawl a site starting from URL")
    crawl.add_argument("url", help="Start URL (https:// is assumed when no scheme is given)")
    crawl.add_argument("--max-pages", type=int, default=DEFAULT_MAX_PAGES,
                       help=f"Maximum number of pages to capture (default: {DEFAULT_MAX_PAGES})")
    crawl.add_argument("--max-depth", type=int, default=DEFAULT_MAX_DEPTH,
                       help=f"Maximum link distance from the start URL (default: {DEFAULT_MAX_DEPTH})")
    crawl.add_argument("--viewport", choices=sorted(VIEWPORT_PRESETS), default="desktop",
                       help="Viewport preset (default: desktop)")
    crawl.add_argument("--timeout", type=int, default=DEFAULT_PAGE_TIMEOUT_MS,
                       help=f"Per-page navigation timeout in ms (default: {DEFAULT_PAGE_TIMEOUT_MS})")
    crawl.add_argument("--job-timeout", type=float, default=None,
                       help="Overall crawl budget in seconds (default: FLOWCRAWL_JOB_TIMEOUT)")
    crawl.add_argument("--ignore", action="append", default=[], metavar="PATTERN",
                       help="Skip URLs containing PATTERN (repeatable)")
    crawl.add_argument("--wait-for", action="append", default=[], metavar="SELECTOR",
                       help="CSS selector to wait for before each snapshot (repeatable)")
    crawl.add_argument("--no-block-resources", action="store_true",
                       help="Do not block ad and tracking hosts")
    crawl.add_argument("--viewport-only", action="store_true",
                       help="Snapshot only the visible viewport instead of the full page")
    crawl.add_argument("--output", "-o", type=str, default=None,
                       help="Write the final job JSON to this file instead of stdout")
    crawl.add_argument("--screenshot-dir", type=str, default=None,
                       help="Directory for snapshots (default: FLOWCRAWL_SCREENSHOT_DIR)")
    crawl.add_argument("--skip-validation", action="store_true",
                       help="Allow private, local and suspicious hosts")
    crawl.add_argument("--log-level", type=str, default=None,
                       help="Log level (default: LOG_LEVEL or INFO)")

    subparsers.add_parser("install-browser", help="Download the Chromium build used by Playwright")
    return parser


def options_from_args(args: argparse.Namespace) -> CrawlOptions:
    return CrawlOptions(
        max_pages=args.max_pages,
        max_depth=args.max_depth,
        viewport=args.viewport,
        timeout_ms=args.timeout,
        job_timeout=args.job_timeout,
        ignore_patterns=args.ignore,
        wait_for_selectors=args.wait_for,
        block_resources=not args.no_block_resources,
        full_page_capture=not args.viewport_only,
    )


async def run_crawl(
    url: str,
    options: CrawlOptions,
    config: Config,
    skip_validation: bool = False,
) -> JobSnapshot:
    """Run one crawl job to completion and return its final snapshot."""
    robots = await check_robots_permission(url)
    if not robots.allowed:
        logger.warning(f"robots.txt at {robots.robots_url} disallows {url}; crawling anyway")

    pool = BrowserPool(
        max_pool_size=config.max_pool_size,
        max_concurrent_jobs=config.max_concurrent_jobs,
        headless=config.headless,
    )
    registry = JobRegistry(
        pool,
        screenshot_dir=config.screenshot_dir,
        job_timeout=config.job_timeout,
        url_validator=None if skip_validation else validate_url,
        user_agent=config.user_agent,
    )

    try:
        job_id = registry.submit(url, options)
        last_message = None
        while True:
            snapshot = registry.get_status(job_id)
            if snapshot.message != last_message:
                print(f"[{snapshot.progress:3d}%] {snapshot.message}")
                last_message = snapshot.message
            if snapshot.status.is_terminal:
                break
            await asyncio.sleep(POLL_INTERVAL_SECONDS)
        return await registry.wait(job_id)
    finally:
        await registry.shutdown()


def crawl_command(args: argparse.Namespace) -> int:
    config = Config.from_env()
    if args.screenshot_dir:
        config.screenshot_dir = args.screenshot_dir
    setup_logging(args.log_level or config.log_level)

    try:
        url = normalize(args.url)
    except InvalidUrl as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    if not args.skip_validation:
        verdict = validate_url(url)
        if not verdict.valid:
            for error in verdict.errors:
                print(f"Error: {error}", file=sys.stderr)
            return 1

    try:
        options = options_from_args(args)
    except ValidationError as e:
        print(f"Error: invalid crawl options\n{e}", file=sys.stderr)
        return 1

    print(f"Crawling {url}")
    print(f"  Max pages: {options.max_pages}, max depth: {options.max_depth}, viewport: {args.viewport}")
    print()

    try:
        snapshot = asyncio.run(run_crawl(url, options, config, args.skip_validation))
    except InvalidUrl as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n⚠️  Crawl interrupted by user.", file=sys.stderr)
        return 1

    payload = json.dumps(snapshot.to_dict(), indent=2)
    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(payload, encoding="utf-8")
        print(f"\nResult written to {output_path}")
    else:
        print(payload)

    if snapshot.status is JobStatus.COMPLETED:
        result = snapshot.result
        print(f"\n✓ Captured {result.total_pages} pages ({len(result.errors)} failed)")
        return 0

    print(f"\n✗ Crawl {snapshot.status.value}: {snapshot.message}", file=sys.stderr)
    return 1


def install_browser_command() -> int:
    """Run `playwright install chromium` with the current interpreter."""
    print("Running 'playwright install chromium'...")
    try:
        result = subprocess.run(
            [sys.executable, "-m", "playwright", "install", "chromium"],
            check=True,
            capture_output=True,
            text=True
        )
    except subprocess.CalledProcessError as e:
        print(f"Error installing Chromium browser for Playwright: {e}", file=sys.stderr)
        if e.stderr:
            print(e.stderr, file=sys.stderr)
        print("Please run the following command manually:\n  playwright install chromium", file=sys.stderr)
        return 1

    if result.stdout:
        print(result.stdout)
    print("Chromium browser installed successfully.")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "crawl":
        return crawl_command(args)
    if args.command == "install-browser":
        return install_browser_command()

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
