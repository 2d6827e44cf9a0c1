"""Logging setup for crawl runs.

Crawl progress (one line per captured page, job transitions, pool events)
goes to stdout and, optionally, to a log file. The robots.txt check runs
through httpx and every snapshot is decoded by Pillow; both log at DEBUG
per request or per PNG chunk, so their loggers are held at WARNING
regardless of the crawl's own level.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Libraries whose DEBUG/INFO output drowns out per-page crawl progress
QUIET_LOGGERS = ('httpx', 'httpcore', 'asyncio', 'PIL')


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None
) -> None:
    """Route crawl logs to stdout (and a file) and quiet httpx and Pillow.

    An unknown level name falls back to INFO. The log file's parent
    directory is created when missing. Any handlers installed earlier are
    replaced, so repeated CLI invocations in one process do not duplicate
    output.

    Args:
        level: Level name for the flowcrawl loggers (DEBUG, INFO, ...)
        log_file: Optional path that receives a copy of the crawl log
        format_string: Optional format overriding DEFAULT_FORMAT
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=numeric_level,
        format=format_string or DEFAULT_FORMAT,
        handlers=handlers,
        force=True
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
