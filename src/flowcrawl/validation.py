"""URL safety validation and robots.txt advisory checks.

``validate_url`` is a pure function: it never touches the network and can be
plugged into :class:`flowcrawl.jobs.JobRegistry` as its ``url_validator``.
``check_robots_permission`` is advisory only; a crawl is never blocked by it.
"""

import ipaddress
import logging
import re
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlsplit
from urllib.robotparser import RobotFileParser

import httpx

from flowcrawl.constants import DEFAULT_USER_AGENT
from flowcrawl.errors import InvalidUrl
from flowcrawl.urls import normalize

logger = logging.getLogger(__name__)

SUSPICIOUS_TLDS = (".tk", ".ml", ".ga", ".cf")

_IPV4_RE = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$")

LOCAL_HOSTNAMES = {"localhost", "127.0.0.1", "::1"}


@dataclass
class ValidationResult:
    """Outcome of a URL safety check."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    normalized_url: Optional[str] = None


@dataclass
class RobotsCheck:
    """Advisory robots.txt verdict for a URL."""
    allowed: bool
    robots_url: str
    reason: str = ""


def is_private_or_localhost(hostname: str) -> bool:
    """True for loopback names and private/loopback/link-local addresses."""
    hostname = hostname.lower().strip("[]")
    if hostname in LOCAL_HOSTNAMES:
        return True
    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return address.is_private or address.is_loopback or address.is_link_local


def is_suspicious_domain(hostname: str) -> bool:
    hostname = hostname.lower()
    if hostname.endswith(SUSPICIOUS_TLDS):
        return True
    return bool(_IPV4_RE.match(hostname))


def validate_url(url: str) -> ValidationResult:
    """Validate a user-supplied start URL.

    Args:
        url: Raw URL, scheme optional

    Returns:
        ValidationResult with the canonical URL when it could be parsed
    """
    try:
        normalized = normalize(url)
    except InvalidUrl as e:
        return ValidationResult(valid=False, errors=[e.message])

    errors = []
    hostname = urlsplit(normalized).hostname or ""

    if is_private_or_localhost(hostname):
        errors.append("Localhost and private network addresses are not allowed")
    elif is_suspicious_domain(hostname):
        errors.append(f"Suspicious domain: {hostname}")

    return ValidationResult(
        valid=not errors,
        errors=errors,
        normalized_url=normalized,
    )


async def check_robots_permission(
    url: str,
    user_agent: str = "*",
    timeout: float = 5.0,
) -> RobotsCheck:
    """Check whether robots.txt allows crawling a URL.

    Missing or unreachable robots.txt files count as allowed.

    Args:
        url: Canonical URL to check
        user_agent: User agent token matched against robots rules
        timeout: Request timeout in seconds

    Returns:
        RobotsCheck verdict
    """
    parsed = urlsplit(url)
    robots_url = f"{parsed.scheme}://{parsed.netloc}/robots.txt"

    try:
        headers = {
            "User-Agent": DEFAULT_USER_AGENT,
            "Accept": "text/plain,text/html,*/*",
        }
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(robots_url, headers=headers)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.debug(f"Could not load robots.txt from {robots_url}: {e}")
        return RobotsCheck(allowed=True, robots_url=robots_url, reason="robots.txt unreachable")

    if response.status_code != 200:
        return RobotsCheck(allowed=True, robots_url=robots_url, reason="no robots.txt")

    rp = RobotFileParser()
    rp.set_url(robots_url)
    rp.parse(response.text.splitlines())

    if rp.can_fetch(user_agent, url):
        return RobotsCheck(allowed=True, robots_url=robots_url)
    return RobotsCheck(allowed=False, robots_url=robots_url, reason="disallowed by robots.txt")
