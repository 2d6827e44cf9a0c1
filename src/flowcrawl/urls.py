"""URL canonicalization and node identity."""

import hashlib
import re
from typing import Iterable, Optional, Sequence
from urllib.parse import urlsplit, urlunsplit

from flowcrawl.errors import InvalidUrl

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")

NODE_ID_LENGTH = 16


def normalize(url: str) -> str:
    """Return the canonical form of a URL.

    A missing scheme defaults to ``https``. Scheme and host are lower-cased
    and the fragment is dropped; path and query are kept verbatim, so
    ``/a`` and ``/a/`` remain distinct.

    Raises:
        InvalidUrl: If the input is not an absolute http(s) URL.
    """
    if url is None:
        raise InvalidUrl("URL is required")

    candidate = url.strip()
    if not candidate:
        raise InvalidUrl("URL is required", url=url)

    if not _SCHEME_RE.match(candidate):
        candidate = f"https://{candidate.lstrip('/')}"

    try:
        parts = urlsplit(candidate)
        hostname = parts.hostname
        port = parts.port
    except ValueError as e:
        raise InvalidUrl(f"Invalid URL {url!r}: {e}", url=url) from e

    scheme = parts.scheme.lower()
    if scheme not in ("http", "https"):
        raise InvalidUrl(f"Unsupported scheme {scheme!r} in {url!r}", url=url)
    if not hostname:
        raise InvalidUrl(f"URL has no host: {url!r}", url=url)

    netloc = hostname.lower()
    if ":" in netloc:
        netloc = f"[{netloc}]"
    if port is not None:
        netloc = f"{netloc}:{port}"
    if parts.username or parts.password:
        userinfo = parts.username or ""
        if parts.password:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    path = parts.path or "/"
    return urlunsplit((scheme, netloc, path, parts.query, ""))


def try_normalize(url: str) -> Optional[str]:
    """Like :func:`normalize` but returns None instead of raising."""
    try:
        return normalize(url)
    except InvalidUrl:
        return None


def identity(url: str) -> str:
    """Deterministic node id for a URL (hash of its canonical form)."""
    canonical = normalize(url)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:NODE_ID_LENGTH]


def hostname_of(url: str) -> str:
    return (urlsplit(url).hostname or "").lower()


def is_same_site(url: str, base_host: str) -> bool:
    """True when the URL points at the crawl's host (scheme/port ignored)."""
    return hostname_of(url) == base_host.lower()


def is_ignored(
    url: str,
    patterns: Sequence[str] = (),
    regexes: Iterable[re.Pattern] = (),
) -> bool:
    """Check a URL against literal substrings and compiled regexes."""
    if any(pattern and pattern in url for pattern in patterns):
        return True
    return any(regex.search(url) for regex in regexes)
