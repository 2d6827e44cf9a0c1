"""Tests for URL canonicalization and node identity."""

import re

import pytest

from flowcrawl.errors import InvalidUrl
from flowcrawl.urls import (
    NODE_ID_LENGTH,
    hostname_of,
    identity,
    is_ignored,
    is_same_site,
    normalize,
    try_normalize,
)


class TestNormalize:
    """Test cases for normalize()."""

    def test_missing_scheme_defaults_to_https(self):
        assert normalize("example.com/about") == "https://example.com/about"

    def test_scheme_and_host_lowercased(self):
        assert normalize("HTTP://Example.COM/Path") == "http://example.com/Path"

    def test_fragment_stripped(self):
        assert normalize("https://ex.com/a#section") == "https://ex.com/a"

    def test_fragment_variants_normalize_identically(self):
        variants = ["https://ex.com/a", "https://ex.com/a#top", "https://EX.com/a#x"]
        assert len({normalize(v) for v in variants}) == 1

    def test_empty_path_becomes_root(self):
        assert normalize("https://ex.com") == "https://ex.com/"

    def test_query_preserved_verbatim(self):
        assert normalize("https://ex.com/s?b=2&a=1") == "https://ex.com/s?b=2&a=1"

    def test_trailing_slash_not_normalized(self):
        assert normalize("https://ex.com/a") != normalize("https://ex.com/a/")

    def test_port_kept(self):
        assert normalize("http://ex.com:8080/x") == "http://ex.com:8080/x"

    def test_surrounding_whitespace_ignored(self):
        assert normalize("  https://ex.com/  ") == "https://ex.com/"

    @pytest.mark.parametrize("url", ["", "   ", "ftp://ex.com/file", "javascript://void", "https://"])
    def test_invalid_urls_raise(self, url):
        with pytest.raises(InvalidUrl):
            normalize(url)

    def test_none_raises(self):
        with pytest.raises(InvalidUrl):
            normalize(None)

    def test_try_normalize_returns_none_on_error(self):
        assert try_normalize("ftp://ex.com") is None
        assert try_normalize("ex.com") == "https://ex.com/"


class TestIdentity:
    """Test cases for identity()."""

    def test_identity_is_stable(self):
        assert identity("https://ex.com/a") == identity("https://ex.com/a")

    def test_identity_follows_canonical_form(self):
        assert identity("ex.com/a#frag") == identity("https://EX.com/a")

    def test_identity_differs_for_different_pages(self):
        assert identity("https://ex.com/a") != identity("https://ex.com/b")

    def test_identity_is_short_hex(self):
        node_id = identity("https://ex.com/")
        assert len(node_id) == NODE_ID_LENGTH
        assert re.fullmatch(r"[0-9a-f]+", node_id)


class TestSiteHelpers:
    """Test cases for host comparison and ignore rules."""

    def test_hostname_of(self):
        assert hostname_of("https://Sub.Ex.com:8443/x") == "sub.ex.com"

    def test_same_site_ignores_scheme_and_port(self):
        assert is_same_site("http://ex.com:8080/a", "ex.com")
        assert is_same_site("https://ex.com/a", "EX.com")

    def test_subdomain_is_not_same_site(self):
        assert not is_same_site("https://blog.ex.com/", "ex.com")

    def test_ignore_literal_pattern(self):
        assert is_ignored("https://ex.com/logout", ["/logout"])
        assert not is_ignored("https://ex.com/login", ["/logout"])

    def test_empty_pattern_ignores_nothing(self):
        assert not is_ignored("https://ex.com/a", [""])

    def test_ignore_regex(self):
        regexes = [re.compile(r"/blog/\d+")]
        assert is_ignored("https://ex.com/blog/42", regexes=regexes)
        assert not is_ignored("https://ex.com/blog/", regexes=regexes)
