"""Tests for crawl option validation."""

import pytest
from pydantic import ValidationError

from flowcrawl.constants import DEFAULT_CAPTURE_WIDTH, DEFAULT_MAX_DEPTH, DEFAULT_MAX_PAGES
from flowcrawl.crawl_options import CrawlOptions, LoginCredentials, Viewport


class TestViewport:
    """Test cases for Viewport presets."""

    def test_presets(self):
        assert Viewport.preset("desktop") == Viewport(width=1920, height=1080, device="desktop")
        assert Viewport.preset("tablet") == Viewport(width=768, height=1024, device="tablet")
        assert Viewport.preset("mobile") == Viewport(width=375, height=667, device="mobile")

    def test_unknown_preset(self):
        with pytest.raises(ValueError, match="Unknown viewport preset"):
            Viewport.preset("watch")

    def test_device_flags(self):
        assert Viewport.preset("mobile").is_mobile is True
        assert Viewport.preset("mobile").has_touch is True
        assert Viewport.preset("tablet").is_mobile is False
        assert Viewport.preset("tablet").has_touch is True
        assert Viewport.preset("desktop").has_touch is False


class TestCrawlOptions:
    """Test cases for CrawlOptions."""

    def test_defaults(self):
        options = CrawlOptions()
        assert options.max_pages == DEFAULT_MAX_PAGES
        assert options.max_depth == DEFAULT_MAX_DEPTH
        assert options.viewport.device == "desktop"
        assert options.capture_width == DEFAULT_CAPTURE_WIDTH
        assert options.full_page_capture is True
        assert options.block_resources is True
        assert options.reduce_motion is True
        assert options.login is None
        assert options.job_timeout is None

    def test_viewport_from_preset_name(self):
        options = CrawlOptions(viewport="mobile")
        assert options.viewport.width == 375
        assert options.viewport.is_mobile

    def test_viewport_from_mapping(self):
        options = CrawlOptions.model_validate({"viewport": {"width": 1280, "height": 800}})
        assert options.viewport.width == 1280
        assert options.viewport.device == "desktop"

    @pytest.mark.parametrize("field,value", [
        ("max_pages", 0),
        ("max_depth", -1),
        ("timeout_ms", 10),
        ("job_timeout", 0),
        ("wait_until", "whenever"),
    ])
    def test_out_of_range_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            CrawlOptions(**{field: value})

    def test_max_depth_zero_allowed(self):
        assert CrawlOptions(max_depth=0).max_depth == 0

    def test_unknown_option_rejected(self):
        with pytest.raises(ValidationError):
            CrawlOptions.model_validate({"max_pagez": 5})

    def test_invalid_regex_rejected(self):
        with pytest.raises(ValidationError, match="Invalid ignore regex"):
            CrawlOptions(ignore_regexes=["("])

    def test_compiled_ignore_regexes(self):
        options = CrawlOptions(ignore_regexes=[r"\.pdf$"])
        [regex] = options.compiled_ignore_regexes()
        assert regex.search("https://ex.com/file.pdf")

    def test_options_are_frozen(self):
        options = CrawlOptions()
        with pytest.raises(ValidationError):
            options.max_pages = 99

    def test_login_requires_selectors(self):
        with pytest.raises(ValidationError, match="username_selector"):
            CrawlOptions(login={"username": "jane"})
        with pytest.raises(ValidationError, match="password_selector"):
            CrawlOptions(login={"password_selector": None, "password": "secret"})

    def test_login_password_hidden_from_repr(self):
        credentials = LoginCredentials(password_selector="#pw", password="hunter2")
        assert "hunter2" not in repr(credentials)
