"""
Crawl option models.

Every option a crawl request may carry is declared here with its default and
validated by Pydantic at submission time. Options are frozen once a job
starts.
"""
import re
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from flowcrawl.constants import (
    DEFAULT_CAPTURE_WIDTH,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_PAGES,
    DEFAULT_PAGE_TIMEOUT_MS,
    VIEWPORT_PRESETS,
)

DeviceClass = Literal["desktop", "tablet", "mobile"]


class Viewport(BaseModel):
    """Browser viewport and the device class it emulates."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    width: int = Field(default=1920, ge=200, le=7680)
    height: int = Field(default=1080, ge=200, le=4320)
    device: DeviceClass = "desktop"

    @classmethod
    def preset(cls, name: str) -> "Viewport":
        """Build a viewport from a preset name (desktop, tablet, mobile)."""
        if name not in VIEWPORT_PRESETS:
            raise ValueError(
                f"Unknown viewport preset {name!r}; expected one of {sorted(VIEWPORT_PRESETS)}"
            )
        width, height = VIEWPORT_PRESETS[name]
        return cls(width=width, height=height, device=name)

    @property
    def is_mobile(self) -> bool:
        return self.device == "mobile"

    @property
    def has_touch(self) -> bool:
        return self.device in ("mobile", "tablet")


class LoginCredentials(BaseModel):
    """Single scripted login step run before traversal."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    login_url: Optional[str] = Field(
        default=None,
        description="Page holding the login form. None means the start URL."
    )
    username_selector: Optional[str] = None
    username: Optional[str] = None
    password_selector: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)
    submit_selector: Optional[str] = None


class CrawlOptions(BaseModel):
    """
    Options for one crawl job.

    All fields are validated by Pydantic; unknown option names are rejected.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_pages: int = Field(
        default=DEFAULT_MAX_PAGES,
        ge=1,
        description="Maximum number of pages to capture"
    )

    max_depth: int = Field(
        default=DEFAULT_MAX_DEPTH,
        ge=0,
        description="Maximum BFS distance from the start URL"
    )

    viewport: Viewport = Field(
        default_factory=lambda: Viewport.preset("desktop"),
        description="Viewport preset name or explicit width/height/device"
    )

    timeout_ms: int = Field(
        default=DEFAULT_PAGE_TIMEOUT_MS,
        ge=1000,
        le=300000,
        description="Per-page navigation timeout in milliseconds"
    )

    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = Field(
        default="networkidle",
        description="When to consider navigation complete"
    )

    capture_width: int = Field(
        default=DEFAULT_CAPTURE_WIDTH,
        ge=100,
        le=7680,
        description="Width snapshots are resized to, aspect ratio preserved"
    )

    full_page_capture: bool = Field(
        default=True,
        description="Snapshot the whole scrollable page; False captures only the viewport"
    )

    ignore_patterns: List[str] = Field(
        default_factory=list,
        description="Literal substrings; matching URLs are never enqueued"
    )

    ignore_regexes: List[str] = Field(
        default_factory=list,
        description="Regular expressions; matching URLs are never enqueued"
    )

    wait_for_selectors: List[str] = Field(
        default_factory=list,
        description="CSS selectors awaited (best effort) before capture"
    )

    login: Optional[LoginCredentials] = None

    block_resources: bool = Field(
        default=True,
        description="Abort requests to heavy ad/tracking hosts"
    )

    reduce_motion: bool = Field(
        default=True,
        description="Emulate prefers-reduced-motion to freeze animations"
    )

    headers: Dict[str, str] = Field(
        default_factory=dict,
        description="Extra HTTP headers sent with every request"
    )

    user_agent: Optional[str] = None

    job_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Overall job budget in seconds. None uses the process default."
    )

    @field_validator("viewport", mode="before")
    @classmethod
    def _viewport_from_preset(cls, value):
        if isinstance(value, str):
            return Viewport.preset(value)
        return value

    @field_validator("ignore_regexes")
    @classmethod
    def _regexes_compile(cls, value: List[str]) -> List[str]:
        for pattern in value:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid ignore regex {pattern!r}: {e}") from e
        return value

    @model_validator(mode="after")
    def _login_is_complete(self) -> "CrawlOptions":
        login = self.login
        if login is None:
            return self
        if login.username and not login.username_selector:
            raise ValueError("login.username requires login.username_selector")
        if login.password and not login.password_selector:
            raise ValueError("login.password requires login.password_selector")
        return self

    def compiled_ignore_regexes(self) -> List[re.Pattern]:
        return [re.compile(pattern) for pattern in self.ignore_regexes]
