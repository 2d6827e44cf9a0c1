from dotenv import load_dotenv
from dataclasses import dataclass
from typing import Optional
import os

from flowcrawl.constants import (
    DEFAULT_JOB_TIMEOUT_SECONDS,
    MAX_CONCURRENT_JOBS,
    MAX_POOL_SIZE,
)

load_dotenv()  # Loads variables from .env file


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """
    Manages application settings loaded from environment variables.
    """
    SCREENSHOT_DIR = os.getenv("FLOWCRAWL_SCREENSHOT_DIR", "screenshots")
    MAX_POOL_SIZE = int(os.getenv("FLOWCRAWL_MAX_POOL_SIZE", str(MAX_POOL_SIZE)))
    MAX_CONCURRENT_JOBS = int(
        os.getenv("FLOWCRAWL_MAX_CONCURRENT_JOBS", str(MAX_CONCURRENT_JOBS))
    )
    JOB_TIMEOUT = float(
        os.getenv("FLOWCRAWL_JOB_TIMEOUT", str(DEFAULT_JOB_TIMEOUT_SECONDS))
    )
    HEADLESS = _env_bool("FLOWCRAWL_HEADLESS", True)
    USER_AGENT = os.getenv("FLOWCRAWL_USER_AGENT")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()


@dataclass
class Config:
    """Runtime configuration for a crawl process."""
    screenshot_dir: str = "screenshots"
    max_pool_size: int = MAX_POOL_SIZE
    max_concurrent_jobs: int = MAX_CONCURRENT_JOBS
    job_timeout: float = DEFAULT_JOB_TIMEOUT_SECONDS
    headless: bool = True
    user_agent: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables.

        Returns:
            Config: Configuration instance with values from environment
        """
        return cls(
            screenshot_dir=os.getenv("FLOWCRAWL_SCREENSHOT_DIR", "screenshots"),
            max_pool_size=int(os.getenv("FLOWCRAWL_MAX_POOL_SIZE", str(MAX_POOL_SIZE))),
            max_concurrent_jobs=int(
                os.getenv("FLOWCRAWL_MAX_CONCURRENT_JOBS", str(MAX_CONCURRENT_JOBS))
            ),
            job_timeout=float(
                os.getenv("FLOWCRAWL_JOB_TIMEOUT", str(DEFAULT_JOB_TIMEOUT_SECONDS))
            ),
            headless=_env_bool("FLOWCRAWL_HEADLESS", True),
            user_agent=os.getenv("FLOWCRAWL_USER_AGENT"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return {
            field_name: getattr(self, field_name)
            for field_name in self.__dataclass_fields__
        }
