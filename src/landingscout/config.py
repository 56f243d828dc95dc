from dotenv import load_dotenv
from dataclasses import dataclass
from typing import Optional
import os

from landingscout.browser_config import BrowserConfig
from landingscout.constants import (
    DEFAULT_ACTION_TIMEOUT_MS,
    DEFAULT_CATEGORY_SELECTORS,
    DEFAULT_HTML_SNAPSHOT_MAX_BYTES,
    DEFAULT_HTML_SNAPSHOT_RETENTION_DAYS,
    DEFAULT_MAX_PAGES_TO_VISIT,
    DEFAULT_PRODUCT_SELECTORS,
    DEFAULT_USER_AGENT,
)

load_dotenv()  # Loads variables from .env file


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default  # Keep default if conversion fails


@dataclass
class Config:
    """Configuration for the LandingScout crawl service."""
    database_url: str = "sqlite:///landingscout.db"

    # Browser
    headless: bool = True
    browser_timeout_ms: int = DEFAULT_ACTION_TIMEOUT_MS
    user_agent: str = DEFAULT_USER_AGENT

    # Selectors used when a page type rule has no fallback
    default_product_selectors: str = DEFAULT_PRODUCT_SELECTORS
    default_category_selectors: str = DEFAULT_CATEGORY_SELECTORS

    # Capture
    screenshots_enabled: bool = False
    screenshots_dir: str = "./screenshots"
    html_snapshot_enabled: bool = False
    html_snapshot_max_bytes: int = DEFAULT_HTML_SNAPSHOT_MAX_BYTES
    html_snapshot_retention_days: int = DEFAULT_HTML_SNAPSHOT_RETENTION_DAYS

    # Scheduler
    scheduler_enabled: bool = True
    scheduler_check_interval: int = 60  # seconds
    max_concurrent_scouts: int = 10
    default_max_pages: int = DEFAULT_MAX_PAGES_TO_VISIT

    # Exports
    api_base_url: str = "http://localhost:3000"

    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables.

        Returns:
            Config: Configuration instance with values from environment
        """
        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///landingscout.db"),
            headless=_env_bool("PLAYWRIGHT_HEADLESS", True),
            browser_timeout_ms=_env_int("PLAYWRIGHT_TIMEOUT", DEFAULT_ACTION_TIMEOUT_MS),
            user_agent=os.getenv("PLAYWRIGHT_USER_AGENT", DEFAULT_USER_AGENT),
            default_product_selectors=os.getenv(
                "DEFAULT_PRODUCT_SELECTORS", DEFAULT_PRODUCT_SELECTORS
            ),
            default_category_selectors=os.getenv(
                "DEFAULT_CATEGORY_SELECTORS", DEFAULT_CATEGORY_SELECTORS
            ),
            screenshots_enabled=_env_bool("SCREENSHOTS_ENABLED", False),
            screenshots_dir=os.getenv("SCREENSHOTS_DIR", "./screenshots"),
            html_snapshot_enabled=_env_bool("HTML_SNAPSHOT_ENABLED", False),
            html_snapshot_max_bytes=_env_int(
                "HTML_SNAPSHOT_MAX_BYTES", DEFAULT_HTML_SNAPSHOT_MAX_BYTES
            ),
            html_snapshot_retention_days=_env_int(
                "HTML_SNAPSHOT_RETENTION_DAYS", DEFAULT_HTML_SNAPSHOT_RETENTION_DAYS
            ),
            scheduler_enabled=_env_bool("SCHEDULER_ENABLED", True),
            scheduler_check_interval=_env_int("SCHEDULER_CHECK_INTERVAL", 60),
            max_concurrent_scouts=_env_int("MAX_CONCURRENT_SCOUTS", 10),
            default_max_pages=_env_int("DEFAULT_MAX_PAGES", DEFAULT_MAX_PAGES_TO_VISIT),
            api_base_url=os.getenv("API_BASE_URL", "http://localhost:3000"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE"),
        )

    def browser_config(self) -> BrowserConfig:
        """Build the browser configuration for the shared browser manager."""
        return BrowserConfig(
            headless=self.headless,
            timeout=self.browser_timeout_ms,
            user_agent=self.user_agent,
        )


settings = Config.from_env()
