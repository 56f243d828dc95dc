"""
Browser configuration for Playwright-based crawling.

This module provides a validated Pydantic configuration model for the settings
the shared browser manager applies to every browsing context it creates.
"""
from typing import List, Literal

from pydantic import BaseModel, Field

from landingscout.constants import (
    DEFAULT_ACTION_TIMEOUT_MS,
    DEFAULT_USER_AGENT,
    DESKTOP_VIEWPORT_HEIGHT,
    DESKTOP_VIEWPORT_WIDTH,
)


class BrowserConfig(BaseModel):
    """
    Configuration for the shared browser process and its contexts.

    All fields are validated by Pydantic to ensure type safety and valid values.
    """

    headless: bool = Field(
        default=True,
        description="Run browser in headless mode (no visible UI)"
    )

    browser_type: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium",
        description="Browser engine to use for crawling"
    )

    timeout: int = Field(
        default=DEFAULT_ACTION_TIMEOUT_MS,
        description="Default per-action timeout in milliseconds",
        ge=1000,
        le=300000
    )

    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User agent sent by every context"
    )

    viewport_width: int = Field(default=DESKTOP_VIEWPORT_WIDTH, ge=320)
    viewport_height: int = Field(default=DESKTOP_VIEWPORT_HEIGHT, ge=240)

    # Crawl targets are trusted first-party sites
    ignore_https_errors: bool = Field(
        default=True,
        description="Accept invalid TLS certificates"
    )

    bypass_csp: bool = Field(
        default=True,
        description="Bypass the page's Content-Security-Policy"
    )

    launch_args: List[str] = Field(
        default_factory=list,
        description="Additional browser launch arguments (e.g., '--disable-http2')"
    )

    class Config:
        """Pydantic model configuration."""
        frozen = False
        validate_assignment = True

    def context_options(self) -> dict:
        """Keyword arguments for ``Browser.new_context``."""
        return {
            "viewport": {"width": self.viewport_width, "height": self.viewport_height},
            "user_agent": self.user_agent,
            "accept_downloads": False,
            "bypass_csp": self.bypass_csp,
            "ignore_https_errors": self.ignore_https_errors,
        }
