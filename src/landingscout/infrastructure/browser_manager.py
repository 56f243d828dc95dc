"""
Shared Browser Management.

This module owns the single Playwright browser process shared by every crawl
session, hands out isolated context/page pairs, and relaunches the browser
when it has died or disconnected.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from landingscout.browser_config import BrowserConfig

logger = logging.getLogger(__name__)


class BrowserManager:
    """
    Owns the lifecycle of one shared browser process.

    Features:
    - Lazy launch on first acquisition
    - One fresh, isolated context per acquisition
    - Connection check before every context creation, with relaunch
    - Best-effort, non-raising release and idempotent shutdown

    Launch failures propagate to the caller; close failures are logged.
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        """
        Initialize the browser manager.

        Args:
            config: Browser settings applied to the process and every context
        """
        self.config = config or BrowserConfig()

        self._playwright = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()
        self._launch_count = 0
        self._contexts_created = 0

    async def _launch(self) -> None:
        """Start Playwright (once) and launch the browser process."""
        if self._playwright is None:
            self._playwright = await async_playwright().start()

        browser_type = getattr(self._playwright, self.config.browser_type)
        try:
            self._browser = await browser_type.launch(
                headless=self.config.headless,
                args=self.config.launch_args,
            )
        except Exception as e:
            logger.error(f"Failed to launch browser: {e}")
            raise

        self._launch_count += 1
        logger.info(
            f"Browser launched ({self.config.browser_type}, "
            f"headless={self.config.headless}, launch #{self._launch_count})"
        )

    async def _discard_browser(self) -> None:
        """Drop a stale browser handle, closing it if still possible."""
        stale, self._browser = self._browser, None
        if stale is None:
            return
        try:
            await stale.close()
        except Exception as e:
            logger.debug(f"Stale browser close failed: {e}")

    async def _ensure_browser(self) -> Browser:
        """Return a connected browser, launching or relaunching as needed."""
        async with self._lock:
            if self._browser is not None and not self._browser.is_connected():
                logger.warning("Browser disconnected, relaunching")
                await self._discard_browser()

            if self._browser is None:
                await self._launch()

            return self._browser

    async def acquire(self) -> tuple[Page, BrowserContext]:
        """
        Create a fresh isolated browsing context and page.

        Returns:
            Tuple of (Page, BrowserContext)

        Raises:
            Exception: If the browser cannot be launched or the context created
        """
        browser = await self._ensure_browser()

        try:
            context = await browser.new_context(**self.config.context_options())
        except Exception as e:
            if browser.is_connected():
                raise
            # Browser died between the connection check and context creation
            logger.warning(f"Context creation failed on dead browser ({e}), retrying")
            browser = await self._ensure_browser()
            context = await browser.new_context(**self.config.context_options())

        try:
            page = await context.new_page()
        except Exception:
            await self._close_quietly(context, "context")
            raise

        page.set_default_timeout(self.config.timeout)
        self._contexts_created += 1
        logger.debug(f"Created browsing context #{self._contexts_created}")
        return page, context

    @staticmethod
    def is_page_valid(page: Optional[Page]) -> bool:
        """Liveness check for a page; never raises."""
        if page is None:
            return False
        try:
            return not page.is_closed()
        except Exception:
            return False

    async def release(
        self,
        page: Optional[Page],
        context: Optional[BrowserContext],
    ) -> None:
        """Close a page and then its context. Failures are logged, not raised."""
        if page is not None:
            await self._close_quietly(page, "page")
        if context is not None:
            await self._close_quietly(context, "context")

    @staticmethod
    async def _close_quietly(target, label: str) -> None:
        try:
            await target.close()
        except Exception as e:
            logger.warning(f"Error closing browser {label}: {e}")

    @asynccontextmanager
    async def surface(self):
        """
        Acquire a page/context pair and always release it.

        Usage:
            async with manager.surface() as (page, context):
                await page.goto(url)
        """
        page, context = await self.acquire()
        try:
            yield page, context
        finally:
            await self.release(page, context)

    async def shutdown(self) -> None:
        """
        Close the shared browser and stop Playwright.

        Safe to call more than once.
        """
        async with self._lock:
            if self._browser is not None:
                try:
                    await self._browser.close()
                    logger.info("Browser closed")
                except Exception as e:
                    logger.warning(f"Error closing browser: {e}")
                self._browser = None

            if self._playwright is not None:
                try:
                    await self._playwright.stop()
                except Exception as e:
                    logger.warning(f"Error stopping playwright: {e}")
                self._playwright = None

    @property
    def is_started(self) -> bool:
        """Whether a browser handle is currently held."""
        return self._browser is not None

    @property
    def launch_count(self) -> int:
        """How many times the browser process has been launched."""
        return self._launch_count
