"""
Page loading helpers.

Auto-scrolling to trigger lazy-loaded content and a bounded wait for the
network to settle. Both are best-effort: callers decide whether a failure
matters.
"""

import asyncio
import logging
from dataclasses import dataclass

from landingscout.constants import (
    DEEP_PAGE_SCROLL_PROFILE,
    NETWORK_IDLE_TIMEOUT_MS,
    START_PAGE_SCROLL_PROFILE,
)

logger = logging.getLogger(__name__)


# Scrolls in fixed steps until the bottom of the document or max_scrolls
AUTO_SCROLL_SCRIPT = """
async ([step, delay, max]) => {
    await new Promise((resolve) => {
        let totalHeight = 0;
        let scrolls = 0;
        const timer = setInterval(() => {
            const scrollHeight = document.body ? document.body.scrollHeight : 0;
            window.scrollBy(0, step);
            totalHeight += step;
            scrolls += 1;
            if (totalHeight >= scrollHeight || scrolls >= max) {
                clearInterval(timer);
                resolve();
            }
        }, delay);
    });
}
"""


@dataclass(frozen=True)
class ScrollProfile:
    """How patiently to scroll a page."""
    step_px: int = 100
    delay_ms: int = 100
    max_scrolls: int = 50
    settle_ms: int = 500


START_PAGE_SCROLL = ScrollProfile(*START_PAGE_SCROLL_PROFILE)
DEEP_PAGE_SCROLL = ScrollProfile(*DEEP_PAGE_SCROLL_PROFILE)


async def auto_scroll(page, profile: ScrollProfile = START_PAGE_SCROLL) -> None:
    """Scroll the page to the bottom in steps so lazy content loads.

    Args:
        page: Playwright Page object
        profile: Step size, delay, step cap and final settle time
    """
    await page.evaluate(
        AUTO_SCROLL_SCRIPT,
        [profile.step_px, profile.delay_ms, profile.max_scrolls],
    )
    # Allow remaining dynamic content to render
    await asyncio.sleep(profile.settle_ms / 1000)


async def wait_for_network_idle(page, timeout_ms: int = NETWORK_IDLE_TIMEOUT_MS) -> bool:
    """Wait for the network to go quiet, giving up after ``timeout_ms``.

    Returns:
        True if the page settled, False if the wait timed out or failed
    """
    try:
        await page.wait_for_load_state("networkidle", timeout=timeout_ms)
        return True
    except Exception as e:
        logger.debug(f"Network did not settle within {timeout_ms}ms: {e}")
        return False
