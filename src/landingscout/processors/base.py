"""
Page processor interface.

A processor knows how to recognise one kind of landing page and how to read
its health count. Neither method raises: lookup failures mean "no match" and
extraction failures come back as an ERROR result.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

from landingscout.models import ExtractionResult, PageResultStatus, PageTypeRule
from landingscout.utils.page_loading import ScrollProfile, auto_scroll

logger = logging.getLogger(__name__)

# Integer with optional comma thousands separators ("1,204")
_COUNT_PATTERN = re.compile(r"\d{1,3}(?:,\d{3})+(?!\d)|\d+")


def parse_count(text: Optional[str]) -> Optional[int]:
    """First integer in a piece of text, or None if there is none.

    >>> parse_count("128 Products")
    128
    >>> parse_count("Showing 1,204 items")
    1204
    """
    if not text:
        return None
    match = _COUNT_PATTERN.search(text)
    if not match:
        return None
    return int(re.sub(r"\D", "", match.group(0)))


async def count_elements(page, selector: str) -> int:
    """Number of elements matching ``selector`` (0 for an empty selector)."""
    if not selector:
        return 0
    return await page.locator(selector).count()


async def has_element(page, selector: str) -> bool:
    return await count_elements(page, selector) > 0


class PageProcessor(ABC):
    """Base class for page type handlers."""

    def __init__(self, scroll_profile: Optional[ScrollProfile] = None):
        """
        Args:
            scroll_profile: Scroll pass run before extraction, None to skip
        """
        self.scroll_profile = scroll_profile

    @property
    @abstractmethod
    def type(self) -> str:
        """Registry key matched against ``PageTypeRule.type``."""
        pass

    @abstractmethod
    async def _matches(self, page, rule: PageTypeRule) -> bool:
        """Probe the page; may raise."""
        pass

    @abstractmethod
    async def _extract_count(self, page, rule: PageTypeRule) -> int:
        """Read the page's count; may raise."""
        pass

    async def identify(self, page, rule: PageTypeRule) -> bool:
        """Whether the loaded page is of this type. Never raises."""
        try:
            return await self._matches(page, rule)
        except Exception as e:
            logger.debug(f"{self.type} check failed: {e}")
            return False

    async def extract(self, page, url: str, rule: PageTypeRule) -> ExtractionResult:
        """Read the count from a page already identified as this type.

        Returns:
            SUCCESS result with the count, or an ERROR result with a message
        """
        try:
            if self.scroll_profile is not None:
                await auto_scroll(page, self.scroll_profile)
            product_count = await self._extract_count(page, rule)
        except Exception as e:
            logger.warning(f"Failed to process {self.type} page {url}: {e}")
            return ExtractionResult(
                page_type=self.type,
                product_count=0,
                status=PageResultStatus.ERROR,
                error_message=f"Failed to process {self.type} page: {e}",
            )

        return ExtractionResult(page_type=self.type, product_count=product_count)
