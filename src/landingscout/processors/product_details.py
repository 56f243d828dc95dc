"""Product detail pages."""

import logging

from landingscout.constants import (
    ADD_TO_CART_SELECTOR,
    PRODUCT_DETAIL_MIN_SIGNALS,
    PRODUCT_GALLERY_SELECTOR,
    PRODUCT_TITLE_SELECTOR,
)
from landingscout.models import PageTypeRule
from landingscout.processors.base import PageProcessor, has_element

logger = logging.getLogger(__name__)


class ProductDetailsProcessor(PageProcessor):
    """
    Single-product pages, measured for availability.

    Without an explicit identifier the page must show at least two of: a
    product title heading, an add-to-cart control, a gallery container.
    The count is 1 while the add-to-cart control is present, 0 otherwise.
    """

    signal_selectors = (
        PRODUCT_TITLE_SELECTOR,
        ADD_TO_CART_SELECTOR,
        PRODUCT_GALLERY_SELECTOR,
    )

    @property
    def type(self) -> str:
        return "product-details"

    async def _matches(self, page, rule: PageTypeRule) -> bool:
        if rule.identifier:
            return await has_element(page, rule.identifier)

        signals = 0
        for selector in self.signal_selectors:
            if await has_element(page, selector):
                signals += 1
        logger.debug(f"Product detail signals: {signals}/{len(self.signal_selectors)}")
        return signals >= PRODUCT_DETAIL_MIN_SIGNALS

    async def _extract_count(self, page, rule: PageTypeRule) -> int:
        in_stock = await has_element(page, rule.count_selector or ADD_TO_CART_SELECTOR)
        return 1 if in_stock else 0
