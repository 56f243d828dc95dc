"""Collection (product listing) pages."""

import logging
from typing import Optional

from landingscout.constants import DEFAULT_PRODUCT_SELECTORS
from landingscout.models import PageTypeRule
from landingscout.processors.base import PageProcessor, count_elements, has_element, parse_count
from landingscout.utils.page_loading import ScrollProfile

logger = logging.getLogger(__name__)


class CollectionProcessor(PageProcessor):
    """
    Listing pages whose health signal is the number of products shown.

    The count comes from the rule's count element ("128 Products" -> 128).
    When that element is missing the matching item nodes are counted instead,
    using the rule's fallback selectors or the configured defaults.
    """

    page_type = "collection"

    def __init__(
        self,
        default_item_selectors: str = DEFAULT_PRODUCT_SELECTORS,
        scroll_profile: Optional[ScrollProfile] = None,
    ):
        super().__init__(scroll_profile)
        self.default_item_selectors = default_item_selectors

    @property
    def type(self) -> str:
        return self.page_type

    async def _matches(self, page, rule: PageTypeRule) -> bool:
        return await has_element(page, rule.identifier)

    async def _extract_count(self, page, rule: PageTypeRule) -> int:
        if await has_element(page, rule.count_selector):
            text = await page.locator(rule.count_selector).first.text_content()
            count = parse_count(text)
            if count is None:
                logger.debug(f"No number in count element text {text!r}")
                return 0
            return count

        item_selector = rule.fallback_product_selectors or self.default_item_selectors
        return await count_elements(page, item_selector)
