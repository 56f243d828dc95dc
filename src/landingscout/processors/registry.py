"""Registry mapping page type tags to their processors."""

import logging
from typing import Iterable, Optional

from landingscout.exceptions import UnknownPageTypeError
from landingscout.models import ExtractionResult, PageTypeRule
from landingscout.processors.base import PageProcessor
from landingscout.processors.category import CategoryProcessor
from landingscout.processors.collection import CollectionProcessor
from landingscout.processors.product_details import ProductDetailsProcessor
from landingscout.utils.page_loading import DEEP_PAGE_SCROLL, ScrollProfile

logger = logging.getLogger(__name__)


class ProcessorRegistry:
    """
    Explicit table of page processors keyed by type tag.

    Classification walks a scout's rules in order and returns the first rule
    whose processor recognises the page. Rules naming an unregistered type
    are skipped during classification.
    """

    def __init__(self, processors: Iterable[PageProcessor] = ()):
        self._processors: dict[str, PageProcessor] = {}
        for processor in processors:
            self.register(processor)

    def register(self, processor: PageProcessor) -> None:
        """Add a processor, replacing any previous one for the same type."""
        if processor.type in self._processors:
            logger.debug(f"Replacing processor for page type {processor.type}")
        self._processors[processor.type] = processor

    def get(self, page_type: str) -> Optional[PageProcessor]:
        return self._processors.get(page_type)

    def types(self) -> list[str]:
        return list(self._processors)

    async def identify_page_type(
        self,
        page,
        rules: Iterable[PageTypeRule],
    ) -> Optional[PageTypeRule]:
        """
        Identify the page type by trying the scout's rules in order.

        Args:
            page: Playwright Page object
            rules: Page type rules in scout order

        Returns:
            The first matching rule, or None if nothing matched
        """
        for rule in rules:
            processor = self._processors.get(rule.type)
            if processor is None:
                logger.warning(f"No processor registered for page type {rule.type}, skipping rule")
                continue
            if await processor.identify(page, rule):
                return rule
        return None

    async def process_page(self, page, url: str, rule: PageTypeRule) -> ExtractionResult:
        """
        Extract a partial result with the processor for ``rule.type``.

        Raises:
            UnknownPageTypeError: If no processor handles the rule's type
        """
        processor = self._processors.get(rule.type)
        if processor is None:
            raise UnknownPageTypeError(rule.type)
        return await processor.extract(page, url, rule)


def build_default_registry(
    config=None,
    scroll_profile: Optional[ScrollProfile] = DEEP_PAGE_SCROLL,
) -> ProcessorRegistry:
    """
    Registry with the built-in collection, category and product-details processors.

    Args:
        config: Optional Config supplying default item selectors
        scroll_profile: Scroll pass run before extraction, None to skip
    """
    collection = CollectionProcessor(scroll_profile=scroll_profile)
    category = CategoryProcessor(scroll_profile=scroll_profile)
    if config is not None:
        collection.default_item_selectors = config.default_product_selectors
        category.default_item_selectors = config.default_category_selectors

    return ProcessorRegistry([
        category,
        collection,
        ProductDetailsProcessor(scroll_profile=scroll_profile),
    ])
