"""Category landing pages."""

from typing import Optional

from landingscout.constants import DEFAULT_CATEGORY_SELECTORS
from landingscout.processors.collection import CollectionProcessor
from landingscout.utils.page_loading import ScrollProfile


class CategoryProcessor(CollectionProcessor):
    """Same count-or-fallback reading as collections, with category item defaults."""

    page_type = "category"

    def __init__(
        self,
        default_item_selectors: str = DEFAULT_CATEGORY_SELECTORS,
        scroll_profile: Optional[ScrollProfile] = None,
    ):
        super().__init__(default_item_selectors, scroll_profile)
