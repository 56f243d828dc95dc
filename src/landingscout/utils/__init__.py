"""
Utilities Package.

Provides page loading helpers shared by the crawl engine and page processors.
"""

from .page_loading import (
    DEEP_PAGE_SCROLL,
    START_PAGE_SCROLL,
    ScrollProfile,
    auto_scroll,
    wait_for_network_idle,
)

__all__ = [
    "DEEP_PAGE_SCROLL",
    "START_PAGE_SCROLL",
    "ScrollProfile",
    "auto_scroll",
    "wait_for_network_idle",
]
