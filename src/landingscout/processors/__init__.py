"""Page classification and extraction."""

from landingscout.processors.base import PageProcessor, parse_count
from landingscout.processors.category import CategoryProcessor
from landingscout.processors.collection import CollectionProcessor
from landingscout.processors.product_details import ProductDetailsProcessor
from landingscout.processors.registry import ProcessorRegistry, build_default_registry

__all__ = [
    "PageProcessor",
    "parse_count",
    "CategoryProcessor",
    "CollectionProcessor",
    "ProductDetailsProcessor",
    "ProcessorRegistry",
    "build_default_registry",
]
