# src/landingscout/constants.py
"""Centralized constants for the crawl engine.

This module contains timeouts, selectors and exclusion patterns that are used
across multiple modules. For user-configurable settings, see config.py.
"""

# =============================================================================
# Browser Constants
# =============================================================================

DESKTOP_VIEWPORT_WIDTH = 1920
DESKTOP_VIEWPORT_HEIGHT = 1080

DEFAULT_USER_AGENT = "LandingScout/1.0 (+https://github.com/landingscout/landingscout)"

# Default per-action timeout applied to every new page (milliseconds)
DEFAULT_ACTION_TIMEOUT_MS = 30000


# =============================================================================
# Crawl Timeout Budgets
# =============================================================================

# Navigation timeout used when a scout does not configure one (milliseconds)
DEFAULT_NAVIGATION_TIMEOUT_MS = 30000

# Hard ceiling for any single navigation (milliseconds)
NAVIGATION_TIMEOUT_CEILING_MS = 60000

# Best-effort wait for the network to settle after DOM-ready (milliseconds)
NETWORK_IDLE_TIMEOUT_MS = 5000

# Upper bound for an auto-scroll pass (seconds)
SCROLL_TIMEOUT_SECONDS = 10.0

# Upper bound for a page handler's extraction step (seconds)
EXTRACTION_TIMEOUT_SECONDS = 20.0

# Maximum pages visited per session when the scout has no cap
DEFAULT_MAX_PAGES_TO_VISIT = 100


# =============================================================================
# Auto-scroll Profiles
# =============================================================================

# (step_px, delay_ms, max_scrolls, settle_ms)
START_PAGE_SCROLL_PROFILE = (100, 100, 50, 500)
DEEP_PAGE_SCROLL_PROFILE = (200, 50, 30, 250)


# =============================================================================
# Page Classification
# =============================================================================

UNKNOWN_PAGE_TYPE = "UNKNOWN"

DEFAULT_PRODUCT_SELECTORS = (
    ".product-item, .product-card, [data-product-id], .collection-item, .product"
)

DEFAULT_CATEGORY_SELECTORS = (
    ".category-item, .category-card, [data-category-id], .subcategory, .product-item"
)

# Product detail identification signals (2 of 3 must match)
PRODUCT_TITLE_SELECTOR = (
    'h1[class*="ProductDetails_productName"], h1[itemprop="name"], h1.product-title'
)
ADD_TO_CART_SELECTOR = (
    'button[title="Add to Cart"], button[name="add-to-cart"], '
    'button[data-action="add-to-cart"], form[action*="/cart/add"] button[type="submit"]'
)
PRODUCT_GALLERY_SELECTOR = (
    '[class*="ProductGallery"], [class*="product-gallery"], [data-gallery], .product-images'
)
PRODUCT_DETAIL_MIN_SIGNALS = 2


# =============================================================================
# Link Frontier
# =============================================================================

# Structural chrome: anchors inside these regions are never followed
STRUCTURAL_EXCLUSIONS = [
    "nav",
    "header",
    "footer",
    ".cookie-banner",
    ".newsletter-popup",
    ".social-media",
    ".site-footer",
    ".site-header",
    ".mega-menu",
]

# URL substrings that are never followed
URL_EXCLUSIONS = [
    "/cart",
    "/en/cart",
    "/ar/cart",
    "/sa-en/cart",
    "/sa-ar/cart",
    "/sign-in",
    "/en/sign-in",
    "/ar/sign-in",
    "/login",
    "/en/login",
    "/ar/login",
    "/checkout",
    "/en/checkout",
    "/ar/checkout",
    "/wishlist",
    "/en/wishlist",
    "/ar/wishlist",
    "/account",
    "/en/account",
    "/ar/account",
    "/terms",
    "/about",
    "/faq",
    "/help",
    "/contact",
    "/privacy",
]

NON_NAVIGATIONAL_PREFIXES = ("javascript:", "mailto:", "tel:", "#")

SKIP_EXTENSIONS = {
    '.pdf', '.jpg', '.jpeg', '.png', '.gif', '.svg', '.webp',
    '.zip', '.tar', '.gz', '.mp4', '.mp3', '.avi', '.mov',
    '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx',
    '.css', '.js', '.xml', '.json', '.ico', '.woff', '.woff2', '.ttf'
}


# =============================================================================
# Capture
# =============================================================================

DEFAULT_HTML_SNAPSHOT_MAX_BYTES = 500_000
DEFAULT_HTML_SNAPSHOT_RETENTION_DAYS = 7
