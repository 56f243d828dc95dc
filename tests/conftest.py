"""Shared fixtures: a Playwright-shaped fake page over static HTML."""

import pytest
from bs4 import BeautifulSoup

from landingscout.config import Config
from landingscout.database import LocalSqliteDatabase
from landingscout.models import PageTypeRule

pytest_plugins = ('pytest_asyncio',)


class FakeLocator:
    """Subset of playwright.async_api.Locator backed by soupsieve selectors."""

    def __init__(self, page, selector: str, first: bool = False):
        self._page = page
        self._selector = selector
        self._first = first

    def _matches(self):
        return self._page.soup.select(self._selector)

    async def count(self) -> int:
        matches = self._matches()
        if self._first:
            return min(len(matches), 1)
        return len(matches)

    @property
    def first(self) -> "FakeLocator":
        return FakeLocator(self._page, self._selector, first=True)

    async def text_content(self):
        matches = self._matches()
        if not matches:
            raise TimeoutError(f"Timeout waiting for locator({self._selector!r})")
        return matches[0].get_text()


class FakePage:
    """
    Simulates the page surface the crawl engine uses.

    Args:
        site: Mapping of URL to HTML; unknown URLs fail navigation
        fail_urls: URLs whose navigation raises even if present in ``site``
        on_goto: Optional callable(url) run before each navigation
        close_after: URLs after whose navigation the page closes itself
        redirects: Mapping of requested URL to the URL the page lands on
    """

    def __init__(self, site=None, fail_urls=(), on_goto=None, close_after=(), redirects=None):
        self.redirects = dict(redirects or {})
        self.site = dict(site or {})
        self.fail_urls = set(fail_urls)
        self.on_goto = on_goto
        self.close_after = set(close_after)
        self.url = "about:blank"
        self.html = ""
        self.soup = BeautifulSoup("", "html.parser")
        self.closed = False
        self.default_timeout = None
        self.goto_calls = []
        self.evaluate_calls = []
        self.screenshots = []

    def set_html(self, html: str) -> None:
        self.html = html
        self.soup = BeautifulSoup(html, "html.parser")

    async def goto(self, url, wait_until=None, timeout=None):
        if self.closed:
            raise RuntimeError("Target page, context or browser has been closed")
        self.goto_calls.append({"url": url, "wait_until": wait_until, "timeout": timeout})
        if self.on_goto is not None:
            self.on_goto(url)
        final_url = self.redirects.get(url, url)
        if url in self.fail_urls or final_url not in self.site:
            raise RuntimeError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        self.url = final_url
        self.set_html(self.site[final_url])
        if url in self.close_after:
            self.closed = True

    async def content(self) -> str:
        return self.html

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    async def evaluate(self, script, arg=None):
        self.evaluate_calls.append(arg)
        return None

    async def wait_for_load_state(self, state="load", timeout=None):
        return None

    async def screenshot(self, path=None, full_page=False):
        self.screenshots.append(path)
        with open(path, "wb") as f:
            f.write(b"\x89PNG\r\n\x1a\n")
        return b""

    def set_default_timeout(self, timeout):
        self.default_timeout = timeout

    def is_closed(self) -> bool:
        return self.closed

    async def close(self):
        self.closed = True


class FakeContext:
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


class FakeBrowserManager:
    """
    Stand-in for BrowserManager handing out FakePages.

    Args:
        page_factory: Callable returning a new FakePage per acquisition
        acquire_errors: Exceptions raised by successive acquisitions; None
            entries succeed
    """

    def __init__(self, page_factory, acquire_errors=()):
        self.page_factory = page_factory
        self.acquire_errors = list(acquire_errors)
        self.acquired = []
        self.released = []
        self.shutdown_called = False

    async def acquire(self):
        error = self.acquire_errors.pop(0) if self.acquire_errors else None
        if error is not None:
            raise error
        page, context = self.page_factory(), FakeContext()
        self.acquired.append((page, context))
        return page, context

    @staticmethod
    def is_page_valid(page) -> bool:
        return page is not None and not page.is_closed()

    async def release(self, page, context):
        self.released.append((page, context))
        if page is not None:
            await page.close()
        if context is not None:
            await context.close()

    async def shutdown(self):
        self.shutdown_called = True


# =============================================================================
# A small shop
# =============================================================================

HOME_URL = "https://shop.example.com/"
COLLECTION_URL = "https://shop.example.com/collections/shoes"
PRODUCT_URL = "https://shop.example.com/products/runner"
PARTIAL_PRODUCT_URL = "https://shop.example.com/products/trail"

HOME_HTML = """
<html><body>
  <header><a href="/promo">Promo</a><a href="/account">Account</a></header>
  <nav><a href="/nav-only">Nav</a></nav>
  <main>
    <a href="/collections/shoes">Shoes</a>
    <a href="/collections/shoes#top">Shoes again</a>
    <a href="/products/runner/">Runner</a>
    <a href="https://other.example.org/elsewhere">Offsite</a>
    <a href="mailto:help@shop.example.com">Mail</a>
    <a href="javascript:void(0)">Menu</a>
    <a href="/cart">Cart</a>
    <a href="/lookbook.pdf">Lookbook</a>
  </main>
  <footer><a href="/privacy">Privacy</a></footer>
</body></html>
"""

COLLECTION_HTML = """
<html><body>
  <div class="collection-grid">
    <span class="count">128 Products</span>
    <div class="product-item"><a href="/products/runner">Runner</a></div>
    <div class="product-item"><a href="/products/trail">Trail</a></div>
    <div class="product-item"><a href="/products/runner?color=red">Runner red</a></div>
  </div>
</body></html>
"""

PRODUCT_HTML = """
<html><body>
  <h1 class="ProductDetails_productName__x1">Runner</h1>
  <div class="ProductGallery_root"><img src="/runner.jpg"></div>
  <button title="Add to Cart">Add to Cart</button>
</body></html>
"""

# Title heading only: one of three product detail signals
PARTIAL_PRODUCT_HTML = """
<html><body>
  <h1 class="ProductDetails_productName__x1">Trail</h1>
  <p>Coming soon</p>
</body></html>
"""

RUNNER_RED_URL = "https://shop.example.com/products/runner?color=red"

SHOP_SITE = {
    HOME_URL: HOME_HTML,
    COLLECTION_URL: COLLECTION_HTML,
    PRODUCT_URL: PRODUCT_HTML,
    PARTIAL_PRODUCT_URL: PARTIAL_PRODUCT_HTML,
    RUNNER_RED_URL: PRODUCT_HTML,
}

SHOP_RULES = [
    PageTypeRule(type="collection", identifier=".collection-grid", count_selector=".count"),
    PageTypeRule(type="product-details"),
]


@pytest.fixture
def shop_site():
    return dict(SHOP_SITE)


@pytest.fixture
def shop_rules():
    return list(SHOP_RULES)


@pytest.fixture
def db(tmp_path):
    """Fresh sqlite store per test."""
    database = LocalSqliteDatabase(db_url=f"sqlite:///{tmp_path / 'landingscout.db'}")
    yield database
    database.close()


@pytest.fixture
def test_config(tmp_path):
    return Config(
        database_url=f"sqlite:///{tmp_path / 'landingscout.db'}",
        screenshots_dir=str(tmp_path / "screenshots"),
        scheduler_check_interval=1,
        max_concurrent_scouts=2,
    )
