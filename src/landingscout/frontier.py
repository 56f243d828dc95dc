"""Link discovery and the per-session crawl frontier."""

import logging
from collections import deque
from typing import Iterable, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from landingscout.constants import (
    NON_NAVIGATIONAL_PREFIXES,
    SKIP_EXTENSIONS,
    STRUCTURAL_EXCLUSIONS,
    URL_EXCLUSIONS,
)

logger = logging.getLogger(__name__)


def normalize_url(url: str) -> str:
    """Normalize URL by removing fragments and trailing slashes.

    The scheme and host are lowercased; the root path keeps its slash and the
    query string is preserved.

    Args:
        url: URL to normalize

    Returns:
        Normalized URL
    """
    parsed = urlparse(url)
    path = parsed.path or "/"
    normalized = f"{parsed.scheme.lower()}://{parsed.netloc.lower()}{path}"
    if parsed.query:
        normalized += f"?{parsed.query}"
    if path.endswith('/') and len(path) > 1 and not parsed.query:
        normalized = normalized[:-1]
    return normalized


def _is_selector_pattern(pattern: str) -> bool:
    """Exclusion entries naming page regions rather than URL fragments."""
    return pattern.startswith(".") or pattern.startswith("#") or pattern.isalpha()


def _split_exclusions(extra_exclusions: Iterable[str]) -> tuple[list[str], list[str]]:
    selectors = list(STRUCTURAL_EXCLUSIONS)
    url_patterns = list(URL_EXCLUSIONS)
    for pattern in extra_exclusions:
        if not pattern:
            continue
        if _is_selector_pattern(pattern):
            selectors.append(pattern)
        else:
            url_patterns.append(pattern)
    return selectors, url_patterns


def _matches_exclusion(url: str, patterns: list[str]) -> bool:
    path = urlparse(url).path
    for pattern in patterns:
        if pattern.endswith("$"):
            if path == pattern[:-1]:
                return True
        elif pattern in url:
            return True
    return False


def _has_skipped_extension(url: str) -> bool:
    path_lower = urlparse(url).path.lower()
    return any(path_lower.endswith(ext) for ext in SKIP_EXTENSIONS)


def filter_links(
    hrefs: Iterable[str],
    base_url: str,
    extra_exclusions: Iterable[str] = (),
    same_host_only: bool = True,
) -> list[str]:
    """Resolve, normalize, filter and deduplicate raw anchor targets.

    Args:
        hrefs: Raw ``href`` attribute values in document order
        base_url: URL relative references are resolved against
        extra_exclusions: URL patterns added to the static exclusion list
        same_host_only: Drop links that leave the base URL's host

    Returns:
        Unique URLs in first-seen order
    """
    _, url_patterns = _split_exclusions(extra_exclusions)
    base_host = urlparse(base_url).netloc.lower()

    links: dict[str, None] = {}
    for href in hrefs:
        href = (href or "").strip()
        if not href or href.lower().startswith(NON_NAVIGATIONAL_PREFIXES):
            continue

        try:
            absolute_url = urljoin(base_url, href)
            parsed = urlparse(absolute_url)
        except ValueError:
            continue

        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            continue

        normalized_url = normalize_url(absolute_url)
        if same_host_only and urlparse(normalized_url).netloc != base_host:
            continue
        if _has_skipped_extension(normalized_url):
            continue
        if _matches_exclusion(normalized_url, url_patterns):
            continue

        links.setdefault(normalized_url, None)

    return list(links)


def hrefs_from_html(html: str, extra_exclusions: Iterable[str] = ()) -> list[str]:
    """Anchor targets of a document, skipping anchors inside structural chrome."""
    selectors, _ = _split_exclusions(extra_exclusions)
    soup = BeautifulSoup(html or "", "html.parser")

    for selector in selectors:
        try:
            regions = soup.select(selector)
        except Exception as e:
            logger.debug(f"Ignoring unusable exclusion selector {selector!r}: {e}")
            continue
        for region in regions:
            region.decompose()

    return [a.get("href", "") for a in soup.find_all("a", href=True)]


async def extract_links(
    page,
    base_url: str,
    extra_exclusions: Iterable[str] = (),
    same_host_only: bool = True,
) -> list[str]:
    """Read every followable link from the currently loaded page.

    Args:
        page: Playwright Page object
        base_url: URL relative references are resolved against
        extra_exclusions: Caller-supplied URL patterns or region selectors
        same_host_only: Drop links that leave the base URL's host

    Returns:
        Unique URLs in discovery order
    """
    extra_exclusions = list(extra_exclusions)
    html = await page.content()
    hrefs = hrefs_from_html(html, extra_exclusions)
    return filter_links(hrefs, base_url, extra_exclusions, same_host_only)


class LinkFrontier:
    """FIFO of URLs waiting to be visited in one crawl session.

    The visited-set holds every URL ever queued or completed, so a URL is
    enqueued at most once for the lifetime of the frontier.
    """

    def __init__(self, start_url: Optional[str] = None):
        self._queue: deque[str] = deque()
        self._seen: set[str] = set()
        self._completed: set[str] = set()
        if start_url:
            self._seen.add(normalize_url(start_url))

    def enqueue(self, urls: Iterable[str]) -> int:
        """Queue never-seen URLs.

        Returns:
            Number of URLs actually added
        """
        added = 0
        for url in urls:
            normalized_url = normalize_url(url)
            if normalized_url in self._seen:
                continue
            self._seen.add(normalized_url)
            self._queue.append(normalized_url)
            added += 1
        return added

    def pop(self) -> str:
        """Next URL in discovery order.

        Raises:
            IndexError: If the frontier is empty
        """
        return self._queue.popleft()

    def has_pending(self) -> bool:
        return bool(self._queue)

    def mark_visited(self, url: str) -> None:
        normalized_url = normalize_url(url)
        self._seen.add(normalized_url)
        self._completed.add(normalized_url)

    def is_visited(self, url: str) -> bool:
        return normalize_url(url) in self._completed

    @property
    def visited_count(self) -> int:
        return len(self._completed)

    @property
    def pending_count(self) -> int:
        return len(self._queue)
