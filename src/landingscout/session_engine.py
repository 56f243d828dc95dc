"""
Crawl Session Engine.

Drives one browser page through a scout's site: visits the start URL,
follows discovered links breadth-first up to the page cap, classifies and
extracts every page, and persists each result as soon as it is known so a
running session can be observed and cancelled.

Each session runs as its own asyncio task with its own browsing context.
The persisted session row is the source of truth for its status.
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from playwright.async_api import BrowserContext, Page

from landingscout.config import Config, settings
from landingscout.constants import (
    DEFAULT_NAVIGATION_TIMEOUT_MS,
    EXTRACTION_TIMEOUT_SECONDS,
    NAVIGATION_TIMEOUT_CEILING_MS,
    SCROLL_TIMEOUT_SECONDS,
    UNKNOWN_PAGE_TYPE,
)
from landingscout.database import AbstractDatabase
from landingscout.exceptions import SessionNotCancellableError, SessionNotFoundError
from landingscout.frontier import LinkFrontier, extract_links
from landingscout.infrastructure.browser_manager import BrowserManager
from landingscout.models import (
    PageResult,
    PageResultStatus,
    Scout,
    ScoutingSession,
    SessionStatus,
    utcnow,
)
from landingscout.processors.registry import ProcessorRegistry
from landingscout.scout_service import ScoutService
from landingscout.utils.page_loading import (
    DEEP_PAGE_SCROLL,
    START_PAGE_SCROLL,
    ScrollProfile,
    auto_scroll,
    wait_for_network_idle,
)

logger = logging.getLogger(__name__)

NO_MATCHING_PAGE_TYPE = "No matching page type"


@dataclass
class _Surface:
    """The page/context pair a session is currently driving."""
    page: Optional[Page] = None
    context: Optional[BrowserContext] = None


@dataclass
class VisitOutcome:
    """What a single page visit produced."""
    result: PageResult
    navigated: bool


def _slugify(url: str, max_length: int = 80) -> str:
    parsed = urlparse(url)
    slug = re.sub(r"[^a-z0-9]+", "-", f"{parsed.netloc}{parsed.path}".lower()).strip("-")
    return slug[:max_length].rstrip("-") or "page"


def _truncate_utf8(text: str, max_bytes: int) -> str:
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    return encoded[:max_bytes].decode("utf-8", errors="ignore")


class CrawlSessionEngine:
    """
    Starts, runs, observes and cancels crawl sessions.

    Usage:
        engine = CrawlSessionEngine(db, BrowserManager(), build_default_registry())
        session = await engine.start_session(scout_id)
        await engine.wait_for_sessions()
    """

    def __init__(
        self,
        db: AbstractDatabase,
        browser_manager: BrowserManager,
        registry: ProcessorRegistry,
        scout_service: Optional[ScoutService] = None,
        config: Optional[Config] = None,
        start_scroll: ScrollProfile = START_PAGE_SCROLL,
        deep_scroll: ScrollProfile = DEEP_PAGE_SCROLL,
    ):
        """
        Initialize the engine.

        Args:
            db: Job and result store
            browser_manager: Shared browser owner handing out pages
            registry: Page type processors
            scout_service: Scout lookups and run bookkeeping
            config: Capture and page-cap settings
            start_scroll: Scroll profile for the start page
            deep_scroll: Scroll profile for every discovered page
        """
        self.db = db
        self.browser_manager = browser_manager
        self.registry = registry
        self.scout_service = scout_service or ScoutService(db)
        self.config = config or settings
        self.start_scroll = start_scroll
        self.deep_scroll = deep_scroll

        # Strong references so running sessions are not garbage-collected
        self._tasks: set[asyncio.Task] = set()

    # -- Control plane ----------------------------------------------------------

    async def start_session(self, scout_id: str) -> ScoutingSession:
        """
        Create a RUNNING session for a scout and crawl it in the background.

        Returns as soon as the session row exists.

        Raises:
            ScoutNotFoundError: If the scout does not exist
        """
        scout = self.scout_service.get(scout_id)
        logger.info(f"Starting session for scout {scout.name} ({scout.id})")

        session = self.db.create_session(
            ScoutingSession(scout_id=scout.id, status=SessionStatus.RUNNING)
        )

        task = asyncio.create_task(self.run_session(scout, session.id), name=f"session-{session.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return session

    def cancel_session(self, session_id: str) -> ScoutingSession:
        """
        Mark a PENDING or RUNNING session CANCELLED.

        The crawl task notices on its next frontier iteration and stops.

        Raises:
            SessionNotFoundError: If the session does not exist
            SessionNotCancellableError: If the session already finished
        """
        session = self.get_session(session_id)
        if not session.status.is_cancellable:
            raise SessionNotCancellableError(session_id, session.status.value)

        if not self.db.finalize_session(session_id, SessionStatus.CANCELLED, utcnow()):
            # Finished between the read and the write
            current = self.get_session(session_id)
            raise SessionNotCancellableError(session_id, current.status.value)

        logger.info(f"Session {session_id} cancelled")
        return self.get_session(session_id)

    def get_session(self, session_id: str) -> ScoutingSession:
        session = self.db.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def list_sessions(self, scout_id: Optional[str] = None) -> list[ScoutingSession]:
        return self.db.list_sessions(scout_id)

    def get_page_results(self, session_id: str) -> list[PageResult]:
        self.get_session(session_id)
        return self.db.list_page_results(session_id)

    @property
    def active_task_count(self) -> int:
        return len(self._tasks)

    async def wait_for_sessions(self) -> None:
        """Wait until every session started by this engine has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Let running sessions finish, then close the shared browser."""
        await self.wait_for_sessions()
        await self.browser_manager.shutdown()

    # -- Session execution --------------------------------------------------------

    async def run_session(self, scout: Scout, session_id: str) -> None:
        """
        Crawl a scout's site for one session and finalize it.

        Never raises except on task cancellation: session-level failures are
        recorded as a FAILED session.
        """
        started = time.monotonic()
        max_pages = scout.max_pages_to_visit or self.config.default_max_pages
        frontier = LinkFrontier(scout.start_url)
        surface = _Surface()
        pages_scanned = 0

        logger.info(f"Executing session {session_id} for scout {scout.id} (max {max_pages} pages)")

        try:
            surface.page, surface.context = await self.browser_manager.acquire()

            outcome = await self._visit(surface.page, scout, session_id, scout.start_url, self.start_scroll)
            frontier.mark_visited(scout.start_url)
            pages_scanned += 1
            self.db.update_session_progress(session_id, pages_scanned)
            if outcome.navigated:
                await self._discover(surface.page, frontier, scout.start_url)

            while frontier.visited_count < max_pages and frontier.has_pending():
                if self._stop_requested(session_id):
                    logger.info(f"Session {session_id} stopped after {pages_scanned} pages")
                    return

                url = frontier.pop()
                if frontier.is_visited(url):
                    continue

                if not self.browser_manager.is_page_valid(surface.page):
                    await self._replace_page(surface)

                try:
                    outcome = await self._visit(surface.page, scout, session_id, url, self.deep_scroll)
                    pages_scanned += 1
                    if outcome.navigated:
                        await self._discover(surface.page, frontier, url)
                except Exception as e:
                    logger.warning(f"Error processing URL {url}: {e}")
                finally:
                    frontier.mark_visited(url)

                self.db.update_session_progress(session_id, pages_scanned)

            if frontier.visited_count >= max_pages and frontier.has_pending():
                logger.info(f"Reached maximum pages to visit ({max_pages})")

            if self.db.finalize_session(
                session_id, SessionStatus.COMPLETED, utcnow(), pages_scanned
            ):
                self.scout_service.update_last_run(scout.id)
                logger.info(
                    f"✓ Session {session_id} completed: {pages_scanned} pages "
                    f"in {time.monotonic() - started:.1f}s"
                )
            else:
                logger.info(f"Session {session_id} was finalized elsewhere, keeping its status")

        except asyncio.CancelledError:
            self.db.finalize_session(
                session_id, SessionStatus.CANCELLED, utcnow(), pages_scanned,
                "Interrupted before completion",
            )
            raise
        except Exception as e:
            logger.error(f"Session {session_id} failed: {e}")
            self.db.finalize_session(
                session_id, SessionStatus.FAILED, utcnow(), pages_scanned, str(e)
            )
        finally:
            await self.browser_manager.release(surface.page, surface.context)

    def _stop_requested(self, session_id: str) -> bool:
        session = self.db.get_session(session_id)
        return session is None or session.status.is_terminal

    async def _replace_page(self, surface: _Surface) -> None:
        """Swap a dead page for a fresh one. Acquisition failures propagate."""
        logger.warning("Page is no longer usable, acquiring a replacement")
        await self.browser_manager.release(surface.page, surface.context)
        surface.page, surface.context = None, None
        surface.page, surface.context = await self.browser_manager.acquire()

    async def _discover(self, page, frontier: LinkFrontier, url: str) -> None:
        # Resolve against where the page landed, which differs after a redirect
        base_url = page.url if page.url and page.url.startswith(("http://", "https://")) else url
        try:
            links = await extract_links(page, base_url)
        except Exception as e:
            logger.warning(f"Link extraction failed on {url}: {e}")
            return
        added = frontier.enqueue(links)
        logger.debug(f"Discovered {len(links)} links on {url}, {added} new")

    def _navigation_timeout(self, scout: Scout) -> int:
        return min(NAVIGATION_TIMEOUT_CEILING_MS, scout.timeout or DEFAULT_NAVIGATION_TIMEOUT_MS)

    async def _visit(
        self,
        page,
        scout: Scout,
        session_id: str,
        url: str,
        scroll_profile: ScrollProfile,
    ) -> VisitOutcome:
        """
        Load, classify and extract one URL, then persist its result.

        Navigation and extraction failures are recorded on the result rather
        than raised.
        """
        started = time.monotonic()
        result = PageResult(session_id=session_id, url=url)
        navigated = False

        try:
            await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self._navigation_timeout(scout),
            )
            navigated = True
        except Exception as e:
            logger.warning(f"Navigation failed for {url}: {e}")
            result.status = PageResultStatus.ERROR
            result.error_message = f"Navigation failed: {e}"

        if navigated:
            await wait_for_network_idle(page)
            try:
                await asyncio.wait_for(auto_scroll(page, scroll_profile), SCROLL_TIMEOUT_SECONDS)
            except Exception as e:
                logger.warning(f"Auto-scroll failed on {url}: {e!r}")

            await self._classify_and_extract(page, scout, url, result)
            await self._capture(page, session_id, url, result)

        result.processing_time_ms = int((time.monotonic() - started) * 1000)
        self.db.save_page_result(result)

        logger.info(
            f"[{result.status.value}] {url} -> {result.page_type} "
            f"(count={result.product_count}, {result.processing_time_ms}ms)"
        )
        return VisitOutcome(result=result, navigated=navigated)

    async def _classify_and_extract(self, page, scout: Scout, url: str, result: PageResult) -> None:
        rule = await self.registry.identify_page_type(page, scout.page_types)
        if rule is None:
            result.page_type = UNKNOWN_PAGE_TYPE
            result.product_count = 0
            result.status = PageResultStatus.ERROR
            result.error_message = NO_MATCHING_PAGE_TYPE
            return

        result.page_type = rule.type
        try:
            extraction = await asyncio.wait_for(
                self.registry.process_page(page, url, rule),
                EXTRACTION_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Extraction timed out on {url}")
            result.status = PageResultStatus.TIMEOUT
            result.error_message = f"Extraction timed out after {EXTRACTION_TIMEOUT_SECONDS:g}s"
            return
        except Exception as e:
            logger.warning(f"Extraction failed on {url}: {e}")
            result.status = PageResultStatus.ERROR
            result.error_message = str(e)
            return

        extraction.apply_to(result)

    async def _capture(self, page, session_id: str, url: str, result: PageResult) -> None:
        """Optional screenshot and HTML snapshot. Failures are logged only."""
        if self.config.screenshots_enabled:
            try:
                result.screenshot_path = await self._save_screenshot(page, session_id, url)
            except Exception as e:
                logger.warning(f"Screenshot failed for {url}: {e}")

        if self.config.html_snapshot_enabled:
            try:
                html = await page.content()
                result.html_snapshot = _truncate_utf8(html, self.config.html_snapshot_max_bytes)
            except Exception as e:
                logger.warning(f"HTML snapshot failed for {url}: {e}")

    async def _save_screenshot(self, page, session_id: str, url: str) -> str:
        """Write a full-page screenshot and return its path relative to the root."""
        timestamp = utcnow().strftime("%Y%m%dT%H%M%S%fZ")
        relative = Path(session_id) / f"{timestamp}-{_slugify(url)}.png"
        target = Path(self.config.screenshots_dir) / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        await page.screenshot(path=str(target), full_page=True)
        return relative.as_posix()
