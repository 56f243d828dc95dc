"""Tests for the crawl session engine, run end to end against fake pages."""

import asyncio
from pathlib import Path

import pytest

from landingscout.config import Config
from landingscout.exceptions import (
    ScoutNotFoundError,
    SessionNotCancellableError,
    SessionNotFoundError,
)
from landingscout.models import PageResultStatus, PageTypeRule, SessionStatus
from landingscout.processors import build_default_registry
from landingscout.processors.base import PageProcessor
from landingscout.scout_service import ScoutService
from landingscout.session_engine import NO_MATCHING_PAGE_TYPE, CrawlSessionEngine
from landingscout.utils.page_loading import ScrollProfile

from conftest import (
    COLLECTION_URL,
    FakeBrowserManager,
    FakePage,
    HOME_URL,
    PARTIAL_PRODUCT_URL,
    PRODUCT_URL,
    RUNNER_RED_URL,
)

QUICK_SCROLL = ScrollProfile(step_px=500, delay_ms=1, max_scrolls=1, settle_ms=0)


def make_engine(db, manager, config, registry=None):
    return CrawlSessionEngine(
        db,
        manager,
        registry or build_default_registry(config, scroll_profile=None),
        ScoutService(db),
        config,
        start_scroll=QUICK_SCROLL,
        deep_scroll=QUICK_SCROLL,
    )


def make_scout(db, rules, start_url=HOME_URL, **kwargs):
    return ScoutService(db).create(
        name="Shop",
        start_url=start_url,
        schedule="0 * * * *",
        page_types=rules,
        **kwargs,
    )


async def run_to_end(engine, scout_id):
    session = await engine.start_session(scout_id)
    await engine.wait_for_sessions()
    return engine.get_session(session.id), engine.get_page_results(session.id)


class TestCrawlFlow:
    """Full crawls over the fake shop."""

    @pytest.mark.asyncio
    async def test_full_crawl(self, db, test_config, shop_site, shop_rules):
        manager = FakeBrowserManager(lambda: FakePage(shop_site))
        engine = make_engine(db, manager, test_config)
        scout = make_scout(db, shop_rules)

        session, results = await run_to_end(engine, scout.id)

        assert session.status == SessionStatus.COMPLETED
        assert session.end_time is not None
        assert [r.url for r in results] == [
            HOME_URL,
            COLLECTION_URL,
            PRODUCT_URL,
            PARTIAL_PRODUCT_URL,
            RUNNER_RED_URL,
        ]
        by_url = {r.url: r for r in results}

        assert by_url[HOME_URL].page_type == "UNKNOWN"
        assert by_url[HOME_URL].status == PageResultStatus.ERROR
        assert by_url[HOME_URL].error_message == NO_MATCHING_PAGE_TYPE

        assert by_url[COLLECTION_URL].page_type == "collection"
        assert by_url[COLLECTION_URL].product_count == 128
        assert by_url[COLLECTION_URL].status == PageResultStatus.SUCCESS

        assert by_url[PRODUCT_URL].page_type == "product-details"
        assert by_url[PRODUCT_URL].product_count == 1

        # One of three product signals is not enough
        assert by_url[PARTIAL_PRODUCT_URL].page_type == "UNKNOWN"

        assert session.total_pages_scanned == len(results) == 5

    @pytest.mark.asyncio
    async def test_start_session_returns_running_immediately(self, db, test_config, shop_site, shop_rules):
        manager = FakeBrowserManager(lambda: FakePage(shop_site))
        engine = make_engine(db, manager, test_config)
        scout = make_scout(db, shop_rules)

        session = await engine.start_session(scout.id)

        assert session.status == SessionStatus.RUNNING
        assert session.total_pages_scanned == 0
        assert engine.active_task_count == 1
        await engine.wait_for_sessions()
        assert engine.active_task_count == 0

    @pytest.mark.asyncio
    async def test_page_cap_of_one(self, db, test_config, shop_site, shop_rules):
        manager = FakeBrowserManager(lambda: FakePage(shop_site))
        engine = make_engine(db, manager, test_config)
        scout = make_scout(db, shop_rules, max_pages_to_visit=1)

        session, results = await run_to_end(engine, scout.id)

        assert session.status == SessionStatus.COMPLETED
        assert [r.url for r in results] == [HOME_URL]
        assert session.total_pages_scanned == 1

    @pytest.mark.asyncio
    async def test_page_cap_from_config(self, db, shop_site, shop_rules, tmp_path):
        config = Config(default_max_pages=2, screenshots_dir=str(tmp_path))
        manager = FakeBrowserManager(lambda: FakePage(shop_site))
        engine = make_engine(db, manager, config)
        scout = make_scout(db, shop_rules)

        session, results = await run_to_end(engine, scout.id)

        assert len(results) == 2
        assert session.total_pages_scanned == 2

    @pytest.mark.asyncio
    async def test_unreachable_start_url(self, db, test_config, shop_rules):
        manager = FakeBrowserManager(lambda: FakePage({}))
        engine = make_engine(db, manager, test_config)
        scout = make_scout(db, shop_rules, start_url="https://down.example.com/")

        session, results = await run_to_end(engine, scout.id)

        assert session.status == SessionStatus.COMPLETED
        assert len(results) == 1
        assert results[0].status == PageResultStatus.ERROR
        assert "Navigation failed" in results[0].error_message
        assert session.total_pages_scanned == 1

    @pytest.mark.asyncio
    async def test_failed_page_does_not_stop_crawl(self, db, test_config, shop_site, shop_rules):
        manager = FakeBrowserManager(lambda: FakePage(shop_site, fail_urls={COLLECTION_URL}))
        engine = make_engine(db, manager, test_config)
        scout = make_scout(db, shop_rules)

        session, results = await run_to_end(engine, scout.id)

        statuses = {r.url: r.status for r in results}
        assert statuses[COLLECTION_URL] == PageResultStatus.ERROR
        assert statuses[PRODUCT_URL] == PageResultStatus.SUCCESS
        # Links on the failed page were never discovered
        assert PARTIAL_PRODUCT_URL not in statuses
        assert session.status == SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_links_follow_redirected_host(self, db, test_config, shop_rules):
        www_home = "https://www.shop.example.com/"
        absolute_link = "https://www.shop.example.com/collections/a"
        relative_link = "https://www.shop.example.com/collections/b"
        grid = '<html><body><div class="collection-grid"><span class="count">3 Products</span></div></body></html>'
        site = {
            www_home: (
                '<html><body><main>'
                f'<a href="{absolute_link}">A</a><a href="/collections/b">B</a>'
                '</main></body></html>'
            ),
            absolute_link: grid,
            relative_link: grid,
        }
        manager = FakeBrowserManager(lambda: FakePage(site, redirects={HOME_URL: www_home}))
        engine = make_engine(db, manager, test_config)
        scout = make_scout(db, shop_rules)

        session, results = await run_to_end(engine, scout.id)

        assert [r.url for r in results] == [HOME_URL, absolute_link, relative_link]
        assert [r.product_count for r in results[1:]] == [3, 3]
        assert session.status == SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_navigation_uses_dom_ready_and_capped_timeout(self, db, test_config, shop_site, shop_rules):
        manager = FakeBrowserManager(lambda: FakePage(shop_site))
        engine = make_engine(db, manager, test_config)
        scout = make_scout(db, shop_rules, max_pages_to_visit=1, timeout=120000)

        await run_to_end(engine, scout.id)

        call = manager.acquired[0][0].goto_calls[0]
        assert call["wait_until"] == "domcontentloaded"
        assert call["timeout"] == 60000

    @pytest.mark.asyncio
    async def test_completion_updates_last_run(self, db, test_config, shop_site, shop_rules):
        manager = FakeBrowserManager(lambda: FakePage(shop_site))
        engine = make_engine(db, manager, test_config)
        scout = make_scout(db, shop_rules, max_pages_to_visit=1)

        await run_to_end(engine, scout.id)

        assert db.get_scout(scout.id).last_run_at is not None

    @pytest.mark.asyncio
    async def test_browser_resources_released(self, db, test_config, shop_site, shop_rules):
        manager = FakeBrowserManager(lambda: FakePage(shop_site))
        engine = make_engine(db, manager, test_config)
        scout = make_scout(db, shop_rules)

        await run_to_end(engine, scout.id)

        page, context = manager.acquired[0]
        assert manager.released == [(page, context)]
        assert context.closed


class TestFailures:
    """Session-level failures and page recovery."""

    @pytest.mark.asyncio
    async def test_unknown_scout(self, db, test_config):
        engine = make_engine(db, FakeBrowserManager(FakePage), test_config)
        with pytest.raises(ScoutNotFoundError):
            await engine.start_session("missing")
        assert db.list_sessions() == []

    @pytest.mark.asyncio
    async def test_browser_unavailable_fails_session(self, db, test_config, shop_rules):
        manager = FakeBrowserManager(FakePage, acquire_errors=[RuntimeError("browser launch failed")])
        engine = make_engine(db, manager, test_config)
        scout = make_scout(db, shop_rules)

        session, results = await run_to_end(engine, scout.id)

        assert session.status == SessionStatus.FAILED
        assert session.error_message == "browser launch failed"
        assert session.end_time is not None
        assert results == []
        assert session.total_pages_scanned == 0

    @pytest.mark.asyncio
    async def test_dead_page_is_replaced(self, db, test_config, shop_site, shop_rules):
        manager = FakeBrowserManager(lambda: FakePage(shop_site, close_after={COLLECTION_URL}))
        engine = make_engine(db, manager, test_config)
        scout = make_scout(db, shop_rules)

        session, results = await run_to_end(engine, scout.id)

        assert session.status == SessionStatus.COMPLETED
        assert len(manager.acquired) >= 2
        assert PRODUCT_URL in [r.url for r in results]
        assert session.total_pages_scanned == len(results)

    @pytest.mark.asyncio
    async def test_replacement_failure_fails_session(self, db, test_config, shop_site, shop_rules):
        manager = FakeBrowserManager(
            lambda: FakePage(shop_site, close_after={COLLECTION_URL}),
            acquire_errors=[None, RuntimeError("browser crashed")],
        )
        engine = make_engine(db, manager, test_config)
        scout = make_scout(db, shop_rules)

        session, results = await run_to_end(engine, scout.id)

        assert session.status == SessionStatus.FAILED
        assert "browser crashed" in session.error_message
        assert [r.url for r in results] == [HOME_URL, COLLECTION_URL]
        assert session.total_pages_scanned == len(results)

    @pytest.mark.asyncio
    async def test_extraction_timeout(self, db, test_config, shop_site, monkeypatch):
        class SlowProcessor(PageProcessor):
            @property
            def type(self):
                return "slow"

            async def _matches(self, page, rule):
                return True

            async def _extract_count(self, page, rule):
                await asyncio.sleep(5)
                return 1

        monkeypatch.setattr("landingscout.session_engine.EXTRACTION_TIMEOUT_SECONDS", 0.05)
        registry = build_default_registry(test_config, scroll_profile=None)
        registry.register(SlowProcessor())
        manager = FakeBrowserManager(lambda: FakePage(shop_site))
        engine = make_engine(db, manager, test_config, registry)
        scout = make_scout(db, [PageTypeRule("slow")], max_pages_to_visit=1)

        session, results = await run_to_end(engine, scout.id)

        assert results[0].status == PageResultStatus.TIMEOUT
        assert results[0].page_type == "slow"
        assert session.status == SessionStatus.COMPLETED


class TestCancellation:
    """Cooperative cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_mid_crawl(self, db, test_config, shop_site, shop_rules):
        engine = None
        state = {}

        def cancel_on_collection(url):
            if url == COLLECTION_URL:
                engine.cancel_session(state["session_id"])

        manager = FakeBrowserManager(lambda: FakePage(shop_site, on_goto=cancel_on_collection))
        engine = make_engine(db, manager, test_config)
        scout = make_scout(db, shop_rules)

        session = await engine.start_session(scout.id)
        state["session_id"] = session.id
        await engine.wait_for_sessions()

        final = engine.get_session(session.id)
        results = engine.get_page_results(session.id)
        assert final.status == SessionStatus.CANCELLED
        assert final.end_time is not None
        assert [r.url for r in results] == [HOME_URL, COLLECTION_URL]
        assert db.get_scout(scout.id).last_run_at is None

    @pytest.mark.asyncio
    async def test_cancel_finished_session_rejected(self, db, test_config, shop_site, shop_rules):
        manager = FakeBrowserManager(lambda: FakePage(shop_site))
        engine = make_engine(db, manager, test_config)
        scout = make_scout(db, shop_rules, max_pages_to_visit=1)
        session, _ = await run_to_end(engine, scout.id)

        with pytest.raises(SessionNotCancellableError):
            engine.cancel_session(session.id)
        assert engine.get_session(session.id).status == SessionStatus.COMPLETED

    def test_cancel_missing_session(self, db, test_config):
        engine = make_engine(db, FakeBrowserManager(FakePage), test_config)
        with pytest.raises(SessionNotFoundError):
            engine.cancel_session("missing")


class TestCapture:
    """Optional screenshots and HTML snapshots."""

    @pytest.mark.asyncio
    async def test_screenshot_and_snapshot(self, db, shop_site, shop_rules, tmp_path):
        config = Config(
            screenshots_enabled=True,
            screenshots_dir=str(tmp_path / "shots"),
            html_snapshot_enabled=True,
            html_snapshot_max_bytes=40,
        )
        manager = FakeBrowserManager(lambda: FakePage(shop_site))
        engine = make_engine(db, manager, config)
        scout = make_scout(db, shop_rules, max_pages_to_visit=2)

        session, results = await run_to_end(engine, scout.id)

        for result in results:
            assert result.screenshot_path.startswith(f"{session.id}/")
            assert result.screenshot_path.endswith(".png")
            assert (tmp_path / "shots" / Path(result.screenshot_path)).is_file()
            assert len(result.html_snapshot.encode("utf-8")) <= 40

    @pytest.mark.asyncio
    async def test_capture_failure_is_not_fatal(self, db, shop_site, shop_rules, tmp_path):
        class NoScreenshotPage(FakePage):
            async def screenshot(self, path=None, full_page=False):
                raise RuntimeError("screenshot failed")

        config = Config(screenshots_enabled=True, screenshots_dir=str(tmp_path))
        manager = FakeBrowserManager(lambda: NoScreenshotPage(shop_site))
        engine = make_engine(db, manager, config)
        scout = make_scout(db, shop_rules, max_pages_to_visit=2)

        session, results = await run_to_end(engine, scout.id)

        assert session.status == SessionStatus.COMPLETED
        assert all(r.screenshot_path is None for r in results)
        assert results[1].status == PageResultStatus.SUCCESS


class TestShutdown:
    @pytest.mark.asyncio
    async def test_shutdown_waits_and_closes_browser(self, db, test_config, shop_site, shop_rules):
        manager = FakeBrowserManager(lambda: FakePage(shop_site))
        engine = make_engine(db, manager, test_config)
        scout = make_scout(db, shop_rules)

        session = await engine.start_session(scout.id)
        await engine.shutdown()

        assert engine.get_session(session.id).status == SessionStatus.COMPLETED
        assert manager.shutdown_called
