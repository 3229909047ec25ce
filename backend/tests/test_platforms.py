"""Tests for the platform scrapers and viewer-page PDF extraction, driven by fake pages"""
import asyncio
from datetime import date
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from playwright.async_api import Error as PlaywrightError

from lien_sync.scraping.base_scraper import EXTRACT_EMBEDDED_PDF_JS, ScrapedLien
from lien_sync.scraping.config import merge_configs
from lien_sync.scraping.platforms.landmark_web import COLLECT_RESULT_LINKS_JS, LandmarkWebScraper
from lien_sync.scraping.platforms.legacy import (
    CLICK_NEXT_PAGE_JS,
    COLLECT_RECORDING_NUMBERS_JS,
    FIND_PAGES_LINK_JS,
    LegacyRecorderScraper,
)

RUN_DATE = date(2026, 1, 14)
COUNTY = SimpleNamespace(id=1, name="Test")

DETAIL_TEXT = """Recording Date: 1/14/2026
Name(s)
BANNER HEALTH
JOHN Q PUBLIC
Document Code
HL HOSPITAL LIEN
Amount: $24,512.77
"""


def _page(evaluate=None, frames=None):
    """A Playwright page double; evaluate(script, *args) is routed to the given function"""
    page = MagicMock()
    page.goto = AsyncMock()
    page.close = AsyncMock()
    page.evaluate = AsyncMock(side_effect=evaluate)
    page.inner_text = AsyncMock(return_value=DETAIL_TEXT)
    page.wait_for_selector = AsyncMock()
    page.query_selector = AsyncMock(return_value=None)
    page.is_closed = MagicMock(return_value=False)
    page.main_frame = MagicMock(url="https://recorder.example/search")
    page.frames = [page.main_frame] + list(frames or [])
    return page


def _session(*pages):
    return SimpleNamespace(context=SimpleNamespace(new_page=AsyncMock(side_effect=list(pages))), close=AsyncMock())


def _scraper(cls, storage, pdf_store, county=COUNTY, stop_event=None, handler=None, **config):
    scraper = cls(
        county,
        None,
        merge_configs(None, {"baseUrl": "https://recorder.example", **config}),
        storage=storage,
        pdf_store=pdf_store,
        stop_event=stop_event,
        http_transport=httpx.MockTransport(handler) if handler else None,
    )
    scraper.wait_ms = AsyncMock()
    return scraper


def _lien(recording_number):
    return ScrapedLien(recording_number, COUNTY.id, f"https://recorder.example/pdf/{recording_number}.pdf")


def _search_stubbed(scraper, numbers, submitted=True, process=None):
    """Skip the browser search so the record loop can be driven directly"""
    scraper.navigate_with_retry = AsyncMock(return_value=True)
    scraper.fill_and_submit_search_form = AsyncMock(return_value=submitted)
    scraper.process_record = AsyncMock(side_effect=process or (lambda number, *args: _lien(number)))
    if isinstance(scraper, LegacyRecorderScraper):
        scraper.collect_all_recording_numbers = AsyncMock(return_value=numbers)
    else:
        scraper.collect_recording_numbers = AsyncMock(
            return_value={number: f"/LandmarkWeb/Document/instrument/{number}" for number in numbers}
        )


class TestLegacyPagination:
    """Tests for LegacyRecorderScraper.collect_all_recording_numbers"""

    @pytest.mark.asyncio
    async def test_stops_at_page_limit(self, storage, pdf_store):
        scraper = _scraper(LegacyRecorderScraper, storage, pdf_store, rateLimit={"maxPagesPerRun": 3})
        pages_read = []

        def evaluate(script, *args):
            if script == COLLECT_RECORDING_NUMBERS_JS:
                pages_read.append(len(pages_read) + 1)
                return [f"2026000000{len(pages_read)}"]
            return True

        page = _page(evaluate)
        numbers = await scraper.collect_all_recording_numbers(page)

        assert numbers == ["20260000001", "20260000002", "20260000003"]
        clicks = [call for call in page.evaluate.await_args_list if call.args[0] == CLICK_NEXT_PAGE_JS]
        assert len(clicks) == 2

    @pytest.mark.asyncio
    async def test_last_page_ends_walk_and_keeps_first_seen_order(self, storage, pdf_store):
        scraper = _scraper(LegacyRecorderScraper, storage, pdf_store)
        result_pages = [["20260000002", "20260000001"], ["20260000001", "20260000003"]]
        next_clicks = [True, False]

        def evaluate(script, *args):
            if script == COLLECT_RECORDING_NUMBERS_JS:
                assert args == (scraper.config.recording_number_pattern,)
                return result_pages.pop(0)
            return next_clicks.pop(0)

        numbers = await scraper.collect_all_recording_numbers(_page(evaluate))

        assert numbers == ["20260000002", "20260000001", "20260000003"]
        assert result_pages == []

    @pytest.mark.asyncio
    async def test_stop_checked_between_pages(self, storage, pdf_store):
        stop_event = asyncio.Event()
        scraper = _scraper(LegacyRecorderScraper, storage, pdf_store, stop_event=stop_event)

        def evaluate(script, *args):
            if script == COLLECT_RECORDING_NUMBERS_JS:
                stop_event.set()
                return ["20260000001"]
            return True

        page = _page(evaluate)
        numbers = await scraper.collect_all_recording_numbers(page)

        assert numbers == ["20260000001"]
        reads = [call for call in page.evaluate.await_args_list if call.args[0] == COLLECT_RECORDING_NUMBERS_JS]
        assert len(reads) == 1

    @pytest.mark.asyncio
    async def test_results_read_from_iframe(self, storage, pdf_store):
        scraper = _scraper(LegacyRecorderScraper, storage, pdf_store)
        frame = MagicMock(url="https://recorder.example/recdocdata/GetRecDataRecentPgDn.aspx?rec=0")
        frame.evaluate = AsyncMock(side_effect=lambda script, *args: (
            ["20260000007"] if script == COLLECT_RECORDING_NUMBERS_JS else False
        ))
        page = _page(frames=[frame])

        numbers = await scraper.collect_all_recording_numbers(page)

        assert numbers == ["20260000007"]
        page.evaluate.assert_not_awaited()


class TestLegacyScrape:
    """Tests for the LegacyRecorderScraper record loop"""

    @pytest.mark.asyncio
    async def test_limit_truncates(self, storage, pdf_store):
        scraper = _scraper(LegacyRecorderScraper, storage, pdf_store)
        scraper.session = _session(_page())
        _search_stubbed(scraper, [f"2026000000{i}" for i in range(1, 6)])

        liens = await scraper.scrape_county_liens(RUN_DATE, RUN_DATE, limit=2)

        assert [lien.recording_number for lien in liens] == ["20260000001", "20260000002"]
        assert scraper.process_record.await_count == 2

    @pytest.mark.asyncio
    async def test_record_error_skips_only_that_record(self, storage, pdf_store):
        scraper = _scraper(LegacyRecorderScraper, storage, pdf_store)
        scraper.session = _session(_page())

        def process(number):
            if number == "20260000002":
                raise PlaywrightError("Execution context was destroyed")
            return _lien(number)

        _search_stubbed(scraper, ["20260000001", "20260000002", "20260000003"], process=process)

        liens = await scraper.scrape_county_liens(RUN_DATE, RUN_DATE)

        assert [lien.recording_number for lien in liens] == ["20260000001", "20260000003"]
        assert scraper.liens is liens

    @pytest.mark.asyncio
    async def test_stop_checked_between_records(self, storage, pdf_store):
        stop_event = asyncio.Event()
        scraper = _scraper(LegacyRecorderScraper, storage, pdf_store, stop_event=stop_event)
        scraper.session = _session(_page())

        def process(number):
            stop_event.set()
            return _lien(number)

        _search_stubbed(scraper, ["20260000001", "20260000002"], process=process)

        liens = await scraper.scrape_county_liens(RUN_DATE, RUN_DATE)

        assert [lien.recording_number for lien in liens] == ["20260000001"]

    @pytest.mark.asyncio
    async def test_form_failure_uses_direct_results_url(self, storage, pdf_store):
        scraper = _scraper(LegacyRecorderScraper, storage, pdf_store)
        page = _page()
        scraper.session = _session(page)
        _search_stubbed(scraper, ["20260000001"], submitted=False)

        liens = await scraper.scrape_county_liens(RUN_DATE, RUN_DATE)

        url = page.goto.await_args.args[0]
        assert url.startswith("https://recorder.example/recdocdata/GetRecDataRecentPgDn.aspx?")
        assert "bdt=1%2F14%2F2026" in url
        assert "cde=HL" in url
        assert len(liens) == 1
        scraper.collect_all_recording_numbers.assert_awaited_once_with(page)

    @pytest.mark.asyncio
    async def test_unreachable_search_form_returns_nothing(self, storage, pdf_store):
        scraper = _scraper(LegacyRecorderScraper, storage, pdf_store)
        page = _page()
        scraper.session = _session(page)
        _search_stubbed(scraper, ["20260000001"])
        scraper.navigate_with_retry.return_value = False

        assert await scraper.scrape_county_liens(RUN_DATE, RUN_DATE) == []
        scraper.collect_all_recording_numbers.assert_not_awaited()
        page.close.assert_awaited()

    @pytest.mark.asyncio
    async def test_process_record_saves_lien_from_pages_link(self, storage, pdf_store, maricopa, pdf_bytes):
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return httpx.Response(200, content=pdf_bytes)

        scraper = _scraper(LegacyRecorderScraper, storage, pdf_store, county=maricopa, handler=handler)
        detail_page = _page(lambda script, *args: (
            "/UnOfficialDocs/pdf/20260000001.pdf" if script == FIND_PAGES_LINK_JS else None
        ))
        scraper.session = _session(detail_page)

        lien = await scraper.process_record("20260000001")

        assert requested == ["https://recorder.example/UnOfficialDocs/pdf/20260000001.pdf"]
        assert lien.has_local_pdf
        assert lien.grantor == "BANNER HEALTH"
        stored = await storage.get_lien_by_recording_number("20260000001")
        assert stored.pdf_url == lien.local_pdf_url


class TestLandmarkScrape:
    """Tests for LandmarkWebScraper"""

    @pytest.mark.asyncio
    async def test_form_failure_uses_results_url_pattern(self, storage, pdf_store):
        scraper = _scraper(
            LandmarkWebScraper, storage, pdf_store,
            searchResultsUrlPattern="https://recorder.example/LandmarkWeb/search/results?from={startDate}&to={endDate}&type={docType}",
        )
        page = _page()
        scraper.session = _session(page)
        _search_stubbed(scraper, ["1234567"], submitted=False)

        liens = await scraper.scrape_county_liens(RUN_DATE, RUN_DATE)

        assert page.goto.await_args.args[0] == (
            "https://recorder.example/LandmarkWeb/search/results?from=01%2F14%2F2026&to=01%2F14%2F2026&type=PPHL"
        )
        assert [lien.recording_number for lien in liens] == ["1234567"]
        scraper.process_record.assert_awaited_once_with("1234567", "/LandmarkWeb/Document/instrument/1234567")

    @pytest.mark.asyncio
    async def test_form_failure_without_pattern_returns_nothing(self, storage, pdf_store):
        scraper = _scraper(LandmarkWebScraper, storage, pdf_store)
        page = _page()
        scraper.session = _session(page)
        _search_stubbed(scraper, ["1234567"], submitted=False)

        assert await scraper.scrape_county_liens(RUN_DATE, RUN_DATE) == []
        page.goto.assert_not_awaited()
        scraper.collect_recording_numbers.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_limit_stop_and_record_errors(self, storage, pdf_store):
        stop_event = asyncio.Event()
        scraper = _scraper(LandmarkWebScraper, storage, pdf_store, stop_event=stop_event)
        scraper.session = _session(_page())

        def process(number, href):
            if number == "2":
                raise RuntimeError("Target closed")
            if number == "3":
                stop_event.set()
            return _lien(number)

        _search_stubbed(scraper, ["1", "2", "3", "4", "5"], process=process)

        liens = await scraper.scrape_county_liens(RUN_DATE, RUN_DATE, limit=4)

        assert [lien.recording_number for lien in liens] == ["1", "3"]
        assert scraper.process_record.await_count == 3

    @pytest.mark.asyncio
    async def test_pagination_stops_at_page_limit(self, storage, pdf_store):
        scraper = _scraper(
            LandmarkWebScraper, storage, pdf_store,
            rateLimit={"maxPagesPerRun": 2},
            selectors={"nextPageButton": "a.next"},
        )
        result_pages = [
            [{"text": "111", "href": "https://recorder.example/instrument/111"}],
            [{"text": "222", "href": "https://recorder.example/instrument/222"}],
            [{"text": "333", "href": "https://recorder.example/instrument/333"}],
        ]
        next_button = MagicMock()
        next_button.is_disabled = AsyncMock(return_value=False)
        next_button.click = AsyncMock()
        page = _page(lambda script, args: result_pages.pop(0) if script == COLLECT_RESULT_LINKS_JS else None)
        page.query_selector.return_value = next_button

        links = await scraper.collect_recording_numbers(page)

        assert links == {
            "111": "https://recorder.example/instrument/111",
            "222": "https://recorder.example/instrument/222",
        }
        assert next_button.click.await_count == 1

    @pytest.mark.asyncio
    async def test_disabled_next_button_ends_pagination(self, storage, pdf_store):
        scraper = _scraper(LandmarkWebScraper, storage, pdf_store, selectors={"nextPageButton": "a.next"})
        next_button = MagicMock()
        next_button.is_disabled = AsyncMock(return_value=True)
        next_button.click = AsyncMock()
        page = _page(lambda script, args: [{"text": "111", "href": None}])
        page.query_selector.return_value = next_button

        assert await scraper.collect_recording_numbers(page) == {"111": None}
        next_button.click.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_results_table(self, storage, pdf_store):
        scraper = _scraper(LandmarkWebScraper, storage, pdf_store)
        page = _page()
        page.wait_for_selector.side_effect = PlaywrightError("Timeout 10000ms exceeded")

        assert await scraper.collect_recording_numbers(page) == {}
        page.evaluate.assert_not_awaited()


class TestViewerExtraction:
    """Tests for BaseScraper.extract_pdf_from_viewer_page"""

    VIEWER_URL = "https://recorder.example/viewer?doc=20260000001"

    def _viewer_page(self, responses=(), embedded_url=None, goto_error=None):
        """A page that replays `responses` to the registered handler when it navigates"""
        handlers = {}
        page = _page(lambda script, *args: embedded_url if script == EXTRACT_EMBEDDED_PDF_JS else None)
        page.on = MagicMock(side_effect=lambda event, handler: handlers.__setitem__(event, handler))

        async def goto(url, **kwargs):
            for url_, content_type, body in responses:
                response = MagicMock(url=url_, headers={"content-type": content_type})
                response.body = AsyncMock(return_value=body)
                await handlers["response"](response)
            if goto_error:
                raise goto_error

        page.goto = AsyncMock(side_effect=goto)
        return page

    @pytest.mark.asyncio
    async def test_network_capture(self, storage, pdf_store, pdf_bytes):
        scraper = _scraper(LegacyRecorderScraper, storage, pdf_store)
        page = self._viewer_page(responses=[
            ("https://recorder.example/viewer.css", "text/css", b"body {}"),
            ("https://recorder.example/ShowPDF.aspx?id=9", "application/octet-stream", pdf_bytes),
        ])
        scraper.session = _session(page)

        assert await scraper.extract_pdf_from_viewer_page(self.VIEWER_URL) == pdf_bytes
        page.evaluate.assert_not_awaited()
        page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_captured_pdf_url_refetched_when_body_unusable(self, storage, pdf_store, pdf_bytes):
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return httpx.Response(200, content=pdf_bytes)

        scraper = _scraper(LegacyRecorderScraper, storage, pdf_store, handler=handler)
        page = self._viewer_page(responses=[
            ("https://recorder.example/docs/20260000001.pdf", "application/pdf", b"<html>redirecting</html>"),
        ])
        scraper.session = _session(page)

        assert await scraper.extract_pdf_from_viewer_page(self.VIEWER_URL) == pdf_bytes
        assert requested == ["https://recorder.example/docs/20260000001.pdf"]

    @pytest.mark.asyncio
    async def test_dom_fallback(self, storage, pdf_store, pdf_bytes):
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return httpx.Response(200, content=pdf_bytes)

        scraper = _scraper(LegacyRecorderScraper, storage, pdf_store, handler=handler)
        page = self._viewer_page(
            responses=[("https://recorder.example/viewer", "text/html", b"<html></html>")],
            embedded_url="/UnOfficialDocs/pdf/20260000001.pdf",
        )
        scraper.session = _session(page)

        assert await scraper.extract_pdf_from_viewer_page(self.VIEWER_URL) == pdf_bytes
        assert requested == ["https://recorder.example/UnOfficialDocs/pdf/20260000001.pdf"]

    @pytest.mark.asyncio
    async def test_navigation_error_still_reads_dom(self, storage, pdf_store, pdf_bytes):
        scraper = _scraper(
            LegacyRecorderScraper, storage, pdf_store, handler=lambda request: httpx.Response(200, content=pdf_bytes)
        )
        page = self._viewer_page(
            embedded_url="https://cdn.example/20260000001.pdf",
            goto_error=PlaywrightError("net::ERR_ABORTED"),
        )
        scraper.session = _session(page)

        assert await scraper.extract_pdf_from_viewer_page(self.VIEWER_URL) == pdf_bytes

    @pytest.mark.asyncio
    async def test_nothing_found(self, storage, pdf_store):
        scraper = _scraper(
            LegacyRecorderScraper, storage, pdf_store, handler=lambda request: httpx.Response(404)
        )
        page = self._viewer_page(responses=[("https://recorder.example/viewer", "text/html", b"<html></html>")])
        scraper.session = _session(page)

        assert await scraper.extract_pdf_from_viewer_page(self.VIEWER_URL) is None
        page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_without_session(self, storage, pdf_store):
        scraper = _scraper(LegacyRecorderScraper, storage, pdf_store)
        assert await scraper.extract_pdf_from_viewer_page(self.VIEWER_URL) is None
