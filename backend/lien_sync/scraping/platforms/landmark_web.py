"""Scraper for Tyler Technologies LandmarkWeb recorder sites"""
from datetime import date
from typing import Dict, List, Optional

from playwright.async_api import Error as PlaywrightError, Page

from lien_sync.config import settings
from lien_sync.scraping.base_scraper import BaseScraper, ScrapedLien
from lien_sync.scraping.parsing import parse_detail_text
from lien_sync.scraping.platforms import PlatformKind, register_platform

DEFAULT_DOCUMENT_TYPE = "PPHL"
DEFAULT_DOCUMENT_TYPE_INPUT = "#documentType-DocumentType"
DEFAULT_BEGIN_DATE_FIELD = "#beginDate-DocumentType"
DEFAULT_END_DATE_FIELD = "#endDate-DocumentType"
DEFAULT_SEARCH_BUTTON = "#submit-DocumentType"
DEFAULT_RESULTS_TABLE = ".search-results"
DEFAULT_RECORDING_LINKS = 'a[href*="instrument"]'
LANDMARK_RECORDING_NUMBER_PATTERN = r"^\d+$"

DISCLAIMER_SELECTORS = [
    "#acceptDisclaimer",
    ".disclaimer-accept",
    'button:has-text("Accept")',
    'button:has-text("I Agree")',
    'input[type="submit"][value*="Accept"]',
]

# [{text, href}] for result links whose text looks like a recording number
COLLECT_RESULT_LINKS_JS = """
([selector, pattern]) => {
    const regex = new RegExp(pattern);
    const found = [];
    document.querySelectorAll(selector).forEach(link => {
        const text = (link.textContent || '').trim();
        if (text && regex.test(text)) found.push({text, href: link.href || null});
    });
    return found;
}
"""


@register_platform(PlatformKind.LANDMARK_WEB)
class LandmarkWebScraper(BaseScraper):
    """
    LandmarkWeb platform.

    No iframes: a document-type search form posts to a results table whose
    instrument links lead to the detail pages.
    """

    @property
    def document_type(self) -> str:
        return self.config.default_document_type or DEFAULT_DOCUMENT_TYPE

    async def scrape_county_liens(
        self,
        from_date: date,
        to_date: date,
        limit: Optional[int] = None,
    ) -> List[ScrapedLien]:
        if not await self.ensure_browser():
            return []

        liens: List[ScrapedLien] = []
        self.liens = liens
        page = await self.session.context.new_page()
        try:
            search_url = self.config.search_form_url or f"{self.config.base_url}/LandmarkWeb/search/index"
            self.logger.info(f"Searching {self.county.name} (LandmarkWeb) from {from_date} to {to_date}")

            if not await self.navigate_with_retry(page, search_url, wait_seconds=5):
                self.logger.error(f"Could not reach search page for {self.county.name}")
                return liens

            if self.config.requires_disclaimer:
                await self.handle_disclaimer(page)

            submitted = await self.fill_and_submit_search_form(
                page,
                self.format_date_for_county(from_date),
                self.format_date_for_county(to_date),
            )
            if not submitted:
                if not self.config.search_results_url_pattern:
                    self.logger.error("Search form submission failed; no results for this county")
                    return liens
                direct_url = self.build_direct_results_url(from_date, to_date)
                self.logger.info(f"Form submission failed, using results URL pattern {direct_url}")
                await page.goto(direct_url, wait_until="networkidle", timeout=settings.BROWSER_TIMEOUT * 2)
                await self.wait_ms("page_load_wait")

            detail_links = await self.collect_recording_numbers(page)
            recording_numbers = list(detail_links)
            if limit and limit > 0:
                recording_numbers = recording_numbers[:limit]
            self.logger.info(f"Processing {len(recording_numbers)} recording numbers")

            for index, recording_number in enumerate(recording_numbers):
                if self.should_stop():
                    self.logger.info(f"Stop requested; ending {self.county.name} after {index} records")
                    break
                if index > 0:
                    await self.wait_ms("between_requests")
                try:
                    liens.append(await self.process_record(recording_number, detail_links.get(recording_number)))
                except Exception as e:
                    self.log_record_failure(recording_number, e)
                    await self.reset_work_page()

        except PlaywrightError as e:
            self.logger.error(f"Error in {self.county.name}: {e}. Returning {len(liens)} partial results")
        finally:
            try:
                await page.close()
            except PlaywrightError:
                pass
            await self.reset_work_page()

        self.logger.info(f"Found {len(liens)} liens in {self.county.name}")
        return liens

    async def handle_disclaimer(self, page: Page) -> bool:
        """Click through the terms-of-use page if one is shown"""
        selectors = list(DISCLAIMER_SELECTORS)
        if self.config.selectors.disclaimer_accept_button:
            selectors.insert(0, self.config.selectors.disclaimer_accept_button)

        for selector in selectors:
            try:
                button = await page.query_selector(selector)
                if button:
                    await button.click()
                    self.logger.info("Accepted disclaimer")
                    await page.wait_for_timeout(2000)
                    return True
            except PlaywrightError as e:
                self.logger.debug(f"Disclaimer selector {selector} failed: {e}")
        self.logger.info("No disclaimer found or already accepted")
        return False

    async def fill_and_submit_search_form(self, page: Page, start_date: str, end_date: str) -> bool:
        selectors = self.config.selectors
        doc_type_selector = selectors.document_type_input or DEFAULT_DOCUMENT_TYPE_INPUT
        begin_selector = selectors.start_date_field or DEFAULT_BEGIN_DATE_FIELD
        end_selector = selectors.end_date_field or DEFAULT_END_DATE_FIELD
        submit_selector = selectors.search_button or DEFAULT_SEARCH_BUTTON

        await self.wait_ms("page_load_wait")

        for selector, value, label in (
            (doc_type_selector, self.document_type, "document type"),
            (begin_selector, start_date, "begin date"),
            (end_selector, end_date, "end date"),
        ):
            try:
                await page.wait_for_selector(selector, timeout=10000)
                await page.fill(selector, value)
            except PlaywrightError as e:
                self.logger.warning(f"Could not fill {label} field {selector}: {e}")

        try:
            await page.wait_for_selector(submit_selector, timeout=5000)
            await page.click(submit_selector)
        except PlaywrightError as e:
            self.logger.error(f"Could not click search button: {e}")
            return False

        await self.wait_ms("after_form_submit")
        self.logger.info(f"Search submitted: {self.document_type}, {start_date} to {end_date}")
        return True

    async def collect_recording_numbers(self, page: Page) -> Dict[str, Optional[str]]:
        """Recording number -> detail link href, in result order"""
        selectors = self.config.selectors
        results_selector = selectors.results_table or DEFAULT_RESULTS_TABLE
        link_selector = selectors.recording_number_links or DEFAULT_RECORDING_LINKS
        pattern = self.config.parsing.recording_number_pattern or LANDMARK_RECORDING_NUMBER_PATTERN

        try:
            await page.wait_for_selector(results_selector, timeout=10000)
        except PlaywrightError:
            self.logger.warning("Results table not found; there may be no results")
            return {}

        collected: Dict[str, Optional[str]] = {}
        max_pages = self.config.max_pages_per_run
        for page_number in range(1, max_pages + 1):
            if self.should_stop():
                break

            links = await page.evaluate(COLLECT_RESULT_LINKS_JS, [link_selector, pattern])
            for link in links:
                collected.setdefault(link["text"], link.get("href"))
            self.logger.info(f"Found {len(links)} recording numbers on page {page_number}")

            next_selector = selectors.next_page_button
            if not next_selector or page_number == max_pages:
                break
            next_button = await page.query_selector(next_selector)
            if next_button is None or await next_button.is_disabled():
                break
            await next_button.click()
            await self.wait_ms("page_load_wait")

        return collected

    def build_direct_results_url(self, from_date: date, to_date: date) -> str:
        return self.build_url(
            self.config.search_results_url_pattern,
            {
                "startDate": self.format_date_for_county(from_date),
                "endDate": self.format_date_for_county(to_date),
                "docType": self.document_type,
            },
        )

    def build_document_detail_url(self, recording_number: str, link_href: Optional[str]) -> Optional[str]:
        if self.config.document_detail_url_pattern:
            return self.build_url(self.config.document_detail_url_pattern, {"recordingNumber": recording_number})
        if link_href:
            return self.absolute_url(link_href)
        return None

    async def find_pdf_link(self, page: Page) -> Optional[str]:
        try:
            href = await page.evaluate(
                "() => { const a = Array.from(document.querySelectorAll('a'))"
                ".find(a => /pdf|viewer|image/i.test(a.href || '')); return a ? a.href : null; }"
            )
        except PlaywrightError as e:
            self.logger.info(f"Could not inspect detail page for a PDF link: {e}")
            return None
        return self.absolute_url(href) if href else None

    async def process_record(self, recording_number: str, link_href: Optional[str] = None) -> ScrapedLien:
        detail_url = self.build_document_detail_url(recording_number, link_href)
        page = await self.get_work_page()

        fields = None
        pdf_url = None
        if detail_url:
            self.logger.info(f"Visiting document {recording_number}: {detail_url}")
            await page.goto(detail_url, wait_until="networkidle", timeout=settings.BROWSER_TIMEOUT)
            fields = parse_detail_text(await page.inner_text("body"), self.config.parsing)
            pdf_url = await self.find_pdf_link(page)

        if not pdf_url:
            pdf_urls = self.get_pdf_urls(recording_number)
            pdf_url = pdf_urls[0] if pdf_urls else detail_url

        lien = ScrapedLien(
            recording_number=recording_number,
            county_id=self.county.id,
            document_url=pdf_url or "",
        )
        if fields is not None:
            lien.recording_date = fields.recording_date
            lien.grantor = fields.grantor
            lien.grantee = fields.grantee
            lien.address = fields.address
            lien.amount = fields.amount

        return await self.acquire_and_save(lien, pdf_url)
