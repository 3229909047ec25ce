"""Scraper for the Maricopa-style legacy recorder site"""
from datetime import date
from typing import List, Optional, Union

from playwright.async_api import Error as PlaywrightError, Page, Frame

from lien_sync.config import settings
from lien_sync.scraping.base_scraper import BaseScraper, ScrapedLien
from lien_sync.scraping.parsing import parse_detail_text
from lien_sync.scraping.platforms import PlatformKind, register_platform

DEFAULT_DOCUMENT_TYPE = "HL"
DEFAULT_START_DATE_FIELD = "#ctl00_ContentPlaceHolder1_datepicker_dateInput"
DEFAULT_END_DATE_FIELD = "#ctl00_ContentPlaceHolder1_datepickerEnd_dateInput"
DEFAULT_DOCUMENT_TYPE_DROPDOWN = "#ctl00_ContentPlaceHolder1_ddlDocCodes"
DEFAULT_SEARCH_BUTTON = "#ctl00_ContentPlaceHolder1_btnSearchPanel1"
DEFAULT_SEARCH_FORM_IFRAME = "GetRecDataRecInt"
DEFAULT_RESULTS_IFRAME = "GetRecDataRecentPgDn"

# Recording-number-shaped text in first table cells and links, DOM order, no repeats
COLLECT_RECORDING_NUMBERS_JS = """
(pattern) => {
    const regex = new RegExp(pattern);
    const numbers = [];
    const add = (text) => {
        if (text && regex.test(text) && !numbers.includes(text)) numbers.push(text);
    };
    document.querySelectorAll('table tr').forEach(row => {
        const cell = row.querySelector('td:first-child');
        if (!cell) return;
        const link = cell.querySelector('a');
        add(((link && link.textContent) || cell.textContent || '').trim());
    });
    document.querySelectorAll('a').forEach(a => add((a.textContent || '').trim()));
    return numbers;
}
"""

# Clicks an enabled "next" control; returns whether one was clicked
CLICK_NEXT_PAGE_JS = """
() => {
    const controls = Array.from(document.querySelectorAll('a, input[type="button"], button'));
    for (const control of controls) {
        const text = (control.textContent || control.value || '').toLowerCase();
        if (text.includes('next') && !text.includes('previous')) {
            if (control.disabled || control.getAttribute('disabled')) return false;
            control.click();
            return true;
        }
    }
    return false;
}
"""

# href of the numeric link in the "Pages" column, else any numeric table link
FIND_PAGES_LINK_JS = """
() => {
    const numeric = (a) => a && /^\\d+$/.test((a.textContent || '').trim());
    for (const table of Array.from(document.querySelectorAll('table'))) {
        for (const row of Array.from(table.querySelectorAll('tr'))) {
            const cells = row.querySelectorAll('td, th');
            for (let i = 0; i < cells.length; i++) {
                const text = (cells[i].textContent || '').trim().toLowerCase();
                if (!text.includes('pages')) continue;
                const target = text === 'pages' && cells[i + 1] ? cells[i + 1] : cells[i];
                const link = target.querySelector('a');
                if (numeric(link) && link.getAttribute('href')) return link.getAttribute('href');
            }
        }
        for (const link of Array.from(table.querySelectorAll('a'))) {
            const href = link.getAttribute('href');
            if (href && numeric(link) && !href.includes('javascript:')) return href;
        }
    }
    return null;
}
"""


@register_platform(PlatformKind.MARICOPA_LEGACY)
class LegacyRecorderScraper(BaseScraper):
    """
    Legacy recorder platform (Maricopa County and look-alikes).

    Search form -> paginated results (page or iframe) -> one detail page per
    recording number -> PDF from the "Pages" column link or a direct URL.
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

        # Shared with self.liens so a caller that times out still sees partial results
        liens: List[ScrapedLien] = []
        self.liens = liens
        page = await self.session.context.new_page()
        try:
            self.logger.info(f"Searching {self.county.name} for {self.document_type} documents from {from_date} to {to_date}")

            search_url = self.config.search_form_url or f"{self.config.base_url}/recdocdata/GetRecDataRec.aspx"
            if not await self.navigate_with_retry(page, search_url):
                self.logger.error(f"Could not reach search form for {self.county.name}")
                return liens

            submitted = await self.fill_and_submit_search_form(
                page,
                self.format_date_for_county(from_date),
                self.format_date_for_county(to_date),
            )
            if not submitted:
                direct_url = self.build_direct_results_url(from_date, to_date)
                self.logger.info(f"Form submission failed, using direct results URL {direct_url}")
                await page.goto(direct_url, wait_until="networkidle", timeout=settings.BROWSER_TIMEOUT * 2)
                await self.wait_ms("page_load_wait")

            recording_numbers = await self.collect_all_recording_numbers(page)
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
                    liens.append(await self.process_record(recording_number))
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

        saved = sum(1 for lien in liens if lien.has_local_pdf)
        self.logger.info(f"Found {len(liens)} liens in {self.county.name}, {saved} with stored PDFs")
        return liens

    async def fill_and_submit_search_form(self, page: Page, start_date: str, end_date: str) -> bool:
        """Fill document type and date range, then submit; False means use the direct URL"""
        selectors = self.config.selectors
        doc_type_selector = selectors.document_type_dropdown or DEFAULT_DOCUMENT_TYPE_DROPDOWN
        start_selector = selectors.start_date_field or DEFAULT_START_DATE_FIELD
        end_selector = selectors.end_date_field or DEFAULT_END_DATE_FIELD
        submit_selector = selectors.search_button or DEFAULT_SEARCH_BUTTON

        await self.wait_ms("page_load_wait")

        try:
            await page.wait_for_selector(doc_type_selector, timeout=5000)
        except PlaywrightError:
            iframe_hint = selectors.search_form_iframe or DEFAULT_SEARCH_FORM_IFRAME
            frame = next((f for f in page.frames if iframe_hint in (f.url or "")), None)
            if frame is None:
                self.logger.error("Search form not found on page or in iframe")
            else:
                self.logger.info(f"Search form is inside iframe {frame.url}; using direct results URL")
            return False

        try:
            try:
                await page.select_option(doc_type_selector, self.document_type)
            except PlaywrightError as e:
                self.logger.warning(f"Could not select document type {self.document_type}: {e}")

            # ASP.NET may post back after the dropdown changes
            await page.wait_for_timeout(1000)

            await page.fill(start_selector, start_date)
            await page.fill(end_selector, end_date)
            self.logger.info(f"Form filled: {self.document_type}, {start_date} to {end_date}")

            async with page.expect_navigation(wait_until="networkidle", timeout=settings.BROWSER_TIMEOUT * 2):
                await page.click(submit_selector)

            await self.wait_ms("after_form_submit")
            return True
        except PlaywrightError as e:
            self.logger.error(f"Failed to fill or submit search form: {e}")
            return False

    def build_direct_results_url(self, from_date: date, to_date: date) -> str:
        # The results page expects unpadded M/D/YYYY
        start = f"{from_date.month}/{from_date.day}/{from_date.year}"
        end = f"{to_date.month}/{to_date.day}/{to_date.year}"
        doc_type = self.document_type

        if self.config.search_results_url_pattern:
            return self.build_url(
                self.config.search_results_url_pattern,
                {"startDate": start, "endDate": end, "docType": doc_type},
            )

        return (
            f"{self.config.base_url}/recdocdata/GetRecDataRecentPgDn.aspx?rec=0&suf=&nm="
            f"&bdt={start.replace('/', '%2F')}&edt={end.replace('/', '%2F')}"
            f"&cde={doc_type}&max=500&res=True&doc1={doc_type}&doc2=&doc3=&doc4=&doc5="
        )

    def build_document_detail_url(self, recording_number: str) -> str:
        if self.config.document_detail_url_pattern:
            return self.build_url(self.config.document_detail_url_pattern, {"recordingNumber": recording_number})
        return f"{self.config.base_url}/recdocdata/GetRecDataDetail.aspx?rec={recording_number}&suf=&nm="

    def _results_target(self, page: Page) -> Union[Page, Frame]:
        hint = self.config.selectors.results_iframe or DEFAULT_RESULTS_IFRAME
        for frame in page.frames:
            if frame is not page.main_frame and hint in (frame.url or ""):
                return frame
        return page

    async def collect_all_recording_numbers(self, page: Page) -> List[str]:
        """Walk result pages in order, bounded by max_pages_per_run"""
        collected: List[str] = []
        max_pages = self.config.max_pages_per_run

        for page_number in range(1, max_pages + 1):
            if self.should_stop():
                self.logger.info(f"Stop requested while paging results (page {page_number})")
                break

            target = self._results_target(page)
            numbers = await target.evaluate(COLLECT_RECORDING_NUMBERS_JS, self.config.recording_number_pattern)
            self.logger.info(f"Found {len(numbers)} recording numbers on page {page_number}")
            collected.extend(numbers)

            if page_number == max_pages:
                self.logger.info(f"Reached page limit ({max_pages})")
                break
            if not await target.evaluate(CLICK_NEXT_PAGE_JS):
                break
            await self.wait_ms("page_load_wait")

        # Keep first-seen order across pages
        return list(dict.fromkeys(collected))

    async def find_pdf_link(self, page: Page) -> Optional[str]:
        try:
            await page.wait_for_selector("table", timeout=5000)
        except PlaywrightError:
            pass
        try:
            href = await page.evaluate(FIND_PAGES_LINK_JS)
        except PlaywrightError as e:
            self.logger.info(f"Could not inspect detail page for a PDF link: {e}")
            return None
        if not href:
            return None
        if href.startswith("/"):
            return f"{self.config.base_url}{href}"
        if href.startswith("http"):
            return href
        return f"{self.config.base_url}/recdocdata/{href}"

    def fallback_pdf_url(self, recording_number: str) -> str:
        urls = self.get_pdf_urls(recording_number)
        if urls:
            return urls[0]
        return f"{self.config.base_url}/UnOfficialDocs/pdf/{recording_number}.pdf"

    async def process_record(self, recording_number: str) -> ScrapedLien:
        """Visit one detail page, extract its fields, and acquire its PDF"""
        page = await self.get_work_page()
        detail_url = self.build_document_detail_url(recording_number)
        self.logger.info(f"Visiting document {recording_number}: {detail_url}")
        await page.goto(detail_url, wait_until="networkidle", timeout=settings.BROWSER_TIMEOUT)

        fields = parse_detail_text(await page.inner_text("body"), self.config.parsing)

        pdf_url = await self.find_pdf_link(page)
        if pdf_url:
            self.logger.info(f"Found Pages column link: {pdf_url}")
        else:
            pdf_url = self.fallback_pdf_url(recording_number)
            self.logger.info(f"Using fallback PDF URL: {pdf_url}")

        lien = ScrapedLien(
            recording_number=recording_number,
            county_id=self.county.id,
            document_url=pdf_url,
            recording_date=fields.recording_date,
            grantor=fields.grantor,
            grantee=fields.grantee,
            address=fields.address,
            amount=fields.amount,
        )
        return await self.acquire_and_save(lien, pdf_url)
