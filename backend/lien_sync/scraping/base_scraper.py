"""Base scraper class for county recorder websites"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from urllib.parse import quote, urljoin
import asyncio
import logging

import httpx
from playwright.async_api import Error as PlaywrightError, Page, Response

from lien_sync.config import settings
from lien_sync.exceptions import BrowserLaunchError
from lien_sync.models import County, LienStatus, ScraperPlatform
from lien_sync.scraping.browser import BrowserSession, USER_AGENT, launch_browser_session
from lien_sync.scraping.config import ScraperConfig
from lien_sync.services.error_handling import ErrorCategory, error_handler
from lien_sync.services.pdf_storage import (
    PDF_MAGIC,
    PdfStore,
    build_pdf_url,
    get_pdf_store,
    is_local_pdf_url,
    is_valid_pdf,
)
from lien_sync.storage import LienStorage, get_storage

logger = logging.getLogger(__name__)

# Response URLs that serve PDFs without a .pdf suffix or PDF content-type
PDF_RESPONSE_URL_HINTS = ("PrintDoc.aspx", "ShowPDF.aspx")

# Finds the PDF a viewer page wraps, most specific first
EXTRACT_EMBEDDED_PDF_JS = """
() => {
    const viewer = document.querySelector('iframe#viewer');
    if (viewer && viewer.src) return viewer.src;
    const iframe = document.querySelector('iframe');
    if (iframe && iframe.src) return iframe.src;
    const embed = document.querySelector('embed');
    if (embed && embed.src) return embed.src;
    const object = document.querySelector('object');
    if (object && object.data) return object.data;
    const link = Array.from(document.querySelectorAll('a'))
        .find(a => a.href && a.href.toLowerCase().includes('.pdf'));
    return link ? link.href : null;
}
"""


@dataclass
class ScrapedLien:
    """A document produced by one scraper run; transient"""
    recording_number: str
    county_id: int
    document_url: str
    recording_date: Optional[datetime] = None
    grantor: Optional[str] = None
    grantee: Optional[str] = None
    address: Optional[str] = None
    amount: Optional[Decimal] = None
    pdf_content: Optional[bytes] = None
    local_pdf_url: Optional[str] = None
    failure_reason: Optional[str] = None

    @property
    def has_local_pdf(self) -> bool:
        return is_local_pdf_url(self.local_pdf_url)


class BaseScraper(ABC):
    """
    Abstract base class for platform scrapers.

    Owns one browser session per run and the parts every platform shares:
    launching the browser, the layered PDF acquisition strategy, and
    persisting each lien the moment its PDF is stored.
    """

    def __init__(
        self,
        county: County,
        platform: Optional[ScraperPlatform],
        config: ScraperConfig,
        storage: Optional[LienStorage] = None,
        pdf_store: Optional[PdfStore] = None,
        stop_event: Optional[asyncio.Event] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.county = county
        self.platform = platform
        self.config = config
        self.storage = storage or get_storage()
        self.pdf_store = pdf_store or get_pdf_store()
        self.stop_event = stop_event or asyncio.Event()
        self.session: Optional[BrowserSession] = None
        self.liens: List[ScrapedLien] = []
        self._http_transport = http_transport
        self._http_client: Optional[httpx.AsyncClient] = None
        self._work_page: Optional[Page] = None
        self.logger = logging.getLogger(f"{__name__}.{county.name}")

    @abstractmethod
    async def scrape_county_liens(
        self,
        from_date: date,
        to_date: date,
        limit: Optional[int] = None,
    ) -> List[ScrapedLien]:
        """
        Scrape liens recorded between from_date and to_date.

        Returns every lien processed in this run, including those whose
        PDF could not be acquired (local_pdf_url is None for those).
        """

    # ---- Session lifecycle ----

    async def initialize(self) -> None:
        """Launch the browser session; raises BrowserLaunchError after all attempts fail"""
        if self.session is not None:
            return
        self.session = await launch_browser_session(label=self.county.name)
        self.logger.info(f"Browser initialized for {self.county.name}")

    async def cleanup(self) -> None:
        """Close the browser and HTTP client; safe to call more than once"""
        session, self.session = self.session, None
        self._work_page = None
        if session is not None:
            await session.close()
            self.logger.info(f"Browser cleanup completed for {self.county.name}")
        client, self._http_client = self._http_client, None
        if client is not None:
            await client.aclose()

    async def ensure_browser(self) -> bool:
        """
        Initialize the browser if the caller has not; False if it cannot be started.

        launch_browser_session already retries, so this makes a single call.
        """
        if self.session is not None:
            return True
        try:
            await self.initialize()
            return True
        except BrowserLaunchError as e:
            self.logger.error(f"Could not initialize browser for {self.county.name}: {e.message}; returning no results")
            return False

    async def navigate_with_retry(self, page: Page, url: str, attempts: int = 3, wait_seconds: float = 10) -> bool:
        """Navigate to url, waiting longer after each failed attempt"""
        for attempt in range(1, attempts + 1):
            try:
                self.logger.info(f"Navigation attempt {attempt}/{attempts} to {url}")
                await page.goto(url, wait_until="networkidle", timeout=settings.BROWSER_TIMEOUT * 2)
                return True
            except PlaywrightError as e:
                self.logger.error(f"Navigation attempt {attempt}/{attempts} failed: {e}")
                if attempt < attempts:
                    await asyncio.sleep(wait_seconds * attempt)
        return False

    def should_stop(self) -> bool:
        return self.stop_event.is_set()

    async def get_work_page(self) -> Page:
        """The scratch page reused across records, recreated if it was closed"""
        if self.session is None:
            await self.initialize()
        if self._work_page is None or self._work_page.is_closed():
            self._work_page = await self.session.context.new_page()
        return self._work_page

    async def reset_work_page(self) -> None:
        page, self._work_page = self._work_page, None
        if page is not None and not page.is_closed():
            try:
                await page.close()
            except PlaywrightError as e:
                self.logger.debug(f"Error closing work page: {e}")

    # ---- Config helpers ----

    def format_date_for_county(self, value: date) -> str:
        if self.config.date_format == "YYYY-MM-DD":
            return value.strftime("%Y-%m-%d")
        if self.config.date_format == "DD/MM/YYYY":
            return value.strftime("%d/%m/%Y")
        return value.strftime("%m/%d/%Y")

    def build_url(self, pattern: str, replacements: Dict[str, str]) -> str:
        """Substitute {placeholders} in pattern with URL-encoded values"""
        url = pattern
        for key, value in replacements.items():
            url = url.replace(f"{{{key}}}", quote(str(value), safe=""))
        return url

    def get_pdf_urls(self, recording_number: str) -> List[str]:
        return [
            self.build_url(pattern, {"recordingNumber": recording_number})
            for pattern in self.config.pdf_url_patterns
        ]

    def absolute_url(self, url: str) -> str:
        if url.startswith("http"):
            return url
        return urljoin(self.config.base_url.rstrip("/") + "/", url.lstrip("/"))

    async def wait_ms(self, delay_key: str) -> None:
        await asyncio.sleep(self.config.get_delay_seconds(delay_key))

    # ---- PDF acquisition ----

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            headers = {
                "User-Agent": USER_AGENT,
                "Accept": "application/pdf,*/*",
                "Referer": self.config.base_url,
            }
            headers.update(self.config.headers)
            self._http_client = httpx.AsyncClient(
                transport=self._http_transport,
                headers=headers,
                follow_redirects=True,
                timeout=settings.PDF_FETCH_TIMEOUT_SECONDS,
            )
        return self._http_client

    async def try_fetch_pdf(self, url: str) -> Optional[bytes]:
        """Fetch url directly; returns bytes only if they form a valid PDF"""
        try:
            response = await self.http_client.get(url)
        except httpx.HTTPError as e:
            self.logger.info(f"Fetch failed for {url}: {e}")
            return None

        if response.status_code == 200 and is_valid_pdf(response.content, self.pdf_store.min_bytes):
            return response.content
        self.logger.debug(
            f"No valid PDF at {url} (status {response.status_code}, {len(response.content)} bytes)"
        )
        return None

    async def download_pdf(self, pdf_url: Optional[str], recording_number: str) -> Optional[bytes]:
        """
        Try each PDF acquisition strategy in order; first valid PDF wins.

        1. Every configured PDF URL pattern for the recording number
        2. The caller's viewer URL fetched directly
        3. The viewer URL opened in the browser (network capture, then DOM)
        """
        for url in self.get_pdf_urls(recording_number):
            content = await self.try_fetch_pdf(url)
            if content:
                self.logger.info(f"Downloaded PDF ({len(content)} bytes) from pattern URL {url}")
                return content

        if pdf_url:
            content = await self.try_fetch_pdf(pdf_url)
            if content:
                self.logger.info(f"Downloaded PDF ({len(content)} bytes) from {pdf_url}")
                return content

            if self.session is not None:
                content = await self.extract_pdf_from_viewer_page(pdf_url)
                if content:
                    return content

        return None

    async def download_pdf_with_retry(self, pdf_url: Optional[str], recording_number: str) -> Optional[bytes]:
        """Run download_pdf with exponential backoff between attempts"""
        max_attempts = settings.PDF_DOWNLOAD_MAX_ATTEMPTS
        base_delay = settings.PDF_DOWNLOAD_BASE_DELAY_SECONDS

        for attempt in range(1, max_attempts + 1):
            try:
                self.logger.info(f"PDF download attempt {attempt}/{max_attempts} for recording {recording_number}")
                content = await self.download_pdf(pdf_url, recording_number)
                if content:
                    return content
                self.logger.warning(f"PDF download attempt {attempt}/{max_attempts} for {recording_number} found no PDF")
            except Exception as e:
                category = error_handler.categorize_error(e)
                self.logger.error(
                    f"PDF download attempt {attempt}/{max_attempts} for {recording_number} "
                    f"failed ({category.value}): {e}"
                )

            if attempt < max_attempts:
                delay = base_delay * (2 ** (attempt - 1))
                self.logger.info(f"Waiting {delay}s before retrying PDF for {recording_number}")
                await asyncio.sleep(delay)

        self.logger.error(f"All {max_attempts} PDF download attempts failed for {recording_number}")
        return None

    async def extract_pdf_from_viewer_page(self, viewer_url: str) -> Optional[bytes]:
        """Open a viewer page, sniff its network traffic for a PDF, then fall back to the DOM"""
        if self.session is None:
            return None

        captured: Dict[str, Optional[object]] = {"content": None, "url": None}

        async def on_response(response: Response) -> None:
            url = response.url
            content_type = response.headers.get("content-type", "")
            looks_like_pdf = (
                "application/pdf" in content_type
                or url.lower().endswith(".pdf")
                or any(hint in url for hint in PDF_RESPONSE_URL_HINTS)
            )
            if not looks_like_pdf or captured["content"]:
                return
            if url.lower().endswith(".pdf"):
                captured["url"] = url
            try:
                # A closed viewer can leave body() pending forever
                body = await asyncio.wait_for(
                    response.body(), timeout=settings.PDF_RESPONSE_CAPTURE_TIMEOUT_SECONDS
                )
            except (asyncio.TimeoutError, PlaywrightError):
                return
            if body and body.startswith(PDF_MAGIC):
                captured["content"] = body
                self.logger.info(f"Captured PDF from network response {url} ({len(body)} bytes)")

        page = await self.session.context.new_page()
        page.on("response", on_response)
        try:
            try:
                await page.goto(viewer_url, wait_until="domcontentloaded", timeout=settings.BROWSER_TIMEOUT)
                await self.wait_ms("pdf_load_wait")
            except PlaywrightError as e:
                self.logger.info(f"Viewer navigation error for {viewer_url}: {e}")

            content = captured["content"]
            if isinstance(content, bytes) and is_valid_pdf(content, self.pdf_store.min_bytes):
                return content

            if captured["url"]:
                content = await self.try_fetch_pdf(str(captured["url"]))
                if content:
                    return content

            try:
                embedded_url = await page.evaluate(EXTRACT_EMBEDDED_PDF_JS)
            except PlaywrightError as e:
                self.logger.info(f"DOM extraction failed on {viewer_url}: {e}")
                embedded_url = None

            if embedded_url:
                content = await self.try_fetch_pdf(self.absolute_url(embedded_url))
                if content:
                    self.logger.info(f"Downloaded PDF ({len(content)} bytes) from embedded URL {embedded_url}")
                    return content
            return None
        finally:
            try:
                await page.close()
            except PlaywrightError:
                pass

    # ---- Persistence ----

    async def save_lien_with_pdf(self, lien: ScrapedLien, content: bytes) -> str:
        """
        Store the PDF and persist the lien as pending.

        Once this returns, the lien survives a crash anywhere later in the run.

        Returns:
            The externally reachable URL of the stored PDF
        """
        pdf_id = await self.pdf_store.store(content, lien.recording_number)
        local_pdf_url = build_pdf_url(pdf_id)

        await self.storage.create_lien(
            recording_number=lien.recording_number,
            county_id=self.county.id,
            record_date=lien.recording_date or datetime.utcnow(),
            debtor_name=lien.grantor or "",
            debtor_address=lien.address or "",
            creditor_name=lien.grantee or "",
            creditor_address="",
            amount=lien.amount or Decimal("0"),
            document_url=lien.document_url,
            pdf_url=local_pdf_url,
            status=LienStatus.PENDING.value,
        )

        lien.local_pdf_url = local_pdf_url
        self.logger.info(f"Saved lien {lien.recording_number} with local PDF {local_pdf_url}")
        return local_pdf_url

    async def acquire_and_save(self, lien: ScrapedLien, pdf_url: Optional[str]) -> ScrapedLien:
        """Download the lien's PDF and persist it; records the failure on the lien otherwise"""
        content = await self.download_pdf_with_retry(pdf_url, lien.recording_number)
        if content is None:
            lien.failure_reason = "PDF download failed"
            self.logger.warning(f"No PDF for {lien.recording_number}; it will hold delivery for review")
            return lien
        await self.save_lien_with_pdf(lien, content)
        return lien

    def log_record_failure(self, recording_number: str, error: Exception) -> None:
        category = error_handler.categorize_error(error)
        if category in (ErrorCategory.TRANSIENT, ErrorCategory.RECORD):
            self.logger.warning(f"Skipping {recording_number} after {category.value} error: {error}")
        else:
            self.logger.error(f"Skipping {recording_number}: {error}")
