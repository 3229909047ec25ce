"""Airtable sync service

Delivers verified liens to the Airtable table the operator works from.
Each record carries a numeric 'Record Number', a 'PDF Link' attachment
pointing at this service's /api/pdf endpoint, and, when the county has one
configured, a linked 'County' record.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union
import logging

import httpx

from lien_sync.config import settings
from lien_sync.exceptions import ServiceError, SyncError
from lien_sync.models import Lien
from lien_sync.scraping.base_scraper import ScrapedLien
from lien_sync.services.pdf_storage import PdfStore, build_pdf_url, get_pdf_store, is_local_pdf_url
from lien_sync.storage import LienStorage, get_storage

logger = logging.getLogger(__name__)

SyncInput = Union[Lien, ScrapedLien]


@dataclass
class SyncResult:
    """Per-record outcome of one sync call"""
    submitted: List[str] = field(default_factory=list)
    synced: Dict[str, str] = field(default_factory=dict)  # recording number -> Airtable id
    already_synced: List[str] = field(default_factory=list)
    skipped_without_pdf: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    batches_sent: int = 0

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submitted": len(self.submitted),
            "synced": len(self.synced),
            "alreadySynced": len(self.already_synced),
            "skippedWithoutPdf": self.skipped_without_pdf,
            "failed": self.failed,
            "errors": self.errors,
            "batchesSent": self.batches_sent,
        }


@dataclass
class _PendingRecord:
    recording_number: str
    fields: Dict[str, Any]


def _chunk(items: List[Any], size: int) -> List[List[Any]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def _record_number_value(recording_number: str) -> Union[int, str]:
    try:
        return int(recording_number)
    except ValueError:
        return recording_number


class SyncService:
    """Transforms liens into Airtable records and submits them in batches of at most 10"""

    def __init__(
        self,
        storage: Optional[LienStorage] = None,
        pdf_store: Optional[PdfStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        api_key: Optional[str] = None,
        base_id: Optional[str] = None,
        table_id: Optional[str] = None,
    ):
        self.storage = storage or get_storage()
        self.pdf_store = pdf_store or get_pdf_store()
        self._transport = transport
        self.api_key = api_key or settings.AIRTABLE_API_KEY
        self.base_id = base_id or settings.AIRTABLE_BASE_ID
        self.table_id = table_id or settings.AIRTABLE_TABLE_ID
        self.batch_size = settings.AIRTABLE_BATCH_SIZE

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.base_id and self.table_id)

    async def resolve_pdf_url(self, lien: SyncInput) -> Optional[str]:
        """
        Pick the PDF URL Airtable should fetch.

        Stored local PDF URL, then a local document URL, then an in-memory
        PDF stored on the fly. None means the lien cannot be delivered.
        """
        pdf_url = getattr(lien, "pdf_url", None) or getattr(lien, "local_pdf_url", None)
        if is_local_pdf_url(pdf_url):
            return pdf_url

        document_url = getattr(lien, "document_url", None)
        if is_local_pdf_url(document_url):
            return document_url

        content = getattr(lien, "pdf_content", None)
        if content:
            try:
                pdf_id = await self.pdf_store.store(content, lien.recording_number)
            except ValueError as e:
                logger.error(f"In-memory PDF for {lien.recording_number} is not usable: {e}")
                return None
            return build_pdf_url(pdf_id)

        return None

    async def build_fields(
        self,
        lien: SyncInput,
        pdf_url: str,
        county_cache: Dict[int, Optional[str]],
    ) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            "Record Number": _record_number_value(lien.recording_number),
            "PDF Link": [{"url": pdf_url, "filename": f"{lien.recording_number}.pdf"}],
        }

        county_id = lien.county_id
        if county_id is not None:
            if county_id not in county_cache:
                county = await self.storage.get_county(county_id)
                county_cache[county_id] = county.airtable_county_id if county else None
            airtable_county_id = county_cache[county_id]
            if airtable_county_id:
                fields["County"] = [airtable_county_id]
            else:
                logger.warning(
                    f"County {county_id} has no Airtable county id; omitting County for {lien.recording_number}"
                )
        return fields

    async def _already_delivered(self, lien: SyncInput) -> bool:
        if getattr(lien, "airtable_record_id", None):
            return True
        stored = await self.storage.get_lien_by_recording_number(lien.recording_number)
        return bool(stored and stored.airtable_record_id)

    async def sync_liens(self, liens: Sequence[SyncInput]) -> SyncResult:
        """
        Submit liens to Airtable.

        Liens that already have an Airtable id are skipped. Liens without a
        usable PDF are dropped and reported. Each successful batch marks its
        liens synced; a failed batch leaves its liens untouched.

        Raises:
            ServiceError: Airtable credentials are not configured
            SyncError: nothing in the input had a usable PDF, or a batch failed
        """
        if not self.is_configured:
            raise ServiceError("Airtable is not configured", details={"component": "airtable"})

        result = SyncResult()
        if not liens:
            return result

        county_cache: Dict[int, Optional[str]] = {}
        pending: List[_PendingRecord] = []
        seen = set()

        for lien in liens:
            recording_number = lien.recording_number
            if recording_number in seen:
                continue
            seen.add(recording_number)

            if await self._already_delivered(lien):
                result.already_synced.append(recording_number)
                continue

            pdf_url = await self.resolve_pdf_url(lien)
            if pdf_url is None:
                logger.error(f"No local PDF available for {recording_number}; not sending it to Airtable")
                result.skipped_without_pdf.append(recording_number)
                continue

            fields = await self.build_fields(lien, pdf_url, county_cache)
            pending.append(_PendingRecord(recording_number=recording_number, fields=fields))

        if result.already_synced:
            logger.info(f"Skipping {len(result.already_synced)} liens already in Airtable")

        if not pending:
            if result.skipped_without_pdf:
                raise SyncError(
                    message="No liens have PDFs - aborting Airtable sync",
                    errors=[f"{len(result.skipped_without_pdf)} liens without PDFs"],
                    result=result,
                )
            return result

        logger.info(f"Syncing {len(pending)} liens with PDFs to Airtable in batches of {self.batch_size}")

        async with httpx.AsyncClient(
            base_url=settings.AIRTABLE_API_URL,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
            timeout=settings.AIRTABLE_TIMEOUT_SECONDS,
        ) as client:
            for batch_number, batch in enumerate(_chunk(pending, self.batch_size), start=1):
                await self._send_batch(client, batch_number, batch, result)

        if result.errors:
            raise SyncError(
                message=f"Airtable sync finished with {len(result.errors)} failed batch(es)",
                errors=result.errors,
                result=result,
            )

        logger.info(f"Successfully synced {len(result.synced)} liens to Airtable")
        return result

    async def _send_batch(
        self,
        client: httpx.AsyncClient,
        batch_number: int,
        batch: List[_PendingRecord],
        result: SyncResult,
    ) -> None:
        numbers = [record.recording_number for record in batch]
        payload = {"records": [{"fields": record.fields} for record in batch], "typecast": True}
        result.submitted.extend(numbers)
        result.batches_sent += 1

        try:
            response = await client.post(f"/{self.base_id}/{self.table_id}", json=payload)
        except httpx.HTTPError as e:
            result.failed.extend(numbers)
            result.errors.append(f"Batch {batch_number}: {type(e).__name__}: {e}")
            logger.error(f"Airtable batch {batch_number} request failed: {e}")
            return

        if response.status_code >= 300:
            detail = response.text
            try:
                error = response.json().get("error")
                if isinstance(error, dict):
                    detail = f"{error.get('type')}: {error.get('message')}"
            except ValueError:
                pass
            result.failed.extend(numbers)
            result.errors.append(f"Batch {batch_number}: Airtable API error ({response.status_code}): {detail}")
            logger.error(f"Airtable batch {batch_number} rejected ({response.status_code}): {detail}")
            return

        try:
            created = response.json().get("records", [])
        except ValueError as e:
            result.failed.extend(numbers)
            result.errors.append(f"Batch {batch_number}: invalid JSON response from Airtable: {e}")
            logger.error(f"Airtable batch {batch_number} returned a non-JSON body ({response.status_code})")
            return
        # Airtable returns created records in request order
        for record, created_record in zip(batch, created):
            airtable_id = created_record.get("id")
            if not airtable_id:
                continue
            await self.storage.mark_lien_synced(record.recording_number, airtable_id)
            result.synced[record.recording_number] = airtable_id

        logger.info(f"Synced batch {batch_number} to Airtable: {len(batch)} records")


_sync_service: Optional[SyncService] = None


def get_sync_service() -> SyncService:
    global _sync_service
    if _sync_service is None:
        _sync_service = SyncService()
    return _sync_service
