"""Local PDF store

PDFs are written as ``{id}.pdf`` next to a ``{id}.json`` sidecar holding
``{id, filename, recordingNumber, createdAt, size}``. Entries expire after
PDF_RETENTION_DAYS and are served to Airtable through ``/api/pdf/{id}``.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional
import json
import logging
import os
import re
import uuid

import aiofiles
import httpx

from lien_sync.config import settings

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"

_PDF_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


def is_valid_pdf(content: Optional[bytes], min_bytes: Optional[int] = None) -> bool:
    """True if content starts with the PDF magic bytes and is larger than the minimum size"""
    if not content:
        return False
    threshold = settings.PDF_MIN_BYTES if min_bytes is None else min_bytes
    return content[:4] == PDF_MAGIC and len(content) > threshold


def local_pdf_path() -> str:
    """Path prefix of the PDF endpoint under the configured API prefix"""
    return f"{settings.API_PREFIX.rstrip('/')}/pdf/"


def is_local_pdf_url(url: Optional[str]) -> bool:
    """True if url points at this service's PDF endpoint"""
    return bool(url) and local_pdf_path() in url


def build_pdf_url(pdf_id: str) -> str:
    """Externally reachable URL for a stored PDF"""
    base = settings.PUBLIC_BASE_URL.rstrip("/")
    return f"{base}{local_pdf_path()}{pdf_id}"


@dataclass
class StoredPdf:
    """A PDF read back from the store"""
    id: str
    content: bytes
    filename: str
    recording_number: str
    created_at: datetime


class PdfStore:
    """Disk-backed PDF store with a fixed retention window"""

    def __init__(
        self,
        storage_dir: Optional[str] = None,
        retention_days: Optional[int] = None,
        min_bytes: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.storage_dir = Path(storage_dir or settings.PDF_STORAGE_DIR)
        self.retention = timedelta(days=retention_days or settings.PDF_RETENTION_DAYS)
        self.min_bytes = settings.PDF_MIN_BYTES if min_bytes is None else min_bytes
        self._transport = transport
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def _paths(self, pdf_id: str):
        return self.storage_dir / f"{pdf_id}.pdf", self.storage_dir / f"{pdf_id}.json"

    async def store(self, content: bytes, recording_number: str) -> str:
        """
        Write a PDF and its sidecar, then prune expired entries.

        Args:
            content: PDF bytes; must pass is_valid_pdf
            recording_number: Recording number the PDF belongs to

        Returns:
            The opaque id the PDF is served under
        """
        if not is_valid_pdf(content, self.min_bytes):
            raise ValueError(f"Refusing to store invalid PDF for {recording_number} ({len(content or b'')} bytes)")

        pdf_id = uuid.uuid4().hex
        pdf_path, meta_path = self._paths(pdf_id)
        metadata = {
            "id": pdf_id,
            "filename": f"{recording_number}.pdf",
            "recordingNumber": recording_number,
            "createdAt": datetime.utcnow().isoformat(),
            "size": len(content),
        }

        async with aiofiles.open(pdf_path, "wb") as f:
            await f.write(content)
        async with aiofiles.open(meta_path, "w") as f:
            await f.write(json.dumps(metadata, indent=2))

        await self.cleanup()

        logger.info(f"Stored PDF {metadata['filename']} with ID {pdf_id} ({len(content)} bytes)")
        return pdf_id

    async def get(self, pdf_id: str) -> Optional[StoredPdf]:
        """Read a stored PDF; expired entries are deleted and reported as missing"""
        if not _PDF_ID_PATTERN.match(pdf_id or ""):
            logger.warning(f"Rejected malformed PDF id: {pdf_id!r}")
            return None

        pdf_path, meta_path = self._paths(pdf_id)
        if not pdf_path.exists() or not meta_path.exists():
            logger.warning(f"PDF not found: {pdf_id}")
            return None

        try:
            async with aiofiles.open(meta_path, "r") as f:
                metadata = json.loads(await f.read())
            created_at = datetime.fromisoformat(metadata["createdAt"])

            if datetime.utcnow() - created_at > self.retention:
                self._delete(pdf_id)
                logger.info(f"Deleted expired PDF: {pdf_id}")
                return None

            async with aiofiles.open(pdf_path, "rb") as f:
                content = await f.read()
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Error reading PDF {pdf_id}: {e}")
            return None

        return StoredPdf(
            id=pdf_id,
            content=content,
            filename=metadata.get("filename", f"{pdf_id}.pdf"),
            recording_number=metadata.get("recordingNumber", ""),
            created_at=created_at,
        )

    async def cleanup(self) -> int:
        """Delete entries past the retention window; returns how many were removed"""
        removed = 0
        now = datetime.utcnow()
        for meta_path in self.storage_dir.glob("*.json"):
            try:
                async with aiofiles.open(meta_path, "r") as f:
                    metadata = json.loads(await f.read())
                created_at = datetime.fromisoformat(metadata["createdAt"])
            except (OSError, ValueError, KeyError) as e:
                logger.debug(f"Skipping unreadable sidecar {meta_path.name}: {e}")
                continue

            if now - created_at > self.retention:
                self._delete(meta_path.stem)
                removed += 1
                logger.info(f"Cleaned up old PDF: {metadata.get('filename', meta_path.stem)}")
        return removed

    def _delete(self, pdf_id: str) -> None:
        for path in self._paths(pdf_id):
            try:
                os.remove(path)
            except FileNotFoundError:
                pass

    async def redownload(self, recording_number: str) -> Optional[str]:
        """
        Best-effort re-fetch of a PDF from the county site.

        Returns:
            The new stored id, or None if the source did not return a valid PDF
        """
        url = settings.PDF_REDOWNLOAD_URL_PATTERN.replace("{recordingNumber}", recording_number)
        logger.info(f"Re-downloading PDF for {recording_number} from {url}")

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=settings.PDF_FETCH_TIMEOUT_SECONDS,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT, "Accept": "application/pdf,*/*"},
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.error(f"Failed to re-download PDF {recording_number}: {e}")
            return None

        if response.status_code != 200 or not is_valid_pdf(response.content, self.min_bytes):
            logger.warning(
                f"Re-download for {recording_number} returned no usable PDF "
                f"(status {response.status_code}, {len(response.content)} bytes)"
            )
            return None

        return await self.store(response.content, recording_number)


_pdf_store: Optional[PdfStore] = None


def get_pdf_store() -> PdfStore:
    """Get the process-wide PDF store"""
    global _pdf_store
    if _pdf_store is None:
        _pdf_store = PdfStore()
    return _pdf_store
