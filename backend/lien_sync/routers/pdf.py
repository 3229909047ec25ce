"""Public PDF endpoint

Airtable fetches attachments from here, so it takes no authentication.
"""
from typing import Optional
import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse, Response

from lien_sync.config import settings
from lien_sync.exceptions import NotFoundError
from lien_sync.services.pdf_storage import PdfStore, get_pdf_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pdf", tags=["PDF"])


@router.get("/{pdf_id}")
async def get_pdf(
    pdf_id: str,
    recording: Optional[str] = Query(None, description="Recording number to re-download from if the PDF is gone"),
    store: PdfStore = Depends(get_pdf_store),
):
    """Serve a stored PDF, re-downloading it when a recording number hint is given"""
    stored = await store.get(pdf_id)
    if stored:
        return Response(
            content=stored.content,
            media_type="application/pdf",
            headers={
                "Content-Disposition": f'inline; filename="{stored.filename}"',
                "Cache-Control": "public, max-age=86400",
            },
        )

    if recording:
        logger.info(f"PDF {pdf_id} missing, re-downloading recording {recording}")
        new_id = await store.redownload(recording)
        if new_id:
            return RedirectResponse(
                url=f"{settings.API_PREFIX}/pdf/{new_id}",
                status_code=status.HTTP_307_TEMPORARY_REDIRECT,
            )

    raise NotFoundError(message="PDF not found", details={"id": pdf_id})
