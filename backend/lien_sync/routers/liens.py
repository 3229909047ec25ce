"""Lien review and maintenance router"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, Query

from lien_sync.exceptions import ConflictError
from lien_sync.routers.auth import get_current_operator
from lien_sync.routers.common import CamelModel
from lien_sync.services.scheduler import AutomationScheduler, get_scheduler
from lien_sync.storage import LienStorage, get_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/liens", tags=["Liens"])


# Response Models
class FailedLienResponse(CamelModel):
    id: int
    recording_number: str
    county_id: Optional[int]
    automation_run_id: Optional[int]
    document_url: Optional[str]
    reason: str
    record_date: Optional[datetime]
    debtor_name: Optional[str]
    amount: Optional[Decimal]
    created_at: datetime


class FailedLiensResponse(CamelModel):
    count: int
    liens: List[FailedLienResponse]
    message: str


class LienResponse(CamelModel):
    id: int
    county_id: int
    recording_number: str
    record_date: datetime
    debtor_name: str
    amount: Decimal
    document_url: Optional[str]
    pdf_url: Optional[str]
    status: str
    failure_reason: Optional[str]
    airtable_record_id: Optional[str]
    created_at: datetime


class StaleLiensResponse(CamelModel):
    count: int
    hours_old: int
    liens: List[LienResponse]


# Endpoints
@router.get("/failed", response_model=FailedLiensResponse)
async def get_failed_liens(
    operator: str = Depends(get_current_operator),
    scheduler: AutomationScheduler = Depends(get_scheduler),
):
    """Liens holding delivery until an operator approves or rejects them"""
    entries = await scheduler.get_failed_liens()
    count = len(entries)
    message = (
        f"{count} lien(s) failed PDF download. Review and approve/reject Airtable sync."
        if count else "No failed liens."
    )
    return FailedLiensResponse(
        count=count,
        liens=[FailedLienResponse.model_validate(entry) for entry in entries],
        message=message,
    )


@router.post("/failed/approve")
async def approve_failed_liens(
    operator: str = Depends(get_current_operator),
    scheduler: AutomationScheduler = Depends(get_scheduler),
):
    """Sync despite missing PDFs"""
    logger.warning(f"Operator {operator} approved sync despite failed PDFs")
    return await scheduler.approve_failed_liens()


@router.post("/failed/reject")
async def reject_failed_liens(
    operator: str = Depends(get_current_operator),
    scheduler: AutomationScheduler = Depends(get_scheduler),
):
    """Clear the review queue; nothing is delivered"""
    return await scheduler.reject_failed_liens()


@router.get("/stale", response_model=StaleLiensResponse)
async def get_stale_liens(
    hours: int = Query(48, ge=1),
    operator: str = Depends(get_current_operator),
    storage: LienStorage = Depends(get_storage),
):
    """Pending liens older than `hours`"""
    liens = await storage.get_stale_pending_liens(hours)
    return StaleLiensResponse(
        count=len(liens),
        hours_old=hours,
        liens=[LienResponse.model_validate(lien) for lien in liens],
    )


@router.post("/stale/mark")
async def mark_stale_liens(
    hours: int = Query(48, ge=1),
    operator: str = Depends(get_current_operator),
    scheduler: AutomationScheduler = Depends(get_scheduler),
):
    count = await scheduler.mark_stale(hours)
    return {"success": True, "count": count, "message": f"Marked {count} liens as stale"}


@router.get("/status-counts", response_model=Dict[str, int])
async def get_status_counts(
    operator: str = Depends(get_current_operator),
    storage: LienStorage = Depends(get_storage),
):
    """Number of liens in each lifecycle status"""
    return await storage.get_status_counts()


@router.post("/sync-pending")
async def sync_pending_liens(
    operator: str = Depends(get_current_operator),
    scheduler: AutomationScheduler = Depends(get_scheduler),
):
    """Sync pending liens with PDFs outside an automation run"""
    if scheduler.is_running:
        raise ConflictError(message="Automation is running; pending liens are synced at the end of the run")
    return await scheduler.sync_pending()
