"""Automation control router"""
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, Header, Query, status
from pydantic import Field, model_validator

from lien_sync.config import ALLOWED_TIMEZONES
from lien_sync.exceptions import AuthenticationError, ConflictError, NotFoundError
from lien_sync.models import LogLevel, RunType
from lien_sync.routers.auth import get_current_operator
from lien_sync.routers.common import CamelModel
from lien_sync.services.auth import verify_automation_token
from lien_sync.services.scheduler import AutomationScheduler, ScheduleInfo, get_scheduler
from lien_sync.storage import LienStorage, get_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/automation", tags=["Automation"])


# Request/Response Models
class TriggerRequest(CamelModel):
    """Manual run; dates default to yesterday"""
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    limit: Optional[int] = Field(None, ge=1)

    @model_validator(mode="after")
    def check_range(self) -> "TriggerRequest":
        if self.from_date and self.to_date and self.from_date > self.to_date:
            raise ValueError("fromDate must not be after toDate")
        return self


class ScheduleRequest(CamelModel):
    hour: int = Field(..., ge=0, le=23)
    minute: int = Field(..., ge=0, le=59)
    timezone: str = "America/New_York"
    skip_weekends: bool = False
    is_enabled: bool = True

    @model_validator(mode="after")
    def check_timezone(self) -> "ScheduleRequest":
        if self.timezone not in ALLOWED_TIMEZONES:
            raise ValueError(f"timezone must be one of {', '.join(ALLOWED_TIMEZONES)}")
        return self


class ScheduleResponse(CamelModel):
    id: str
    name: str
    hour: int
    minute: int
    timezone: str
    skip_weekends: bool
    is_enabled: bool
    cron_expression: str
    human_readable: str


class RunResponse(CamelModel):
    id: int
    type: str
    status: str
    start_time: datetime
    end_time: Optional[datetime]
    liens_found: Optional[int]
    liens_processed: Optional[int]
    liens_over_20k: Optional[int]
    error_message: Optional[str]
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="run_metadata")


class CountyRunResponse(CamelModel):
    id: int
    county_id: int
    automation_run_id: int
    status: str
    start_time: datetime
    end_time: Optional[datetime]
    liens_found: Optional[int]
    liens_processed: Optional[int]
    error_message: Optional[str]
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="run_metadata")


class StatusResponse(CamelModel):
    is_running: bool
    state: str
    latest_run: Optional[RunResponse]


def schedule_to_response(info: ScheduleInfo) -> ScheduleResponse:
    return ScheduleResponse.model_validate(info)


# Endpoints
@router.get("/status", response_model=StatusResponse)
async def get_status(
    operator: str = Depends(get_current_operator),
    scheduler: AutomationScheduler = Depends(get_scheduler),
):
    """Whether a run is in progress, plus the latest run"""
    current = await scheduler.get_status()
    latest = current["latestRun"]
    return StatusResponse(
        is_running=current["isRunning"],
        state=current["state"],
        latest_run=RunResponse.model_validate(latest) if latest else None,
    )


@router.post("/trigger", status_code=status.HTTP_202_ACCEPTED)
async def trigger_automation(
    request: TriggerRequest,
    operator: str = Depends(get_current_operator),
    scheduler: AutomationScheduler = Depends(get_scheduler),
):
    """Start a manual run in the background; 409 if one is already running"""
    await scheduler.start_automation(RunType.MANUAL, request.from_date, request.to_date, request.limit)
    logger.info(f"Manual automation started by {operator}")
    return {"message": "Manual automation started", "status": "started"}


@router.post("/scheduled-trigger")
async def scheduled_trigger(
    x_automation_token: Optional[str] = Header(None),
    scheduler: AutomationScheduler = Depends(get_scheduler),
    storage: LienStorage = Depends(get_storage),
):
    """Entry point for the cron trigger; authenticated by the shared automation token"""
    try:
        verify_automation_token(x_automation_token)
    except AuthenticationError:
        await storage.add_system_log(LogLevel.WARNING.value, "Unauthorized scheduled trigger attempt", "scheduler")
        raise

    if scheduler.is_running:
        await storage.add_system_log(
            LogLevel.INFO.value, "Scheduled trigger skipped - automation already running", "scheduler"
        )
        return {"message": "Automation already running, skipped scheduled run", "status": "skipped"}

    run_date = date.today() - timedelta(days=1)
    await scheduler.start_automation(RunType.SCHEDULED, run_date, run_date)
    return {"message": "Scheduled automation started", "status": "started", "date": run_date.isoformat()}


@router.post("/maintenance/mark-stale")
async def scheduled_mark_stale(
    hours: Optional[int] = Query(None, ge=1),
    x_automation_token: Optional[str] = Header(None),
    scheduler: AutomationScheduler = Depends(get_scheduler),
    storage: LienStorage = Depends(get_storage),
):
    """Stale-lien maintenance for the beat process; skipped while the run slot is held"""
    try:
        verify_automation_token(x_automation_token)
    except AuthenticationError:
        await storage.add_system_log(LogLevel.WARNING.value, "Unauthorized maintenance attempt", "scheduler")
        raise

    try:
        count = await scheduler.mark_stale(hours)
    except ConflictError as e:
        logger.info(f"Stale maintenance skipped: {e.message}")
        return {"message": f"{e.message}, skipped stale maintenance", "status": "skipped"}
    return {"message": f"Marked {count} liens as stale", "status": "completed", "marked": count}


@router.post("/stop")

async def stop_automation(
    operator: str = Depends(get_current_operator),
    scheduler: AutomationScheduler = Depends(get_scheduler),
):
    """Stop the current run after its in-flight county"""
    stopped = await scheduler.stop_automation()
    if not stopped:
        return {"message": "No automation running", "stopped": False}
    logger.info(f"Automation stop requested by {operator}")
    return {"message": "Automation stop requested", "stopped": True}


@router.get("/runs", response_model=List[RunResponse])
async def list_runs(
    limit: int = Query(5, ge=1, le=100),
    operator: str = Depends(get_current_operator),
    storage: LienStorage = Depends(get_storage),
):
    """Recent automation runs, newest first"""
    runs = await storage.get_recent_automation_runs(limit)
    return [RunResponse.model_validate(run) for run in runs]


@router.get("/runs/{run_id}/counties", response_model=List[CountyRunResponse])
async def list_county_runs(
    run_id: int,
    operator: str = Depends(get_current_operator),
    storage: LienStorage = Depends(get_storage),
):
    """Per-county breakdown of one run"""
    run = await storage.get_automation_run(run_id)
    if not run:
        raise NotFoundError(message=f"Automation run {run_id} not found")
    county_runs = await storage.get_county_runs(run_id)
    return [CountyRunResponse.model_validate(county_run) for county_run in county_runs]


@router.get("/schedule", response_model=ScheduleResponse)
async def get_schedule(
    operator: str = Depends(get_current_operator),
    scheduler: AutomationScheduler = Depends(get_scheduler),
):
    return schedule_to_response(await scheduler.get_schedule_info())


@router.post("/schedule", response_model=ScheduleResponse)
async def update_schedule(
    request: ScheduleRequest,
    operator: str = Depends(get_current_operator),
    scheduler: AutomationScheduler = Depends(get_scheduler),
):
    """Change the daily run time"""
    info = await scheduler.update_schedule(
        hour=request.hour,
        minute=request.minute,
        timezone=request.timezone,
        skip_weekends=request.skip_weekends,
        is_enabled=request.is_enabled,
    )
    return schedule_to_response(info)
