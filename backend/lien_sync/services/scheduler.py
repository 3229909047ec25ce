"""Automation orchestrator

Runs the scraper for every active county, applies the delivery gate and
hands verified liens to the Airtable sync. Only one run may be active at a
time; the cron trigger lives in the Celery beat process and reaches this
orchestrator through the scheduled-trigger endpoint.
"""
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union
from zoneinfo import ZoneInfo
import asyncio
import enum
import logging

from lien_sync.config import ALLOWED_TIMEZONES, settings
from lien_sync.exceptions import BrowserLaunchError, ConflictError, SyncError, ValidationError
from lien_sync.models import (
    County,
    Lien,
    LienStatus,
    LogLevel,
    ReviewQueueEntry,
    RunStatus,
    RunType,
    ScheduleSettings,
)
from lien_sync.models.schedule import GLOBAL_SCHEDULE_ID
from lien_sync.scraping.base_scraper import BaseScraper, ScrapedLien
from lien_sync.scraping.factory import create_scraper
from lien_sync.services.airtable import SyncResult, SyncService, get_sync_service
from lien_sync.services.error_handling import error_handler
from lien_sync.services.pdf_storage import PdfStore, get_pdf_store, is_local_pdf_url
from lien_sync.storage import LienStorage, get_storage

logger = logging.getLogger(__name__)

COMPONENT = "scheduler"
HIGH_VALUE_AMOUNT = Decimal("20000")

TIMEZONE_ABBREVIATIONS = {
    "America/New_York": "ET",
    "America/Chicago": "CT",
    "America/Denver": "MT",
    "America/Los_Angeles": "PT",
}

ScraperFactory = Callable[..., Awaitable[BaseScraper]]


class OrchestratorState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    MAINTENANCE = "maintenance"


# ---- Schedule ----

@dataclass
class ScheduleInfo:
    """The global cron schedule, in the schedule's own timezone"""
    hour: int
    minute: int
    timezone: str
    skip_weekends: bool = False
    is_enabled: bool = True
    id: str = GLOBAL_SCHEDULE_ID
    name: str = "Default Schedule"

    @classmethod
    def defaults(cls) -> "ScheduleInfo":
        return cls(
            hour=settings.SCHEDULE_DEFAULT_HOUR,
            minute=settings.SCHEDULE_DEFAULT_MINUTE,
            timezone=settings.SCHEDULE_DEFAULT_TIMEZONE,
        )

    @classmethod
    def from_model(cls, schedule: ScheduleSettings) -> "ScheduleInfo":
        return cls(
            id=schedule.id,
            name=schedule.name,
            hour=schedule.hour,
            minute=schedule.minute,
            timezone=schedule.timezone,
            skip_weekends=schedule.skip_weekends,
            is_enabled=schedule.is_enabled,
        )

    @property
    def cron_expression(self) -> str:
        day_of_week = "1-5" if self.skip_weekends else "*"
        return f"{self.minute} {self.hour} * * {day_of_week}"

    @property
    def human_readable(self) -> str:
        display_hour = self.hour % 12 or 12
        meridiem = "PM" if self.hour >= 12 else "AM"
        abbreviation = TIMEZONE_ABBREVIATIONS.get(self.timezone, self.timezone)
        frequency = "weekdays" if self.skip_weekends else "daily"
        return f"{frequency} at {display_hour}:{self.minute:02d} {meridiem} {abbreviation}"

    def is_due(self, now: datetime) -> bool:
        """Whether a trigger checked at `now` (aware) falls on this schedule's minute"""
        if not self.is_enabled:
            return False
        local = now.astimezone(ZoneInfo(self.timezone))
        if self.skip_weekends and local.weekday() >= 5:
            return False
        return local.hour == self.hour and local.minute == self.minute

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "hour": self.hour,
            "minute": self.minute,
            "timezone": self.timezone,
            "skipWeekends": self.skip_weekends,
            "isEnabled": self.is_enabled,
            "cronExpression": self.cron_expression,
            "humanReadable": self.human_readable,
        }


def validate_schedule(hour: int, minute: int, timezone: str) -> None:
    errors = []
    if not 0 <= hour <= 23:
        errors.append("hour must be between 0 and 23")
    if not 0 <= minute <= 59:
        errors.append("minute must be between 0 and 59")
    if timezone not in ALLOWED_TIMEZONES:
        errors.append(f"timezone must be one of {', '.join(ALLOWED_TIMEZONES)}")
    if errors:
        raise ValidationError(message="Invalid schedule", details={"errors": errors})


# ---- Delivery gate ----

@dataclass
class DeliveryPlan:
    """What a finished run may deliver, and what holds it back"""
    deliverable: List[Union[ScrapedLien, Lien]] = field(default_factory=list)
    newly_failed: List[ScrapedLien] = field(default_factory=list)
    excluded: List[str] = field(default_factory=list)

    @property
    def halted(self) -> bool:
        return bool(self.newly_failed)


def plan_delivery(new_liens: Sequence[ScrapedLien], pending: Sequence[Lien]) -> DeliveryPlan:
    """
    Partition this run's liens and older pending rows for delivery.

    Any lien produced by this run without a local PDF halts the whole sync.
    Pending rows left over from earlier runs never halt it; those without a
    usable PDF are only excluded.
    """
    plan = DeliveryPlan()
    seen = set()

    for lien in new_liens:
        if lien.recording_number in seen:
            continue
        seen.add(lien.recording_number)
        if lien.has_local_pdf:
            plan.deliverable.append(lien)
        else:
            plan.newly_failed.append(lien)

    for row in pending:
        if row.recording_number in seen:
            continue
        seen.add(row.recording_number)
        if is_local_pdf_url(row.pdf_url) or is_local_pdf_url(row.document_url):
            plan.deliverable.append(row)
        else:
            plan.excluded.append(row.recording_number)

    return plan


def _review_entry(lien: ScrapedLien, run_id: int) -> Dict[str, Any]:
    return {
        "recording_number": lien.recording_number,
        "county_id": lien.county_id,
        "automation_run_id": run_id,
        "document_url": lien.document_url or None,
        "reason": lien.failure_reason or "PDF download failed",
        "record_date": lien.recording_date,
        "debtor_name": lien.grantor,
        "amount": lien.amount,
    }


def _yesterday() -> date:
    return date.today() - timedelta(days=1)


class AutomationScheduler:
    """
    Single-flight orchestrator for automation runs.

    State moves idle -> running -> (stopping ->) idle. The stop event is
    shared with every scraper of the current run and checked at each page,
    record and county boundary. Review approval, manual sync and stale
    marking hold the same slot in the maintenance state, so they never
    interleave with a run.
    """

    def __init__(
        self,
        storage: Optional[LienStorage] = None,
        pdf_store: Optional[PdfStore] = None,
        sync_service: Optional[SyncService] = None,
        scraper_factory: Optional[ScraperFactory] = None,
    ):
        self.storage = storage or get_storage()
        self.pdf_store = pdf_store or get_pdf_store()
        self.sync_service = sync_service or get_sync_service()
        self.scraper_factory = scraper_factory or create_scraper

        self.state = OrchestratorState.IDLE
        self.current_run_id: Optional[int] = None
        self._stop_event = asyncio.Event()
        self._current_scrapers: List[BaseScraper] = []
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self.state != OrchestratorState.IDLE

    async def _log(self, level: LogLevel, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        if level == LogLevel.ERROR:
            logger.error(message)
        elif level == LogLevel.WARNING:
            logger.warning(message)
        else:
            logger.info(message)
        await self.storage.add_system_log(level.value, message, COMPONENT, metadata)

    # ---- Runs ----

    def _claim(self, state: OrchestratorState = OrchestratorState.RUNNING) -> None:
        if self.state == OrchestratorState.MAINTENANCE:
            raise ConflictError(message="A maintenance task is in progress")
        if self.is_running:
            raise ConflictError(message="Automation is already running")
        self.state = state
        self._stop_event = asyncio.Event()
        self._current_scrapers = []

    async def run_automation(
        self,
        run_type: RunType = RunType.MANUAL,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> Optional[int]:
        """
        Run every active county and deliver the result.

        Raises:
            ConflictError: another run is in progress

        Returns:
            The AutomationRun id
        """
        self._claim()
        return await self._execute(run_type, from_date, to_date, limit)

    async def start_automation(
        self,
        run_type: RunType = RunType.MANUAL,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> None:
        """Claim the run slot now and run in the background"""
        self._claim()
        self._task = asyncio.create_task(self._execute(run_type, from_date, to_date, limit))

    async def _execute(
        self,
        run_type: RunType,
        from_date: Optional[date],
        to_date: Optional[date],
        limit: Optional[int],
    ) -> Optional[int]:
        run_id: Optional[int] = None
        try:
            if from_date is None and to_date is None:
                # County sites publish a day's recordings the following day
                from_date = to_date = _yesterday()
                await self._log(LogLevel.INFO, f"Using yesterday's date for {run_type.value} run: {from_date}")
            from_date = from_date or to_date
            to_date = to_date or from_date

            run = await self.storage.create_automation_run(
                run_type.value,
                metadata={
                    "startedBy": run_type.value,
                    "fromDate": from_date.isoformat(),
                    "toDate": to_date.isoformat(),
                    "limit": limit,
                },
            )
            run_id = self.current_run_id = run.id
            await self._log(LogLevel.INFO, f"Starting {run_type.value} automation run", {"runId": run_id})

            counties = await self.storage.get_active_counties()
            if not counties:
                await self._log(LogLevel.WARNING, "No active counties configured")
                await self._finish_run(run_id, RunStatus.COMPLETED)
                return run_id

            new_liens: List[ScrapedLien] = []
            for county in counties:
                if self._stop_event.is_set():
                    await self._log(LogLevel.INFO, "Stopping automation as requested")
                    break
                new_liens.extend(await self.scrape_county(run_id, county, from_date, to_date, limit))

            if self._stop_event.is_set():
                await self._finish_stopped(run_id, new_liens)
                return run_id

            await self.deliver(run_id, new_liens, county_count=len(counties))
            return run_id

        except Exception as e:
            logger.exception(f"Automation failed: {e}")
            await self.storage.add_system_log(LogLevel.ERROR.value, f"Automation failed: {e}", COMPONENT)
            if run_id is not None:
                await self._finish_run(run_id, RunStatus.FAILED, error_message=str(e))
            return run_id
        finally:
            await self._close_scrapers()
            self.state = OrchestratorState.IDLE
            self.current_run_id = None
            self._stop_event.clear()

    async def scrape_county(
        self,
        run_id: int,
        county: County,
        from_date: date,
        to_date: date,
        limit: Optional[int] = None,
    ) -> List[ScrapedLien]:
        """
        Scrape one county; a failure here is recorded on its CountyRun and never
        propagates to the other counties.
        """
        county_run = await self.storage.create_county_run(county.id, run_id)
        await self.storage.update_county_run(county_run.id, metadata={"county": county.name, "state": county.state})
        await self._log(LogLevel.INFO, f"Starting lien scraping for {county.name}, {county.state}")

        scraper: Optional[BaseScraper] = None
        try:
            scraper = await self.scraper_factory(
                county,
                storage=self.storage,
                pdf_store=self.pdf_store,
                stop_event=self._stop_event,
            )
            self._current_scrapers.append(scraper)

            try:
                await asyncio.wait_for(scraper.initialize(), timeout=settings.SCRAPER_INIT_TIMEOUT_SECONDS)
            except asyncio.TimeoutError as e:
                raise BrowserLaunchError(
                    message=f"Browser initialization did not finish within {settings.SCRAPER_INIT_TIMEOUT_SECONDS}s",
                ) from e

            timeout = settings.scraper_run_timeout
            try:
                liens = await asyncio.wait_for(
                    scraper.scrape_county_liens(from_date, to_date, limit), timeout=timeout
                )
            except asyncio.TimeoutError:
                liens = list(scraper.liens)
                await self._log(
                    LogLevel.WARNING,
                    f"Scraping timeout reached for {county.name} ({timeout:.0f}s) - using {len(liens)} partial results",
                )

            with_pdf = sum(1 for lien in liens if lien.has_local_pdf)
            await self.storage.update_county_run(
                county_run.id,
                status=RunStatus.COMPLETED.value,
                end_time=datetime.utcnow(),
                liens_found=len(liens),
                liens_processed=with_pdf,
            )
            await self._log(LogLevel.INFO, f"{county.name}: {len(liens)} liens found, {with_pdf} with PDFs")
            return liens

        except Exception as e:
            category = error_handler.categorize_error(e)
            await self._log(
                LogLevel.ERROR,
                f"Error scraping {county.name} ({category.value}): {e} - continuing with other counties",
            )
            await self.storage.update_county_run(
                county_run.id,
                status=RunStatus.FAILED.value,
                end_time=datetime.utcnow(),
                liens_found=0,
                liens_processed=0,
                error_message=str(e),
            )
            return []
        finally:
            if scraper is not None:
                await scraper.cleanup()

    async def deliver(self, run_id: int, new_liens: Sequence[ScrapedLien], county_count: int = 0) -> RunStatus:
        """Apply the delivery gate to a finished run, then sync what it allows"""
        pending = await self.storage.get_liens_by_status(LienStatus.PENDING)
        plan = plan_delivery(new_liens, pending)
        over_20k = sum(1 for lien in new_liens if lien.amount is not None and lien.amount > HIGH_VALUE_AMOUNT)

        await self._log(
            LogLevel.INFO,
            f"Run liens: {len(new_liens)}, pending in database: {len(pending)}, "
            f"deliverable: {len(plan.deliverable)}, failed: {len(plan.newly_failed)}",
        )
        if plan.excluded:
            logger.warning(f"Excluding {len(plan.excluded)} older pending liens without PDFs: {', '.join(plan.excluded)}")

        if plan.halted:
            failed_numbers = [lien.recording_number for lien in plan.newly_failed]
            await self.storage.set_failed_liens(_review_entry(lien, run_id) for lien in plan.newly_failed)
            await self._finish_run(
                run_id,
                RunStatus.NEEDS_REVIEW,
                liens_found=len(new_liens),
                liens_processed=0,
                liens_over_20k=over_20k,
                error_message=f"{len(failed_numbers)} liens failed PDF download - Airtable sync halted pending review",
            )
            await self._log(
                LogLevel.ERROR,
                f"HALTING Airtable sync: {len(failed_numbers)} of {len(new_liens)} new liens failed PDF download. "
                f"Failed liens: {', '.join(failed_numbers)}",
                {"runId": run_id, "failed": failed_numbers},
            )
            return RunStatus.NEEDS_REVIEW

        synced = 0
        if self._stop_event.is_set():
            await self._finish_stopped(run_id, new_liens)
            return RunStatus.STOPPED

        if plan.deliverable:
            if not self.sync_service.is_configured:
                await self._log(
                    LogLevel.WARNING,
                    f"Airtable is not configured; {len(plan.deliverable)} liens stay pending",
                )
            else:
                try:
                    result = await self.sync_service.sync_liens(plan.deliverable)
                    synced = len(result.synced)
                except SyncError as e:
                    partial = e.result.synced if isinstance(e.result, SyncResult) else {}
                    if self._stop_event.is_set():
                        await self._finish_stopped(run_id, new_liens, processed=len(partial))
                        return RunStatus.STOPPED
                    await self._finish_run(
                        run_id,
                        RunStatus.FAILED,
                        liens_found=len(new_liens),
                        liens_processed=len(partial),
                        liens_over_20k=over_20k,
                        error_message=f"{e.message}: {'; '.join(e.errors)}",
                    )
                    await self._log(LogLevel.ERROR, f"Airtable sync failed: {e.message}", {"errors": e.errors})
                    return RunStatus.FAILED

        if self._stop_event.is_set():
            # Batches already accepted by Airtable stay synced
            await self._finish_stopped(run_id, new_liens, processed=synced)
            return RunStatus.STOPPED

        await self._finish_run(
            run_id,
            RunStatus.COMPLETED,
            liens_found=len(new_liens),
            liens_processed=synced,
            liens_over_20k=over_20k,
        )
        await self.storage.add_system_log(
            LogLevel.SUCCESS.value,
            f"Automation completed. Found {len(new_liens)} liens across {county_count} counties, "
            f"pushed {synced} to Airtable",
            COMPONENT,
            {"runId": run_id},
        )
        logger.info(f"Automation run {run_id} completed, {synced} liens synced")
        return RunStatus.COMPLETED

    async def _finish_run(self, run_id: int, status: RunStatus, **values: Any) -> None:
        if status != RunStatus.STOPPED:
            run = await self.storage.get_automation_run(run_id)
            if run is not None and run.status == RunStatus.STOPPED.value:
                logger.warning(f"Run {run_id} was stopped; not marking it {status.value}")
                return
        await self.storage.update_automation_run(
            run_id, status=status.value, end_time=datetime.utcnow(), **values
        )

    async def _finish_stopped(self, run_id: int, new_liens: Sequence[ScrapedLien], processed: int = 0) -> None:
        # Liens saved before the stop stay pending for the next run
        await self._finish_run(
            run_id,
            RunStatus.STOPPED,
            liens_found=len(new_liens),
            liens_processed=processed,
            error_message="Stopped by user",
        )
        await self._log(LogLevel.INFO, f"Automation run {run_id} stopped after {len(new_liens)} liens")

    async def _close_scrapers(self) -> None:
        scrapers, self._current_scrapers = self._current_scrapers, []
        for scraper in scrapers:
            try:
                await scraper.cleanup()
            except Exception as e:
                logger.error(f"Error closing scraper for {scraper.county.name}: {e}")

    async def stop_automation(self) -> bool:
        """
        Ask the current run to stop and close its browser sessions.

        The county in flight finishes its current record; no further county
        starts. Returns False if nothing was running.
        """
        if self.state in (OrchestratorState.IDLE, OrchestratorState.MAINTENANCE):
            await self._log(LogLevel.WARNING, "No automation running to stop")
            return False

        self.state = OrchestratorState.STOPPING
        self._stop_event.set()
        await self._log(LogLevel.INFO, "Stop requested - stopping automation gracefully")
        await self._close_scrapers()

        if self.current_run_id is not None:
            await self._finish_run(self.current_run_id, RunStatus.STOPPED, error_message="Stopped by user")
        return True

    async def wait_for_current_run(self) -> None:
        """Wait for a background run started with start_automation"""
        task = self._task
        if task is not None and not task.done():
            await asyncio.gather(task, return_exceptions=True)

    async def get_status(self) -> Dict[str, Any]:
        latest = await self.storage.get_latest_automation_run()
        return {"isRunning": self.is_running, "state": self.state.value, "latestRun": latest}

    # ---- Review queue ----

    async def get_failed_liens(self) -> List[ReviewQueueEntry]:
        return await self.storage.get_failed_liens()

    async def approve_failed_liens(self) -> Dict[str, Any]:
        """
        Deliver despite missing PDFs.

        Queued liens are recorded as pdf_failed (they have nothing to attach),
        every pending lien with a PDF is synced, the queue is cleared and the
        held runs are marked completed.

        Raises:
            ConflictError: a run or another maintenance task holds the slot
        """
        async with self._maintenance():
            return await self._approve_failed_liens()

    async def _approve_failed_liens(self) -> Dict[str, Any]:
        entries = await self.storage.get_failed_liens()
        if not entries:
            return {"success": True, "message": "No failed liens to process", "synced": 0, "failedPdfs": 0}

        await self._log(
            LogLevel.WARNING,
            f"Manual override: approving Airtable sync despite {len(entries)} missing PDFs",
        )
        for entry in entries:
            lien = await self.storage.create_lien(
                recording_number=entry.recording_number,
                county_id=entry.county_id,
                record_date=entry.record_date or entry.created_at,
                debtor_name=entry.debtor_name or "",
                debtor_address="",
                creditor_name="",
                creditor_address="",
                amount=entry.amount or Decimal("0"),
                document_url=entry.document_url,
                pdf_url=None,
                status=LienStatus.PDF_FAILED.value,
                failure_reason=entry.reason,
            )
            if lien.status == LienStatus.PENDING.value and not is_local_pdf_url(lien.pdf_url):
                await self.storage.update_lien_status(lien.recording_number, LienStatus.PDF_FAILED, entry.reason)

        held_runs = {entry.automation_run_id for entry in entries if entry.automation_run_id}
        await self.storage.clear_failed_liens()

        result = await self._sync_pending()

        for run_id in held_runs:
            run = await self.storage.get_automation_run(run_id)
            if run is not None and run.status == RunStatus.NEEDS_REVIEW.value:
                await self.storage.update_automation_run(
                    run_id,
                    status=RunStatus.COMPLETED.value,
                    liens_processed=result["synced"],
                    error_message=f"Approved by operator with {len(entries)} liens missing PDFs",
                )

        await self.storage.add_system_log(
            LogLevel.SUCCESS.value,
            f"Manual override complete: synced {result['synced']} liens ({len(entries)} without PDFs recorded as pdf_failed)",
            COMPONENT,
        )
        return {
            "success": True,
            "message": f"Synced {result['synced']} liens to Airtable; {len(entries)} without PDFs recorded as pdf_failed",
            "synced": result["synced"],
            "failedPdfs": len(entries),
        }

    async def reject_failed_liens(self) -> Dict[str, Any]:
        """Clear the review queue without delivering anything"""
        entries = await self.storage.get_failed_liens()
        if not entries:
            return {"success": True, "message": "No failed liens to reject", "count": 0}

        held_runs = {entry.automation_run_id for entry in entries if entry.automation_run_id}
        count = await self.storage.clear_failed_liens()
        for run_id in held_runs:
            run = await self.storage.get_automation_run(run_id)
            if run is not None and run.status == RunStatus.NEEDS_REVIEW.value:
                await self.storage.update_automation_run(
                    run_id, status=RunStatus.FAILED.value, error_message="Failed liens rejected by operator"
                )

        await self._log(LogLevel.INFO, f"Rejected and cleared {count} failed liens. No sync to Airtable.")
        return {"success": True, "message": f"Rejected and cleared {count} failed liens. No sync to Airtable.", "count": count}

    # ---- Maintenance ----

    @asynccontextmanager
    async def _maintenance(self):
        """Hold the run slot for a maintenance task"""
        self._claim(OrchestratorState.MAINTENANCE)
        try:
            yield
        finally:
            self.state = OrchestratorState.IDLE

    async def sync_pending(self) -> Dict[str, Any]:
        """
        Sync every pending lien that has a local PDF, outside an automation run.

        Raises:
            ConflictError: a run or another maintenance task holds the slot
        """
        async with self._maintenance():
            return await self._sync_pending()

    async def _sync_pending(self) -> Dict[str, Any]:
        pending =await self.storage.get_liens_by_status(LienStatus.PENDING)
        deliverable = [
            lien for lien in pending if is_local_pdf_url(lien.pdf_url) or is_local_pdf_url(lien.document_url)
        ]
        if not deliverable:
            return {"message": "No pending liens to sync", "synced": 0, "total": len(pending)}

        result = await self.sync_service.sync_liens(deliverable)
        await self.storage.add_system_log(
            LogLevel.INFO.value, f"Manual sync: {len(result.synced)} liens synced to Airtable", COMPONENT
        )
        return {
            "message": f"Successfully synced {len(result.synced)} liens to Airtable",
            "synced": len(result.synced),
            "total": len(pending),
            "result": result.to_dict(),
        }

    async def mark_stale(self, hours: Optional[int] = None) -> int:
        """Mark long-pending liens stale; raises ConflictError while the slot is held"""
        hours = hours or settings.STALE_PENDING_HOURS
        async with self._maintenance():
            count = await self.storage.mark_stale_pending_liens(hours)
        await self._log(LogLevel.INFO, f"Marked {count} stale pending liens (older than {hours} hours)")
        return count

    # ---- Schedule ----

    async def get_schedule_info(self) -> ScheduleInfo:
        schedule = await self.storage.get_schedule()
        if schedule is None:
            return ScheduleInfo.defaults()
        return ScheduleInfo.from_model(schedule)

    async def update_schedule(
        self,
        hour: int,
        minute: int,
        timezone: str = "America/New_York",
        skip_weekends: bool = False,
        is_enabled: bool = True,
    ) -> ScheduleInfo:
        """
        Validate and persist the schedule.

        The beat process reads the stored schedule on every tick, so the new
        time applies from the next minute on.

        Raises:
            ValidationError: hour, minute or timezone out of range
        """
        validate_schedule(hour, minute, timezone)
        schedule = await self.storage.save_schedule(
            name="Default Schedule",
            hour=hour,
            minute=minute,
            timezone=timezone,
            skip_weekends=skip_weekends,
            is_enabled=is_enabled,
        )
        info = ScheduleInfo.from_model(schedule)
        await self._log(LogLevel.INFO, f"Schedule updated to {info.human_readable}")
        return info

    async def ensure_schedule(self) -> ScheduleInfo:
        """Persist the default schedule if none is stored yet"""
        schedule = await self.storage.get_schedule()
        if schedule is not None:
            return ScheduleInfo.from_model(schedule)
        info = ScheduleInfo.defaults()
        await self.storage.save_schedule(
            name=info.name,
            hour=info.hour,
            minute=info.minute,
            timezone=info.timezone,
            skip_weekends=info.skip_weekends,
            is_enabled=info.is_enabled,
        )
        logger.info(f"Scheduler started - {info.human_readable}")
        return info

    async def shutdown(self) -> None:
        if self.is_running:
            await self.stop_automation()
            await self.wait_for_current_run()


_scheduler: Optional[AutomationScheduler] = None


def get_scheduler() -> AutomationScheduler:
    """Get the process-wide orchestrator"""
    global _scheduler
    if _scheduler is None:
        _scheduler = AutomationScheduler()
    return _scheduler
