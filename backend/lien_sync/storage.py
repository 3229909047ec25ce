"""Data access for liens, runs, schedule, review queue and system logs"""
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, AsyncGenerator, Dict, Iterable, List, Optional
import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lien_sync.config import settings
from lien_sync.database import async_session_maker
from lien_sync.models import (
    AutomationRun,
    County,
    CountyRun,
    Lien,
    LienStatus,
    ReviewQueueEntry,
    ScheduleSettings,
    ScraperPlatform,
    SystemLog,
)
from lien_sync.models.schedule import GLOBAL_SCHEDULE_ID

logger = logging.getLogger(__name__)


class LienStorage:
    """
    Async data-access layer used by the scrapers, the orchestrator and the routers.

    Each call opens its own short-lived session so that work persisted by a
    scraper survives even if a later step in the same run fails.
    """

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or async_session_maker

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    # ---- Schedule ----

    async def get_schedule(self) -> Optional[ScheduleSettings]:
        async with self.session() as session:
            return await session.get(ScheduleSettings, GLOBAL_SCHEDULE_ID)

    async def save_schedule(self, **values: Any) -> ScheduleSettings:
        async with self.session() as session:
            schedule = await session.get(ScheduleSettings, GLOBAL_SCHEDULE_ID)
            if schedule is None:
                schedule = ScheduleSettings(id=GLOBAL_SCHEDULE_ID)
                session.add(schedule)
            for key, value in values.items():
                setattr(schedule, key, value)
            schedule.updated_at = datetime.utcnow()
            await session.flush()
            return schedule

    # ---- Counties & platforms ----

    async def get_county(self, county_id: int) -> Optional[County]:
        async with self.session() as session:
            return await session.get(County, county_id)

    async def get_active_counties(self) -> List[County]:
        async with self.session() as session:
            result = await session.execute(
                select(County).where(County.is_active.is_(True)).order_by(County.id)
            )
            return list(result.scalars().all())

    async def get_platform(self, platform_id: str) -> Optional[ScraperPlatform]:
        async with self.session() as session:
            return await session.get(ScraperPlatform, platform_id)

    async def create_platform(self, **values: Any) -> ScraperPlatform:
        async with self.session() as session:
            platform = ScraperPlatform(**values)
            session.add(platform)
            await session.flush()
            return platform

    async def create_county(self, **values: Any) -> County:
        async with self.session() as session:
            county = County(**values)
            session.add(county)
            await session.flush()
            return county

    # ---- Liens ----

    async def create_lien(self, **values: Any) -> Lien:
        """
        Insert a lien, or return the existing row for the same recording number.

        The unique constraint on recording_number is the de-duplication
        mechanism, so a concurrent or repeated insert never raises.
        """
        recording_number = values["recording_number"]
        try:
            async with self.session() as session:
                lien = Lien(**values)
                session.add(lien)
                await session.flush()
                logger.debug(f"Saved lien {recording_number}")
                return lien
        except IntegrityError:
            logger.info(f"Lien {recording_number} already exists, returning existing record")
            existing = await self.get_lien_by_recording_number(recording_number)
            if existing is None:
                raise
            return existing

    async def get_lien_by_recording_number(self, recording_number: str) -> Optional[Lien]:
        async with self.session() as session:
            result = await session.execute(
                select(Lien).where(Lien.recording_number == recording_number)
            )
            return result.scalar_one_or_none()

    async def get_liens_by_status(self, status: LienStatus) -> List[Lien]:
        async with self.session() as session:
            result = await session.execute(
                select(Lien).where(Lien.status == status.value).order_by(Lien.created_at, Lien.id)
            )
            return list(result.scalars().all())

    async def update_lien_status(
        self,
        recording_number: str,
        status: LienStatus,
        failure_reason: Optional[str] = None,
    ) -> None:
        values: Dict[str, Any] = {"status": status.value, "updated_at": datetime.utcnow()}
        if failure_reason is not None:
            values["failure_reason"] = failure_reason
        async with self.session() as session:
            await session.execute(
                update(Lien).where(Lien.recording_number == recording_number).values(**values)
            )

    async def mark_lien_synced(self, recording_number: str, airtable_record_id: str) -> None:
        async with self.session() as session:
            await session.execute(
                update(Lien)
                .where(Lien.recording_number == recording_number)
                .values(
                    status=LienStatus.SYNCED.value,
                    airtable_record_id=airtable_record_id,
                    failure_reason=None,
                    updated_at=datetime.utcnow(),
                )
            )

    async def get_stale_pending_liens(self, hours: Optional[int] = None) -> List[Lien]:
        cutoff = datetime.utcnow() - timedelta(hours=hours or settings.STALE_PENDING_HOURS)
        async with self.session() as session:
            result = await session.execute(
                select(Lien)
                .where(Lien.status == LienStatus.PENDING.value, Lien.created_at < cutoff)
                .order_by(Lien.created_at)
            )
            return list(result.scalars().all())

    async def mark_stale_pending_liens(self, hours: Optional[int] = None) -> int:
        """Move pending liens older than the cutoff to stale; returns how many moved"""
        cutoff = datetime.utcnow() - timedelta(hours=hours or settings.STALE_PENDING_HOURS)
        async with self.session() as session:
            result = await session.execute(
                update(Lien)
                .where(Lien.status == LienStatus.PENDING.value, Lien.created_at < cutoff)
                .values(status=LienStatus.STALE.value, updated_at=datetime.utcnow())
            )
            return result.rowcount or 0

    async def get_status_counts(self) -> Dict[str, int]:
        async with self.session() as session:
            result = await session.execute(
                select(Lien.status, func.count(Lien.id)).group_by(Lien.status)
            )
            counts = {status.value: 0 for status in LienStatus}
            for status, count in result.all():
                counts[status] = count
            return counts

    # ---- Automation runs ----

    async def create_automation_run(self, run_type: str, metadata: Optional[Dict[str, Any]] = None) -> AutomationRun:
        async with self.session() as session:
            run = AutomationRun(type=run_type, start_time=datetime.utcnow(), run_metadata=metadata)
            session.add(run)
            await session.flush()
            return run

    async def update_automation_run(self, run_id: int, **values: Any) -> None:
        if "metadata" in values:
            values["run_metadata"] = values.pop("metadata")
        async with self.session() as session:
            await session.execute(update(AutomationRun).where(AutomationRun.id == run_id).values(**values))

    async def get_automation_run(self, run_id: int) -> Optional[AutomationRun]:
        async with self.session() as session:
            return await session.get(AutomationRun, run_id)

    async def get_latest_automation_run(self) -> Optional[AutomationRun]:
        async with self.session() as session:
            result = await session.execute(
                select(AutomationRun).order_by(AutomationRun.start_time.desc(), AutomationRun.id.desc()).limit(1)
            )
            return result.scalar_one_or_none()

    async def get_recent_automation_runs(self, limit: int = 20) -> List[AutomationRun]:
        async with self.session() as session:
            result = await session.execute(
                select(AutomationRun).order_by(AutomationRun.start_time.desc(), AutomationRun.id.desc()).limit(limit)
            )
            return list(result.scalars().all())

    async def create_county_run(self, county_id: int, automation_run_id: int) -> CountyRun:
        async with self.session() as session:
            county_run = CountyRun(
                county_id=county_id,
                automation_run_id=automation_run_id,
                start_time=datetime.utcnow(),
            )
            session.add(county_run)
            await session.flush()
            return county_run

    async def update_county_run(self, county_run_id: int, **values: Any) -> None:
        if "metadata" in values:
            values["run_metadata"] = values.pop("metadata")
        async with self.session() as session:
            await session.execute(update(CountyRun).where(CountyRun.id == county_run_id).values(**values))

    async def get_county_runs(self, automation_run_id: int) -> List[CountyRun]:
        async with self.session() as session:
            result = await session.execute(
                select(CountyRun).where(CountyRun.automation_run_id == automation_run_id).order_by(CountyRun.id)
            )
            return list(result.scalars().all())

    # ---- Review queue ----

    async def set_failed_liens(self, entries: Iterable[Dict[str, Any]]) -> int:
        """Replace the review queue with the given entries"""
        entries = list(entries)
        async with self.session() as session:
            await session.execute(delete(ReviewQueueEntry))
            session.add_all(ReviewQueueEntry(**entry) for entry in entries)
        return len(entries)

    async def get_failed_liens(self) -> List[ReviewQueueEntry]:
        async with self.session() as session:
            result = await session.execute(select(ReviewQueueEntry).order_by(ReviewQueueEntry.id))
            return list(result.scalars().all())

    async def clear_failed_liens(self) -> int:
        async with self.session() as session:
            result = await session.execute(delete(ReviewQueueEntry))
            return result.rowcount or 0

    # ---- System log ----

    async def add_system_log(
        self,
        level: str,
        message: str,
        component: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        async with self.session() as session:
            session.add(SystemLog(level=level, message=message, component=component, log_metadata=metadata))

    async def get_recent_system_logs(self, limit: int = 100) -> List[SystemLog]:
        async with self.session() as session:
            result = await session.execute(
                select(SystemLog).order_by(SystemLog.timestamp.desc(), SystemLog.id.desc()).limit(limit)
            )
            return list(result.scalars().all())


_storage: Optional[LienStorage] = None


def get_storage() -> LienStorage:
    """Get the process-wide storage instance"""
    global _storage
    if _storage is None:
        _storage = LienStorage()
    return _storage
