"""Periodic automation tasks run by Celery beat"""
from tasks.celery_app import celery_app
from datetime import datetime, timezone
import asyncio
import logging

import httpx

from lien_sync.config import settings

logger = logging.getLogger(__name__)


def get_db_session():
    """Get synchronous database session"""
    from lien_sync.database import create_sync_session

    return create_sync_session()


def run_async(coro):
    """Run async coroutine in sync context"""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def load_schedule():
    """The stored schedule, or the configured defaults when none is saved"""
    from lien_sync.models import ScheduleSettings
    from lien_sync.models.schedule import GLOBAL_SCHEDULE_ID
    from lien_sync.services.scheduler import ScheduleInfo

    db = get_db_session()
    try:
        schedule = db.get(ScheduleSettings, GLOBAL_SCHEDULE_ID)
        if schedule is None:
            return ScheduleInfo.defaults()
        return ScheduleInfo.from_model(schedule)
    finally:
        db.close()


@celery_app.task
def check_schedule(now: str = None):
    """
    Queue the scheduled run when the stored schedule's minute comes around.

    Beat calls this once a minute; `now` (ISO, UTC) is only passed by tests.
    """
    if not settings.SCHEDULER_ENABLED:
        return {"status": "disabled"}

    current = datetime.fromisoformat(now) if now else datetime.now(timezone.utc)
    schedule = load_schedule()
    if not schedule.is_due(current):
        return {"status": "not_due", "schedule": schedule.human_readable}

    logger.info(f"Schedule due ({schedule.human_readable}), triggering automation")
    trigger_scheduled_run.delay()
    return {"status": "triggered", "schedule": schedule.human_readable}


@celery_app.task(bind=True, max_retries=3, default_retry_delay=60)
def trigger_scheduled_run(self):
    """
    Ask the API process to start a scheduled run.

    The orchestrator keeps its run state in the API process, so the trigger
    goes through the token-protected scheduled-trigger endpoint.
    """
    url = f"{settings.AUTOMATION_API_URL.rstrip('/')}{settings.API_PREFIX}/automation/scheduled-trigger"
    try:
        response = httpx.post(
            url,
            headers={"X-Automation-Token": settings.AUTOMATION_TOKEN or ""},
            timeout=30,
        )
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(f"Scheduled trigger failed: {e}")
        if self.request.retries < self.max_retries:
            raise self.retry(exc=e)
        return {"success": False, "error": str(e)}

    result = response.json()
    logger.info(f"Scheduled trigger response: {result.get('status')}")
    return {"success": True, **result}


@celery_app.task(bind=True, max_retries=3, default_retry_delay=60)
def mark_stale_liens(self, hours: int = None):
    """
    Move pending liens older than STALE_PENDING_HOURS to stale.

    Runs through the API process so it shares the orchestrator's run slot;
    the endpoint skips while a run or another maintenance task holds it.
    """
    url = f"{settings.AUTOMATION_API_URL.rstrip('/')}{settings.API_PREFIX}/automation/maintenance/mark-stale"
    params = {"hours": hours} if hours else None
    try:
        response = httpx.post(
            url,
            params=params,
            headers={"X-Automation-Token": settings.AUTOMATION_TOKEN or ""},
            timeout=30,
        )
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(f"Stale lien maintenance failed: {e}")
        if self.request.retries < self.max_retries:
            raise self.retry(exc=e)
        return {"success": False, "error": str(e)}

    result = response.json()
    logger.info(f"Stale lien maintenance: {result.get('message')}")
    return {"success": True, **result}


@celery_app.task
def cleanup_expired_pdfs():

    """Delete stored PDFs past the retention window"""
    from lien_sync.services.pdf_storage import PdfStore

    removed = run_async(PdfStore().cleanup())
    logger.info(f"Removed {removed} expired PDFs")
    return {"removed": removed}
