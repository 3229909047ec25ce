"""Database models package"""
from lien_sync.models.county import County, ScraperPlatform
from lien_sync.models.lien import Lien, LienStatus
from lien_sync.models.run import AutomationRun, CountyRun, RunStatus, RunType
from lien_sync.models.schedule import ScheduleSettings
from lien_sync.models.review import ReviewQueueEntry
from lien_sync.models.system_log import SystemLog, LogLevel

__all__ = [
    "County",
    "ScraperPlatform",
    "Lien",
    "LienStatus",
    "AutomationRun",
    "CountyRun",
    "RunStatus",
    "RunType",
    "ScheduleSettings",
    "ReviewQueueEntry",
    "SystemLog",
    "LogLevel",
]
