"""Schedule settings model"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from datetime import datetime
from lien_sync.database import Base

GLOBAL_SCHEDULE_ID = "global"


class ScheduleSettings(Base):
    """The single global cron schedule for automation runs"""
    __tablename__ = "schedule_settings"

    id = Column(String(255), primary_key=True, default=GLOBAL_SCHEDULE_ID)
    name = Column(String(200), nullable=False, default="Default Schedule")
    hour = Column(Integer, nullable=False, default=5)
    minute = Column(Integer, nullable=False, default=0)
    timezone = Column(String(64), nullable=False, default="America/New_York")
    skip_weekends = Column(Boolean, nullable=False, default=False)
    is_enabled = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
