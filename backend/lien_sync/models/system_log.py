"""Operator-facing system log"""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from datetime import datetime
import enum
from lien_sync.database import Base


class LogLevel(str, enum.Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


class SystemLog(Base):
    """Run-level milestones surfaced on the dashboard log viewer"""
    __tablename__ = "system_logs"

    id = Column(Integer, primary_key=True, index=True)
    level = Column(String(20), nullable=False)
    message = Column(Text, nullable=False)
    component = Column(String(50), nullable=False)
    log_metadata = Column("metadata", JSON, nullable=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
