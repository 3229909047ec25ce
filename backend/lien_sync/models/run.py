"""Automation run audit models"""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
from lien_sync.database import Base


class RunType(str, enum.Enum):
    SCHEDULED = "scheduled"
    MANUAL = "manual"


class RunStatus(str, enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    NEEDS_REVIEW = "needs_review"
    FAILED = "failed"
    STOPPED = "stopped"


class AutomationRun(Base):
    """One orchestration pass over all active counties"""
    __tablename__ = "automation_runs"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(20), nullable=False)
    status = Column(String(20), default=RunStatus.RUNNING.value, nullable=False, index=True)
    start_time = Column(DateTime, default=datetime.utcnow, nullable=False)
    end_time = Column(DateTime, nullable=True)
    liens_found = Column(Integer, default=0)
    liens_processed = Column(Integer, default=0)
    liens_over_20k = Column(Integer, default=0)
    error_message = Column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    run_metadata = Column("metadata", JSON, nullable=True)

    county_runs = relationship("CountyRun", back_populates="automation_run")


class CountyRun(Base):
    """One county's share of an automation run"""
    __tablename__ = "county_runs"

    id = Column(Integer, primary_key=True, index=True)
    county_id = Column(Integer, ForeignKey("counties.id"), nullable=False)
    automation_run_id = Column(Integer, ForeignKey("automation_runs.id"), nullable=False, index=True)
    status = Column(String(20), default=RunStatus.RUNNING.value, nullable=False)
    start_time = Column(DateTime, default=datetime.utcnow, nullable=False)
    end_time = Column(DateTime, nullable=True)
    liens_found = Column(Integer, default=0)
    liens_processed = Column(Integer, default=0)
    error_message = Column(Text, nullable=True)
    run_metadata = Column("metadata", JSON, nullable=True)

    automation_run = relationship("AutomationRun", back_populates="county_runs")
