"""Records blocking delivery until an operator approves or rejects them"""
from sqlalchemy import Column, Integer, String, DateTime, Text, Numeric, ForeignKey
from datetime import datetime
from lien_sync.database import Base


class ReviewQueueEntry(Base):
    __tablename__ = "review_queue"

    id = Column(Integer, primary_key=True, index=True)
    recording_number = Column(String(32), nullable=False, index=True)
    county_id = Column(Integer, ForeignKey("counties.id"), nullable=True)
    automation_run_id = Column(Integer, ForeignKey("automation_runs.id"), nullable=True)
    document_url = Column(Text, nullable=True)
    reason = Column(Text, nullable=False, default="PDF download failed")

    # Scraped fields kept so an approved entry can be recorded as pdf_failed
    record_date = Column(DateTime, nullable=True)
    debtor_name = Column(Text, nullable=True)
    amount = Column(Numeric(12, 2), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
