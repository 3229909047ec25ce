"""Persisted lien model"""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, Numeric, ForeignKey
from datetime import datetime
import enum
from lien_sync.database import Base


class LienStatus(str, enum.Enum):
    PENDING = "pending"
    STALE = "stale"
    PDF_FAILED = "pdf_failed"
    SYNCED = "synced"
    MAILER_SENT = "mailer_sent"


class Lien(Base):
    """A recorded lien whose PDF has been captured locally"""
    __tablename__ = "liens"

    id = Column(Integer, primary_key=True, index=True)
    county_id = Column(Integer, ForeignKey("counties.id"), nullable=False, index=True)

    # The county's natural key; uniqueness is the de-duplication mechanism
    recording_number = Column(String(32), unique=True, nullable=False, index=True)
    record_date = Column(DateTime, nullable=False)

    debtor_name = Column(Text, nullable=False, default="")
    debtor_address = Column(Text, nullable=True)
    creditor_name = Column(Text, nullable=True)
    creditor_address = Column(Text, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False, default=0)

    document_url = Column(Text, nullable=True)  # Source page/PDF on the county site
    pdf_url = Column(Text, nullable=True)  # Local /api/pdf/{id} URL

    status = Column(String(20), default=LienStatus.PENDING.value, nullable=False, index=True)
    failure_reason = Column(Text, nullable=True)
    airtable_record_id = Column(String(64), nullable=True)
    enrichment_data = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
