"""County and scraper platform models"""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from lien_sync.database import Base


class ScraperPlatform(Base):
    """A family of county websites sharing page structure and default scraping config"""
    __tablename__ = "scraper_platforms"

    # Stable platform identifier, e.g. "maricopa-legacy" or "landmark-web"
    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    default_config = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    counties = relationship("County", back_populates="platform")


class County(Base):
    """A county recorder site to scrape"""
    __tablename__ = "counties"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    state = Column(String(2), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Overrides merged on top of the platform's default_config
    config = Column(JSON, nullable=False, default=dict)

    scraper_platform_id = Column(String(64), ForeignKey("scraper_platforms.id"), nullable=True)

    # Airtable record id used for the linked "County" field
    airtable_county_id = Column(String(64), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    platform = relationship("ScraperPlatform", back_populates="counties")
