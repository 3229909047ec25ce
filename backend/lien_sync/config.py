"""Application configuration using pydantic-settings"""
from functools import lru_cache
from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import field_validator
import logging

logger = logging.getLogger(__name__)

# Persistent development secret key - stable across restarts
# In production, this MUST be overridden via SECRET_KEY environment variable
_DEV_SECRET_KEY = "dev-secret-key-for-local-development-only-change-in-production"

ALLOWED_TIMEZONES = (
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "County Lien Sync"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # API
    API_PREFIX: str = "/api"
    ALLOWED_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    # Public origin the downstream store uses to fetch PDFs
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./lien_sync.db"
    DATABASE_ECHO: bool = False

    # JWT verification (tokens are issued by the dashboard's auth service)
    SECRET_KEY: str = _DEV_SECRET_KEY
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12

    # Shared secret for the external cron trigger
    AUTOMATION_TOKEN: Optional[str] = None
    # Where the Celery beat worker reaches this API
    AUTOMATION_API_URL: str = "http://localhost:8000"

    # PDF store
    PDF_STORAGE_DIR: str = "./storage/pdfs"
    PDF_RETENTION_DAYS: int = 7
    PDF_MIN_BYTES: int = 10000
    PDF_REDOWNLOAD_URL_PATTERN: str = (
        "https://legacy.recorder.maricopa.gov/UnOfficialDocs/pdf/{recordingNumber}.pdf"
    )

    # Browser Automation
    BROWSER_HEADLESS: bool = True
    BROWSER_TIMEOUT: int = 30000
    BROWSER_LAUNCH_ATTEMPTS: int = 3
    BROWSER_LAUNCH_BACKOFF_SECONDS: float = 5
    BROWSER_EXECUTABLE_CANDIDATES: str = "chromium,chromium-browser,google-chrome,google-chrome-stable"

    # PDF acquisition
    PDF_DOWNLOAD_MAX_ATTEMPTS: int = 3
    PDF_DOWNLOAD_BASE_DELAY_SECONDS: float = 2
    PDF_FETCH_TIMEOUT_SECONDS: float = 30
    PDF_RESPONSE_CAPTURE_TIMEOUT_SECONDS: float = 2

    # Orchestration
    SCRAPER_INIT_TIMEOUT_SECONDS: float = 60
    SCRAPER_RUN_TIMEOUT_SECONDS: float = 900
    SCRAPER_RUN_TIMEOUT_PRODUCTION_SECONDS: float = 1800
    STALE_PENDING_HOURS: int = 48

    # Schedule defaults (used until a schedule row is saved)
    SCHEDULE_DEFAULT_HOUR: int = 5
    SCHEDULE_DEFAULT_MINUTE: int = 0
    SCHEDULE_DEFAULT_TIMEZONE: str = "America/New_York"
    SCHEDULER_ENABLED: bool = True

    # Airtable
    AIRTABLE_API_KEY: Optional[str] = None
    AIRTABLE_BASE_ID: Optional[str] = None
    AIRTABLE_TABLE_ID: Optional[str] = None
    AIRTABLE_API_URL: str = "https://api.airtable.com/v0"
    AIRTABLE_BATCH_SIZE: int = 10
    AIRTABLE_TIMEOUT_SECONDS: float = 30

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_secret_key(cls, v: str, info) -> str:
        environment = info.data.get("ENVIRONMENT", "development")
        if environment == "production":
            if v == _DEV_SECRET_KEY:
                raise ValueError(
                    "SECRET_KEY must be set via environment variable in production. "
                    "Do not use the default development key."
                )
            if len(v) < 32:
                raise ValueError("SECRET_KEY must be at least 32 characters in production")
        elif v == _DEV_SECRET_KEY:
            logger.warning(
                "Using default development SECRET_KEY. This is fine for development, "
                "but MUST be overridden in production via the SECRET_KEY environment variable."
            )
        return v

    @field_validator("AIRTABLE_BATCH_SIZE")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        # Airtable rejects more than 10 records per request
        if v < 1 or v > 10:
            raise ValueError("AIRTABLE_BATCH_SIZE must be between 1 and 10")
        return v

    @field_validator("SCHEDULE_DEFAULT_TIMEZONE")
    @classmethod
    def validate_default_timezone(cls, v: str) -> str:
        if v not in ALLOWED_TIMEZONES:
            raise ValueError(f"SCHEDULE_DEFAULT_TIMEZONE must be one of {', '.join(ALLOWED_TIMEZONES)}")
        return v

    @property
    def allowed_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    @property
    def browser_executable_candidates_list(self) -> List[str]:
        return [name.strip() for name in self.BROWSER_EXECUTABLE_CANDIDATES.split(",") if name.strip()]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def scraper_run_timeout(self) -> float:
        """Scrape timeout per county; production sites are slower to page through"""
        if self.is_production:
            return self.SCRAPER_RUN_TIMEOUT_PRODUCTION_SECONDS
        return self.SCRAPER_RUN_TIMEOUT_SECONDS

    @property
    def airtable_configured(self) -> bool:
        return bool(self.AIRTABLE_API_KEY and self.AIRTABLE_BASE_ID and self.AIRTABLE_TABLE_ID)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
