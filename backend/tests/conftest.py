"""Shared fixtures: a throwaway database, PDF store and sample PDFs"""
import os
import sys
import tempfile

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Must be set before lien_sync.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PDF_STORAGE_DIR", tempfile.mkdtemp(prefix="lien-sync-pdfs-"))
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")
os.environ.pop("AIRTABLE_API_KEY", None)
os.environ.pop("AUTOMATION_TOKEN", None)

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

import lien_sync.models  # noqa: F401
from lien_sync.database import Base
from lien_sync.services.pdf_storage import PdfStore
from lien_sync.storage import LienStorage


def make_pdf(size: int = 12000) -> bytes:
    """Bytes that pass the PDF magic and size checks"""
    header = b"%PDF-1.4\n"
    return header + b"0" * max(size - len(header), 0)


@pytest.fixture
def pdf_bytes() -> bytes:
    return make_pdf()


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def storage(session_factory) -> LienStorage:
    return LienStorage(session_factory)


@pytest.fixture
def pdf_store(tmp_path) -> PdfStore:
    return PdfStore(storage_dir=str(tmp_path / "pdfs"))


@pytest.fixture
async def maricopa(storage):
    """A legacy-platform county with a linked Airtable county record"""
    await storage.create_platform(
        id="maricopa-legacy",
        name="Legacy Recorder",
        default_config={
            "defaultDocumentType": "HL",
            "delays": {"pageLoadWait": 1000},
            "rateLimit": {"maxPagesPerRun": 5},
        },
    )
    return await storage.create_county(
        name="Maricopa",
        state="AZ",
        scraper_platform_id="maricopa-legacy",
        airtable_county_id="recMaricopa",
        config={"baseUrl": "https://legacy.recorder.maricopa.gov"},
    )


@pytest.fixture
def pdf_factory():
    return make_pdf
