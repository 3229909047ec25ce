"""Database engine, session factories and table creation

The API and the scrapers share the async engine. Celery beat tasks run
outside the event loop and get a plain synchronous session instead.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from typing import AsyncGenerator
import logging

from lien_sync.config import settings

logger = logging.getLogger(__name__)


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def sync_database_url(url: str = None) -> str:
    """The same database, addressed through a synchronous driver"""
    url = url or settings.DATABASE_URL
    return url.replace("+aiosqlite", "").replace("+asyncpg", "+psycopg2")


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
    future=True,
)
if _is_sqlite(settings.DATABASE_URL):
    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


def create_sync_session() -> Session:
    """Short-lived synchronous session for Celery tasks"""
    url = sync_database_url()
    sync_engine = create_engine(url)
    if _is_sqlite(url):
        event.listen(sync_engine, "connect", _enable_sqlite_foreign_keys)
    return sessionmaker(bind=sync_engine, autoflush=False)()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; commits on success"""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Database error: {e}")
            await session.rollback()
            raise


async def init_db() -> None:
    """Create any missing tables"""
    # Registers every model on Base.metadata
    import lien_sync.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Tables ready: {', '.join(sorted(Base.metadata.tables))}")


async def close_db() -> None:
    await engine.dispose()
