"""FastAPI application entry point"""
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import os

from lien_sync.config import settings
from lien_sync.database import close_db, get_db, init_db
from lien_sync.exceptions import AppException
from lien_sync.routers import (
    auth_router,
    automation_router,
    liens_router,
    pdf_router,
    logs_router,
)
from lien_sync.services.pdf_storage import get_pdf_store
from lien_sync.services.scheduler import get_scheduler

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()
    logger.info("Database initialized")

    scheduler = get_scheduler()
    await scheduler.ensure_schedule()
    removed = await get_pdf_store().cleanup()
    if removed:
        logger.info(f"Removed {removed} expired PDFs")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await scheduler.shutdown()
    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="County recorder lien scraping and Airtable sync",
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
    openapi_url="/api/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Handle custom application exceptions"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.code,
            "message": exc.message,
            "details": exc.details,
            "path": str(request.url.path)
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
            "path": str(request.url.path)
        }
    )


# Include routers
app.include_router(auth_router, prefix=settings.API_PREFIX)
app.include_router(automation_router, prefix=settings.API_PREFIX)
app.include_router(liens_router, prefix=settings.API_PREFIX)
app.include_router(pdf_router, prefix=settings.API_PREFIX)
app.include_router(logs_router, prefix=settings.API_PREFIX)


# Health check endpoint
@app.get("/health")
@app.get(f"{settings.API_PREFIX}/health")
async def health_check():
    """Health check endpoint - verifies app is running"""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "automationRunning": get_scheduler().is_running,
    }


@app.get("/health/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """Readiness: database reachable and PDF directory writable"""
    checks = {
        "pdfStorage": os.access(get_pdf_store().storage_dir, os.W_OK),
        "airtable": settings.airtable_configured,
    }
    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = True
    except SQLAlchemyError as e:
        logger.error(f"Readiness check failed: {e}")
        checks["database"] = False

    ready = checks["database"] and checks["pdfStorage"]
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "not_ready", "checks": checks},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "lien_sync.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
