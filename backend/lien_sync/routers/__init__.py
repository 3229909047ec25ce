"""API routers package"""
from lien_sync.routers.auth import router as auth_router
from lien_sync.routers.automation import router as automation_router
from lien_sync.routers.liens import router as liens_router
from lien_sync.routers.pdf import router as pdf_router
from lien_sync.routers.logs import router as logs_router

__all__ = [
    "auth_router",
    "automation_router",
    "liens_router",
    "pdf_router",
    "logs_router",
]
