"""System log router"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from lien_sync.routers.auth import get_current_operator
from lien_sync.routers.common import CamelModel
from lien_sync.storage import LienStorage, get_storage

router = APIRouter(prefix="/logs", tags=["Logs"])


class SystemLogResponse(CamelModel):
    id: int
    level: str
    message: str
    component: str
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="log_metadata")
    timestamp: datetime


@router.get("", response_model=List[SystemLogResponse])
async def list_logs(
    limit: int = Query(100, ge=1, le=1000),
    operator: str = Depends(get_current_operator),
    storage: LienStorage = Depends(get_storage),
):
    """Most recent system log entries, newest first"""
    logs = await storage.get_recent_system_logs(limit)
    return [SystemLogResponse.model_validate(entry) for entry in logs]
