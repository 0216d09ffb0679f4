"""
Offline Sync API Router.

Connectivity/queue status and a manual trigger for replaying pending
operations as the signed-in user.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends

from core.api.auth import CurrentUser, UserBackendDep
from modules.directory.schemas.employee import (
    DirectoryStatusResponse,
    Notice,
    SyncResultResponse,
)
from modules.directory.services.directory import DirectoryService, get_directory_service
from modules.directory.services.sync import SyncResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["Sync"])

DirectoryServiceDep = Annotated[DirectoryService, Depends(get_directory_service)]


def _notice_for(result: SyncResult) -> Optional[Notice]:
    if result.status == "synced":
        return Notice(level="success", message=result.message or "")
    if result.status in ("failed", "offline") and result.message:
        return Notice(level="error", message=result.message)
    if result.status == "busy":
        return Notice(level="info", message=result.message or "Sync already in progress")
    return None


@router.get("/status", response_model=DirectoryStatusResponse)
async def get_sync_status(
    current_user: CurrentUser,
    service: DirectoryServiceDep,
) -> DirectoryStatusResponse:
    """Online flag, syncing flag and number of queued operations."""
    state = await service.status()
    return DirectoryStatusResponse(
        online=state.online,
        syncing=state.syncing,
        pending_operations=state.pending_count,
        last_change=state.last_change,
        last_latency_ms=state.last_latency_ms,
    )


@router.post("", response_model=SyncResultResponse)
async def trigger_sync(
    current_user: CurrentUser,
    backend: UserBackendDep,
    service: DirectoryServiceDep,
) -> SyncResultResponse:
    """Replay pending operations now."""
    if not service.monitor.is_online:
        await service.monitor.check_now()
    if not service.monitor.is_online:
        result = SyncResult(
            status="offline",
            total=await service.cache.count_pending_operations(),
            message="Cannot sync while offline",
        )
    else:
        # joins the reconnect replay check_now() may have just started
        result = await service.sync(backend)

    logger.info(f"Manual sync by {current_user.user.id}: {result.status}")
    return SyncResultResponse(
        status=result.status,
        synced=result.synced,
        total=result.total,
        failed_operation=result.failed_operation,
        message=result.message,
        notice=_notice_for(result),
        progress_notice=Notice(level="info", message=result.progress) if result.progress else None,
    )
