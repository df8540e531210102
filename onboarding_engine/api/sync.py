"""
Offline backup and synchronization API endpoints
"""
from fastapi import APIRouter, Depends
import logging

from onboarding_engine.api.deps import get_store, get_backup_cache
from onboarding_engine.schemas.sync import BackupRequest, RestoredBackup, SyncResult
from onboarding_engine.services.offline_sync_service import offline_sync_service
from onboarding_engine.services.record_store import RecordStore
from onboarding_engine.utils.cache import LocalCache

router = APIRouter(prefix="/api/onboarding/sessions", tags=["sync"])
logger = logging.getLogger(__name__)


@router.post("/{session_id}/backup")
async def backup_progress(
    session_id: str,
    request: BackupRequest,
    store: RecordStore = Depends(get_store),
    cache: LocalCache = Depends(get_backup_cache)
):
    """Snapshot server progress into the offline cache"""
    backed_up = offline_sync_service.backup_progress(store, cache, session_id, request.user_id)
    return {"session_id": session_id, "backed_up": backed_up}


@router.get("/{session_id}/backup", response_model=RestoredBackup)
async def restore_progress(
    session_id: str,
    cache: LocalCache = Depends(get_backup_cache)
):
    """Read the offline backup; empty when none is stored"""
    return offline_sync_service.restore_progress(cache, session_id)


@router.delete("/{session_id}/backup", status_code=204)
async def clear_backup(
    session_id: str,
    cache: LocalCache = Depends(get_backup_cache)
):
    offline_sync_service.clear_backup(cache, session_id)


@router.post("/{session_id}/sync", response_model=SyncResult)
async def synchronize_progress(
    session_id: str,
    request: BackupRequest,
    store: RecordStore = Depends(get_store),
    cache: LocalCache = Depends(get_backup_cache)
):
    """
    Compare the offline backup with the server

    Conflicts are reported only; the server stays authoritative.
    """
    logger.info(f"Synchronizing session {session_id}")
    return offline_sync_service.synchronize_progress(store, cache, session_id, request.user_id)
