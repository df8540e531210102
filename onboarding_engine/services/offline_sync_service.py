"""
Offline backup and synchronization service
Mirrors session progress into a local cache and reports divergence on reconnect
"""
import json
import logging
from typing import Optional

from onboarding_engine.config import settings
from onboarding_engine.models.enums import ConflictResolution
from onboarding_engine.schemas.milestone import AchievementResponse
from onboarding_engine.schemas.sync import BackupSnapshot, RestoredBackup, SyncConflict, SyncResult
from onboarding_engine.services.analytics_service import analytics_service
from onboarding_engine.services.milestone_service import milestone_service
from onboarding_engine.services.record_store import RecordStore
from onboarding_engine.utils.cache import LocalCache, backup_key
from onboarding_engine.utils.clock import as_naive_utc, utcnow

logger = logging.getLogger(__name__)


class OfflineSyncService:
    """
    Service for the local progress backup

    The Record Store is the source of truth. The cache is overwritten
    wholesale on each backup. Nothing here raises: a missing cache (None)
    or an unavailable one turns every operation into a no-op.
    """

    def backup_progress(
        self,
        store: RecordStore,
        cache: Optional[LocalCache],
        session_id: str,
        user_id: str
    ) -> bool:
        """
        Snapshot current server progress into the local cache

        Returns:
            True if the snapshot was written
        """
        if cache is None:
            return False

        try:
            progress = analytics_service.get_overall_progress(store, session_id)
            achievements = milestone_service.get_user_achievements(store, session_id)

            snapshot = BackupSnapshot(
                session_id=session_id,
                user_id=user_id,
                progress=progress,
                achievements=[AchievementResponse.model_validate(a) for a in achievements],
                last_backup=utcnow(),
                version=settings.BACKUP_VERSION
            )

            written = cache.set(backup_key(session_id), snapshot.model_dump_json())
            if written:
                logger.info(f"Progress backed up for session {session_id}")
            return bool(written)

        except Exception as e:
            logger.warning(f"Failed to backup progress for session {session_id}: {str(e)}")
            return False

    def restore_progress(self, cache: Optional[LocalCache], session_id: str) -> RestoredBackup:
        """
        Read the local backup

        Returns an empty RestoredBackup when nothing usable is stored.
        """
        if cache is None:
            return RestoredBackup()

        try:
            raw = cache.get(backup_key(session_id))
            if not raw:
                return RestoredBackup()

            data = json.loads(raw)
            return RestoredBackup(
                progress=data.get("progress") or None,
                achievements=data.get("achievements") or [],
                last_backup=data.get("last_backup") or None
            )
        except Exception as e:
            logger.warning(f"Failed to restore progress for session {session_id}: {str(e)}")
            return RestoredBackup()

    def synchronize_progress(
        self,
        store: RecordStore,
        cache: Optional[LocalCache],
        session_id: str,
        user_id: str
    ) -> SyncResult:
        """
        Compare the local backup against the server and refresh the backup

        A conflict is reported when the backup time and the server's
        last update differ by more than the configured tolerance. Conflicts
        are reported only; neither side's data is applied to the other.
        The cache is then overwritten with current server state.
        """
        try:
            backup = self.restore_progress(cache, session_id)
            server_progress = analytics_service.get_overall_progress(store, session_id)

            conflicts = []

            if backup.progress and backup.last_backup and server_progress.last_updated:
                backup_time = as_naive_utc(backup.last_backup)
                server_time = as_naive_utc(server_progress.last_updated)
                delta = (backup_time - server_time).total_seconds()

                if abs(delta) > settings.SYNC_CONFLICT_TOLERANCE_SECONDS:
                    resolution = (
                        ConflictResolution.LOCAL_WINS if delta > 0
                        else ConflictResolution.SERVER_WINS
                    )
                    conflicts.append(SyncConflict(
                        type="progress",
                        local=backup.progress,
                        server=server_progress,
                        resolution=resolution
                    ))
                    logger.warning(
                        f"Progress conflict for session {session_id}: "
                        f"delta={delta:.0f}s, resolution={resolution.value}"
                    )

            self.backup_progress(store, cache, session_id, user_id)

            logger.info(f"Synchronized session {session_id} with {len(conflicts)} conflicts")
            return SyncResult(synchronized=True, conflicts=conflicts)

        except Exception as e:
            logger.warning(f"Failed to synchronize progress for session {session_id}: {str(e)}")
            return SyncResult(synchronized=False, conflicts=[])

    def clear_backup(self, cache: Optional[LocalCache], session_id: str) -> None:
        """Evict the local backup of a session"""
        if cache is None:
            return

        try:
            cache.remove(backup_key(session_id))
            logger.info(f"Cleared progress backup for session {session_id}")
        except Exception as e:
            logger.warning(f"Failed to clear backup for session {session_id}: {str(e)}")


# Global instance
offline_sync_service = OfflineSyncService()
