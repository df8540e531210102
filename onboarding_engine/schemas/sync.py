"""
Pydantic schemas for offline backup and synchronization
"""
from pydantic import BaseModel, Field
from typing import List, Optional, Literal
from datetime import datetime

from onboarding_engine.models.enums import ConflictResolution
from onboarding_engine.schemas.milestone import AchievementResponse
from onboarding_engine.schemas.progress import OverallProgress


class BackupSnapshot(BaseModel):
    """Local, non-authoritative mirror of a session, overwritten on each backup"""
    session_id: str
    user_id: str
    progress: OverallProgress
    achievements: List[AchievementResponse] = Field(default_factory=list)
    last_backup: datetime
    version: str = "1.0"


class RestoredBackup(BaseModel):
    """Result of reading the local cache; all empty when nothing usable is stored"""
    progress: Optional[OverallProgress] = None
    achievements: List[AchievementResponse] = Field(default_factory=list)
    last_backup: Optional[datetime] = None


class SyncConflict(BaseModel):
    """A detected divergence between the local cache and the server"""
    type: Literal["progress", "achievement"]
    local: Optional[OverallProgress] = None
    server: OverallProgress
    resolution: ConflictResolution


class SyncResult(BaseModel):
    """Outcome of a synchronization run"""
    synchronized: bool
    conflicts: List[SyncConflict] = Field(default_factory=list)


class BackupRequest(BaseModel):
    """Request schema for backup and synchronization"""
    user_id: str
