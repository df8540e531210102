"""
Shared FastAPI dependencies
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from onboarding_engine.database import get_db
from onboarding_engine.services.record_store import RecordStore, SqlRecordStore
from onboarding_engine.utils.cache import LocalCache, backup_cache


def get_store(db: Session = Depends(get_db)) -> RecordStore:
    """Record store bound to the request's database session"""
    return SqlRecordStore(db)


def get_backup_cache() -> LocalCache:
    """Local cache holding offline backups"""
    return backup_cache
