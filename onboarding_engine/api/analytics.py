"""
Blocker and progress report API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from typing import List
import logging

from onboarding_engine.api.deps import get_store
from onboarding_engine.errors import DatabaseError, SessionNotFoundError
from onboarding_engine.schemas.analytics import ProgressReport
from onboarding_engine.schemas.blocker import Blocker
from onboarding_engine.services.analytics_service import analytics_service
from onboarding_engine.services.blocker_service import blocker_service
from onboarding_engine.services.record_store import RecordStore

router = APIRouter(prefix="/api/onboarding/sessions", tags=["analytics"])
logger = logging.getLogger(__name__)


@router.get("/{session_id}/blockers", response_model=List[Blocker])
async def get_blockers(
    session_id: str,
    store: RecordStore = Depends(get_store)
):
    """
    Identify what is holding a user back

    Returns:
    - Per-step blockers (stuck, repeated attempts, failures, skips)
    - Pattern blockers across the session (slow progress, abandonment)
    """

    try:
        logger.info(f"Identifying blockers for session {session_id}")

        return blocker_service.identify_blockers(store, session_id)

    except DatabaseError as e:
        logger.error(f"Failed to identify blockers: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to identify blockers: {e.message}"
        )


@router.get("/{session_id}/report", response_model=ProgressReport)
async def get_progress_report(
    session_id: str,
    store: RecordStore = Depends(get_store)
):
    """
    Generate a scored progress report

    Returns:
    - Overall progress and achievements
    - Completion, skip and failure rates
    - Engagement and difficulty scores with trends
    - Recommendations
    """

    try:
        logger.info(f"Generating progress report for session {session_id}")

        return analytics_service.generate_progress_report(store, session_id)

    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    except DatabaseError as e:
        logger.error(f"Failed to generate progress report: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to generate progress report: {e.message}"
        )
