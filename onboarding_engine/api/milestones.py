"""
Achievement, badge and certificate API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List
import logging

from onboarding_engine.api.deps import get_store
from onboarding_engine.errors import DatabaseError, SessionNotFoundError
from onboarding_engine.schemas.milestone import (
    AchievementResponse, Badge, CompletionCertificate, CertificateRequest
)
from onboarding_engine.services.milestone_service import milestone_service
from onboarding_engine.services.record_store import RecordStore

router = APIRouter(prefix="/api/onboarding/sessions", tags=["milestones"])
logger = logging.getLogger(__name__)


@router.get("/{session_id}/achievements", response_model=List[AchievementResponse])
async def get_achievements(
    session_id: str,
    store: RecordStore = Depends(get_store)
):
    """Achievements earned in a session, newest first"""
    try:
        return milestone_service.get_user_achievements(store, session_id)
    except DatabaseError as e:
        logger.error(f"Failed to fetch achievements: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch achievements: {e.message}")


@router.get("/{session_id}/badges", response_model=List[Badge])
async def get_badges(
    session_id: str,
    user_id: str = Query(...),
    store: RecordStore = Depends(get_store)
):
    """Every active milestone with the user's progress towards it"""
    try:
        return milestone_service.get_available_badges(store, user_id, session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    except DatabaseError as e:
        logger.error(f"Failed to fetch badges: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch badges: {e.message}")


@router.post("/{session_id}/certificate", response_model=CompletionCertificate)
async def generate_certificate(
    session_id: str,
    request: CertificateRequest,
    store: RecordStore = Depends(get_store)
):
    """
    Issue a completion certificate

    The first certificate issued for a session is returned on every later call.
    """
    try:
        logger.info(f"Generating certificate for session {session_id}")
        return milestone_service.generate_completion_certificate(store, request.user_id, session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    except DatabaseError as e:
        logger.error(f"Failed to generate certificate: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to generate certificate: {e.message}")
