"""
Step progress API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
import logging

from onboarding_engine.api.deps import get_store
from onboarding_engine.errors import DatabaseError, SessionNotFoundError
from onboarding_engine.schemas.progress import (
    StartStepRequest, UpdateStepRequest, SkipStepRequest,
    FailStepRequest, CompleteStepRequest, StepProgressResponse, OverallProgress
)
from onboarding_engine.services.analytics_service import analytics_service
from onboarding_engine.services.progress_recorder import progress_recorder
from onboarding_engine.services.record_store import RecordStore

router = APIRouter(prefix="/api/onboarding/sessions", tags=["progress"])
logger = logging.getLogger(__name__)


def _database_failure(action: str, error: DatabaseError) -> HTTPException:
    logger.error(f"Failed to {action}: {str(error)}")
    return HTTPException(status_code=500, detail=f"Failed to {action}: {error.message}")


@router.post("/{session_id}/steps/{step_id}/start", response_model=StepProgressResponse)
async def start_step(
    session_id: str,
    step_id: str,
    request: StartStepRequest,
    store: RecordStore = Depends(get_store)
):
    """Mark a step as in progress"""
    try:
        return progress_recorder.start_step(
            store, session_id, step_id, request.user_id, attempts=request.attempts
        )
    except DatabaseError as e:
        raise _database_failure("start step", e)


@router.post("/{session_id}/steps/{step_id}/progress", response_model=StepProgressResponse)
async def update_step_progress(
    session_id: str,
    step_id: str,
    request: UpdateStepRequest,
    store: RecordStore = Depends(get_store)
):
    """
    Update time spent and user actions on an in-progress step

    Time spent never decreases while the step stays in progress.
    """
    try:
        return progress_recorder.update_step_progress(
            store, session_id, step_id, request.user_id,
            request.time_spent, request.user_actions
        )
    except DatabaseError as e:
        raise _database_failure("update step progress", e)


@router.post("/{session_id}/steps/{step_id}/skip", response_model=StepProgressResponse)
async def skip_step(
    session_id: str,
    step_id: str,
    request: SkipStepRequest,
    store: RecordStore = Depends(get_store)
):
    try:
        return progress_recorder.skip_step(store, session_id, step_id, request.user_id, request.reason)
    except DatabaseError as e:
        raise _database_failure("skip step", e)


@router.post("/{session_id}/steps/{step_id}/fail", response_model=StepProgressResponse)
async def fail_step(
    session_id: str,
    step_id: str,
    request: FailStepRequest,
    store: RecordStore = Depends(get_store)
):
    """Mark a step as failed with structured errors"""
    try:
        return progress_recorder.fail_step(
            store, session_id, step_id, request.user_id, request.errors, request.attempts
        )
    except DatabaseError as e:
        raise _database_failure("fail step", e)


@router.post("/{session_id}/steps/{step_id}/complete", response_model=StepProgressResponse)
async def complete_step(
    session_id: str,
    step_id: str,
    request: CompleteStepRequest,
    store: RecordStore = Depends(get_store)
):
    """
    Record a step outcome

    - Persists the result
    - Awards any milestones now met (completed steps only)
    - Recomputes the session aggregate
    """
    try:
        return progress_recorder.record_step_completion(
            store, session_id, step_id, request.user_id, request.result
        )
    except DatabaseError as e:
        raise _database_failure("record step completion", e)


@router.get("/{session_id}/progress", response_model=OverallProgress)
async def get_overall_progress(
    session_id: str,
    store: RecordStore = Depends(get_store)
):
    """Aggregate progress across the session's path"""
    try:
        return analytics_service.get_overall_progress(store, session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    except DatabaseError as e:
        raise _database_failure("get overall progress", e)
