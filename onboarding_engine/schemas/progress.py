"""
Pydantic schemas for step progress requests and responses
"""
from pydantic import BaseModel, Field
from typing import List, Dict, Any, Optional
from datetime import datetime

from onboarding_engine.models.enums import StepStatus
from onboarding_engine.schemas.milestone import AchievementResponse


class StepProgressPatch(BaseModel):
    """
    Field-level patch applied to a step progress row

    Only fields explicitly set are written. Maps replace the stored map
    wholesale, so callers must pre-merge if they want to keep old keys.
    """
    status: Optional[StepStatus] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    time_spent: Optional[int] = Field(None, ge=0, description="Accumulated seconds")
    attempts: Optional[int] = Field(None, ge=0)
    score: Optional[float] = None
    feedback: Optional[Dict[str, Any]] = None
    user_actions: Optional[Dict[str, Any]] = None
    step_result: Optional[Dict[str, Any]] = None
    errors: Optional[Dict[str, Any]] = None
    achievements: Optional[Dict[str, Any]] = None


class StepResult(BaseModel):
    """Outcome reported by the UI when a step finishes"""
    status: StepStatus = StepStatus.COMPLETED
    time_spent: int = Field(0, ge=0, description="Time spent in seconds")
    user_actions: Dict[str, Any] = Field(default_factory=dict)
    score: Optional[float] = None
    feedback: Optional[Dict[str, Any]] = None
    errors: Optional[Dict[str, Any]] = None
    achievements: Optional[Dict[str, Any]] = None


class StepProgressResponse(BaseModel):
    """Persisted progress of a single step"""
    id: str
    session_id: str
    step_id: str
    user_id: str
    status: StepStatus
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    time_spent: int = 0
    attempts: int = 0
    score: Optional[float] = None
    feedback: Optional[Dict[str, Any]] = None
    user_actions: Optional[Dict[str, Any]] = None
    step_result: Optional[Dict[str, Any]] = None
    errors: Optional[Dict[str, Any]] = None
    achievements: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OverallProgress(BaseModel):
    """Aggregate progress of a session, recomputed from its step rows"""
    session_id: str
    current_step_index: int = 0
    total_steps: int = 0
    completed_steps: List[str] = Field(default_factory=list)
    skipped_steps: List[str] = Field(default_factory=list)
    milestones: List[AchievementResponse] = Field(default_factory=list)
    overall_progress: float = 0.0
    time_spent: int = 0  # seconds
    last_updated: Optional[datetime] = None


# Request bodies for the progress endpoints

class StartStepRequest(BaseModel):
    """Request schema for starting a step"""
    user_id: str
    attempts: Optional[int] = Field(None, ge=1, description="Explicit attempt counter on restarts")


class UpdateStepRequest(BaseModel):
    """Request schema for in-progress updates"""
    user_id: str
    time_spent: int = Field(..., ge=0, description="Time spent in seconds")
    user_actions: Dict[str, Any] = Field(default_factory=dict)


class SkipStepRequest(BaseModel):
    """Request schema for skipping a step"""
    user_id: str
    reason: str = "user_choice"


class FailStepRequest(BaseModel):
    """Request schema for failing a step"""
    user_id: str
    errors: Dict[str, Any]
    attempts: int = Field(1, ge=0)


class CompleteStepRequest(BaseModel):
    """Request schema for recording a step result"""
    user_id: str
    result: StepResult
