"""
Pydantic schemas for progress analytics reports
"""
from pydantic import BaseModel
from typing import List
from datetime import datetime

from onboarding_engine.models.enums import Trend
from onboarding_engine.schemas.blocker import Blocker
from onboarding_engine.schemas.milestone import AchievementResponse
from onboarding_engine.schemas.progress import OverallProgress


class ProgressAnalytics(BaseModel):
    """Derived rates and scores for a session"""
    total_time_spent: int  # seconds
    average_time_per_step: float  # minutes
    completion_rate: float
    skip_rate: float
    failure_rate: float
    engagement_score: float
    difficulty_score: float  # unbounded above
    recommendations: List[str]


class ProgressTrends(BaseModel):
    """Coarse trend classification of the scores"""
    progress_velocity: float  # minutes per completed step
    engagement_trend: Trend
    difficulty_trend: Trend
    time_efficiency: float


class ProgressReport(BaseModel):
    """Complete progress report for a session"""
    session_id: str
    overall_progress: OverallProgress
    blockers: List[Blocker]
    achievements: List[AchievementResponse]
    analytics: ProgressAnalytics
    trends: ProgressTrends
    generated_at: datetime
