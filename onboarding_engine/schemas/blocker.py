"""
Pydantic schema for derived blocker diagnoses (never persisted)
"""
from pydantic import BaseModel, Field
from typing import List

from onboarding_engine.models.enums import BlockerType, Level


class Blocker(BaseModel):
    """A diagnosis that a user is stuck on a step or across the session"""
    step_id: str
    step_title: str
    blocker_type: BlockerType
    description: str
    frequency: int
    suggested_resolution: str
    severity: Level
    impact: Level
    time_stuck: float  # minutes
    patterns: List[str] = Field(default_factory=list)
