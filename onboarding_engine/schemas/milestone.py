"""
Pydantic schemas for achievements, badges and certificates
"""
from pydantic import BaseModel
from typing import List, Dict, Any, Optional
from datetime import datetime


class AchievementResponse(BaseModel):
    """A milestone granted to a user within a session"""
    id: str
    user_id: str
    session_id: str
    milestone_id: str
    earned_at: datetime
    achievement_data: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


class Badge(BaseModel):
    """Milestone preview with completion percentage"""
    badge_id: str
    name: str
    description: str = ""
    criteria: Dict[str, Any]
    points: int = 0
    is_earned: bool
    progress: float


class CompletionCertificate(BaseModel):
    """Certificate issued when a user finishes a path"""
    certificate_id: str
    certificate_url: str
    issued_at: datetime
    path_name: str
    completion_time: int  # seconds
    achievements: List[AchievementResponse]


class CertificateRequest(BaseModel):
    """Request schema for certificate generation"""
    user_id: str
