"""
OnboardingSession model - one user's run through one onboarding path
"""
from sqlalchemy import Column, String, Integer, TIMESTAMP, DECIMAL, ForeignKey
from onboarding_engine.database import Base
from onboarding_engine.utils.clock import utcnow
import uuid


class OnboardingSession(Base):
    """
    Onboarding sessions table - aggregate progress kept in step with user_progress
    """
    __tablename__ = "onboarding_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    organization_id = Column(String(36), index=True)
    path_id = Column(String(36), ForeignKey("onboarding_paths.id"), nullable=False)
    status = Column(String(20), default="active")
    current_step_index = Column(Integer, default=0)
    progress_percentage = Column(DECIMAL(5, 2), default=0)
    time_spent = Column(Integer, default=0)  # seconds
    started_at = Column(TIMESTAMP, default=utcnow)
    last_active_at = Column(TIMESTAMP, default=utcnow)
    completed_at = Column(TIMESTAMP)
    created_at = Column(TIMESTAMP, default=utcnow)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<OnboardingSession(id={self.id}, user_id={self.user_id}, progress={self.progress_percentage})>"
