"""
StepProgress model - per-step progress within a session
"""
from sqlalchemy import Column, String, Integer, Float, TIMESTAMP, JSON, UniqueConstraint
from onboarding_engine.database import Base
from onboarding_engine.utils.clock import utcnow
import uuid


class StepProgress(Base):
    """
    User progress table - one row per (session, step), never deleted
    """
    __tablename__ = "user_progress"
    __table_args__ = (
        UniqueConstraint("session_id", "step_id", name="uq_user_progress_session_step"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id = Column(String(36), nullable=False, index=True)
    step_id = Column(String(64), nullable=False)
    user_id = Column(String(36), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="not_started")
    started_at = Column(TIMESTAMP)
    completed_at = Column(TIMESTAMP)
    time_spent = Column(Integer, nullable=False, default=0)  # seconds
    attempts = Column(Integer, nullable=False, default=0)
    score = Column(Float)
    feedback = Column(JSON, default=dict)
    user_actions = Column(JSON, default=dict)
    step_result = Column(JSON, default=dict)
    errors = Column(JSON, default=dict)  # keys are blocker classification signals
    achievements = Column(JSON, default=dict)
    created_at = Column(TIMESTAMP, default=utcnow)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<StepProgress(session_id={self.session_id}, step_id={self.step_id}, status={self.status})>"
