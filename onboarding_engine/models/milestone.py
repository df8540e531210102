"""
Milestone definitions and the achievements granted from them
"""
from sqlalchemy import Column, String, Integer, Boolean, Text, TIMESTAMP, JSON, UniqueConstraint
from onboarding_engine.database import Base
from onboarding_engine.utils.clock import utcnow
import uuid


class OnboardingMilestone(Base):
    """
    Milestones table - criteria that grant an achievement when met
    """
    __tablename__ = "onboarding_milestones"

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    description = Column(Text)
    milestone_type = Column(String(20), nullable=False)
    criteria = Column(JSON, nullable=False, default=dict)
    points = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(TIMESTAMP, default=utcnow)

    def __repr__(self):
        return f"<OnboardingMilestone(id={self.id}, type={self.milestone_type})>"


class UserAchievement(Base):
    """
    User achievements table - granted exactly once per (user, session, milestone)
    """
    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "session_id", "milestone_id", name="uq_user_achievement"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    session_id = Column(String(36), nullable=False, index=True)
    milestone_id = Column(String(64), nullable=False)
    earned_at = Column(TIMESTAMP, nullable=False, default=utcnow)
    achievement_data = Column(JSON, default=dict)

    def __repr__(self):
        return f"<UserAchievement(user_id={self.user_id}, milestone_id={self.milestone_id})>"
