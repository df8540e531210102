"""
AnalyticsEvent model - append-only onboarding analytics log
"""
from sqlalchemy import Column, String, TIMESTAMP, JSON
from onboarding_engine.database import Base
from onboarding_engine.utils.clock import utcnow
import uuid


class AnalyticsEvent(Base):
    """
    Onboarding analytics table - fire-and-forget events
    """
    __tablename__ = "onboarding_analytics"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36))
    session_id = Column(String(36), index=True)
    user_id = Column(String(36), index=True)
    path_id = Column(String(36))
    step_id = Column(String(64))
    event_type = Column(String(50), nullable=False)
    event_data = Column(JSON, default=dict)
    timestamp = Column(TIMESTAMP, default=utcnow)

    def __repr__(self):
        return f"<AnalyticsEvent(type={self.event_type}, session_id={self.session_id})>"
