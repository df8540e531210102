"""
OnboardingPath and OnboardingStep models - the flow a session walks through
"""
from sqlalchemy import Column, String, Integer, Boolean, Text, TIMESTAMP, ForeignKey, text
from sqlalchemy.orm import relationship
from onboarding_engine.database import Base
import uuid


class OnboardingPath(Base):
    """
    Onboarding paths table - an ordered collection of steps
    """
    __tablename__ = "onboarding_paths"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    estimated_duration = Column(Integer)  # minutes
    created_at = Column(TIMESTAMP, server_default=text("CURRENT_TIMESTAMP"))

    steps = relationship(
        "OnboardingStep",
        back_populates="path",
        order_by="OnboardingStep.step_order"
    )

    def __repr__(self):
        return f"<OnboardingPath(id={self.id}, name={self.name})>"


class OnboardingStep(Base):
    """
    Onboarding steps table - a single unit of a path
    """
    __tablename__ = "onboarding_steps"

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    path_id = Column(String(36), ForeignKey("onboarding_paths.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    step_type = Column(String(50))
    step_order = Column(Integer, nullable=False, default=0)
    estimated_time = Column(Integer)  # minutes
    is_required = Column(Boolean, default=True)

    path = relationship("OnboardingPath", back_populates="steps")

    def __repr__(self):
        return f"<OnboardingStep(id={self.id}, title={self.title}, order={self.step_order})>"
