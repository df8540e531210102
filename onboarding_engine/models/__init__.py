"""
Database models package
"""
from onboarding_engine.models.path import OnboardingPath, OnboardingStep
from onboarding_engine.models.session import OnboardingSession
from onboarding_engine.models.step_progress import StepProgress
from onboarding_engine.models.milestone import OnboardingMilestone, UserAchievement
from onboarding_engine.models.analytics_event import AnalyticsEvent

__all__ = [
    "OnboardingPath",
    "OnboardingStep",
    "OnboardingSession",
    "StepProgress",
    "OnboardingMilestone",
    "UserAchievement",
    "AnalyticsEvent",
]
