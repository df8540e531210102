"""
Record Store - persistence boundary of the progress engine

RecordStore lists every read/write the engine performs. SqlRecordStore
implements it over a SQLAlchemy session. Primary failures surface as
DatabaseError; analytics events are fire-and-forget.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from onboarding_engine.errors import DatabaseError
from onboarding_engine.models import (
    AnalyticsEvent,
    OnboardingMilestone,
    OnboardingPath,
    OnboardingSession,
    OnboardingStep,
    StepProgress,
    UserAchievement,
)

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Abstract persistence collaborator"""

    @abstractmethod
    def get_step_progress(self, session_id: str, step_id: str) -> Optional[StepProgress]:
        ...

    @abstractmethod
    def upsert_step_progress(self, row: StepProgress) -> StepProgress:
        ...

    @abstractmethod
    def list_step_progress(self, session_id: str) -> List[StepProgress]:
        ...

    @abstractmethod
    def get_session(self, session_id: str) -> Optional[OnboardingSession]:
        ...

    @abstractmethod
    def update_session_aggregate(self, session_id: str, fields: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def get_path(self, path_id: str) -> Optional[OnboardingPath]:
        ...

    @abstractmethod
    def list_path_steps(self, path_id: str) -> List[OnboardingStep]:
        ...

    @abstractmethod
    def list_active_milestones(self) -> List[OnboardingMilestone]:
        ...

    @abstractmethod
    def get_milestone(self, milestone_id: str) -> Optional[OnboardingMilestone]:
        ...

    @abstractmethod
    def get_achievement(
        self, user_id: str, session_id: str, milestone_id: str
    ) -> Optional[UserAchievement]:
        ...

    @abstractmethod
    def insert_achievement(self, row: UserAchievement) -> Tuple[UserAchievement, bool]:
        """Insert unless (user, session, milestone) exists; returns (row, created)"""

    @abstractmethod
    def list_achievements(self, session_id: str) -> List[UserAchievement]:
        ...

    @abstractmethod
    def append_analytics_event(self, event: Dict[str, Any]) -> None:
        """Fire-and-forget; must never raise"""


class SqlRecordStore(RecordStore):
    """RecordStore backed by a SQLAlchemy session"""

    def __init__(self, db: Session):
        self.db = db

    def _fail(self, operation: str, message: str, error: Exception) -> DatabaseError:
        self.db.rollback()
        logger.error(f"{message}: {str(error)}")
        return DatabaseError(message, operation=operation, cause=error)

    def get_step_progress(self, session_id: str, step_id: str) -> Optional[StepProgress]:
        try:
            return self.db.query(StepProgress).filter(
                StepProgress.session_id == session_id,
                StepProgress.step_id == step_id
            ).first()
        except SQLAlchemyError as e:
            raise self._fail("get_step_progress", "Failed to fetch step progress", e)

    def upsert_step_progress(self, row: StepProgress) -> StepProgress:
        try:
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            return row
        except SQLAlchemyError as e:
            raise self._fail("upsert_step_progress", "Failed to write step progress", e)

    def list_step_progress(self, session_id: str) -> List[StepProgress]:
        try:
            return self.db.query(StepProgress).filter(
                StepProgress.session_id == session_id
            ).order_by(StepProgress.created_at).all()
        except SQLAlchemyError as e:
            raise self._fail("list_step_progress", "Failed to fetch progress records", e)

    def get_session(self, session_id: str) -> Optional[OnboardingSession]:
        try:
            return self.db.query(OnboardingSession).filter(
                OnboardingSession.id == session_id
            ).first()
        except SQLAlchemyError as e:
            raise self._fail("get_session", "Failed to fetch session details", e)

    def update_session_aggregate(self, session_id: str, fields: Dict[str, Any]) -> None:
        try:
            updated = self.db.query(OnboardingSession).filter(
                OnboardingSession.id == session_id
            ).update(fields, synchronize_session="fetch")
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("update_session_aggregate", "Failed to update session progress", e)

        if not updated:
            logger.warning(f"Session aggregate update matched no rows: {session_id}")

    def get_path(self, path_id: str) -> Optional[OnboardingPath]:
        try:
            return self.db.query(OnboardingPath).filter(OnboardingPath.id == path_id).first()
        except SQLAlchemyError as e:
            raise self._fail("get_path", "Failed to fetch onboarding path", e)

    def list_path_steps(self, path_id: str) -> List[OnboardingStep]:
        try:
            return self.db.query(OnboardingStep).filter(
                OnboardingStep.path_id == path_id
            ).order_by(OnboardingStep.step_order).all()
        except SQLAlchemyError as e:
            raise self._fail("list_path_steps", "Failed to fetch path steps", e)

    def list_active_milestones(self) -> List[OnboardingMilestone]:
        try:
            return self.db.query(OnboardingMilestone).filter(
                OnboardingMilestone.is_active.is_(True)
            ).order_by(OnboardingMilestone.points.desc()).all()
        except SQLAlchemyError as e:
            raise self._fail("list_active_milestones", "Failed to fetch milestones", e)

    def get_milestone(self, milestone_id: str) -> Optional[OnboardingMilestone]:
        try:
            return self.db.query(OnboardingMilestone).filter(
                OnboardingMilestone.id == milestone_id
            ).first()
        except SQLAlchemyError as e:
            raise self._fail("get_milestone", "Failed to fetch milestone", e)

    def get_achievement(
        self, user_id: str, session_id: str, milestone_id: str
    ) -> Optional[UserAchievement]:
        try:
            return self.db.query(UserAchievement).filter(
                UserAchievement.user_id == user_id,
                UserAchievement.session_id == session_id,
                UserAchievement.milestone_id == milestone_id
            ).first()
        except SQLAlchemyError as e:
            raise self._fail("get_achievement", "Failed to fetch achievement", e)

    def insert_achievement(self, row: UserAchievement) -> Tuple[UserAchievement, bool]:
        try:
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            return row, True
        except IntegrityError:
            # Unique (user_id, session_id, milestone_id) already granted
            self.db.rollback()
            existing = self.get_achievement(row.user_id, row.session_id, row.milestone_id)
            if existing is None:
                raise DatabaseError(
                    "Achievement insert conflicted but no existing row was found",
                    operation="insert_achievement"
                )
            return existing, False
        except SQLAlchemyError as e:
            raise self._fail("insert_achievement", "Failed to award milestone", e)

    def list_achievements(self, session_id: str) -> List[UserAchievement]:
        try:
            return self.db.query(UserAchievement).filter(
                UserAchievement.session_id == session_id
            ).order_by(UserAchievement.earned_at).all()
        except SQLAlchemyError as e:
            raise self._fail("list_achievements", "Failed to fetch achievements", e)

    def append_analytics_event(self, event: Dict[str, Any]) -> None:
        try:
            self.db.add(AnalyticsEvent(**event))
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to log analytics event {event.get('event_type')}: {str(e)}")
