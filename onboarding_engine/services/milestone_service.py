"""
Milestone and achievement service
Criteria evaluation, idempotent awarding, badge previews and certificates
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from onboarding_engine.errors import DatabaseError, SessionNotFoundError
from onboarding_engine.models import OnboardingMilestone, UserAchievement
from onboarding_engine.models.enums import MilestoneType
from onboarding_engine.schemas.milestone import AchievementResponse, Badge, CompletionCertificate
from onboarding_engine.schemas.progress import OverallProgress
from onboarding_engine.services.analytics_service import analytics_service
from onboarding_engine.services.record_store import RecordStore
from onboarding_engine.utils.clock import utcnow

logger = logging.getLogger(__name__)

# (milestone, progress) -> criteria satisfied
AchievementPredicate = Callable[[OnboardingMilestone, OverallProgress], bool]


class MilestoneService:
    """
    Service for evaluating milestones and granting achievements

    Criteria by milestone type:
    - progress: overall progress >= criteria.progress_percentage
    - completion: every criteria.required_steps id is completed
    - time_based: total minutes spent <= criteria.max_time_minutes
    - achievement: named predicate from the registry (criteria.predicate);
      unregistered or missing predicates never match

    An achievement is granted at most once per (user, session, milestone).
    """

    CERTIFICATE_MILESTONE_ID = "completion_certificate"

    def __init__(self):
        self._predicates: Dict[str, AchievementPredicate] = {}

    def register_achievement_predicate(self, name: str, predicate: AchievementPredicate) -> None:
        """Register a custom predicate for achievement-type milestones"""
        self._predicates[name] = predicate
        logger.info(f"Registered achievement predicate: {name}")

    def unregister_achievement_predicate(self, name: str) -> None:
        self._predicates.pop(name, None)

    def criteria_met(self, milestone: OnboardingMilestone, progress: OverallProgress) -> bool:
        """Check if milestone criteria are met by the current progress"""
        criteria = milestone.criteria or {}

        if milestone.milestone_type == MilestoneType.PROGRESS.value:
            required = criteria.get("progress_percentage") or 0
            return progress.overall_progress >= required

        if milestone.milestone_type == MilestoneType.COMPLETION.value:
            required_steps = criteria.get("required_steps") or []
            if not isinstance(required_steps, list):
                return False
            completed = set(progress.completed_steps)
            return all(step_id in completed for step_id in required_steps)

        if milestone.milestone_type == MilestoneType.TIME_BASED.value:
            max_time = criteria.get("max_time_minutes")
            if not max_time:
                # No limit configured
                return True
            return progress.time_spent / 60 <= max_time

        if milestone.milestone_type == MilestoneType.ACHIEVEMENT.value:
            return self._evaluate_predicate(milestone, progress)

        return False

    def _evaluate_predicate(self, milestone: OnboardingMilestone, progress: OverallProgress) -> bool:
        name = (milestone.criteria or {}).get("predicate")
        predicate = self._predicates.get(name) if name else None
        if predicate is None:
            return False

        try:
            return bool(predicate(milestone, progress))
        except Exception as e:
            logger.error(f"Achievement predicate {name} failed for milestone {milestone.id}: {str(e)}")
            return False

    def calculate_badge_progress(self, milestone: OnboardingMilestone, progress: OverallProgress) -> float:
        """
        Progress towards a milestone as a percentage clamped to [0, 100]
        """
        criteria = milestone.criteria or {}
        value = 0.0

        if milestone.milestone_type == MilestoneType.PROGRESS.value:
            required = criteria.get("progress_percentage") or 100
            value = progress.overall_progress / required * 100

        elif milestone.milestone_type == MilestoneType.COMPLETION.value:
            required_steps = criteria.get("required_steps") or []
            if isinstance(required_steps, list) and required_steps:
                completed = set(progress.completed_steps)
                done = sum(1 for step_id in required_steps if step_id in completed)
                value = done / len(required_steps) * 100

        elif milestone.milestone_type == MilestoneType.TIME_BASED.value:
            max_time = criteria.get("max_time_minutes") or 0
            if max_time > 0:
                value = (max_time - progress.time_spent / 60) / max_time * 100

        elif milestone.milestone_type == MilestoneType.ACHIEVEMENT.value:
            value = 100.0 if self._evaluate_predicate(milestone, progress) else 0.0

        return round(min(max(value, 0.0), 100.0), 2)

    def check_and_award_milestones(
        self,
        store: RecordStore,
        session_id: str,
        step_id: str,
        user_id: str
    ) -> List[UserAchievement]:
        """
        Evaluate all active milestones and award the ones that are met

        Best-effort: a failed grant is logged and the remaining milestones are
        still evaluated; any other failure returns an empty list.

        Returns:
            Achievements for every milestone whose criteria matched
        """
        try:
            milestones = store.list_active_milestones()
            if not milestones:
                return []

            progress = analytics_service.get_overall_progress(store, session_id)

            awarded = []
            for milestone in milestones:
                if not self.criteria_met(milestone, progress):
                    continue
                try:
                    awarded.append(self.award_milestone(
                        store, user_id, session_id, milestone.id,
                        {
                            "trigger_step": step_id,
                            "progress_at_award": progress.overall_progress
                        }
                    ))
                except DatabaseError as e:
                    logger.error(f"Failed to award milestone {milestone.id} for session {session_id}: {str(e)}")
            return awarded

        except Exception as e:
            logger.error(f"Failed to check and award milestones for session {session_id}: {str(e)}")
            return []

    def award_milestone(
        self,
        store: RecordStore,
        user_id: str,
        session_id: str,
        milestone_id: str,
        achievement_data: Optional[Dict[str, Any]] = None
    ) -> UserAchievement:
        """
        Award a milestone exactly once

        The insert relies on the unique (user_id, session_id, milestone_id)
        index, so concurrent callers converge on the same row.

        Returns:
            The new achievement, or the existing one unchanged
        """
        try:
            existing = store.get_achievement(user_id, session_id, milestone_id)
            if existing is not None:
                return existing

            achievement, created = store.insert_achievement(UserAchievement(
                user_id=user_id,
                session_id=session_id,
                milestone_id=milestone_id,
                earned_at=utcnow(),
                achievement_data=achievement_data or {}
            ))
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("Failed to award milestone", operation="award_milestone", cause=e)

        if created:
            logger.info(f"Milestone awarded: user={user_id}, session={session_id}, milestone={milestone_id}")
            self._log_milestone_event(store, user_id, session_id, milestone_id, achievement_data or {})

        return achievement

    def get_user_achievements(self, store: RecordStore, session_id: str) -> List[UserAchievement]:
        """Achievements for a session, newest first"""
        try:
            achievements = store.list_achievements(session_id)
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("Failed to get user achievements", operation="get_user_achievements", cause=e)

        return sorted(achievements, key=lambda a: a.earned_at, reverse=True)

    def get_available_badges(self, store: RecordStore, user_id: str, session_id: str) -> List[Badge]:
        """
        Preview every active milestone with the user's progress towards it

        Earned milestones report 100.
        """
        try:
            milestones = store.list_active_milestones()
            earned_ids = {
                a.milestone_id for a in store.list_achievements(session_id)
                if a.user_id == user_id
            }
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("Failed to get available badges", operation="get_available_badges", cause=e)

        progress = analytics_service.get_overall_progress(store, session_id)

        badges = []
        for milestone in milestones:
            is_earned = milestone.id in earned_ids
            badges.append(Badge(
                badge_id=milestone.id,
                name=milestone.name,
                description=milestone.description or "",
                criteria=milestone.criteria or {},
                points=milestone.points or 0,
                is_earned=is_earned,
                progress=100.0 if is_earned else self.calculate_badge_progress(milestone, progress)
            ))

        return badges

    def generate_completion_certificate(
        self,
        store: RecordStore,
        user_id: str,
        session_id: str
    ) -> CompletionCertificate:
        """
        Issue a completion certificate, stored as a one-time achievement

        Repeated calls return the certificate issued first.
        """
        try:
            session = store.get_session(session_id)
            if session is None:
                raise SessionNotFoundError(session_id, operation="generate_completion_certificate")
            path = store.get_path(session.path_id)
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(
                "Failed to generate completion certificate",
                operation="generate_completion_certificate",
                cause=e
            )

        achievements = self.get_user_achievements(store, session_id)
        issued_at = utcnow()
        certificate_id = f"cert_{user_id}_{session_id}_{int(issued_at.timestamp() * 1000)}"

        certificate_data = {
            "certificate_id": certificate_id,
            "certificate_url": f"/certificates/{certificate_id}",
            "user_id": user_id,
            "session_id": session_id,
            "path_id": session.path_id,
            "path_name": path.name if path is not None else "Unknown Path",
            "completion_time": session.time_spent or 0,
            "completed_at": session.completed_at.isoformat() if session.completed_at else None,
            "achievements": [
                {
                    "milestone_id": a.milestone_id,
                    "earned_at": a.earned_at.isoformat(),
                    "data": a.achievement_data
                }
                for a in achievements
            ],
            "issued_at": issued_at.isoformat()
        }

        stored = self.award_milestone(
            store, user_id, session_id, self.CERTIFICATE_MILESTONE_ID,
            {"certificate": certificate_data, "type": self.CERTIFICATE_MILESTONE_ID}
        )
        certificate = (stored.achievement_data or {}).get("certificate") or certificate_data

        return CompletionCertificate(
            certificate_id=certificate["certificate_id"],
            certificate_url=certificate["certificate_url"],
            issued_at=certificate["issued_at"],
            path_name=certificate["path_name"],
            completion_time=certificate["completion_time"],
            achievements=[
                AchievementResponse.model_validate(a) for a in achievements
                if a.milestone_id != self.CERTIFICATE_MILESTONE_ID
            ]
        )

    def _log_milestone_event(
        self,
        store: RecordStore,
        user_id: str,
        session_id: str,
        milestone_id: str,
        achievement_data: Dict[str, Any]
    ) -> None:
        try:
            store.append_analytics_event({
                "session_id": session_id,
                "user_id": user_id,
                "event_type": "milestone_reached",
                "event_data": {"milestone_id": milestone_id, **achievement_data},
                "timestamp": utcnow()
            })
        except Exception as e:
            logger.error(f"Failed to log milestone analytics: {str(e)}")


# Global instance
milestone_service = MilestoneService()
