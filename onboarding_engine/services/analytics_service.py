"""
Analytics service for onboarding progress aggregation and reporting
"""
import logging
from datetime import datetime
from typing import List, Optional

from onboarding_engine.errors import DatabaseError, SessionNotFoundError
from onboarding_engine.models.enums import StepStatus, Trend
from onboarding_engine.schemas.analytics import ProgressAnalytics, ProgressReport, ProgressTrends
from onboarding_engine.schemas.blocker import Blocker
from onboarding_engine.schemas.milestone import AchievementResponse
from onboarding_engine.schemas.progress import OverallProgress
from onboarding_engine.services.blocker_service import blocker_service
from onboarding_engine.services.record_store import RecordStore
from onboarding_engine.utils.clock import utcnow

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Service for session progress aggregation and scored reports"""

    ON_TRACK_MESSAGE = "Progress is on track, continue with current approach"

    def get_overall_progress(self, store: RecordStore, session_id: str) -> OverallProgress:
        """
        Recompute aggregate progress for a session

        Args:
            store: Record store
            session_id: Session id

        Returns:
            OverallProgress with percentage over the path's total steps
        """
        try:
            session = store.get_session(session_id)
            if session is None:
                raise SessionNotFoundError(session_id, operation="get_overall_progress")

            total_steps = len(store.list_path_steps(session.path_id))
            records = store.list_step_progress(session_id)
            achievements = store.list_achievements(session_id)
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("Failed to get overall progress", operation="get_overall_progress", cause=e)

        completed = [r.step_id for r in records if r.status == StepStatus.COMPLETED.value]
        skipped = [r.step_id for r in records if r.status == StepStatus.SKIPPED.value]
        total_time = sum(r.time_spent or 0 for r in records)
        overall = (len(completed) / total_steps * 100) if total_steps > 0 else 0.0

        return OverallProgress(
            session_id=session_id,
            current_step_index=session.current_step_index or 0,
            total_steps=total_steps,
            completed_steps=completed,
            skipped_steps=skipped,
            milestones=[
                AchievementResponse.model_validate(a)
                for a in sorted(achievements, key=lambda a: a.earned_at)
            ],
            overall_progress=round(overall, 2),
            time_spent=total_time,
            last_updated=session.updated_at
        )

    def generate_progress_report(
        self,
        store: RecordStore,
        session_id: str,
        now: Optional[datetime] = None
    ) -> ProgressReport:
        """
        Generate detailed progress analytics report

        Scores:
        - engagement = max(0, 100 - 2*skip_rate - 3*failure_rate)
        - difficulty = 2*failure_rate + avg_minutes_per_step/10 + 10*blockers (not clamped)

        Args:
            store: Record store
            session_id: Session id
            now: Reference time for blocker detection

        Returns:
            ProgressReport
        """
        now = now or utcnow()

        overall = self.get_overall_progress(store, session_id)
        blockers = blocker_service.identify_blockers(store, session_id, now=now)

        try:
            records = store.list_step_progress(session_id)
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("Failed to generate progress report", operation="generate_progress_report", cause=e)

        total = len(records)
        completed = sum(1 for r in records if r.status == StepStatus.COMPLETED.value)
        skipped = sum(1 for r in records if r.status == StepStatus.SKIPPED.value)
        failed = sum(1 for r in records if r.status == StepStatus.FAILED.value)

        completion_rate = (completed / total * 100) if total > 0 else 0.0
        skip_rate = (skipped / total * 100) if total > 0 else 0.0
        failure_rate = (failed / total * 100) if total > 0 else 0.0

        total_minutes = overall.time_spent / 60
        average_time_per_step = total_minutes / completed if completed > 0 else 0.0

        engagement_score = max(0.0, 100 - (skip_rate * 2) - (failure_rate * 3))
        difficulty_score = (failure_rate * 2) + (average_time_per_step / 10) + (len(blockers) * 10)

        recommendations = self._generate_recommendations(
            completion_rate=completion_rate,
            skip_rate=skip_rate,
            failure_rate=failure_rate,
            engagement_score=engagement_score,
            difficulty_score=difficulty_score,
            average_time_per_step=average_time_per_step,
            blockers=blockers
        )

        trends = ProgressTrends(
            progress_velocity=round(average_time_per_step, 2),
            engagement_trend=self._trend(engagement_score, high=70, low=40),
            difficulty_trend=self._trend(difficulty_score, high=60, low=30),
            time_efficiency=(
                max(0.0, 100 - (average_time_per_step / 15) * 100)
                if average_time_per_step > 0 else 100.0
            )
        )

        report = ProgressReport(
            session_id=session_id,
            overall_progress=overall,
            blockers=blockers,
            achievements=sorted(overall.milestones, key=lambda a: a.earned_at, reverse=True),
            analytics=ProgressAnalytics(
                total_time_spent=overall.time_spent,
                average_time_per_step=round(average_time_per_step, 2),
                completion_rate=round(completion_rate, 2),
                skip_rate=round(skip_rate, 2),
                failure_rate=round(failure_rate, 2),
                engagement_score=round(engagement_score, 2),
                difficulty_score=round(difficulty_score, 2),
                recommendations=recommendations
            ),
            trends=trends,
            generated_at=now
        )

        self._log_report_event(store, report)

        logger.info(
            f"Progress report generated: session={session_id}, "
            f"completion={completion_rate:.1f}%, engagement={engagement_score:.1f}, "
            f"difficulty={difficulty_score:.1f}, blockers={len(blockers)}"
        )

        return report

    def _generate_recommendations(
        self,
        completion_rate: float,
        skip_rate: float,
        failure_rate: float,
        engagement_score: float,
        difficulty_score: float,
        average_time_per_step: float,
        blockers: List[Blocker]
    ) -> List[str]:
        """Each threshold contributes independently, in a fixed order"""

        recommendations = []

        if completion_rate < 50:
            recommendations.append("Consider providing additional support or switching to an easier path")

        if skip_rate > 30:
            recommendations.append("High skip rate: review content relevance and add more engaging elements")

        if failure_rate > 20:
            recommendations.append("Simplify step instructions and provide better examples")

        if engagement_score < 40:
            recommendations.append("Add interactive elements and gamification to increase engagement")

        if difficulty_score > 60:
            recommendations.append("Consider breaking down complex steps into smaller, manageable tasks")

        if average_time_per_step > 20:
            recommendations.append("Optimize step content for better time efficiency")

        if len(blockers) > 3:
            recommendations.append("Address identified blockers with targeted interventions")

        if not recommendations:
            recommendations.append(self.ON_TRACK_MESSAGE)

        return recommendations

    def _trend(self, score: float, high: float, low: float) -> Trend:
        if score > high:
            return Trend.INCREASING
        if score > low:
            return Trend.STABLE
        return Trend.DECREASING

    def _log_report_event(self, store: RecordStore, report: ProgressReport) -> None:
        try:
            store.append_analytics_event({
                "session_id": report.session_id,
                "event_type": "report_generated",
                "event_data": {
                    "completion_rate": report.analytics.completion_rate,
                    "engagement_score": report.analytics.engagement_score,
                    "difficulty_score": report.analytics.difficulty_score,
                    "blocker_count": len(report.blockers)
                },
                "timestamp": report.generated_at
            })
        except Exception as e:
            logger.error(f"Failed to log report analytics: {str(e)}")


# Global instance
analytics_service = AnalyticsService()
