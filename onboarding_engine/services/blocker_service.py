"""
Blocker detection service
Heuristic diagnosis of where a user is stuck in an onboarding session
"""
import logging
from datetime import datetime
from typing import Dict, List, NamedTuple, Optional, Sequence

from onboarding_engine.config import settings
from onboarding_engine.errors import DatabaseError
from onboarding_engine.models import OnboardingStep, StepProgress
from onboarding_engine.models.enums import BlockerType, ErrorSignal, Level, StepStatus
from onboarding_engine.schemas.blocker import Blocker
from onboarding_engine.services.record_store import RecordStore
from onboarding_engine.utils.clock import utcnow

logger = logging.getLogger(__name__)


class SignalRule(NamedTuple):
    signals: frozenset
    blocker_type: BlockerType
    severity: Level
    impact: Level
    pattern: str
    description: str
    resolution: str


# Evaluated in order, first match wins
SIGNAL_RULES = (
    SignalRule(
        frozenset({ErrorSignal.VALIDATION, ErrorSignal.INPUT}),
        BlockerType.USER_UNDERSTANDING, Level.MEDIUM, Level.MEDIUM,
        "validation_failures",
        "User input validation failures suggest understanding issues",
        "Provide clearer instructions and input examples",
    ),
    SignalRule(
        frozenset({ErrorSignal.TECHNICAL, ErrorSignal.SYSTEM}),
        BlockerType.TECHNICAL, Level.HIGH, Level.HIGH,
        "technical_errors",
        "Technical errors are preventing step completion",
        "Check system functionality and provide technical support",
    ),
    SignalRule(
        frozenset({ErrorSignal.TIMEOUT, ErrorSignal.NETWORK}),
        BlockerType.SYSTEM, Level.HIGH, Level.MEDIUM,
        "system_performance",
        "System performance issues are affecting user experience",
        "Optimize system performance and check network connectivity",
    ),
)


class BlockerService:
    """
    Service for identifying blockers from step progress records

    Per-step analysis:
    - A step is blocked if it failed, has more than 3 attempts, has been
      stuck for more than 2x its estimated time, or recorded any errors
    - Error signals decide the type first; time, attempt and engagement
      patterns only fill in a type that is still unknown

    Cross-step analysis adds independent "pattern_based" blockers for
    consistent failures, excessive skipping, slow progress and abandonment.

    Nothing is cached or persisted: every call re-derives from the records.
    """

    MAX_ATTEMPTS_BEFORE_BLOCKED = 3
    MULTIPLE_ATTEMPTS_THRESHOLD = 5
    BLOCKED_TIME_FACTOR = 2
    EXCESSIVE_TIME_FACTOR = 3
    MIN_ENGAGED_ACTIONS = 3

    CONSISTENT_FAILURES_MIN = 3
    EXCESSIVE_SKIPPING_MIN = 4

    PATTERN_STEP_ID = "pattern_based"
    PATTERN_STEP_TITLE = "Overall Progress Pattern"

    def identify_blockers(
        self,
        store: RecordStore,
        session_id: str,
        now: Optional[datetime] = None
    ) -> List[Blocker]:
        """
        Identify blockers for a session

        Args:
            store: Record store
            session_id: Session id
            now: Reference time (defaults to current UTC)

        Returns:
            Per-step blockers followed by pattern-based blockers
        """
        try:
            records = store.list_step_progress(session_id)

            steps_by_id: Dict[str, OnboardingStep] = {}
            session = store.get_session(session_id)
            if session is not None:
                steps_by_id = {step.id: step for step in store.list_path_steps(session.path_id)}

            blockers = self.detect_blockers(records, steps_by_id, now or utcnow())
        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("Failed to identify blockers", operation="identify_blockers", cause=e)

        logger.info(f"Identified {len(blockers)} blockers for session {session_id}")
        return blockers

    def detect_blockers(
        self,
        records: Sequence[StepProgress],
        steps_by_id: Dict[str, OnboardingStep],
        now: datetime
    ) -> List[Blocker]:
        """Pure composition of per-step and cross-step analysis"""
        blockers = []

        for record in records:
            blocker = self.analyze_step_blocker(record, steps_by_id.get(record.step_id), now)
            if blocker:
                blockers.append(blocker)

        blockers.extend(self.identify_progress_patterns(records, now))

        return blockers

    def analyze_step_blocker(
        self,
        record: StepProgress,
        step: Optional[OnboardingStep],
        now: datetime
    ) -> Optional[Blocker]:
        """
        Analyze a single step

        Returns None when no blocking condition holds.
        """
        estimated_time = self._estimated_minutes(step)
        time_stuck = self._time_stuck_minutes(record, now)
        attempts = record.attempts or 0
        errors = record.errors or {}
        status = record.status

        is_blocked = (
            status == StepStatus.FAILED.value or
            attempts > self.MAX_ATTEMPTS_BEFORE_BLOCKED or
            time_stuck > estimated_time * self.BLOCKED_TIME_FACTOR or
            len(errors) > 0
        )

        if not is_blocked:
            return None

        patterns = []
        blocker_type = BlockerType.UNKNOWN
        description = "User encountered difficulties with this step"
        resolution = "Review step content and provide additional guidance"
        severity = Level.LOW
        impact = Level.LOW

        # Error signals
        signals = ErrorSignal.parse_keys(errors)
        for rule in SIGNAL_RULES:
            if signals & rule.signals:
                blocker_type = rule.blocker_type
                description = rule.description
                resolution = rule.resolution
                severity = rule.severity
                impact = rule.impact
                patterns.append(rule.pattern)
                break

        # Time-based pattern
        if time_stuck > estimated_time * self.EXCESSIVE_TIME_FACTOR:
            patterns.append("excessive_time")
            if blocker_type == BlockerType.UNKNOWN:
                blocker_type = BlockerType.CONTENT
                description = "User is spending excessive time on this step"
                resolution = "Simplify content or provide additional guidance"
                severity = Level.MEDIUM
                impact = Level.MEDIUM

        # Attempt pattern
        if attempts > self.MULTIPLE_ATTEMPTS_THRESHOLD:
            patterns.append("multiple_attempts")
            severity = Level.HIGH
            impact = Level.HIGH
            if blocker_type == BlockerType.UNKNOWN:
                blocker_type = BlockerType.USER_UNDERSTANDING
                description = "Multiple failed attempts indicate comprehension issues"
                resolution = "Provide alternative learning materials or one-on-one support"

        # Engagement pattern
        action_count = len(record.user_actions or {})
        if action_count < self.MIN_ENGAGED_ACTIONS and status == StepStatus.IN_PROGRESS.value:
            patterns.append("low_engagement")
            if blocker_type == BlockerType.UNKNOWN:
                blocker_type = BlockerType.ENGAGEMENT
                description = "Low user engagement detected"
                resolution = "Add interactive elements or gamification"
                severity = Level.MEDIUM
                impact = Level.MEDIUM

        return Blocker(
            step_id=record.step_id,
            step_title=step.title if step is not None and step.title else "Unknown Step",
            blocker_type=blocker_type,
            description=description,
            frequency=attempts or 1,
            suggested_resolution=resolution,
            severity=severity,
            impact=impact,
            time_stuck=round(time_stuck, 2),
            patterns=patterns
        )

    def identify_progress_patterns(
        self,
        records: Sequence[StepProgress],
        now: datetime
    ) -> List[Blocker]:
        """Session-wide patterns, each an independent blocker"""
        blockers = []

        failed = [r for r in records if r.status == StepStatus.FAILED.value]
        if len(failed) >= self.CONSISTENT_FAILURES_MIN:
            blockers.append(self._pattern_blocker(
                "consistent_failures",
                BlockerType.USER_UNDERSTANDING,
                "User is consistently failing multiple steps",
                "Consider switching to an easier onboarding path or providing additional support",
                Level.HIGH, Level.HIGH,
                frequency=len(failed)
            ))

        skipped = [r for r in records if r.status == StepStatus.SKIPPED.value]
        if len(skipped) >= self.EXCESSIVE_SKIPPING_MIN:
            blockers.append(self._pattern_blocker(
                "excessive_skipping",
                BlockerType.ENGAGEMENT,
                "User is skipping many steps, indicating low engagement",
                "Review content relevance and add more engaging elements",
                Level.MEDIUM, Level.HIGH,
                frequency=len(skipped)
            ))

        # Total time over completed steps, in minutes
        completed = [r for r in records if r.status == StepStatus.COMPLETED.value]
        total_minutes = sum((r.time_spent or 0) for r in records) / 60
        avg_minutes = total_minutes / len(completed) if completed else 0.0
        if avg_minutes > settings.SLOW_PROGRESS_MINUTES:
            blockers.append(self._pattern_blocker(
                "slow_progress",
                BlockerType.TIME_PRESSURE,
                "User is taking significantly longer than expected",
                "Provide time management tips or consider a self-paced approach",
                Level.MEDIUM, Level.MEDIUM,
                frequency=len(completed),
                time_stuck=avg_minutes
            ))

        activity = [r.updated_at or r.created_at for r in records if (r.updated_at or r.created_at)]
        if activity:
            hours_idle = (now - max(activity)).total_seconds() / 3600
            if hours_idle > settings.ABANDONED_SESSION_HOURS:
                blockers.append(self._pattern_blocker(
                    "abandoned_session",
                    BlockerType.ENGAGEMENT,
                    f"No activity for over {settings.ABANDONED_SESSION_HOURS:g} hours, session may be abandoned",
                    "Send re-engagement communication and offer assistance",
                    Level.HIGH, Level.HIGH,
                    frequency=1
                ))

        return blockers

    def _pattern_blocker(
        self,
        name: str,
        blocker_type: BlockerType,
        description: str,
        resolution: str,
        severity: Level,
        impact: Level,
        frequency: int,
        time_stuck: float = 0.0
    ) -> Blocker:
        return Blocker(
            step_id=self.PATTERN_STEP_ID,
            step_title=self.PATTERN_STEP_TITLE,
            blocker_type=blocker_type,
            description=description,
            frequency=frequency,
            suggested_resolution=resolution,
            severity=severity,
            impact=impact,
            time_stuck=round(time_stuck, 2),
            patterns=[name]
        )

    def _estimated_minutes(self, step: Optional[OnboardingStep]) -> int:
        if step is not None and step.estimated_time:
            return step.estimated_time
        return settings.DEFAULT_STEP_ESTIMATED_MINUTES

    def _time_stuck_minutes(self, record: StepProgress, now: datetime) -> float:
        """
        Minutes since start while in progress, else the recorded time spent
        """
        if record.status == StepStatus.IN_PROGRESS.value:
            if record.started_at is None:
                return 0.0
            return max((now - record.started_at).total_seconds() / 60, 0.0)
        return (record.time_spent or 0) / 60


# Global instance
blocker_service = BlockerService()
