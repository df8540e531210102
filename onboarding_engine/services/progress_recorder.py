"""
Step progress recording service
State machine for a single step's progress row within a session
"""
import logging
from typing import Any, Dict, Optional

from onboarding_engine.errors import DatabaseError
from onboarding_engine.models import StepProgress
from onboarding_engine.models.enums import StepStatus, TERMINAL_STATUSES
from onboarding_engine.schemas.progress import StepProgressPatch, StepResult
from onboarding_engine.services.analytics_service import analytics_service
from onboarding_engine.services.milestone_service import milestone_service
from onboarding_engine.services.record_store import RecordStore
from onboarding_engine.utils.clock import utcnow

logger = logging.getLogger(__name__)


class ProgressRecorder:
    """
    Service for creating and updating step progress

    Every write goes through record_progress, which:
    - creates the (session, step) row with defaults on first use
    - overwrites only the fields set on the patch
    - keeps completed_at set iff the status is completed/skipped/failed
    - never lets time_spent go backwards while the step is in progress

    The session aggregate is recomputed after every write.
    Analytics events, milestone checks and the session aggregate recompute
    are side effects; they log their own failures and never fail the write.
    """

    def record_progress(
        self,
        store: RecordStore,
        session_id: str,
        step_id: str,
        user_id: str,
        patch: StepProgressPatch
    ) -> StepProgress:
        """
        Create or update progress for a step

        Args:
            store: Record store
            session_id: Session id
            step_id: Step id
            user_id: User id
            patch: Fields to write

        Returns:
            The persisted row

        Raises:
            DatabaseError: if the primary read or write fails
        """
        changes = patch.model_dump(exclude_unset=True)
        now = utcnow()

        try:
            row = store.get_step_progress(session_id, step_id)

            if row is None:
                row = StepProgress(
                    session_id=session_id,
                    step_id=step_id,
                    user_id=user_id,
                    status=StepStatus.NOT_STARTED.value,
                    started_at=None,
                    completed_at=None,
                    time_spent=0,
                    attempts=0,
                    score=None,
                    feedback={},
                    user_actions={},
                    step_result={},
                    errors={},
                    achievements={},
                    created_at=now
                )
                previous_status = None
                previous_time = 0
            else:
                previous_status = row.status
                previous_time = row.time_spent or 0

            for field, value in changes.items():
                if isinstance(value, StepStatus):
                    value = value.value
                setattr(row, field, value)

            self._enforce_invariants(row, previous_status, previous_time, now)
            row.updated_at = now

            row = store.upsert_step_progress(row)

        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError("Failed to track step progress", operation="record_progress", cause=e)

        self._log_progress_event(store, session_id, step_id, user_id, patch)
        self.update_session_progress(store, session_id)

        logger.info(
            f"Step progress recorded: session={session_id}, step={step_id}, "
            f"status={row.status}, attempts={row.attempts}, time_spent={row.time_spent}s"
        )

        return row

    def _enforce_invariants(
        self,
        row: StepProgress,
        previous_status: Optional[str],
        previous_time: int,
        now
    ) -> None:
        if StepStatus(row.status) in TERMINAL_STATUSES:
            if row.completed_at is None:
                row.completed_at = now
        else:
            row.completed_at = None

        if previous_status == StepStatus.IN_PROGRESS.value and (row.time_spent or 0) < previous_time:
            logger.debug(
                f"Ignoring decreasing time_spent for step {row.step_id}: "
                f"{row.time_spent} < {previous_time}"
            )
            row.time_spent = previous_time

    def start_step(
        self,
        store: RecordStore,
        session_id: str,
        step_id: str,
        user_id: str,
        attempts: Optional[int] = None
    ) -> StepProgress:
        """
        Mark a step as started

        The first start sets attempts to 1. Restarts keep the stored counter
        unless the caller passes an explicit value.
        """
        fields: Dict[str, Any] = {
            "status": StepStatus.IN_PROGRESS,
            "started_at": utcnow()
        }

        if attempts is not None:
            fields["attempts"] = attempts
        else:
            existing = store.get_step_progress(session_id, step_id)
            if existing is None or not existing.attempts:
                fields["attempts"] = 1

        return self.record_progress(store, session_id, step_id, user_id, StepProgressPatch(**fields))

    def update_step_progress(
        self,
        store: RecordStore,
        session_id: str,
        step_id: str,
        user_id: str,
        time_spent: int,
        user_actions: Optional[Dict[str, Any]] = None
    ) -> StepProgress:
        """Update time tracking and actions of an in-progress step"""
        return self.record_progress(store, session_id, step_id, user_id, StepProgressPatch(
            status=StepStatus.IN_PROGRESS,
            time_spent=time_spent,
            user_actions=user_actions or {}
        ))

    def skip_step(
        self,
        store: RecordStore,
        session_id: str,
        step_id: str,
        user_id: str,
        reason: str = "user_choice"
    ) -> StepProgress:
        """Skip a step, recording the reason"""
        return self.record_progress(store, session_id, step_id, user_id, StepProgressPatch(
            status=StepStatus.SKIPPED,
            completed_at=utcnow(),
            step_result={"skip_reason": reason}
        ))

    def fail_step(
        self,
        store: RecordStore,
        session_id: str,
        step_id: str,
        user_id: str,
        errors: Dict[str, Any],
        attempts: int = 1
    ) -> StepProgress:
        """Mark a step as failed with structured error details"""
        return self.record_progress(store, session_id, step_id, user_id, StepProgressPatch(
            status=StepStatus.FAILED,
            errors=errors,
            attempts=attempts,
            completed_at=utcnow()
        ))

    def record_step_completion(
        self,
        store: RecordStore,
        session_id: str,
        step_id: str,
        user_id: str,
        result: StepResult
    ) -> StepProgress:
        """
        Record the outcome of a step

        On completion, milestones are evaluated synchronously and best-effort.
        """
        fields: Dict[str, Any] = {
            "status": result.status,
            "completed_at": utcnow() if result.status in TERMINAL_STATUSES else None,
            "time_spent": result.time_spent,
            "user_actions": result.user_actions,
            "feedback": result.feedback or {},
            "step_result": {"status": result.status.value, "score": result.score},
            "errors": result.errors or {},
            "achievements": result.achievements or {}
        }
        if result.score is not None:
            fields["score"] = result.score

        progress = self.record_progress(store, session_id, step_id, user_id, StepProgressPatch(**fields))

        if result.status == StepStatus.COMPLETED:
            milestone_service.check_and_award_milestones(store, session_id, step_id, user_id)

        return progress

    def update_session_progress(self, store: RecordStore, session_id: str) -> None:
        """
        Recompute the session aggregate from its step rows

        Background update: failures are logged, never raised.
        """
        try:
            progress = analytics_service.get_overall_progress(store, session_id)

            store.update_session_aggregate(session_id, {
                "progress_percentage": progress.overall_progress,
                "time_spent": progress.time_spent,
                "current_step_index": progress.current_step_index,
                "last_active_at": utcnow()
            })
        except Exception as e:
            logger.error(f"Failed to update session progress for {session_id}: {str(e)}")

    def _log_progress_event(
        self,
        store: RecordStore,
        session_id: str,
        step_id: str,
        user_id: str,
        patch: StepProgressPatch
    ) -> None:
        try:
            store.append_analytics_event({
                "session_id": session_id,
                "user_id": user_id,
                "step_id": step_id,
                "event_type": "step_progress",
                "event_data": patch.model_dump(exclude_unset=True, mode="json"),
                "timestamp": utcnow()
            })
        except Exception as e:
            logger.error(f"Failed to log progress analytics: {str(e)}")


# Global instance
progress_recorder = ProgressRecorder()
