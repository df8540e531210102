"""Tests for step progress recording."""
from datetime import timedelta

import pytest

from onboarding_engine.errors import DatabaseError
from onboarding_engine.models import AnalyticsEvent, OnboardingSession, StepProgress
from onboarding_engine.models.enums import StepStatus, TERMINAL_STATUSES
from onboarding_engine.schemas.progress import StepProgressPatch, StepResult
from onboarding_engine.services.analytics_service import analytics_service
from onboarding_engine.services.progress_recorder import progress_recorder
from onboarding_engine.utils.clock import utcnow

from factories import USER_ID, make_milestone


def _assert_completed_at_matches_status(row):
    terminal = StepStatus(row.status) in TERMINAL_STATUSES
    assert (row.completed_at is not None) == terminal


def test_first_write_creates_row_with_defaults(store, session):
    row = progress_recorder.record_progress(
        store, session.id, "step-1", USER_ID, StepProgressPatch(time_spent=30)
    )

    assert row.id is not None
    assert row.status == "not_started"
    assert row.time_spent == 30
    assert row.attempts == 0
    assert row.completed_at is None
    assert row.errors == {}


def test_patch_only_overwrites_provided_fields(store, session):
    progress_recorder.record_progress(
        store, session.id, "step-1", USER_ID,
        StepProgressPatch(user_actions={"clicked": 1}, feedback={"rating": 4})
    )
    row = progress_recorder.record_progress(
        store, session.id, "step-1", USER_ID, StepProgressPatch(score=80.0)
    )

    assert row.score == 80.0
    assert row.user_actions == {"clicked": 1}
    assert row.feedback == {"rating": 4}


def test_completed_at_set_iff_terminal_across_transitions(store, session):
    sid = session.id

    row = progress_recorder.start_step(store, sid, "step-1", USER_ID)
    _assert_completed_at_matches_status(row)

    row = progress_recorder.update_step_progress(store, sid, "step-1", USER_ID, 60)
    _assert_completed_at_matches_status(row)

    row = progress_recorder.skip_step(store, sid, "step-1", USER_ID)
    _assert_completed_at_matches_status(row)

    row = progress_recorder.start_step(store, sid, "step-1", USER_ID)
    _assert_completed_at_matches_status(row)

    row = progress_recorder.fail_step(store, sid, "step-1", USER_ID, {"validation": "bad email"})
    _assert_completed_at_matches_status(row)

    row = progress_recorder.record_step_completion(
        store, sid, "step-1", USER_ID, StepResult(status=StepStatus.IN_PROGRESS, time_spent=90)
    )
    _assert_completed_at_matches_status(row)

    row = progress_recorder.record_step_completion(
        store, sid, "step-1", USER_ID, StepResult(time_spent=120)
    )
    _assert_completed_at_matches_status(row)


def test_terminal_status_without_timestamp_gets_one(store, session):
    row = progress_recorder.record_progress(
        store, session.id, "step-1", USER_ID, StepProgressPatch(status=StepStatus.COMPLETED)
    )

    assert row.completed_at is not None


def test_non_terminal_status_clears_completed_at(store, session):
    row = progress_recorder.record_progress(
        store, session.id, "step-1", USER_ID,
        StepProgressPatch(status=StepStatus.IN_PROGRESS, completed_at=utcnow())
    )

    assert row.completed_at is None


def test_time_spent_never_decreases_while_in_progress(store, session):
    progress_recorder.start_step(store, session.id, "step-1", USER_ID)
    progress_recorder.update_step_progress(store, session.id, "step-1", USER_ID, 120)

    row = progress_recorder.update_step_progress(store, session.id, "step-1", USER_ID, 60)

    assert row.time_spent == 120


def test_start_step_sets_attempts_once(store, session):
    row = progress_recorder.start_step(store, session.id, "step-1", USER_ID)
    assert row.attempts == 1
    assert row.started_at is not None

    row = progress_recorder.start_step(store, session.id, "step-1", USER_ID)
    assert row.attempts == 1

    row = progress_recorder.start_step(store, session.id, "step-1", USER_ID, attempts=2)
    assert row.attempts == 2


def test_skip_step_records_reason(store, session):
    row = progress_recorder.skip_step(store, session.id, "step-2", USER_ID, reason="already_known")

    assert row.status == "skipped"
    assert row.step_result == {"skip_reason": "already_known"}


def test_fail_step_records_errors_and_attempts(store, session):
    row = progress_recorder.fail_step(
        store, session.id, "step-2", USER_ID, {"technical": "500 from API"}, attempts=3
    )

    assert row.status == "failed"
    assert row.errors == {"technical": "500 from API"}
    assert row.attempts == 3


def test_every_write_appends_progress_event(db, store, session):
    progress_recorder.start_step(store, session.id, "step-1", USER_ID)
    progress_recorder.update_step_progress(store, session.id, "step-1", USER_ID, 45)

    events = db.query(AnalyticsEvent).filter(AnalyticsEvent.event_type == "step_progress").all()

    assert len(events) == 2
    assert all(e.step_id == "step-1" for e in events)
    assert {e.event_data.get("time_spent") for e in events} == {None, 45}
    assert all(e.event_data["status"] == "in_progress" for e in events)


def test_completion_updates_session_aggregate(db, store, session):
    for step_id in ("step-1", "step-2"):
        progress_recorder.record_step_completion(
            store, session.id, step_id, USER_ID, StepResult(time_spent=300, score=90.0)
        )

    db.expire_all()
    refreshed = db.query(OnboardingSession).filter(OnboardingSession.id == session.id).first()

    assert float(refreshed.progress_percentage) == 50.0
    assert refreshed.time_spent == 600
    assert refreshed.last_active_at is not None


def test_completion_stores_result_summary(store, session):
    row = progress_recorder.record_step_completion(
        store, session.id, "step-1", USER_ID, StepResult(time_spent=60, score=75.0)
    )

    assert row.step_result == {"status": "completed", "score": 75.0}
    assert row.score == 75.0


def test_completion_awards_milestones(db, store, session):
    make_milestone(db, "first_step", criteria={"progress_percentage": 25})

    progress_recorder.record_step_completion(store, session.id, "step-1", USER_ID, StepResult())

    achievements = store.list_achievements(session.id)
    assert [a.milestone_id for a in achievements] == ["first_step"]


def test_skipped_outcome_does_not_award_milestones(db, store, session):
    make_milestone(db, "any_progress", criteria={"progress_percentage": 0})

    progress_recorder.record_step_completion(
        store, session.id, "step-1", USER_ID, StepResult(status=StepStatus.SKIPPED)
    )

    assert store.list_achievements(session.id) == []


def test_session_recompute_failure_does_not_fail_write(store, path):
    # Session row does not exist: the aggregate recompute fails softly
    row = progress_recorder.record_step_completion(
        store, "missing-session", "step-1", USER_ID, StepResult(time_spent=10)
    )

    assert row.status == "completed"


def test_store_failure_raises_database_error(store, session, monkeypatch):
    def broken(row):
        raise DatabaseError("Failed to write step progress", operation="upsert_step_progress")

    monkeypatch.setattr(store, "upsert_step_progress", broken)

    with pytest.raises(DatabaseError) as exc_info:
        progress_recorder.start_step(store, session.id, "step-1", USER_ID)

    assert exc_info.value.operation == "upsert_step_progress"


def test_unexpected_failure_is_wrapped(store, session, monkeypatch):
    def broken(session_id, step_id):
        raise RuntimeError("boom")

    monkeypatch.setattr(store, "get_step_progress", broken)

    with pytest.raises(DatabaseError) as exc_info:
        progress_recorder.record_progress(
            store, session.id, "step-1", USER_ID, StepProgressPatch(time_spent=1)
        )

    assert exc_info.value.operation == "record_progress"
    assert isinstance(exc_info.value.cause, RuntimeError)


def test_one_row_per_session_step(db, store, session):
    progress_recorder.start_step(store, session.id, "step-1", USER_ID)
    progress_recorder.record_step_completion(store, session.id, "step-1", USER_ID, StepResult())

    rows = db.query(StepProgress).filter(StepProgress.session_id == session.id).all()

    assert len(rows) == 1


def _stored_aggregate(db, session_id):
    db.expire_all()
    return db.query(OnboardingSession).filter(OnboardingSession.id == session_id).first()


def test_every_mutation_keeps_session_aggregate_current(db, store, session):
    progress_recorder.record_step_completion(
        store, session.id, "step-1", USER_ID, StepResult(time_spent=60)
    )
    progress_recorder.fail_step(store, session.id, "step-1", USER_ID, {"technical": "500"})
    progress_recorder.start_step(store, session.id, "step-2", USER_ID)
    progress_recorder.update_step_progress(store, session.id, "step-2", USER_ID, 600)

    stored = _stored_aggregate(db, session.id)
    live = analytics_service.get_overall_progress(store, session.id)

    assert float(stored.progress_percentage) == live.overall_progress == 0.0
    assert stored.time_spent == live.time_spent == 660


def test_skipping_completed_step_lowers_stored_progress(db, store, session):
    progress_recorder.record_step_completion(store, session.id, "step-1", USER_ID, StepResult())
    assert float(_stored_aggregate(db, session.id).progress_percentage) == 25.0

    progress_recorder.skip_step(store, session.id, "step-1", USER_ID)

    assert float(_stored_aggregate(db, session.id).progress_percentage) == 0.0
