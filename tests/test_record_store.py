"""Tests for the SQL record store."""
import pytest
from sqlalchemy.exc import OperationalError

from onboarding_engine.errors import DatabaseError
from onboarding_engine.models import AnalyticsEvent, UserAchievement
from onboarding_engine.utils.clock import utcnow

from factories import USER_ID, make_milestone, make_record


def _achievement(session_id, milestone_id="first_step"):
    return UserAchievement(
        user_id=USER_ID,
        session_id=session_id,
        milestone_id=milestone_id,
        earned_at=utcnow(),
        achievement_data={},
    )


def test_insert_achievement_is_insert_or_ignore(store, session):
    first, created = store.insert_achievement(_achievement(session.id))
    second, created_again = store.insert_achievement(_achievement(session.id))

    assert created is True
    assert created_again is False
    assert second.id == first.id
    assert len(store.list_achievements(session.id)) == 1


def test_active_milestones_ordered_by_points(db, store):
    make_milestone(db, "small", points=5)
    make_milestone(db, "big", points=50)
    make_milestone(db, "hidden", points=100, is_active=False)

    assert [m.id for m in store.list_active_milestones()] == ["big", "small"]


def test_path_steps_in_order(store, path):
    steps = store.list_path_steps(path.id)

    assert [s.id for s in steps] == ["step-1", "step-2", "step-3", "step-4"]


def test_get_step_progress(db, store, session):
    make_record(db, session, "step-2", status="in_progress")

    assert store.get_step_progress(session.id, "step-2").status == "in_progress"
    assert store.get_step_progress(session.id, "step-3") is None


def test_update_session_aggregate(db, store, session):
    store.update_session_aggregate(session.id, {"current_step_index": 3, "time_spent": 900})

    db.expire_all()
    refreshed = store.get_session(session.id)
    assert refreshed.current_step_index == 3
    assert refreshed.time_spent == 900


def test_append_analytics_event_never_raises(db, store):
    store.append_analytics_event({"event_type": "step_progress", "not_a_column": 1})
    store.append_analytics_event({"event_type": "step_progress", "session_id": "s1", "event_data": {}})

    assert db.query(AnalyticsEvent).count() == 1


def test_query_failure_becomes_database_error(db, store, monkeypatch):
    def broken_query(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "query", broken_query)

    with pytest.raises(DatabaseError) as exc_info:
        store.get_session("s1")

    assert exc_info.value.operation == "get_session"
    assert isinstance(exc_info.value.cause, OperationalError)
    assert "operation=get_session" in str(exc_info.value)
