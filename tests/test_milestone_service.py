"""Tests for milestone evaluation and awarding."""
import pytest

from onboarding_engine.errors import DatabaseError, SessionNotFoundError
from onboarding_engine.models import AnalyticsEvent, UserAchievement
from onboarding_engine.schemas.progress import OverallProgress
from onboarding_engine.services.milestone_service import MilestoneService, milestone_service

from factories import USER_ID, make_milestone, make_record


def _progress(overall=0.0, completed=None, time_spent=0):
    return OverallProgress(
        session_id="session-1",
        total_steps=4,
        completed_steps=completed or [],
        overall_progress=overall,
        time_spent=time_spent,
    )


@pytest.fixture
def service():
    return MilestoneService()


def test_progress_criteria(db, service):
    milestone = make_milestone(db, "halfway", criteria={"progress_percentage": 50})

    assert service.criteria_met(milestone, _progress(overall=50.0))
    assert not service.criteria_met(milestone, _progress(overall=49.99))


def test_completion_criteria(db, service):
    milestone = make_milestone(db, "setup_done", "completion",
                               criteria={"required_steps": ["step-1", "step-2"]})

    assert service.criteria_met(milestone, _progress(completed=["step-1", "step-2", "step-3"]))
    assert not service.criteria_met(milestone, _progress(completed=["step-1"]))


def test_completion_criteria_rejects_malformed_steps(db, service):
    milestone = make_milestone(db, "broken", "completion", criteria={"required_steps": "step-1"})

    assert not service.criteria_met(milestone, _progress(completed=["step-1"]))


def test_time_based_criteria_in_minutes(db, service):
    milestone = make_milestone(db, "speedy", "time_based", criteria={"max_time_minutes": 30})

    assert service.criteria_met(milestone, _progress(time_spent=30 * 60))
    assert not service.criteria_met(milestone, _progress(time_spent=30 * 60 + 1))


def test_time_based_without_limit_always_met(db, service):
    milestone = make_milestone(db, "no_limit", "time_based", criteria={})

    assert service.criteria_met(milestone, _progress(time_spent=10 ** 6))


def test_achievement_predicate_registry(db, service):
    milestone = make_milestone(db, "perfectionist", "achievement",
                               criteria={"predicate": "all_done"})

    assert not service.criteria_met(milestone, _progress(overall=100.0))

    service.register_achievement_predicate("all_done", lambda m, p: p.overall_progress >= 100)
    assert service.criteria_met(milestone, _progress(overall=100.0))
    assert not service.criteria_met(milestone, _progress(overall=75.0))

    service.unregister_achievement_predicate("all_done")
    assert not service.criteria_met(milestone, _progress(overall=100.0))


def test_failing_predicate_is_not_met(db, service):
    milestone = make_milestone(db, "flaky", "achievement", criteria={"predicate": "explodes"})

    def explodes(milestone, progress):
        raise ValueError("bad data")

    service.register_achievement_predicate("explodes", explodes)

    assert not service.criteria_met(milestone, _progress())


def test_badge_progress_is_clamped(db, service):
    halfway = make_milestone(db, "halfway", criteria={"progress_percentage": 50})
    speedy = make_milestone(db, "speedy", "time_based", criteria={"max_time_minutes": 10})

    assert service.calculate_badge_progress(halfway, _progress(overall=25.0)) == 50.0
    assert service.calculate_badge_progress(halfway, _progress(overall=75.0)) == 100.0
    assert service.calculate_badge_progress(speedy, _progress(time_spent=5 * 60)) == 50.0
    assert service.calculate_badge_progress(speedy, _progress(time_spent=20 * 60)) == 0.0


def test_award_twice_yields_one_row(db, store, session):
    make_milestone(db, "first_step")

    first = milestone_service.award_milestone(store, USER_ID, session.id, "first_step")
    second = milestone_service.award_milestone(store, USER_ID, session.id, "first_step")

    rows = db.query(UserAchievement).filter(UserAchievement.session_id == session.id).all()
    assert len(rows) == 1
    assert first.id == second.id


def test_award_event_logged_once(db, store, session):
    make_milestone(db, "first_step")

    milestone_service.award_milestone(store, USER_ID, session.id, "first_step", {"trigger_step": "step-1"})
    milestone_service.award_milestone(store, USER_ID, session.id, "first_step")

    events = db.query(AnalyticsEvent).filter(AnalyticsEvent.event_type == "milestone_reached").all()
    assert len(events) == 1
    assert events[0].event_data == {"milestone_id": "first_step", "trigger_step": "step-1"}


def test_award_race_converges_on_existing_row(db, store, session, monkeypatch):
    make_milestone(db, "first_step")
    original = milestone_service.award_milestone(store, USER_ID, session.id, "first_step")

    # A concurrent caller misses the existing row on its first lookup
    real_lookup = store.get_achievement
    lookups = []

    def stale_lookup(*args):
        lookups.append(args)
        return None if len(lookups) == 1 else real_lookup(*args)

    monkeypatch.setattr(store, "get_achievement", stale_lookup)
    again = milestone_service.award_milestone(store, USER_ID, session.id, "first_step")

    assert again.id == original.id
    assert db.query(UserAchievement).count() == 1


def test_check_and_award_milestones(db, store, session):
    make_milestone(db, "quarter", criteria={"progress_percentage": 25}, points=5)
    make_milestone(db, "halfway", criteria={"progress_percentage": 50}, points=20)
    make_milestone(db, "inactive", criteria={"progress_percentage": 0}, is_active=False)
    make_record(db, session, "step-1", status="completed")

    awarded = milestone_service.check_and_award_milestones(store, session.id, "step-1", USER_ID)

    assert [a.milestone_id for a in awarded] == ["quarter"]
    assert awarded[0].achievement_data == {"trigger_step": "step-1", "progress_at_award": 25.0}


def test_failed_grant_does_not_block_other_milestones(db, store, session, monkeypatch):
    make_milestone(db, "halfway", criteria={"progress_percentage": 25}, points=20)
    make_milestone(db, "quarter", criteria={"progress_percentage": 25}, points=5)
    make_record(db, session, "step-1", status="completed")

    real_insert = store.insert_achievement

    def failing_insert(row):
        if row.milestone_id == "halfway":
            raise DatabaseError("Failed to award milestone", operation="insert_achievement")
        return real_insert(row)

    monkeypatch.setattr(store, "insert_achievement", failing_insert)

    awarded = milestone_service.check_and_award_milestones(store, session.id, "step-1", USER_ID)

    assert [a.milestone_id for a in awarded] == ["quarter"]


def test_check_and_award_is_best_effort(store):
    assert milestone_service.check_and_award_milestones(store, "missing", "step-1", USER_ID) == []


def test_user_achievements_newest_first(db, store, session):
    make_milestone(db, "a")
    make_milestone(db, "b")
    milestone_service.award_milestone(store, USER_ID, session.id, "a")
    milestone_service.award_milestone(store, USER_ID, session.id, "b")

    achievements = milestone_service.get_user_achievements(store, session.id)

    assert achievements[0].earned_at >= achievements[1].earned_at


def test_available_badges(db, store, session):
    make_milestone(db, "quarter", criteria={"progress_percentage": 25}, points=5)
    make_milestone(db, "complete", criteria={"progress_percentage": 100}, points=50)
    make_record(db, session, "step-1", status="completed")
    milestone_service.award_milestone(store, USER_ID, session.id, "quarter")

    badges = {b.badge_id: b for b in milestone_service.get_available_badges(store, USER_ID, session.id)}

    assert badges["quarter"].is_earned
    assert badges["quarter"].progress == 100.0
    assert not badges["complete"].is_earned
    assert badges["complete"].progress == 25.0
    assert badges["complete"].points == 50


def test_certificate_is_issued_once(db, store, session, path):
    make_milestone(db, "first_step")
    milestone_service.award_milestone(store, USER_ID, session.id, "first_step")

    first = milestone_service.generate_completion_certificate(store, USER_ID, session.id)
    second = milestone_service.generate_completion_certificate(store, USER_ID, session.id)

    assert first.certificate_id == second.certificate_id
    assert first.certificate_id.startswith(f"cert_{USER_ID}_{session.id}_")
    assert first.certificate_url == f"/certificates/{first.certificate_id}"
    assert first.path_name == path.name
    assert [a.milestone_id for a in second.achievements] == ["first_step"]

    certificates = db.query(UserAchievement).filter(
        UserAchievement.milestone_id == MilestoneService.CERTIFICATE_MILESTONE_ID
    ).all()
    assert len(certificates) == 1


def test_certificate_for_missing_session(store):
    with pytest.raises(SessionNotFoundError):
        milestone_service.generate_completion_certificate(store, USER_ID, "missing")
