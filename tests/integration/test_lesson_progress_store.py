from decimal import Decimal

import pytest

from app.core.exceptions import ConcurrencyConflictError, InvariantViolation, ReferentialIntegrityError
from app.crud.lesson_progress import lesson_progress as crud_lesson_progress
from app.models.lesson_progress import LessonProgress
from app.services.lesson_progress import LessonProgressStore


@pytest.fixture
def learner(user_factory, course_with_lessons):
    user = user_factory()
    course, lessons = course_with_lessons(count=1)
    return user, lessons[0]


def test_first_sample_creates_the_row(db_session, learner):
    user, lesson = learner
    store = LessonProgressStore()

    record = store.record_watch_time(db_session, user_id=user.id, lesson_id=lesson.id, elapsed_seconds=12)

    assert record.watch_time_seconds == 12
    assert record.completed is False
    assert record.started_at is not None
    assert record.last_watched_at is not None


def test_watch_time_is_monotonic(db_session, learner):
    user, lesson = learner
    store = LessonProgressStore()

    store.record_watch_time(db_session, user_id=user.id, lesson_id=lesson.id, elapsed_seconds=50)
    record = store.record_watch_time(db_session, user_id=user.id, lesson_id=lesson.id, elapsed_seconds=30)

    assert record.watch_time_seconds == 50


def test_ensure_started_leaves_existing_progress_alone(db_session, learner):
    user, lesson = learner
    store = LessonProgressStore()

    store.record_watch_time(
        db_session, user_id=user.id, lesson_id=lesson.id,
        elapsed_seconds=60, watch_percentage=Decimal("50.00"),
    )
    record = store.ensure_started(db_session, user_id=user.id, lesson_id=lesson.id)

    assert record.watch_time_seconds == 60
    assert record.watch_percentage == Decimal("50.00")


def test_completion_is_sticky_and_completed_at_is_kept(db_session, learner):
    user, lesson = learner
    store = LessonProgressStore()

    record, newly_completed = store.mark_complete(db_session, user_id=user.id, lesson_id=lesson.id)
    assert newly_completed is True
    first_completed_at = record.completed_at
    assert first_completed_at is not None

    record, newly_completed = store.mark_complete(db_session, user_id=user.id, lesson_id=lesson.id)
    assert newly_completed is False
    assert record.completed_at == first_completed_at

    record = store.record_watch_time(db_session, user_id=user.id, lesson_id=lesson.id, elapsed_seconds=5)
    assert record.completed is True
    assert record.completed_at == first_completed_at


def test_missing_user_or_lesson_is_rejected(db_session, learner):
    user, lesson = learner
    store = LessonProgressStore()

    with pytest.raises(ReferentialIntegrityError):
        store.record_watch_time(db_session, user_id=user.id + 1000, lesson_id=lesson.id, elapsed_seconds=10)
    with pytest.raises(ReferentialIntegrityError):
        store.mark_complete(db_session, user_id=user.id, lesson_id=lesson.id + 1000)

    assert db_session.query(LessonProgress).count() == 0


def test_stale_writer_reapplies_on_top_of_the_winner(db_session, session_factory, learner, monkeypatch):
    """Writer A reads the row, writer B commits 50, A then tries to write 30."""
    user, lesson = learner
    store = LessonProgressStore()
    store.ensure_started(db_session, user_id=user.id, lesson_id=lesson.id)

    original = crud_lesson_progress.get_for_update
    calls = {"count": 0}

    def interleaved(db, user_id, lesson_id):
        record = original(db, user_id=user_id, lesson_id=lesson_id)
        calls["count"] += 1
        if calls["count"] == 1:
            other = session_factory()
            try:
                store.record_watch_time(other, user_id=user_id, lesson_id=lesson_id, elapsed_seconds=50)
            finally:
                other.close()
        return record

    monkeypatch.setattr(crud_lesson_progress, "get_for_update", interleaved)

    record = store.record_watch_time(db_session, user_id=user.id, lesson_id=lesson.id, elapsed_seconds=30)

    assert record.watch_time_seconds == 50
    assert calls["count"] == 3


def test_racing_first_inserts_converge_on_one_row(db_session, session_factory, learner, monkeypatch):
    user, lesson = learner
    store = LessonProgressStore()

    original = crud_lesson_progress.get_for_update
    calls = {"count": 0}

    def interleaved(db, user_id, lesson_id):
        record = original(db, user_id=user_id, lesson_id=lesson_id)
        calls["count"] += 1
        if calls["count"] == 1:
            other = session_factory()
            try:
                store.record_watch_time(other, user_id=user_id, lesson_id=lesson_id, elapsed_seconds=50)
            finally:
                other.close()
        return record

    monkeypatch.setattr(crud_lesson_progress, "get_for_update", interleaved)

    record = store.record_watch_time(db_session, user_id=user.id, lesson_id=lesson.id, elapsed_seconds=30)

    assert record.watch_time_seconds == 50
    rows = db_session.query(LessonProgress).filter(LessonProgress.user_id == user.id).all()
    assert len(rows) == 1


def test_gives_up_after_repeated_conflicts(db_session, session_factory, learner, monkeypatch):
    user, lesson = learner
    store = LessonProgressStore(max_retries=2)
    store.ensure_started(db_session, user_id=user.id, lesson_id=lesson.id)

    original = crud_lesson_progress.get_for_update
    state = {"busy": False, "elapsed": 100}

    def always_interleaved(db, user_id, lesson_id):
        record = original(db, user_id=user_id, lesson_id=lesson_id)
        if not state["busy"]:
            state["busy"] = True
            state["elapsed"] += 10
            other = session_factory()
            try:
                store.record_watch_time(other, user_id=user_id, lesson_id=lesson_id, elapsed_seconds=state["elapsed"])
            finally:
                other.close()
                state["busy"] = False
        return record

    monkeypatch.setattr(crud_lesson_progress, "get_for_update", always_interleaved)

    with pytest.raises(ConcurrencyConflictError):
        store.record_watch_time(db_session, user_id=user.id, lesson_id=lesson.id, elapsed_seconds=30)


def test_unstorable_values_become_invariant_violations(db_session, learner, monkeypatch):
    from app.services import lesson_progress as lesson_progress_module

    user, lesson = learner
    store = LessonProgressStore()
    store.ensure_started(db_session, user_id=user.id, lesson_id=lesson.id)

    def oversized(record, *, now, **kwargs):
        record.watch_time_seconds = 10 ** 20
        record.last_watched_at = now
        return False

    monkeypatch.setattr(lesson_progress_module, "apply_lesson_transition", oversized)

    with pytest.raises(InvariantViolation):
        store.record_watch_time(db_session, user_id=user.id, lesson_id=lesson.id, elapsed_seconds=10)

    record = store.get(db_session, user_id=user.id, lesson_id=lesson.id)
    assert record.watch_time_seconds == 0
