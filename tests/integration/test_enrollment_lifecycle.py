from decimal import Decimal

import pytest
from fastapi import HTTPException

from app.core.constants import EnrollmentStatusEnum
from app.core.exceptions import InvalidTransitionError
from app.services.enrollment import EnrollmentService
from app.services.lesson_progress import LessonProgressStore


def test_enroll_is_idempotent(db_session, user_factory, course_factory):
    user = user_factory()
    course = course_factory()
    service = EnrollmentService()

    first = service.enroll(db_session, user_id=user.id, course_id=course.id)
    second = service.enroll(db_session, user_id=user.id, course_id=course.id)

    assert first.id == second.id
    assert first.status == EnrollmentStatusEnum.ACTIVE
    assert first.progress_percentage == Decimal("0.00")
    assert len(service.list_for_user(db_session, user_id=user.id)) == 1


def test_enroll_requires_user_and_course(db_session, user_factory, course_factory):
    user = user_factory()
    course = course_factory()
    service = EnrollmentService()

    with pytest.raises(HTTPException) as exc_info:
        service.enroll(db_session, user_id=user.id + 999, course_id=course.id)
    assert exc_info.value.status_code == 404

    with pytest.raises(HTTPException) as exc_info:
        service.enroll(db_session, user_id=user.id, course_id=course.id + 999)
    assert exc_info.value.status_code == 404


def test_drop_is_idempotent(db_session, user_factory, course_factory):
    user = user_factory()
    course = course_factory()
    service = EnrollmentService()
    service.enroll(db_session, user_id=user.id, course_id=course.id)

    dropped = service.drop(db_session, user_id=user.id, course_id=course.id)
    assert dropped.status == EnrollmentStatusEnum.DROPPED

    # Dropping again is a no-op
    again = service.drop(db_session, user_id=user.id, course_id=course.id)
    assert again.status == EnrollmentStatusEnum.DROPPED


def test_completed_enrollment_can_be_dropped(db_session, user_factory, course_with_lessons, enrollment_factory):
    user = user_factory()
    course, lessons = course_with_lessons(count=1)
    enrollment_factory(user.id, course.id, status=EnrollmentStatusEnum.COMPLETED, progress_percentage=Decimal("100.00"))

    dropped = EnrollmentService().drop(db_session, user_id=user.id, course_id=course.id)

    assert dropped.status == EnrollmentStatusEnum.DROPPED


def test_missing_enrollment_is_not_found(db_session, user_factory, course_factory):
    user = user_factory()
    course = course_factory()

    with pytest.raises(HTTPException) as exc_info:
        EnrollmentService().get(db_session, user_id=user.id, course_id=course.id)
    assert exc_info.value.status_code == 404


def test_reconcile_recomputes_from_lesson_progress(db_session, user_factory, course_with_lessons, enrollment_factory):
    user = user_factory()
    course, lessons = course_with_lessons(count=4)
    enrollment_factory(user.id, course.id)
    store = LessonProgressStore()
    # Completions written without the aggregator, e.g. by an import
    for lesson in lessons[:2]:
        store.mark_complete(db_session, user_id=user.id, lesson_id=lesson.id)

    enrollment = EnrollmentService().reconcile(db_session, user_id=user.id, course_id=course.id)

    assert enrollment.progress_percentage == Decimal("50.00")


def test_invalid_transition_is_rejected():
    from app.utils.progress import ensure_enrollment_transition

    with pytest.raises(InvalidTransitionError) as exc_info:
        ensure_enrollment_transition(EnrollmentStatusEnum.DROPPED, EnrollmentStatusEnum.COMPLETED)
    assert exc_info.value.context == {"current": "dropped", "target": "completed"}
