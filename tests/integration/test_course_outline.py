import pytest
from fastapi import HTTPException

from app.services.course_viewer import CourseViewerService
from app.services.lesson_progress import LessonProgressStore


def test_outline_points_at_the_first_incomplete_lesson(db_session, user_factory, course_with_lessons, enrollment_factory):
    user = user_factory()
    course, lessons = course_with_lessons(count=3)
    enrollment_factory(user.id, course.id)
    store = LessonProgressStore()
    store.mark_complete(db_session, user_id=user.id, lesson_id=lessons[0].id)
    store.record_watch_time(db_session, user_id=user.id, lesson_id=lessons[2].id, elapsed_seconds=20)

    outline = CourseViewerService().get_course_outline(db_session, user_id=user.id, course_id=course.id)

    assert [item.id for item in outline.lessons] == [lesson.id for lesson in lessons]
    assert outline.current_lesson_id == lessons[1].id
    assert outline.course_completed is False
    assert outline.lessons[0].progress.completed is True
    assert outline.lessons[1].progress.started is False
    assert outline.lessons[2].progress.watch_time_seconds == 20
    assert outline.lessons[0].duration_seconds == 120
    assert outline.enrollment is not None


def test_outline_for_finished_course_points_at_the_last_lesson(db_session, user_factory, course_with_lessons):
    user = user_factory()
    course, lessons = course_with_lessons(count=2)
    store = LessonProgressStore()
    for lesson in lessons:
        store.mark_complete(db_session, user_id=user.id, lesson_id=lesson.id)

    outline = CourseViewerService().get_course_outline(db_session, user_id=user.id, course_id=course.id)

    assert outline.current_lesson_id == lessons[-1].id
    assert outline.course_completed is True
    assert outline.enrollment is None


def test_adjacent_lessons(db_session, course_with_lessons):
    course, lessons = course_with_lessons(count=3)
    viewer = CourseViewerService()

    first = viewer.get_adjacent_lessons(db_session, lesson_id=lessons[0].id)
    middle = viewer.get_adjacent_lessons(db_session, lesson_id=lessons[1].id)
    last = viewer.get_adjacent_lessons(db_session, lesson_id=lessons[2].id)

    assert (first.previous_lesson_id, first.next_lesson_id) == (None, lessons[1].id)
    assert (middle.previous_lesson_id, middle.next_lesson_id) == (lessons[0].id, lessons[2].id)
    assert (last.previous_lesson_id, last.next_lesson_id) == (lessons[1].id, None)


def test_unknown_course_is_not_found(db_session):
    with pytest.raises(HTTPException) as exc_info:
        CourseViewerService().get_course_outline(db_session, user_id=1, course_id=424242)
    assert exc_info.value.status_code == 404
