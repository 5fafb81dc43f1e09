from sqlalchemy.orm import Session
from fastapi import HTTPException, status

from app.crud.course import course as crud_course
from app.crud.enrollment import enrollment as crud_enrollment
from app.crud.lesson import lesson as crud_lesson
from app.schemas.course import AdjacentLessons, CourseOutline, LessonWithProgress
from app.schemas.enrollment import Enrollment as EnrollmentSchema
from app.schemas.lesson_progress import LessonProgress as LessonProgressSchema
from app.services.lesson_progress import lesson_progress_store


class CourseViewerService:

    def get_course_outline(self, db: Session, user_id: int, course_id: int) -> CourseOutline:
        course = crud_course.get(db, id=course_id)
        if not course:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found.")

        lessons = crud_lesson.get_by_course(db, course_id=course_id)
        progress_by_lesson = lesson_progress_store.list_for_lessons(
            db, user_id=user_id, lesson_ids=[lesson.id for lesson in lessons]
        )

        items = []
        for lesson in lessons:
            record = progress_by_lesson.get(lesson.id)
            progress = (
                LessonProgressSchema.model_validate(record)
                if record is not None
                else LessonProgressSchema.not_started(user_id, lesson.id)
            )
            items.append(LessonWithProgress(
                id=lesson.id,
                title=lesson.title,
                order=lesson.order,
                is_free=lesson.is_free,
                video_id=lesson.video_id,
                video_status=lesson.video_status,
                duration_seconds=lesson.duration_seconds,
                progress=progress,
            ))

        # First incomplete lesson, or the last one once everything is done
        incomplete = [item for item in items if not item.progress.completed]
        if incomplete:
            current_lesson_id = incomplete[0].id
        else:
            current_lesson_id = items[-1].id if items else None

        enrollment = crud_enrollment.get_by_user_and_course(db, user_id=user_id, course_id=course_id)
        return CourseOutline(
            course_id=course.id,
            title=course.title,
            enrollment=EnrollmentSchema.model_validate(enrollment) if enrollment else None,
            lessons=items,
            current_lesson_id=current_lesson_id,
            course_completed=bool(items) and not incomplete,
        )

    def get_adjacent_lessons(self, db: Session, lesson_id: int) -> AdjacentLessons:
        lesson = crud_lesson.get(db, id=lesson_id)
        if not lesson:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found.")

        ordered_ids = [item.id for item in crud_lesson.get_by_course(db, course_id=lesson.course_id)]
        index = ordered_ids.index(lesson.id)
        return AdjacentLessons(
            lesson_id=lesson.id,
            previous_lesson_id=ordered_ids[index - 1] if index > 0 else None,
            next_lesson_id=ordered_ids[index + 1] if index < len(ordered_ids) - 1 else None,
        )


course_viewer_service = CourseViewerService()
