import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.constants import EnrollmentStatusEnum
from app.core.exceptions import ConcurrencyConflictError, ProgressTrackingError, ReferentialIntegrityError
from app.crud.enrollment import enrollment as crud_enrollment
from app.crud.lesson import lesson as crud_lesson
from app.crud.lesson_progress import lesson_progress as crud_lesson_progress
from app.models.enrollment import Enrollment
from app.utils.progress import compute_course_percentage, next_enrollment_status

logger = logging.getLogger(__name__)


class CourseProgressAggregator:
    """Derives an enrollment's percentage and status from its lesson completions.

    The percentage is always recomputed from the detail rows, never
    incremented, so running it again with the same lesson progress yields the
    same enrollment state.
    """

    def __init__(self, max_retries: Optional[int] = None):
        self.max_retries = settings.PROGRESS_MAX_RETRIES if max_retries is None else max_retries

    def recompute(self, db: Session, user_id: int, course_id: int) -> Enrollment:
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                enrollment = crud_enrollment.get_for_update(db, user_id=user_id, course_id=course_id)
                if not enrollment:
                    db.rollback()
                    raise ReferentialIntegrityError(
                        "Enrollment not found", user_id=user_id, course_id=course_id
                    )

                lesson_ids = crud_lesson.get_ids_by_course(db, course_id=course_id)
                done = crud_lesson_progress.count_completed(db, user_id=user_id, lesson_ids=lesson_ids)
                percentage = compute_course_percentage(done, len(lesson_ids))
                status = next_enrollment_status(enrollment.status, percentage)

                if enrollment.progress_percentage != percentage or enrollment.status != status:
                    enrollment.progress_percentage = percentage
                    if status == EnrollmentStatusEnum.COMPLETED and enrollment.status != status:
                        enrollment.completed_at = datetime.now(timezone.utc)
                        logger.info(f"Enrollment {enrollment.id} completed (user={user_id} course={course_id})")
                    enrollment.status = status
                db.commit()
                return enrollment
            except StaleDataError:
                db.rollback()
                logger.info(
                    f"Lost write race on enrollment user={user_id} course={course_id} "
                    f"(attempt {attempt}/{attempts})"
                )

        raise ConcurrencyConflictError(
            "Enrollment recomputation kept conflicting with concurrent writers",
            user_id=user_id,
            course_id=course_id,
            attempts=attempts,
        )

    def on_lesson_completed(self, db: Session, user_id: int, lesson_id: int) -> Optional[Enrollment]:
        """Recompute after a lesson's first completion.

        Runs after the lesson write has committed, so a failure here is logged
        and leaves the completion in place.
        """
        try:
            lesson = crud_lesson.get(db, id=lesson_id)
            if not lesson:
                raise ReferentialIntegrityError("Lesson not found", user_id=user_id, lesson_id=lesson_id)
            return self.recompute(db, user_id=user_id, course_id=lesson.course_id)
        except ProgressTrackingError as e:
            db.rollback()
            logger.warning(f"Course progress recomputation skipped for user={user_id} lesson={lesson_id}: {e.message}")
            return None


course_progress_aggregator = CourseProgressAggregator()
