import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.core.exceptions import ReferentialIntegrityError
from app.crud.lesson import lesson as crud_lesson
from app.crud.user import user as crud_user
from app.schemas.lesson_progress import (
    CompletionResult,
    LessonProgress as LessonProgressSchema,
    SampleResult,
    WatchSample,
)
from app.services.course_progress import course_progress_aggregator
from app.services.lesson_progress import lesson_progress_store
from app.services.watch_events import watch_event_ingestor

logger = logging.getLogger(__name__)


class ProgressService:
    """Entry points behind the /progress routes."""

    def submit_sample(self, db: Session, sample: WatchSample) -> Optional[SampleResult]:
        record = watch_event_ingestor.evaluate_auto_complete(
            db,
            user_id=sample.user_id,
            lesson_id=sample.lesson_id,
            elapsed_seconds=sample.elapsed_seconds,
            duration_seconds=sample.duration_seconds,
        )
        if record is None:
            return None
        return SampleResult.model_validate(record)

    def start_session(self, db: Session, user_id: int, lesson_id: int) -> LessonProgressSchema:
        record = watch_event_ingestor.track_session_start(db, user_id=user_id, lesson_id=lesson_id)
        if record is None:
            return LessonProgressSchema.not_started(user_id, lesson_id)
        return LessonProgressSchema.model_validate(record)

    def complete_lesson(self, db: Session, user_id: int, lesson_id: int) -> CompletionResult:
        record, newly_completed = lesson_progress_store.mark_complete(db, user_id=user_id, lesson_id=lesson_id)
        if newly_completed:
            logger.info(f"Lesson {lesson_id} marked complete by user {user_id}")
            course_progress_aggregator.on_lesson_completed(db, user_id=user_id, lesson_id=lesson_id)
        return CompletionResult.model_validate(record)

    def get_snapshot(self, db: Session, user_id: int, lesson_id: int) -> LessonProgressSchema:
        record = lesson_progress_store.get(db, user_id=user_id, lesson_id=lesson_id)
        if record is not None:
            return LessonProgressSchema.model_validate(record)
        if not crud_user.exists(db, id=user_id):
            raise ReferentialIntegrityError("User not found", user_id=user_id)
        if not crud_lesson.exists(db, id=lesson_id):
            raise ReferentialIntegrityError("Lesson not found", lesson_id=lesson_id)
        return LessonProgressSchema.not_started(user_id, lesson_id)


progress_service = ProgressService()
