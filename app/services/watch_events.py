"""Watch-Event Ingestor.

Turns playback samples (absolute positions, possibly duplicated or out of
order) into lesson progress writes. Tracking must never break playback, so
every public method here logs and drops a failed sample instead of raising.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.core.exceptions import (
    ConcurrencyConflictError,
    InvariantViolation,
    ProgressTrackingError,
    ReferentialIntegrityError,
)
from app.crud.lesson import lesson as crud_lesson
from app.models.lesson_progress import LessonProgress
from app.services.course_progress import CourseProgressAggregator, course_progress_aggregator
from app.services.lesson_progress import LessonProgressStore, lesson_progress_store
from app.utils.progress import Number, check_playback_seconds, compute_watch_percentage, should_auto_complete

logger = logging.getLogger(__name__)


class WatchEventIngestor:

    def __init__(
        self,
        store: Optional[LessonProgressStore] = None,
        aggregator: Optional[CourseProgressAggregator] = None,
    ):
        self.store = store or lesson_progress_store
        self.aggregator = aggregator or course_progress_aggregator

    def track_session_start(self, db: Session, user_id: int, lesson_id: int) -> Optional[LessonProgress]:
        try:
            return self.store.ensure_started(db, user_id=user_id, lesson_id=lesson_id)
        except ProgressTrackingError as e:
            self._log_dropped("session start", user_id, lesson_id, e)
            return None

    def record_sample(
        self,
        db: Session,
        user_id: int,
        lesson_id: int,
        elapsed_seconds: Number,
        duration_seconds: Optional[Number] = None,
    ) -> Optional[LessonProgress]:
        try:
            self._check_sample(elapsed_seconds, duration_seconds)
            duration = self._resolve_duration(db, lesson_id, duration_seconds)
            return self._record(db, user_id, lesson_id, elapsed_seconds, duration)
        except ProgressTrackingError as e:
            self._log_dropped("watch sample", user_id, lesson_id, e)
            return None

    def evaluate_auto_complete(
        self,
        db: Session,
        user_id: int,
        lesson_id: int,
        elapsed_seconds: Number,
        duration_seconds: Optional[Number] = None,
    ) -> Optional[LessonProgress]:
        """Complete the lesson once 90% has been watched, otherwise just record the sample."""
        try:
            self._check_sample(elapsed_seconds, duration_seconds)
            duration = self._resolve_duration(db, lesson_id, duration_seconds)
            if not should_auto_complete(elapsed_seconds, duration):
                return self._record(db, user_id, lesson_id, elapsed_seconds, duration)

            existing = self.store.get(db, user_id=user_id, lesson_id=lesson_id)
            if existing is not None and existing.completed:
                return self._record(db, user_id, lesson_id, elapsed_seconds, duration)

            record, newly_completed = self.store.mark_complete(
                db,
                user_id=user_id,
                lesson_id=lesson_id,
                watch_time_seconds=elapsed_seconds,
                watch_percentage=compute_watch_percentage(elapsed_seconds, duration),
            )
            if newly_completed:
                logger.info(f"Lesson {lesson_id} auto-completed for user {user_id} at {elapsed_seconds}s of {duration}s")
                self.aggregator.on_lesson_completed(db, user_id=user_id, lesson_id=lesson_id)
            return record
        except ProgressTrackingError as e:
            self._log_dropped("watch sample", user_id, lesson_id, e)
            return None

    def _record(self, db: Session, user_id: int, lesson_id: int, elapsed_seconds: Number, duration: Optional[Number]):
        return self.store.record_watch_time(
            db,
            user_id=user_id,
            lesson_id=lesson_id,
            elapsed_seconds=elapsed_seconds,
            watch_percentage=compute_watch_percentage(elapsed_seconds, duration),
        )

    def _check_sample(self, elapsed_seconds: Number, duration_seconds: Optional[Number]):
        check_playback_seconds(elapsed_seconds, field="elapsed_seconds")
        if duration_seconds is not None:
            check_playback_seconds(duration_seconds, field="duration_seconds")

    def _resolve_duration(self, db: Session, lesson_id: int, duration_seconds: Optional[Number]) -> Optional[Number]:
        if duration_seconds is not None:
            return duration_seconds
        lesson = crud_lesson.get(db, id=lesson_id)
        return lesson.duration_seconds if lesson else None

    def _log_dropped(self, what: str, user_id: int, lesson_id: int, exc: ProgressTrackingError):
        message = f"Dropped {what} for user={user_id} lesson={lesson_id}: {exc.message} {exc.context}"
        if isinstance(exc, InvariantViolation):
            logger.error(message)
        elif isinstance(exc, ConcurrencyConflictError):
            logger.info(message)
        elif isinstance(exc, ReferentialIntegrityError):
            logger.warning(message)
        else:
            logger.error(message, exc_info=True)


watch_event_ingestor = WatchEventIngestor()
