"""Lesson Progress Store.

The single writer of ``lesson_progress`` rows. Every write is one short
transaction on one (user, lesson) row: the row is read ``FOR UPDATE``, the
guarded transition from ``app.utils.progress`` is applied, and the commit is
checked against the row's version counter. A writer that loses the race
(stale version, or a concurrent first insert hitting the unique key) rolls
back and re-applies its change on top of the winner's state.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, Iterable, Optional, Tuple

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.exceptions import ConcurrencyConflictError, InvariantViolation, ProgressTrackingError, ReferentialIntegrityError
from app.crud.lesson import lesson as crud_lesson
from app.crud.lesson_progress import lesson_progress as crud_lesson_progress
from app.crud.user import user as crud_user
from app.models.lesson_progress import LessonProgress
from app.utils.progress import Number, apply_lesson_transition

logger = logging.getLogger(__name__)

Mutation = Callable[[LessonProgress, datetime], bool]


class LessonProgressStore:

    def __init__(self, max_retries: Optional[int] = None):
        self.max_retries = settings.PROGRESS_MAX_RETRIES if max_retries is None else max_retries

    def get(self, db: Session, user_id: int, lesson_id: int) -> Optional[LessonProgress]:
        return crud_lesson_progress.get_by_user_and_lesson(db, user_id=user_id, lesson_id=lesson_id)

    def list_for_lessons(self, db: Session, user_id: int, lesson_ids: Iterable[int]) -> Dict[int, LessonProgress]:
        return crud_lesson_progress.map_by_lesson(db, user_id=user_id, lesson_ids=lesson_ids)

    def count_completed(self, db: Session, user_id: int, lesson_ids: Iterable[int]) -> int:
        return crud_lesson_progress.count_completed(db, user_id=user_id, lesson_ids=lesson_ids)

    def ensure_started(self, db: Session, user_id: int, lesson_id: int) -> LessonProgress:
        """Create the row with zeroed progress if it is missing; never touch an existing one."""
        record, _ = self._upsert(db, user_id, lesson_id, mutate=None)
        return record

    def record_watch_time(
        self,
        db: Session,
        user_id: int,
        lesson_id: int,
        elapsed_seconds: Number,
        watch_percentage: Optional[Decimal] = None,
    ) -> LessonProgress:
        def mutate(record: LessonProgress, now: datetime) -> bool:
            return apply_lesson_transition(
                record,
                now=now,
                watch_time_seconds=elapsed_seconds,
                watch_percentage=watch_percentage,
            )

        record, _ = self._upsert(db, user_id, lesson_id, mutate=mutate)
        return record

    def mark_complete(
        self,
        db: Session,
        user_id: int,
        lesson_id: int,
        watch_time_seconds: Optional[Number] = None,
        watch_percentage: Optional[Decimal] = None,
    ) -> Tuple[LessonProgress, bool]:
        """Mark the lesson complete. Returns the record and whether this call flipped it."""
        def mutate(record: LessonProgress, now: datetime) -> bool:
            return apply_lesson_transition(
                record,
                now=now,
                watch_time_seconds=watch_time_seconds,
                watch_percentage=watch_percentage,
                completed=True,
            )

        return self._upsert(db, user_id, lesson_id, mutate=mutate)

    def _require_references(self, db: Session, user_id: int, lesson_id: int):
        if not crud_user.exists(db, id=user_id):
            raise ReferentialIntegrityError("User not found", user_id=user_id, lesson_id=lesson_id)
        if not crud_lesson.exists(db, id=lesson_id):
            raise ReferentialIntegrityError("Lesson not found", user_id=user_id, lesson_id=lesson_id)

    def _upsert(
        self,
        db: Session,
        user_id: int,
        lesson_id: int,
        mutate: Optional[Mutation],
    ) -> Tuple[LessonProgress, bool]:
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            now = datetime.now(timezone.utc)
            try:
                record = crud_lesson_progress.get_for_update(db, user_id=user_id, lesson_id=lesson_id)
                if record is None:
                    self._require_references(db, user_id, lesson_id)
                    record = LessonProgress(
                        user_id=user_id,
                        lesson_id=lesson_id,
                        completed=False,
                        watch_time_seconds=0,
                        started_at=now,
                    )
                    db.add(record)
                elif mutate is None:
                    db.commit()
                    return record, False

                changed = mutate(record, now) if mutate else False
                db.commit()
                return record, changed
            except (StaleDataError, IntegrityError) as exc:
                db.rollback()
                if isinstance(exc, IntegrityError):
                    # A vanished parent row looks like a unique-key race on PostgreSQL.
                    self._require_references(db, user_id, lesson_id)
                logger.info(
                    f"Lost write race on lesson progress user={user_id} lesson={lesson_id} "
                    f"(attempt {attempt}/{attempts}): {type(exc).__name__}"
                )
            except ProgressTrackingError:
                db.rollback()
                raise
            except (DBAPIError, OverflowError, ValueError) as exc:
                # Values the database cannot store; retrying would fail the same way
                db.rollback()
                raise InvariantViolation(
                    "Lesson progress values could not be stored",
                    user_id=user_id,
                    lesson_id=lesson_id,
                    error=type(exc).__name__,
                ) from exc

        raise ConcurrencyConflictError(
            "Lesson progress update kept conflicting with concurrent writers",
            user_id=user_id,
            lesson_id=lesson_id,
            attempts=attempts,
        )


lesson_progress_store = LessonProgressStore()
