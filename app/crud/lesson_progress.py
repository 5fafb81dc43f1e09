from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Dict, Iterable, List, Optional
from pydantic import BaseModel

from app.crud.base import CRUDBase
from app.models.lesson_progress import LessonProgress

class CRUDLessonProgress(CRUDBase[LessonProgress, BaseModel, BaseModel]):

    def get_by_user_and_lesson(self, db: Session, user_id: int, lesson_id: int) -> Optional[LessonProgress]:
        return (
            db.query(LessonProgress)
            .filter(LessonProgress.user_id == user_id)
            .filter(LessonProgress.lesson_id == lesson_id)
            .first()
        )

    def get_for_update(self, db: Session, user_id: int, lesson_id: int) -> Optional[LessonProgress]:
        # populate_existing so a retry sees what the winning writer committed
        return (
            db.query(LessonProgress)
            .filter(LessonProgress.user_id == user_id)
            .filter(LessonProgress.lesson_id == lesson_id)
            .populate_existing()
            .with_for_update()
            .first()
        )

    def get_many_by_user(self, db: Session, user_id: int, lesson_ids: Iterable[int]) -> List[LessonProgress]:
        lesson_ids = list(lesson_ids)
        if not lesson_ids:
            return []
        return (
            db.query(LessonProgress)
            .filter(LessonProgress.user_id == user_id)
            .filter(LessonProgress.lesson_id.in_(lesson_ids))
            .all()
        )

    def map_by_lesson(self, db: Session, user_id: int, lesson_ids: Iterable[int]) -> Dict[int, LessonProgress]:
        return {lp.lesson_id: lp for lp in self.get_many_by_user(db, user_id=user_id, lesson_ids=lesson_ids)}

    def count_completed(self, db: Session, user_id: int, lesson_ids: Iterable[int]) -> int:
        lesson_ids = list(lesson_ids)
        if not lesson_ids:
            return 0
        return (
            db.query(func.count(LessonProgress.id))
            .filter(LessonProgress.user_id == user_id)
            .filter(LessonProgress.lesson_id.in_(lesson_ids))
            .filter(LessonProgress.completed.is_(True))
            .scalar()
        ) or 0

lesson_progress = CRUDLessonProgress(LessonProgress)
