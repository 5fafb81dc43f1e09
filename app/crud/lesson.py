from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List, Optional
from pydantic import BaseModel

from app.crud.base import CRUDBase
from app.models.lesson import Lesson
from app.schemas.course import LessonCreate

class CRUDLesson(CRUDBase[Lesson, LessonCreate, BaseModel]):
    def create(self, db: Session, *, obj_in: LessonCreate, commit: bool = True) -> Lesson:
        data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump()
        if data.get("order") is None:
            data = {**data, "order": self.count_by_course(db, course_id=data["course_id"])}
        return super().create(db, obj_in=data, commit=commit)

    def get_by_course(self, db: Session, *, course_id: int) -> List[Lesson]:
        return (
            db.query(Lesson)
            .filter(Lesson.course_id == course_id)
            .order_by(Lesson.order, Lesson.id)
            .all()
        )

    def get_ids_by_course(self, db: Session, *, course_id: int) -> List[int]:
        rows = db.query(Lesson.id).filter(Lesson.course_id == course_id).all()
        return [row.id for row in rows]

    def count_by_course(self, db: Session, *, course_id: int) -> int:
        return db.query(func.count(Lesson.id)).filter(Lesson.course_id == course_id).scalar() or 0

    def get_by_video_id(self, db: Session, *, video_id: str) -> Optional[Lesson]:
        return db.query(Lesson).filter(Lesson.video_id == video_id).first()

lesson = CRUDLesson(Lesson)
