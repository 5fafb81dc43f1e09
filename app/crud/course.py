from typing import Optional
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.course import Course
from app.schemas.course import CourseCreate

class CRUDCourse(CRUDBase[Course, CourseCreate, BaseModel]):
    def get_by_code(self, db: Session, *, code: str) -> Optional[Course]:
        return db.query(Course).filter(Course.code == code).first()

course = CRUDCourse(Course)
