from sqlalchemy.orm import Session
from typing import List, Optional
from pydantic import BaseModel

from app.crud.base import CRUDBase
from app.models.enrollment import Enrollment
from app.schemas.enrollment import EnrollmentCreate

class CRUDEnrollment(CRUDBase[Enrollment, EnrollmentCreate, BaseModel]):

    def get_by_user_and_course(self, db: Session, user_id: int, course_id: int) -> Optional[Enrollment]:
        return (
            db.query(Enrollment)
            .filter(Enrollment.user_id == user_id)
            .filter(Enrollment.course_id == course_id)
            .first()
        )

    def get_for_update(self, db: Session, user_id: int, course_id: int) -> Optional[Enrollment]:
        # Row lock on PostgreSQL; SQLite relies on the version check alone.
        return (
            db.query(Enrollment)
            .filter(Enrollment.user_id == user_id)
            .filter(Enrollment.course_id == course_id)
            .populate_existing()
            .with_for_update()
            .first()
        )

    def get_by_user(self, db: Session, user_id: int) -> List[Enrollment]:
        return (
            db.query(Enrollment)
            .filter(Enrollment.user_id == user_id)
            .order_by(Enrollment.enrolled_at.desc())
            .all()
        )

enrollment = CRUDEnrollment(Enrollment)
