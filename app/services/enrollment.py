import logging
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from fastapi import HTTPException, status

from app.core.constants import EnrollmentStatusEnum, ZERO_PERCENT
from app.crud.course import course as crud_course
from app.crud.enrollment import enrollment as crud_enrollment
from app.crud.user import user as crud_user
from app.models.enrollment import Enrollment
from app.services.course_progress import course_progress_aggregator
from app.utils.progress import ensure_enrollment_transition

logger = logging.getLogger(__name__)


class EnrollmentService:

    def _get_or_raise(self, db: Session, user_id: int, course_id: int) -> Enrollment:
        enrollment = crud_enrollment.get_by_user_and_course(db, user_id=user_id, course_id=course_id)
        if not enrollment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User is not enrolled in this course."
            )
        return enrollment

    def enroll(self, db: Session, user_id: int, course_id: int) -> Enrollment:
        if not crud_user.exists(db, id=user_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
        if not crud_course.exists(db, id=course_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found.")

        existing = crud_enrollment.get_by_user_and_course(db, user_id=user_id, course_id=course_id)
        if existing:
            return existing

        try:
            enrollment = crud_enrollment.create(db, obj_in={
                "user_id": user_id,
                "course_id": course_id,
                "status": EnrollmentStatusEnum.ACTIVE,
                "progress_percentage": ZERO_PERCENT,
            })
        except IntegrityError:
            # Someone else enrolled the same pair first
            db.rollback()
            return self._get_or_raise(db, user_id, course_id)

        logger.info(f"User {user_id} enrolled in course {course_id}")
        return enrollment

    def get(self, db: Session, user_id: int, course_id: int) -> Enrollment:
        return self._get_or_raise(db, user_id, course_id)

    def list_for_user(self, db: Session, user_id: int) -> List[Enrollment]:
        return crud_enrollment.get_by_user(db, user_id=user_id)

    def drop(self, db: Session, user_id: int, course_id: int) -> Enrollment:
        enrollment = self._get_or_raise(db, user_id, course_id)
        ensure_enrollment_transition(enrollment.status, EnrollmentStatusEnum.DROPPED)
        if enrollment.status != EnrollmentStatusEnum.DROPPED:
            enrollment = crud_enrollment.update(db, db_obj=enrollment, obj_in={"status": EnrollmentStatusEnum.DROPPED})
            logger.info(f"Enrollment {enrollment.id} dropped (user={user_id} course={course_id})")
        return enrollment

    def reconcile(self, db: Session, user_id: int, course_id: int) -> Enrollment:
        self._get_or_raise(db, user_id, course_id)
        return course_progress_aggregator.recompute(db, user_id=user_id, course_id=course_id)


enrollment_service = EnrollmentService()
