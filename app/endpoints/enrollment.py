from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.schemas.enrollment import Enrollment, EnrollmentCreate
from app.schemas.response import APIResponse
from app.services.enrollment import enrollment_service
from app.utils import deps

router = APIRouter()


@router.post("/", response_model=APIResponse[Enrollment], status_code=status.HTTP_201_CREATED)
def enroll(
    *,
    db: Session = Depends(deps.get_transactional_db),
    enrollment_in: EnrollmentCreate,
):
    enrollment = enrollment_service.enroll(db, user_id=enrollment_in.user_id, course_id=enrollment_in.course_id)
    return APIResponse(message="Enrolled successfully", data=Enrollment.model_validate(enrollment))


@router.get("/{user_id}", response_model=APIResponse[List[Enrollment]])
def list_user_enrollments(
    *,
    db: Session = Depends(deps.get_db),
    user_id: int,
):
    enrollments = enrollment_service.list_for_user(db, user_id=user_id)
    return APIResponse(
        message="User enrollments retrieved successfully",
        data=[Enrollment.model_validate(e) for e in enrollments]
    )


@router.get("/{user_id}/{course_id}", response_model=APIResponse[Enrollment])
def get_enrollment(
    *,
    db: Session = Depends(deps.get_db),
    user_id: int,
    course_id: int,
):
    enrollment = enrollment_service.get(db, user_id=user_id, course_id=course_id)
    return APIResponse(message="Enrollment progress retrieved successfully", data=Enrollment.model_validate(enrollment))


@router.post("/{user_id}/{course_id}/drop", response_model=APIResponse[Enrollment])
def drop_enrollment(
    *,
    db: Session = Depends(deps.get_transactional_db),
    user_id: int,
    course_id: int,
):
    enrollment = enrollment_service.drop(db, user_id=user_id, course_id=course_id)
    return APIResponse(message="Enrollment dropped", data=Enrollment.model_validate(enrollment))


@router.post("/{user_id}/{course_id}/reconcile", response_model=APIResponse[Enrollment])
def reconcile_enrollment(
    *,
    db: Session = Depends(deps.get_db),
    user_id: int,
    course_id: int,
):
    enrollment = enrollment_service.reconcile(db, user_id=user_id, course_id=course_id)
    return APIResponse(message="Enrollment progress recomputed", data=Enrollment.model_validate(enrollment))
