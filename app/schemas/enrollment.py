from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime
from decimal import Decimal
from app.core.constants import EnrollmentStatusEnum


class EnrollmentCreate(BaseModel):
    user_id: int
    course_id: int


class Enrollment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    course_id: int
    status: EnrollmentStatusEnum
    progress_percentage: Decimal
    enrolled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
