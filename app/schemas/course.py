from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from app.core.constants import CourseStatusEnum
from app.schemas.enrollment import Enrollment
from app.schemas.lesson_progress import LessonProgress


class CourseCreate(BaseModel):
    code: str
    title: str
    description: Optional[str] = None
    status: CourseStatusEnum = CourseStatusEnum.DRAFT


class LessonCreate(BaseModel):
    course_id: int
    title: str
    description: Optional[str] = None
    video_id: Optional[str] = None
    order: Optional[int] = None
    is_free: bool = False
    video_metadata: Optional[dict] = None


class LessonSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    order: int
    is_free: bool
    video_id: Optional[str] = None
    video_status: Optional[str] = None
    duration_seconds: Optional[float] = None


class LessonWithProgress(LessonSummary):
    progress: LessonProgress


class CourseOutline(BaseModel):
    course_id: int
    title: str
    enrollment: Optional[Enrollment] = None
    lessons: List[LessonWithProgress]
    current_lesson_id: Optional[int] = None
    course_completed: bool = False


class AdjacentLessons(BaseModel):
    lesson_id: int
    previous_lesson_id: Optional[int] = None
    next_lesson_id: Optional[int] = None
