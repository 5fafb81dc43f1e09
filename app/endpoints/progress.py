from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.schemas.course import AdjacentLessons, CourseOutline
from app.schemas.lesson_progress import (
    CompleteLesson,
    CompletionResult,
    LessonProgress,
    SampleResult,
    SessionStart,
    WatchSample,
)
from app.schemas.response import APIResponse
from app.services.course_viewer import course_viewer_service
from app.services.progress import progress_service
from app.utils import deps

router = APIRouter()


@router.post("/sample", response_model=APIResponse[SampleResult])
def submit_sample(
    *,
    db: Session = Depends(deps.get_db),
    sample_in: WatchSample,
):
    result = progress_service.submit_sample(db, sample_in)
    if result is None:
        # Tracking failures never fail playback; the next sample supersedes this one.
        return APIResponse(message="Progress sample was not recorded", data=None)
    return APIResponse(message="Progress sample recorded", data=result)


@router.post("/complete", response_model=APIResponse[CompletionResult])
def complete_lesson(
    *,
    db: Session = Depends(deps.get_db),
    complete_in: CompleteLesson,
):
    result = progress_service.complete_lesson(db, user_id=complete_in.user_id, lesson_id=complete_in.lesson_id)
    return APIResponse(message="Lesson completed successfully", data=result)


@router.post("/start", response_model=APIResponse[LessonProgress])
def start_session(
    *,
    db: Session = Depends(deps.get_db),
    start_in: SessionStart,
):
    progress = progress_service.start_session(db, user_id=start_in.user_id, lesson_id=start_in.lesson_id)
    return APIResponse(message="Lesson session started", data=progress)


@router.get("/lessons/{lesson_id}/adjacent", response_model=APIResponse[AdjacentLessons])
def get_adjacent_lessons(
    *,
    db: Session = Depends(deps.get_db),
    lesson_id: int,
):
    adjacent = course_viewer_service.get_adjacent_lessons(db, lesson_id=lesson_id)
    return APIResponse(message="Adjacent lessons retrieved successfully", data=adjacent)


@router.get("/{user_id}/courses/{course_id}", response_model=APIResponse[CourseOutline])
def get_course_outline(
    *,
    db: Session = Depends(deps.get_db),
    user_id: int,
    course_id: int,
):
    outline = course_viewer_service.get_course_outline(db, user_id=user_id, course_id=course_id)
    return APIResponse(message="Course progress retrieved successfully", data=outline)


@router.get("/{user_id}/{lesson_id}", response_model=APIResponse[LessonProgress])
def get_lesson_progress(
    *,
    db: Session = Depends(deps.get_db),
    user_id: int,
    lesson_id: int,
):
    progress = progress_service.get_snapshot(db, user_id=user_id, lesson_id=lesson_id)
    return APIResponse(message="Lesson progress retrieved successfully", data=progress)
