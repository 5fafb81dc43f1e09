from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from app.core.constants import MAX_PLAYBACK_SECONDS


class ProgressKey(BaseModel):
    user_id: int
    lesson_id: int


class WatchSample(ProgressKey):
    elapsed_seconds: float = Field(..., ge=0, le=MAX_PLAYBACK_SECONDS, allow_inf_nan=False, description="Current playback position in seconds, not a delta.")
    duration_seconds: Optional[float] = Field(None, ge=0, le=MAX_PLAYBACK_SECONDS, allow_inf_nan=False, description="Video duration when known by the player.")


class SessionStart(ProgressKey):
    pass


class CompleteLesson(ProgressKey):
    pass


class SampleResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    watch_time_seconds: int
    watch_percentage: Optional[Decimal] = None
    completed: bool


class CompletionResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    completed: bool
    completed_at: Optional[datetime] = None


class LessonProgress(ProgressKey):
    """Snapshot of one user's progress on one lesson.

    ``started`` is False for the "not started" sentinel, when no row exists yet.
    """
    model_config = ConfigDict(from_attributes=True)

    started: bool = True
    completed: bool = False
    completed_at: Optional[datetime] = None
    watch_time_seconds: int = 0
    watch_percentage: Optional[Decimal] = None
    started_at: Optional[datetime] = None
    last_watched_at: Optional[datetime] = None

    @classmethod
    def not_started(cls, user_id: int, lesson_id: int) -> "LessonProgress":
        return cls(user_id=user_id, lesson_id=lesson_id, started=False)
