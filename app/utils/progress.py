"""Pure progress arithmetic and the guarded state transitions.

Nothing in here touches the database, so the store, the aggregator and the
tests all share one definition of "watched 90%" or "course complete".
"""
import math
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from app.core.config import settings
from app.core.constants import EnrollmentStatusEnum, FULL_PERCENT, MAX_PLAYBACK_SECONDS, ZERO_PERCENT
from app.core.exceptions import InvalidTransitionError, InvariantViolation

Number = Union[int, float, Decimal]

TWO_PLACES = Decimal("0.01")

ENROLLMENT_TRANSITIONS = {
    EnrollmentStatusEnum.ACTIVE: {EnrollmentStatusEnum.COMPLETED, EnrollmentStatusEnum.DROPPED},
    EnrollmentStatusEnum.COMPLETED: {EnrollmentStatusEnum.DROPPED},
    EnrollmentStatusEnum.DROPPED: set(),
}


def _to_decimal(value: Number) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def check_playback_seconds(value: Number, field: str = "watch_time_seconds") -> Number:
    """Reject positions and durations that are negative, non-finite or beyond any real video."""
    if not math.isfinite(value) or value < 0 or value > MAX_PLAYBACK_SECONDS:
        raise InvariantViolation(f"{field} is out of range", **{field: str(value)})
    return value


def quantize_percentage(value: Number) -> Decimal:
    return _to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def compute_watch_percentage(elapsed_seconds: Number, duration_seconds: Optional[Number]) -> Optional[Decimal]:
    """Percentage of the video watched, clamped to 100, or None when the duration is unknown."""
    if duration_seconds is None or duration_seconds <= 0:
        return None
    ratio = _to_decimal(elapsed_seconds) / _to_decimal(duration_seconds) * 100
    return quantize_percentage(min(FULL_PERCENT, max(ZERO_PERCENT, ratio)))


def should_auto_complete(
    elapsed_seconds: Number,
    duration_seconds: Optional[Number],
    threshold: Optional[Decimal] = None,
) -> bool:
    if duration_seconds is None or duration_seconds <= 0:
        return False
    threshold = settings.AUTO_COMPLETE_THRESHOLD if threshold is None else threshold
    return _to_decimal(elapsed_seconds) / _to_decimal(duration_seconds) >= threshold


def compute_course_percentage(completed_count: int, total_count: int) -> Decimal:
    if total_count <= 0:
        return ZERO_PERCENT
    done = min(completed_count, total_count)
    return quantize_percentage(Decimal(100) * done / total_count)


def next_enrollment_status(current: Optional[EnrollmentStatusEnum], percentage: Decimal) -> EnrollmentStatusEnum:
    """Status the aggregator may write for a freshly computed percentage.

    Promotion to completed is one-way and a dropped enrollment stays dropped.
    """
    if current == EnrollmentStatusEnum.DROPPED:
        return EnrollmentStatusEnum.DROPPED
    if current == EnrollmentStatusEnum.COMPLETED:
        return EnrollmentStatusEnum.COMPLETED
    if percentage >= FULL_PERCENT:
        return EnrollmentStatusEnum.COMPLETED
    return EnrollmentStatusEnum.ACTIVE


def ensure_enrollment_transition(current: EnrollmentStatusEnum, target: EnrollmentStatusEnum):
    if current == target:
        return
    if target not in ENROLLMENT_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(
            f"Cannot move enrollment from {current.value} to {target.value}",
            current=current.value,
            target=target.value,
        )


def apply_lesson_transition(
    record,
    *,
    now: datetime,
    watch_time_seconds: Optional[Number] = None,
    watch_percentage: Optional[Decimal] = None,
    completed: Optional[bool] = None,
) -> bool:
    """Apply one guarded update to a LessonProgress row in place.

    Watch time only ever grows, a completing write never lowers the stored
    percentage and completion is sticky: asking for completed=False on a
    completed record is rejected. Returns True when this call
    flipped the record to completed.
    """
    if completed is False and record.completed:
        raise InvariantViolation(
            "A completed lesson cannot be marked incomplete",
            user_id=record.user_id,
            lesson_id=record.lesson_id,
        )

    if watch_time_seconds is not None:
        check_playback_seconds(watch_time_seconds)
        record.watch_time_seconds = max(record.watch_time_seconds or 0, int(watch_time_seconds))

    if watch_percentage is not None:
        if watch_percentage < 0:
            raise InvariantViolation(
                "Watch percentage cannot be negative",
                watch_percentage=str(watch_percentage),
            )
        watch_percentage = min(FULL_PERCENT, quantize_percentage(watch_percentage))
        if completed and record.watch_percentage is not None and watch_percentage < record.watch_percentage:
            watch_percentage = None
        if watch_percentage is not None:
            record.watch_percentage = watch_percentage

    record.last_watched_at = now

    if completed and not record.completed:
        record.completed = True
        record.completed_at = now
        return True
    if record.completed and record.completed_at is None:
        raise InvariantViolation("Completed lesson progress is missing completed_at", record_id=record.id)
    return False

