from decimal import Decimal
from enum import Enum


ZERO_PERCENT = Decimal("0.00")
FULL_PERCENT = Decimal("100.00")
# Upper bound for a playback position or duration, roughly 115 days
MAX_PLAYBACK_SECONDS = 10_000_000

class CourseStatusEnum(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"

class EnrollmentStatusEnum(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    DROPPED = "dropped"

class VideoStatusEnum(str, Enum):
    UPLOAD_COMPLETE = "upload_complete"
    READY = "ready"
    ERROR = "error"
    DELETED = "deleted"

class VideoEventEnum(str, Enum):
    UPLOAD_COMPLETE = "video.upload.complete"
    TRANSCODE_COMPLETE = "video.transcode.complete"
    DELETE = "video.delete"
