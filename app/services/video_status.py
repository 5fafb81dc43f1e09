"""Video readiness: Vimeo webhooks and the status poll.

Both paths only ever write ``Lesson.video_metadata``. Updates are applied
last-write-wins on the event time, so duplicated or reordered deliveries
converge on the newest state.
"""
import hashlib
import hmac
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.constants import VideoEventEnum, VideoStatusEnum
from app.core.database import SessionLocal
from app.core.scheduler import schedule_job
from app.crud.lesson import lesson as crud_lesson
from app.models.lesson import Lesson
from app.schemas.video import VideoWebhookEvent, VideoWebhookResult
from app.services.vimeo import VimeoService, VimeoServiceError, vimeo_service

logger = logging.getLogger(__name__)


def verify_signature(payload: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    """HMAC-SHA256 of the raw body; verification is skipped when no secret is configured."""
    if not secret:
        return True
    if not signature:
        return False
    expected = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def extract_video_id(uri: Optional[str]) -> Optional[str]:
    # "/videos/123456789" -> "123456789"
    if not uri:
        return None
    video_id = uri.rstrip("/").split("/")[-1]
    return video_id or None


def parse_event_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class VideoStatusService:

    def __init__(
        self,
        vimeo: Optional[VimeoService] = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.vimeo = vimeo or vimeo_service
        self.session_factory = session_factory

    def apply_metadata(
        self,
        db: Session,
        lesson: Lesson,
        updates: Dict[str, Any],
        *,
        event_type: str,
        event_time: datetime,
        clear_video_id: bool = False,
    ) -> bool:
        """Merge ``updates`` into the lesson metadata unless a newer event was already applied."""
        metadata = dict(lesson.video_metadata or {})
        stored_time = parse_event_time(metadata.get("event_timestamp"))
        if stored_time is not None:
            if event_time < stored_time:
                logger.info(f"Ignoring stale {event_type} for lesson {lesson.id} ({event_time} < {stored_time})")
                return False
            if event_time == stored_time and metadata.get("last_event") == event_type:
                logger.info(f"Ignoring duplicate {event_type} for lesson {lesson.id}")
                return False

        metadata.update(updates)
        metadata["event_timestamp"] = event_time.isoformat()
        metadata["last_event"] = event_type
        # Reassign so the JSON column is flagged dirty
        lesson.video_metadata = metadata
        if clear_video_id:
            lesson.video_id = None
        db.add(lesson)
        db.commit()
        return True

    def handle_webhook(self, db: Session, event: VideoWebhookEvent) -> VideoWebhookResult:
        event_type = event.event_type
        result = VideoWebhookResult(event_type=event_type)

        handlers = {
            VideoEventEnum.UPLOAD_COMPLETE.value: self._on_upload_complete,
            VideoEventEnum.TRANSCODE_COMPLETE.value: self._on_transcode_complete,
            VideoEventEnum.DELETE.value: self._on_delete,
        }
        handler = handlers.get(event_type)
        if handler is None:
            logger.info(f"Unhandled Vimeo webhook event: {event_type}")
            return result

        video_id = extract_video_id(event.data.uri)
        if not video_id:
            logger.warning(f"Vimeo webhook {event_type} without a video uri")
            return result

        lesson = crud_lesson.get_by_video_id(db, video_id=video_id)
        if not lesson:
            logger.warning(f"Lesson not found for Vimeo video {video_id} ({event_type})")
            return result

        event_time = (
            parse_event_time(event.timestamp)
            or parse_event_time(event.created_time)
            or datetime.now(timezone.utc)
        )
        result.lesson_id = lesson.id
        result.applied = handler(db, lesson, event, event_time)
        result.detail = {"video_id": video_id, "video_status": lesson.video_status}
        return result

    def _on_upload_complete(self, db: Session, lesson: Lesson, event: VideoWebhookEvent, event_time: datetime) -> bool:
        applied = self.apply_metadata(
            db,
            lesson,
            {
                "video_status": VideoStatusEnum.UPLOAD_COMPLETE.value,
                "upload_completed_at": datetime.now(timezone.utc).isoformat(),
            },
            event_type=VideoEventEnum.UPLOAD_COMPLETE.value,
            event_time=event_time,
        )
        if applied:
            logger.info(f"Video upload completed for lesson {lesson.id}")
            self.schedule_status_check(lesson.id, delay_seconds=settings.VIDEO_STATUS_INITIAL_DELAY_SECONDS)
        return applied

    def _on_transcode_complete(self, db: Session, lesson: Lesson, event: VideoWebhookEvent, event_time: datetime) -> bool:
        updates = {
            "video_status": VideoStatusEnum.READY.value,
            "transcode_completed_at": datetime.now(timezone.utc).isoformat(),
        }
        if event.data.duration is not None:
            updates["duration"] = event.data.duration
        applied = self.apply_metadata(
            db, lesson, updates,
            event_type=VideoEventEnum.TRANSCODE_COMPLETE.value,
            event_time=event_time,
        )
        if applied:
            logger.info(f"Video transcode completed for lesson {lesson.id} (duration={event.data.duration})")
        return applied

    def _on_delete(self, db: Session, lesson: Lesson, event: VideoWebhookEvent, event_time: datetime) -> bool:
        applied = self.apply_metadata(
            db,
            lesson,
            {
                "video_status": VideoStatusEnum.DELETED.value,
                "deleted_at": datetime.now(timezone.utc).isoformat(),
            },
            event_type=VideoEventEnum.DELETE.value,
            event_time=event_time,
            clear_video_id=True,
        )
        if applied:
            logger.info(f"Video deleted from Vimeo for lesson {lesson.id}")
        return applied

    def schedule_status_check(self, lesson_id: int, delay_seconds: int, attempt: int = 1):
        return schedule_job(
            self.check_video_status,
            delay_seconds=delay_seconds,
            job_id=f"video-status-{lesson_id}",
            name=f"Check video status for lesson {lesson_id}",
            kwargs={"lesson_id": lesson_id, "attempt": attempt},
        )

    def _schedule_retry(self, lesson_id: int, attempt: int) -> str:
        if attempt >= settings.VIDEO_STATUS_MAX_TRIES:
            logger.error(f"Giving up on video status for lesson {lesson_id} after {attempt} attempts")
            return "gave_up"
        backoff = settings.VIDEO_STATUS_BACKOFF_SECONDS
        delay = backoff[min(attempt - 1, len(backoff) - 1)]
        self.schedule_status_check(lesson_id, delay_seconds=delay, attempt=attempt + 1)
        return "retrying"

    async def check_video_status(self, lesson_id: int, attempt: int = 1) -> str:
        """Poll Vimeo once for a lesson's video and record the outcome.

        Returns what happened: ``ready``, ``error``, ``processing`` (checked
        again later), ``retrying``/``gave_up`` (API failure) or ``skipped``.
        """
        db = self.session_factory()
        try:
            lesson = crud_lesson.get(db, id=lesson_id)
            if not lesson or not lesson.video_id:
                logger.warning(f"No Vimeo video to check for lesson {lesson_id}")
                return "skipped"

            try:
                status = await self.vimeo.get_upload_status(lesson.video_id)
            except VimeoServiceError as e:
                logger.error(f"Failed to get video status for lesson {lesson_id}: {e}")
                status = None

            if status is None:
                return self._schedule_retry(lesson_id, attempt)

            logger.info(f"Video status check for lesson {lesson_id}: {status.model_dump()}")
            now = datetime.now(timezone.utc)

            if "in_progress" in (status.transcode_status, status.upload_status):
                self.schedule_status_check(lesson_id, delay_seconds=settings.VIDEO_STATUS_RECHECK_SECONDS)
                return "processing"

            if status.is_playable and status.transcode_status == "complete":
                self.apply_metadata(
                    db,
                    lesson,
                    {
                        "video_status": VideoStatusEnum.READY.value,
                        "duration": status.duration,
                        "checked_at": now.isoformat(),
                    },
                    event_type="status.poll",
                    event_time=now,
                )
                logger.info(f"Video is ready for playback for lesson {lesson_id} (duration={status.duration})")
                return "ready"

            logger.warning(f"Video processing failed or incomplete for lesson {lesson_id}: {status.model_dump()}")
            self.apply_metadata(
                db,
                lesson,
                {
                    "video_status": VideoStatusEnum.ERROR.value,
                    "error_details": status.model_dump(),
                    "checked_at": now.isoformat(),
                },
                event_type="status.poll",
                event_time=now,
            )
            return "error"
        finally:
            db.close()


video_status_service = VideoStatusService()
