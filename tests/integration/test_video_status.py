import hashlib
import hmac

import pytest

from app.core.config import settings
from app.schemas.video import VideoUploadStatus, VideoWebhookEvent
from app.services import video_status as video_status_module
from app.services.video_status import VideoStatusService, extract_video_id, verify_signature
from app.services.vimeo import VimeoServiceError


class FakeVimeo:
    def __init__(self, status=None, error=None):
        self.status = status
        self.error = error
        self.calls = []

    async def get_upload_status(self, video_id):
        self.calls.append(video_id)
        if self.error:
            raise self.error
        return self.status


@pytest.fixture
def scheduled(monkeypatch):
    jobs = []

    def fake_schedule_job(func, *, delay_seconds, job_id, name=None, kwargs=None):
        jobs.append({"delay_seconds": delay_seconds, "job_id": job_id, "kwargs": kwargs})

    monkeypatch.setattr(video_status_module, "schedule_job", fake_schedule_job)
    return jobs


@pytest.fixture
def video_lesson(course_factory, lesson_factory):
    course = course_factory()
    return lesson_factory(course.id, video_id="76979871")


def _event(event_type, timestamp, **data):
    return VideoWebhookEvent.model_validate({
        "event_type": event_type,
        "timestamp": timestamp,
        "data": {"uri": "/videos/76979871", **data},
    })


def test_signature_verification():
    payload = b'{"event_type": "video.delete"}'
    signature = hmac.new(b"s3cret", payload, hashlib.sha256).hexdigest()

    assert verify_signature(payload, signature, "s3cret") is True
    assert verify_signature(payload, "bogus", "s3cret") is False
    assert verify_signature(payload, None, "s3cret") is False
    assert verify_signature(payload, None, None) is True


def test_extract_video_id():
    assert extract_video_id("/videos/76979871") == "76979871"
    assert extract_video_id("/videos/76979871/") == "76979871"
    assert extract_video_id(None) is None


def test_transcode_complete_marks_the_video_ready(db_session, video_lesson, scheduled):
    service = VideoStatusService(vimeo=FakeVimeo())

    result = service.handle_webhook(db_session, _event("video.transcode.complete", "2026-03-01T10:00:00Z", duration=240))

    assert result.applied is True
    assert result.lesson_id == video_lesson.id
    db_session.refresh(video_lesson)
    assert video_lesson.video_status == "ready"
    assert video_lesson.duration_seconds == 240


def test_older_event_does_not_overwrite_newer_state(db_session, video_lesson, scheduled):
    service = VideoStatusService(vimeo=FakeVimeo())

    service.handle_webhook(db_session, _event("video.transcode.complete", "2026-03-01T10:05:00Z", duration=240))
    late = service.handle_webhook(db_session, _event("video.upload.complete", "2026-03-01T10:00:00Z"))

    assert late.applied is False
    db_session.refresh(video_lesson)
    assert video_lesson.video_status == "ready"
    assert scheduled == []


def test_duplicate_delivery_is_a_no_op(db_session, video_lesson, scheduled):
    service = VideoStatusService(vimeo=FakeVimeo())
    event = _event("video.upload.complete", "2026-03-01T10:00:00Z")

    first = service.handle_webhook(db_session, event)
    second = service.handle_webhook(db_session, event)

    assert first.applied is True
    assert second.applied is False
    assert len(scheduled) == 1
    assert scheduled[0]["job_id"] == f"video-status-{video_lesson.id}"
    assert scheduled[0]["delay_seconds"] == settings.VIDEO_STATUS_INITIAL_DELAY_SECONDS


def test_delete_clears_the_video_reference(db_session, video_lesson, scheduled):
    service = VideoStatusService(vimeo=FakeVimeo())

    result = service.handle_webhook(db_session, _event("video.delete", "2026-03-01T11:00:00Z"))

    assert result.applied is True
    db_session.refresh(video_lesson)
    assert video_lesson.video_id is None
    assert video_lesson.video_status == "deleted"


def test_unknown_video_and_unknown_event_are_ignored(db_session, video_lesson, scheduled):
    service = VideoStatusService(vimeo=FakeVimeo())

    unknown_video = service.handle_webhook(db_session, VideoWebhookEvent.model_validate({
        "event_type": "video.transcode.complete",
        "data": {"uri": "/videos/1"},
    }))
    unknown_event = service.handle_webhook(db_session, _event("video.rating.changed", "2026-03-01T10:00:00Z"))

    assert unknown_video.applied is False
    assert unknown_video.lesson_id is None
    assert unknown_event.applied is False


@pytest.mark.asyncio
async def test_status_poll_records_a_ready_video(db_session, session_factory, video_lesson, scheduled):
    vimeo = FakeVimeo(status=VideoUploadStatus(
        status="available", upload_status="complete", transcode_status="complete", duration=300, is_playable=True,
    ))
    service = VideoStatusService(vimeo=vimeo, session_factory=session_factory)

    outcome = await service.check_video_status(video_lesson.id)

    assert outcome == "ready"
    assert vimeo.calls == ["76979871"]
    db_session.refresh(video_lesson)
    assert video_lesson.video_status == "ready"
    assert video_lesson.duration_seconds == 300


@pytest.mark.asyncio
async def test_status_poll_rechecks_while_transcoding(session_factory, video_lesson, scheduled):
    vimeo = FakeVimeo(status=VideoUploadStatus(upload_status="complete", transcode_status="in_progress"))
    service = VideoStatusService(vimeo=vimeo, session_factory=session_factory)

    outcome = await service.check_video_status(video_lesson.id)

    assert outcome == "processing"
    assert scheduled[0]["delay_seconds"] == settings.VIDEO_STATUS_RECHECK_SECONDS


@pytest.mark.asyncio
async def test_status_poll_backs_off_then_gives_up(session_factory, video_lesson, scheduled):
    service = VideoStatusService(vimeo=FakeVimeo(error=VimeoServiceError("boom")), session_factory=session_factory)

    outcome = await service.check_video_status(video_lesson.id, attempt=1)
    assert outcome == "retrying"
    assert scheduled[0]["kwargs"] == {"lesson_id": video_lesson.id, "attempt": 2}
    assert scheduled[0]["delay_seconds"] == settings.VIDEO_STATUS_BACKOFF_SECONDS[0]

    outcome = await service.check_video_status(video_lesson.id, attempt=settings.VIDEO_STATUS_MAX_TRIES)
    assert outcome == "gave_up"
    assert len(scheduled) == 1


@pytest.mark.asyncio
async def test_status_poll_records_processing_errors(db_session, session_factory, video_lesson, scheduled):
    vimeo = FakeVimeo(status=VideoUploadStatus(status="transcode_error", upload_status="complete", transcode_status="error"))
    service = VideoStatusService(vimeo=vimeo, session_factory=session_factory)

    outcome = await service.check_video_status(video_lesson.id)

    assert outcome == "error"
    db_session.refresh(video_lesson)
    assert video_lesson.video_status == "error"


@pytest.mark.asyncio
async def test_status_poll_skips_lessons_without_video(session_factory, course_factory, lesson_factory, scheduled):
    course = course_factory()
    lesson = lesson_factory(course.id)
    vimeo = FakeVimeo()
    service = VideoStatusService(vimeo=vimeo, session_factory=session_factory)

    assert await service.check_video_status(lesson.id) == "skipped"
    assert vimeo.calls == []
