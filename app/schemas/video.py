from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional


class VideoWebhookData(BaseModel):
    model_config = ConfigDict(extra="allow")

    uri: Optional[str] = None
    duration: Optional[float] = None


class VideoWebhookEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    event_type: Optional[str] = None
    timestamp: Optional[str] = None
    created_time: Optional[str] = None
    data: VideoWebhookData = Field(default_factory=VideoWebhookData)


class VideoUploadStatus(BaseModel):
    status: str = "unknown"
    upload_status: str = "unknown"
    transcode_status: str = "unknown"
    duration: float = 0
    is_playable: bool = False


class VideoWebhookResult(BaseModel):
    event_type: Optional[str] = None
    lesson_id: Optional[int] = None
    applied: bool = False
    detail: Optional[Dict[str, Any]] = None
