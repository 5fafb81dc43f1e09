import json
import logging
from fastapi import APIRouter, Request, Depends, HTTPException, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.schemas.response import APIResponse
from app.schemas.video import VideoWebhookEvent, VideoWebhookResult
from app.services.video_status import video_status_service, verify_signature
from app.utils import deps

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/webhooks/vimeo", response_model=APIResponse[VideoWebhookResult])
async def vimeo_webhook(request: Request, db: Session = Depends(deps.get_db)):
    payload = await request.body()
    signature = request.headers.get("X-Vimeo-Webhook-Signature")

    if not verify_signature(payload, signature, settings.VIMEO_WEBHOOK_SECRET):
        logger.warning(f"Invalid Vimeo webhook signature from {request.client.host if request.client else 'unknown'}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature")

    try:
        event = VideoWebhookEvent.model_validate(json.loads(payload or b"{}"))
    except (ValueError, ValidationError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid webhook payload: {e}")

    logger.info(f"Received Vimeo webhook {event.event_type}")
    result = video_status_service.handle_webhook(db, event)
    return APIResponse(message="Webhook processed", data=result)
