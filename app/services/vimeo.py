import httpx
from typing import Optional

from app.core.config import settings
from app.schemas.video import VideoUploadStatus


class VimeoServiceError(Exception):
    pass


class VimeoService:
    def __init__(self, base_url: Optional[str] = None, access_token: Optional[str] = None, timeout: float = 10.0):
        self.base_url = (base_url or settings.VIMEO_API_BASE_URL).rstrip("/")
        self.access_token = access_token if access_token is not None else settings.VIMEO_ACCESS_TOKEN
        self.timeout = timeout

    def _headers(self) -> dict:
        headers = {"Accept": "application/vnd.vimeo.*+json;version=3.4"}
        if self.access_token:
            headers["Authorization"] = f"bearer {self.access_token}"
        return headers

    async def _make_request(self, path: str, allow_404: bool = False) -> Optional[dict]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            url = f"{self.base_url}{path}"
            try:
                response = await client.get(url, headers=self._headers())
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                if allow_404 and e.response.status_code == 404:
                    return None
                raise VimeoServiceError(f"Vimeo API error {e.response.status_code}: {e.response.text}") from e
            except httpx.RequestError as e:
                raise VimeoServiceError(f"Network error talking to Vimeo: {e}") from e

            return response.json()

    async def get_video(self, video_id: str) -> Optional[dict]:
        return await self._make_request(f"/videos/{video_id}", allow_404=True)

    async def get_upload_status(self, video_id: str) -> Optional[VideoUploadStatus]:
        video = await self.get_video(video_id)
        if not video:
            return None

        return VideoUploadStatus(
            status=video.get("status") or "unknown",
            upload_status=(video.get("upload") or {}).get("status") or "unknown",
            transcode_status=(video.get("transcode") or {}).get("status") or "unknown",
            duration=video.get("duration") or 0,
            is_playable=bool(video.get("is_playable", False)),
        )


vimeo_service = VimeoService()
