"""
Client for the frame-extraction microservice.

The service takes a video (by URL or as an uploaded file) and returns
base64 JPEG frames, a video embedding and the duration in seconds.
"""

import logging
from typing import Optional

import httpx

from tokbox.config.settings import get_settings
from tokbox.models.analysis import FrameExtractionResult
from tokbox.services.errors import FrameExtractionUnavailable

logger = logging.getLogger(__name__)


class FrameExtractionClient:
    """Calls POST {base_url}/analyze-video"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        num_frames: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.embedding_service_url).rstrip("/")
        self.num_frames = num_frames or settings.num_frames
        self.timeout = timeout or settings.request_timeout_seconds
        self._transport = transport

    async def extract(
        self,
        video_url: Optional[str] = None,
        video_bytes: Optional[bytes] = None,
        filename: str = "video.mp4",
    ) -> FrameExtractionResult:
        """Extract frames from a stored video or raw uploaded bytes.

        Raises FrameExtractionUnavailable when the service can't be reached,
        answers with an error, or returns no frames.
        """
        if not video_url and not video_bytes:
            raise ValueError("Either video_url or video_bytes is required")

        data = {"num_frames": str(self.num_frames)}
        files = None
        if video_url:
            data["video_url"] = video_url
        else:
            files = {"video": (filename, video_bytes, "video/mp4")}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(f"{self.base_url}/analyze-video", data=data, files=files)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"❌ Frame extraction failed: {e}")
            raise FrameExtractionUnavailable() from e

        if not isinstance(payload, dict):
            logger.error(f"❌ Frame extraction returned {type(payload).__name__}, expected an object")
            raise FrameExtractionUnavailable()

        result =FrameExtractionResult(
            frames=list(payload.get("frames") or []),
            embedding=list(payload.get("embedding") or []),
            duration=payload.get("duration"),
            num_frames=payload.get("numFrames") or len(payload.get("frames") or []),
        )

        if not result.frames:
            logger.error("❌ Frame extraction returned no frames")
            raise FrameExtractionUnavailable()

        logger.info(f"🎞️ Extracted {len(result.frames)} frames (duration: {result.duration}s)")
        return result
