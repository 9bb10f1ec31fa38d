"""
Video Analysis Endpoint
=======================

POST /api/analyze accepts either a JSON body {videoUrl, mood?} for videos
already uploaded through a presigned URL, or a multipart form with a `video`
file and optional `mood`.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from tokbox.config.settings import get_settings
from tokbox.models.analysis import AnalyzeRequest, Identity
from tokbox.services.errors import TokboxError
from tokbox.services.video_analysis_service import VideoAnalysisService
from tokbox.utils.identity import get_identity

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Analysis"])

_analysis_service: Optional[VideoAnalysisService] = None


def get_video_analysis_service() -> VideoAnalysisService:
    """Shared orchestrator, built on first request"""
    global _analysis_service
    if _analysis_service is None:
        _analysis_service = VideoAnalysisService()
    return _analysis_service


def error_response(status_code: int, error: str, exc: Optional[Exception] = None) -> JSONResponse:
    """Error body; exception details are only exposed in debug mode"""
    body: Dict[str, Any] = {"error": error}
    if exc is not None and get_settings().debug:
        body["details"] = str(exc)
    return JSONResponse(status_code=status_code, content=body)


@router.post("/analyze")
async def analyze_video(
    request: Request,
    identity: Identity = Depends(get_identity),
    service: VideoAnalysisService = Depends(get_video_analysis_service),
):
    """Grade a video and generate hooks and captions for it"""
    video_url = None
    video_bytes = None
    mood = None

    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get("video")
        if upload is not None and hasattr(upload, "read"):
            video_bytes = await upload.read()
        mood_value = form.get("mood")
        mood = mood_value if isinstance(mood_value, str) and mood_value else None
        if not video_bytes:
            return error_response(400, "No video file provided")
    else:
        try:
            body = AnalyzeRequest.model_validate(await request.json())
        except (ValueError, ValidationError):
            return error_response(400, "No video URL provided")
        video_url = body.videoUrl
        mood = body.mood or None

    try:
        return await service.analyze(identity, video_url=video_url, video_bytes=video_bytes, mood=mood)
    except TokboxError:
        raise
    except Exception as e:
        logger.error(f"❌ Analysis error: {e}", exc_info=True)
        return error_response(500, "Analysis failed", e)
