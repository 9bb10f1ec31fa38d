"""
Presigned Upload Endpoint
=========================

Videos go straight from the browser to S3 with a presigned PUT URL so they
never pass through this service's request body.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from tokbox.models.analysis import UploadUrlRequest, UploadUrlResponse
from tokbox.services.s3_storage_service import S3StorageService, get_s3_storage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Uploads"])


@router.post("/get-upload-url", response_model=UploadUrlResponse)
async def get_upload_url(
    request: UploadUrlRequest,
    storage: S3StorageService = Depends(get_s3_storage),
):
    """Presigned PUT URL (10 minutes) plus the URL the video will live at"""
    if not request.filename:
        return JSONResponse(status_code=400, content={"error": "Filename required"})

    try:
        return storage.generate_upload_url(request.filename, request.contentType)
    except Exception as e:
        logger.error(f"Failed to generate upload URL: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to generate upload URL"})
