"""
S3 Storage Service
==================

Presigned upload URLs for videos (clients PUT straight to S3, bypassing the
API's body-size limits) and staging of extracted frames so every prompt call
can reuse the same stable URLs.
"""

import base64
import logging
import re
import time
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from tokbox.config.settings import get_settings

logger = logging.getLogger(__name__)

UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def sanitize_filename(filename: str) -> str:
    return UNSAFE_FILENAME_CHARS.sub("_", filename)


class S3StorageService:
    """Service for video uploads and frame staging on S3"""

    def __init__(self, s3_client=None, bucket_name: Optional[str] = None, region: Optional[str] = None,
                 key_prefix: Optional[str] = None):
        settings = get_settings()
        self.aws_region = region or settings.aws_region
        self.bucket_name = bucket_name or settings.s3_bucket_name
        self.key_prefix = (key_prefix or settings.s3_key_prefix).strip("/")

        if not self.bucket_name:
            raise ValueError("Missing required S3 configuration. Please set S3_BUCKET_NAME in environment variables.")

        if s3_client is None:
            # Falls back to the default AWS credential chain when keys are not set
            s3_client = boto3.client(
                's3',
                aws_access_key_id=settings.aws_access_key_id,
                aws_secret_access_key=settings.aws_secret_access_key,
                region_name=self.aws_region
            )
        self.s3_client = s3_client

        logger.info(f"✅ S3 Storage Service initialized for bucket: {self.bucket_name}")

    def public_url(self, s3_key: str) -> str:
        return f"https://{self.bucket_name}.s3.{self.aws_region}.amazonaws.com/{s3_key}"

    def video_key(self, filename: str, timestamp_ms: Optional[int] = None) -> str:
        timestamp_ms = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
        return f"{self.key_prefix}/videos/{timestamp_ms}_{sanitize_filename(filename)}"

    def frame_key(self, analysis_id: str, index: int) -> str:
        """Key for the index-th frame (0-based) of an analysis: 001.jpg, 002.jpg, ..."""
        return f"{self.key_prefix}/{analysis_id}/frames/{index + 1:03d}.jpg"

    def generate_upload_url(self, filename: str, content_type: Optional[str] = None,
                            expiration: Optional[int] = None) -> Dict[str, Any]:
        """
        Generate a presigned PUT URL for a direct browser upload

        Args:
            filename: Original filename, sanitized into the key
            content_type: Video MIME type (default: video/mp4)
            expiration: URL lifetime in seconds (default: UPLOAD_URL_EXPIRATION, 600)

        Returns:
            dict: uploadUrl, videoUrl and s3Key
        """
        expiration = expiration or get_settings().upload_url_expiration
        s3_key = self.video_key(filename)

        upload_url = self.s3_client.generate_presigned_url(
            'put_object',
            Params={
                'Bucket': self.bucket_name,
                'Key': s3_key,
                'ContentType': content_type or 'video/mp4',
            },
            ExpiresIn=expiration
        )

        logger.info(f"🔗 Generated upload URL for: {s3_key} (expires in {expiration}s)")

        return {
            'uploadUrl': upload_url,
            'videoUrl': self.public_url(s3_key),
            's3Key': s3_key,
        }

    def upload_base64_image(self, base64_data: str, s3_key: str, content_type: str = 'image/jpeg') -> str:
        """Decode a base64 frame, store it, and return its URL"""
        body = base64.b64decode(base64_data)

        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=s3_key,
                Body=body,
                ContentType=content_type,
            )
        except ClientError as e:
            logger.error(f"❌ S3 upload failed for {s3_key}: {e}")
            raise

        return self.public_url(s3_key)

    def check_s3_connection(self) -> Dict[str, Any]:
        """Test S3 connection and bucket access"""
        try:
            self.s3_client.list_objects_v2(Bucket=self.bucket_name, MaxKeys=1)
            return {
                'success': True,
                'bucket': self.bucket_name,
                'region': self.aws_region
            }
        except (ClientError, BotoCoreError) as e:
            return {
                'success': False,
                'error': f"S3 connection failed: {str(e)}",
                'bucket': self.bucket_name
            }


# Global instance
s3_storage = None


def get_s3_storage() -> S3StorageService:
    """Get global S3 storage service instance"""
    global s3_storage
    if s3_storage is None:
        s3_storage = S3StorageService()
    return s3_storage
