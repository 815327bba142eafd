"""Signed media URLs for objects in the private R2 bucket.

Clients never get bucket credentials. They ask for a filename and receive a
short-lived presigned GET URL that forces inline display, so browsers play
or show the media instead of offering a download.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import PurePosixPath
from typing import Any, Iterable, Optional

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel

import config
from portal.errors import InternalError, InvalidInput, NotConfigured, NotFound

logger = logging.getLogger("nwn.media")

CONTENT_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".m4a": "audio/mp4",
    ".aac": "audio/aac",
    ".webm": "audio/webm",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}

ALLOWED_EXTENSIONS = frozenset(CONTENT_TYPES)

_MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}


class MediaUrl(BaseModel):
    url: str
    expires_in: int
    filename: str
    bucket: str


def file_extension(filename: str) -> str:
    return PurePosixPath(filename).suffix.lower()


def content_type_for(filename: str) -> str:
    return CONTENT_TYPES.get(file_extension(filename), "application/octet-stream")


def validate_filename(filename: Any) -> str:
    """Return the filename if it is a safe object key with an allowed extension.

    Forward slashes are allowed for subfolders; parent segments, backslashes
    and absolute keys are not.
    """
    if not filename or not isinstance(filename, str):
        raise InvalidInput("Please provide a filename", error="Missing filename")
    if ".." in filename or "\\" in filename or filename.startswith("/"):
        raise InvalidInput(
            "Filename must be a media file without parent directory segments",
            error="Invalid filename",
        )
    if file_extension(filename) not in ALLOWED_EXTENSIONS:
        raise InvalidInput(
            "File type not allowed. Allowed: " + ", ".join(sorted(e.lstrip(".") for e in ALLOWED_EXTENSIONS)),
            error="Invalid filename",
        )
    return filename


def clamp_expiration(seconds: int) -> int:
    bounded = max(config.URL_EXPIRATION_MIN_SECONDS, min(config.URL_EXPIRATION_MAX_SECONDS, seconds))
    if bounded != seconds:
        logger.warning(
            "URL expiration %ss outside %s-%ss, using %ss",
            seconds,
            config.URL_EXPIRATION_MIN_SECONDS,
            config.URL_EXPIRATION_MAX_SECONDS,
            bounded,
        )
    return bounded


def create_r2_client():
    """S3 client for the R2 endpoint, or None when credentials are missing."""
    if not config.r2_configured():
        logger.warning(
            "R2 credentials not configured. Set R2_ENDPOINT, R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY"
        )
        return None
    return boto3.client(
        "s3",
        endpoint_url=config.R2_ENDPOINT,
        aws_access_key_id=config.R2_ACCESS_KEY_ID,
        aws_secret_access_key=config.R2_SECRET_ACCESS_KEY,
        region_name="auto",
        config=BotoConfig(signature_version="s3v4"),
    )


class MediaUrlIssuer:
    """Issues presigned, inline-disposition GET URLs for media objects."""

    def __init__(
        self,
        client: Any,
        default_bucket: str,
        allowed_buckets: Iterable[str] = (),
        expires_in: int = 600,
        verify_exists: bool = False,
    ) -> None:
        self.client = client
        self.default_bucket = default_bucket
        self.allowed_buckets = frozenset(allowed_buckets) | {default_bucket}
        self.expires_in = expires_in
        self.verify_exists = verify_exists

    @classmethod
    def from_config(cls) -> "MediaUrlIssuer":
        return cls(
            client=create_r2_client(),
            default_bucket=config.R2_BUCKET_NAME,
            allowed_buckets=config.R2_ALLOWED_BUCKETS,
            expires_in=clamp_expiration(config.URL_EXPIRATION_SECONDS),
            verify_exists=config.R2_VERIFY_OBJECTS,
        )

    @property
    def configured(self) -> bool:
        return self.client is not None

    def pick_bucket(self, bucket: Optional[str]) -> str:
        """Requested bucket if known, else the default. Unknown names are not an error."""
        if bucket and bucket in self.allowed_buckets:
            return bucket
        if bucket:
            logger.info("Unknown bucket '%s' requested, using '%s'", bucket, self.default_bucket)
        return self.default_bucket

    def _sign(self, bucket: str, key: str) -> str:
        if self.verify_exists:
            self.client.head_object(Bucket=bucket, Key=key)
        return self.client.generate_presigned_url(
            "get_object",
            Params={
                "Bucket": bucket,
                "Key": key,
                "ResponseContentDisposition": "inline",
                "ResponseContentType": content_type_for(key),
            },
            ExpiresIn=self.expires_in,
        )

    async def issue_media_url(self, filename: Any, bucket: Optional[str] = None) -> MediaUrl:
        key = validate_filename(filename)
        if not self.configured:
            raise NotConfigured("Cloudflare R2 credentials are not configured")
        target = self.pick_bucket(bucket)
        try:
            url = await asyncio.to_thread(self._sign, target, key)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_OBJECT_CODES:
                raise NotFound("The requested media file does not exist", error="File not found") from e
            logger.exception("Error generating signed URL for %s", key)
            raise InternalError("Failed to generate media URL. Please try again later.") from e
        except BotoCoreError as e:
            logger.exception("Error generating signed URL for %s", key)
            raise InternalError("Failed to generate media URL. Please try again later.") from e

        logger.info("Generated signed URL for: %s (bucket %s, expires in %ss)", key, target, self.expires_in)
        return MediaUrl(url=url, expires_in=self.expires_in, filename=key, bucket=target)


_issuer: Optional[MediaUrlIssuer] = None


def get_media_issuer() -> MediaUrlIssuer:
    """Process-wide issuer built from configuration on first use."""
    global _issuer
    if _issuer is None:
        _issuer = MediaUrlIssuer.from_config()
    return _issuer
