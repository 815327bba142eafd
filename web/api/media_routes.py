"""Signed media URL endpoints.

GET  /audio-url?filename=<name>[&bucket=<name>]
POST /audio-url  {"filename": ..., "bucket": ...}

Both answer {success, url, expiresIn, filename}. The URL is time-limited and
forces inline display (streaming, not download).
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from portal.services.media import MediaUrl, MediaUrlIssuer, get_media_issuer

router = APIRouter(tags=["media"])


class MediaUrlRequest(BaseModel):
    filename: Optional[str] = None
    bucket: Optional[str] = None


def _media_payload(media: MediaUrl) -> dict:
    return {
        "success": True,
        "url": media.url,
        "expiresIn": media.expires_in,
        "filename": media.filename,
    }


@router.get("/audio-url")
async def get_audio_url(
    filename: Optional[str] = None,
    bucket: Optional[str] = None,
    issuer: MediaUrlIssuer = Depends(get_media_issuer),
):
    """Signed URL for streaming a media file, filename in the query string."""
    return _media_payload(await issuer.issue_media_url(filename, bucket))


@router.post("/audio-url")
async def post_audio_url(
    body: Optional[MediaUrlRequest] = None,
    issuer: MediaUrlIssuer = Depends(get_media_issuer),
):
    """Signed URL for streaming a media file, filename in the request body."""
    # No body at all is treated like a body without a filename
    body = body or MediaUrlRequest()
    return _media_payload(await issuer.issue_media_url(body.filename, body.bucket))
