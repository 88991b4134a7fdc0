"""Validation and signed-upload descriptors for user media uploads."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal
from uuid import uuid4

from fastapi import HTTPException, status
from pydantic import BaseModel

from core import settings
from .media import MediaType
from .storage import create_presigned_put_url, public_url_for

UploadTarget = Literal["post", "draft"]

POST_MEDIA_IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "webp", "gif"})
POST_MEDIA_VIDEO_EXTENSIONS = frozenset({"mp4", "mov", "webm", "avi"})
COVER_IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "webp"})
COVER_IMAGE_PREFIX = "cover-images"


class UploadDescriptor(BaseModel):
    uploadUrl: str | None = None
    publicUrl: str
    key: str
    mediaType: MediaType
    method: str = "PUT"
    headers: dict[str, str] = {}
    expiresIn: int | None = None
    directUpload: bool = True


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def ensure_uploads_enabled() -> None:
    if not settings.media_upload_enabled:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Media uploads are currently disabled",
        )


def file_extension(filename: str) -> str:
    _, dot, extension = filename.strip().rpartition(".")
    if not dot or not extension:
        raise _bad_request("File name must include an extension")
    return extension.lower()


def ensure_file_size(size: int | None, max_bytes: int) -> None:
    if size is None or size <= 0:
        raise _bad_request("File is empty")
    if size > max_bytes:
        max_megabytes = max_bytes // (1024 * 1024)
        raise _bad_request(f"File size must be at most {max_megabytes}MB")


def resolve_post_media_type(extension: str, content_type: str | None) -> MediaType:
    """Return the media type for an upload, rejecting unsupported files."""
    if extension in POST_MEDIA_IMAGE_EXTENSIONS:
        media_type: MediaType = "image"
    elif extension in POST_MEDIA_VIDEO_EXTENSIONS:
        media_type = "video"
    else:
        raise _bad_request("Unsupported file type")

    if content_type and not content_type.lower().startswith(f"{media_type}/"):
        raise _bad_request("File content type does not match its extension")
    return media_type


def ensure_cover_image(extension: str, content_type: str | None) -> None:
    if extension not in COVER_IMAGE_EXTENSIONS:
        raise _bad_request("Cover images must be JPG, PNG or WebP")
    if content_type and not content_type.lower().startswith("image/"):
        raise _bad_request("Cover images must be JPG, PNG or WebP")


def build_post_media_key(
    target: UploadTarget,
    user_id: int,
    extension: str,
    *,
    now: datetime | None = None,
) -> str:
    """Return `{target}-media/YYYY/MM/DD/{user}-{random}.{ext}`."""
    moment = now or datetime.now(timezone.utc)
    return f"{target}-media/{moment:%Y/%m/%d}/{user_id}-{uuid4().hex}.{extension}"


def build_cover_image_key(user_id: int, extension: str) -> str:
    return f"{COVER_IMAGE_PREFIX}/{user_id}/{uuid4().hex}.{extension}"


def create_upload_descriptor(
    object_key: str,
    *,
    media_type: MediaType,
    content_type: str | None,
) -> UploadDescriptor:
    expires_in = settings.upload_url_expires_seconds
    headers = {"Content-Type": content_type} if content_type else {}
    return UploadDescriptor(
        uploadUrl=create_presigned_put_url(object_key, expires_seconds=expires_in),
        publicUrl=public_url_for(object_key),
        key=object_key,
        mediaType=media_type,
        headers=headers,
        expiresIn=expires_in,
    )
