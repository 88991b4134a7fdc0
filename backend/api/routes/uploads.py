"""Media upload endpoints issuing presigned uploads or proxying videos."""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from core import settings
from models import User
from services.storage import public_url_for, put_object_stream
from services.uploads import (
    UploadDescriptor,
    UploadTarget,
    build_cover_image_key,
    build_post_media_key,
    create_upload_descriptor,
    ensure_cover_image,
    ensure_file_size,
    ensure_uploads_enabled,
    file_extension,
    resolve_post_media_type,
)
from api.deps import get_current_user
from .post_views import require_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["uploads"])


def _resolve_file_fields(
    file: UploadFile | None,
    filename: str | None,
    content_type: str | None,
    size: int | None,
) -> tuple[str, str | None, int | None]:
    if file is not None:
        return (
            file.filename or filename or "",
            file.content_type or content_type,
            file.size if file.size is not None else size,
        )
    if not filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A file or file name is required",
        )
    return filename, content_type, size


async def _proxy_upload(object_key: str, file: UploadFile, *, content_type: str, size: int) -> None:
    await file.seek(0)
    try:
        await asyncio.to_thread(
            put_object_stream,
            object_key,
            file.file,
            content_type=content_type,
            length=size,
        )
    except Exception as exc:
        logger.exception("Failed to store uploaded media", extra={"object_key": object_key})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to upload media",
        ) from exc


@router.post("/post-media", response_model=UploadDescriptor, response_model_exclude_none=True)
async def upload_post_media(
    type: Annotated[UploadTarget, Form()] = "post",
    filename: Annotated[str | None, Form()] = None,
    content_type: Annotated[str | None, Form()] = None,
    size: Annotated[int | None, Form()] = None,
    file: UploadFile | None = File(default=None),
    current_user: User = Depends(get_current_user),
) -> UploadDescriptor:
    """Prepare an upload for a post or draft attachment.

    Images and metadata-only requests get a presigned PUT. A video sent as a
    file is streamed to storage by the server.
    """
    ensure_uploads_enabled()
    user_id = require_user_id(current_user)
    name, declared_type, declared_size = _resolve_file_fields(file, filename, content_type, size)
    ensure_file_size(declared_size, settings.post_media_max_bytes)
    extension = file_extension(name)
    media_type = resolve_post_media_type(extension, declared_type)
    object_key = build_post_media_key(type, user_id, extension)

    if file is not None and media_type == "video" and declared_size is not None:
        resolved_content_type = declared_type or f"video/{extension}"
        await _proxy_upload(
            object_key,
            file,
            content_type=resolved_content_type,
            size=declared_size,
        )
        logger.info(
            "Proxied video upload",
            extra={"object_key": object_key, "user_id": user_id},
        )
        return UploadDescriptor(
            publicUrl=public_url_for(object_key),
            key=object_key,
            mediaType=media_type,
            directUpload=False,
        )

    return create_upload_descriptor(object_key, media_type=media_type, content_type=declared_type)


@router.post("/cover-images", response_model=UploadDescriptor, response_model_exclude_none=True)
async def upload_cover_image(
    filename: Annotated[str | None, Form()] = None,
    content_type: Annotated[str | None, Form()] = None,
    size: Annotated[int | None, Form()] = None,
    file: UploadFile | None = File(default=None),
    current_user: User = Depends(get_current_user),
) -> UploadDescriptor:
    ensure_uploads_enabled()
    user_id = require_user_id(current_user)
    name, declared_type, declared_size = _resolve_file_fields(file, filename, content_type, size)
    ensure_file_size(declared_size, settings.cover_image_max_bytes)
    extension = file_extension(name)
    ensure_cover_image(extension, declared_type)
    return create_upload_descriptor(
        build_cover_image_key(user_id, extension),
        media_type="image",
        content_type=declared_type,
    )
