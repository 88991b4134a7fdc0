"""Media attachment validation, classification and lifecycle helpers."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any, Literal, cast
from urllib.parse import urlparse

from fastapi import HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import false, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core import settings
from models import DraftMedia, PostMedia
from .storage import delete_object, storage_key_from_url

logger = logging.getLogger(__name__)

MediaType = Literal["image", "video"]

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "webp", "avif", "heic"})
VIDEO_EXTENSIONS = frozenset({"mp4", "mov", "webm", "avi", "m4v", "mkv"})
IMAGE_PATH_SEGMENTS = ("/image/", "/images/")
VIDEO_PATH_SEGMENTS = ("/video/", "/videos/")
IMAGE_HOST_HINTS = ("cloudinary",)
VIDEO_HOST_HINTS = ("r2.dev", "r2.cloudflarestorage.com")
_EXTENSION_PATTERN = re.compile(r"\.([a-z0-9]+)$")


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


class MediaItem(BaseModel):
    """Attachment descriptor submitted with a post or draft."""

    url: str = Field(min_length=1, max_length=2048)
    mediaType: MediaType | None = None
    width: int | None = Field(default=None, ge=1)
    height: int | None = Field(default=None, ge=1)
    duration_sec: int | None = Field(default=None, ge=0)


class MediaResponse(BaseModel):
    id: int
    url: str
    mediaType: MediaType
    width: int | None = None
    height: int | None = None
    duration_sec: int | None = None

    @classmethod
    def from_media(cls, media: PostMedia | DraftMedia) -> "MediaResponse":
        if media.id is None:
            raise ValueError("Media record missing identifier")
        return cls(
            id=media.id,
            url=media.url,
            mediaType=classify_media_type(media.media_type, media.url),
            width=media.width,
            height=media.height,
            duration_sec=media.duration_sec,
        )


def _extension_of(path: str) -> str | None:
    match = _EXTENSION_PATTERN.search(path.lower())
    return match.group(1) if match else None


def classify_media_type(declared: str | None, url: str) -> MediaType:
    """Classify an attachment as image or video.

    Precedence: declared type, file extension, path segment, storage host,
    then `image`.
    """
    normalized = (declared or "").strip().lower()
    if normalized == "image":
        return "image"
    if normalized == "video":
        return "video"

    parsed = urlparse(url.strip())
    path = parsed.path.lower()

    extension = _extension_of(path)
    if extension in IMAGE_EXTENSIONS:
        return "image"
    if extension in VIDEO_EXTENSIONS:
        return "video"

    if any(segment in path for segment in IMAGE_PATH_SEGMENTS):
        return "image"
    if any(segment in path for segment in VIDEO_PATH_SEGMENTS):
        return "video"

    host = (parsed.hostname or "").lower()
    if any(hint in host for hint in IMAGE_HOST_HINTS):
        return "image"
    if any(hint in host for hint in VIDEO_HOST_HINTS):
        return "video"
    return "image"


def validate_attachments(content: str, media: Sequence[MediaItem]) -> None:
    """Enforce the attachment limit and the content-or-media rule."""
    limit = settings.max_media_attachments
    if len(media) > limit:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"A post can have at most {limit} media attachments",
        )
    if not content.strip() and not media:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Content or media is required",
        )


def build_post_media(post_id: int, items: Iterable[MediaItem]) -> list[PostMedia]:
    return [
        PostMedia(
            post_id=post_id,
            media_type=classify_media_type(item.mediaType, item.url),
            url=item.url,
            width=item.width,
            height=item.height,
            duration_sec=item.duration_sec,
        )
        for item in items
    ]


def build_draft_media(draft_id: int, items: Iterable[MediaItem]) -> list[DraftMedia]:
    return [
        DraftMedia(
            draft_id=draft_id,
            media_type=classify_media_type(item.mediaType, item.url),
            url=item.url,
            width=item.width,
            height=item.height,
            duration_sec=item.duration_sec,
        )
        for item in items
    ]


async def load_post_media(
    session: AsyncSession,
    post_ids: Sequence[int],
) -> dict[int, list[PostMedia]]:
    """Return active media grouped by post id, in insertion order."""
    if not post_ids:
        return {}
    post_id_column = cast(ColumnElement[int], PostMedia.post_id)
    result = await session.execute(
        select(PostMedia)
        .where(
            post_id_column.in_(list(post_ids)),
            _eq(PostMedia.is_deleted, false()),
        )
        .order_by(cast(Any, PostMedia.id).asc())
    )
    grouped: dict[int, list[PostMedia]] = {}
    for media in result.scalars().all():
        grouped.setdefault(media.post_id, []).append(media)
    return grouped


async def load_draft_media(
    session: AsyncSession,
    draft_ids: Sequence[int],
) -> dict[int, list[DraftMedia]]:
    if not draft_ids:
        return {}
    draft_id_column = cast(ColumnElement[int], DraftMedia.draft_id)
    result = await session.execute(
        select(DraftMedia)
        .where(
            draft_id_column.in_(list(draft_ids)),
            _eq(DraftMedia.is_deleted, false()),
        )
        .order_by(cast(Any, DraftMedia.id).asc())
    )
    grouped: dict[int, list[DraftMedia]] = {}
    for media in result.scalars().all():
        grouped.setdefault(media.draft_id, []).append(media)
    return grouped


async def soft_delete_post_media(
    session: AsyncSession,
    post_id: int,
    *,
    deleted_at: datetime,
) -> list[str]:
    """Mark the post's active media deleted without committing.

    Returns the URLs of the rows that were deleted.
    """
    media = (await load_post_media(session, [post_id])).get(post_id, [])
    if media:
        await session.execute(
            update(PostMedia)
            .where(_eq(PostMedia.post_id, post_id), _eq(PostMedia.is_deleted, false()))
            .values(is_deleted=True, deleted_at=deleted_at)
        )
    return [item.url for item in media]


async def soft_delete_draft_media(
    session: AsyncSession,
    draft_id: int,
    *,
    deleted_at: datetime,
) -> list[str]:
    media = (await load_draft_media(session, [draft_id])).get(draft_id, [])
    if media:
        await session.execute(
            update(DraftMedia)
            .where(_eq(DraftMedia.draft_id, draft_id), _eq(DraftMedia.is_deleted, false()))
            .values(is_deleted=True, deleted_at=deleted_at)
        )
    return [item.url for item in media]


async def delete_stored_media(urls: Iterable[str]) -> None:
    """Best-effort removal of uploaded blobs; failures are only logged."""
    for url in urls:
        object_key = storage_key_from_url(url)
        if object_key is None:
            continue
        try:
            await asyncio.to_thread(delete_object, object_key)
        except Exception as cleanup_error:
            logger.warning(
                "Failed to delete stored media object",
                extra={"object_key": object_key},
                exc_info=cleanup_error,
            )
