"""Draft CRUD endpoints; drafts are visible to their owner only."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, cast

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import false, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from api.deps import get_current_user, get_db
from core import settings
from models import Draft, DraftMedia, User
from services.media import (
    MediaItem,
    MediaResponse,
    build_draft_media,
    delete_stored_media,
    load_draft_media,
    soft_delete_draft_media,
    validate_attachments,
)
from services.pagination import PageParams, Pagination, apply_cursor, paginate_rows
from services.post_policy import require_active_post
from .pagination_params import get_page_params
from .post_views import require_user_id

router = APIRouter(prefix="/drafts", tags=["drafts"])


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


class DraftRequest(BaseModel):
    content: str = Field(default="", max_length=settings.max_content_length)
    in_reply_to_post_id: int | None = None
    media: list[MediaItem] = []


class DraftResponse(BaseModel):
    id: int
    user_id: int
    content: str
    in_reply_to_post_id: int | None = None
    media_count: int = 0
    media: list[MediaResponse] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_draft(cls, draft: Draft, media: list[DraftMedia]) -> "DraftResponse":
        if draft.id is None:
            raise ValueError("Draft record missing identifier")
        return cls(
            id=draft.id,
            user_id=draft.user_id,
            content=draft.content,
            in_reply_to_post_id=draft.in_reply_to_post_id,
            media_count=draft.media_count,
            media=[MediaResponse.from_media(item) for item in media],
            created_at=draft.created_at,
            updated_at=draft.updated_at,
        )


class DraftListResponse(BaseModel):
    drafts: list[DraftResponse]
    pagination: Pagination


class DraftDetailResponse(BaseModel):
    success: bool = True
    draft: DraftResponse


class DraftDeleteResponse(BaseModel):
    success: bool = True


async def _require_owned_draft(session: AsyncSession, *, draft_id: int, owner_id: int) -> Draft:
    result = await session.execute(
        select(Draft).where(
            _eq(Draft.id, draft_id),
            _eq(Draft.user_id, owner_id),
            _eq(Draft.is_deleted, false()),
        )
    )
    draft = result.scalars().first()
    if draft is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Draft not found")
    return draft


async def _validate_payload(session: AsyncSession, payload: DraftRequest) -> None:
    validate_attachments(payload.content, payload.media)
    if payload.in_reply_to_post_id is not None:
        await require_active_post(session, payload.in_reply_to_post_id)


async def _draft_response(session: AsyncSession, draft: Draft) -> DraftResponse:
    draft_id = draft.id or 0
    media_map = await load_draft_media(session, [draft_id])
    return DraftResponse.from_draft(draft, media_map.get(draft_id, []))


@router.get("", response_model=DraftListResponse)
async def list_drafts(
    page: PageParams = Depends(get_page_params),
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DraftListResponse:
    owner_id = require_user_id(current_user)
    query = select(Draft).where(
        _eq(Draft.user_id, owner_id),
        _eq(Draft.is_deleted, false()),
    )
    result = await session.execute(apply_cursor(query, Draft.id, page))
    result_page = paginate_rows(result.scalars().all(), page, lambda draft: draft.id)
    media_map = await load_draft_media(
        session, [draft.id for draft in result_page.items if draft.id is not None]
    )
    return DraftListResponse(
        drafts=[
            DraftResponse.from_draft(draft, media_map.get(draft.id or 0, []))
            for draft in result_page.items
        ],
        pagination=result_page.pagination(),
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=DraftDetailResponse)
async def create_draft(
    payload: DraftRequest,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DraftDetailResponse:
    owner_id = require_user_id(current_user)
    await _validate_payload(session, payload)

    draft = Draft(
        user_id=owner_id,
        content=payload.content.strip(),
        in_reply_to_post_id=payload.in_reply_to_post_id,
        media_count=len(payload.media),
    )
    session.add(draft)
    try:
        await session.flush()
        if draft.id is None:
            raise ValueError("Draft record missing identifier")
        session.add_all(build_draft_media(draft.id, payload.media))
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    await session.refresh(draft)
    return DraftDetailResponse(draft=await _draft_response(session, draft))


@router.get("/{draft_id}", response_model=DraftDetailResponse)
async def get_draft(
    draft_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DraftDetailResponse:
    draft = await _require_owned_draft(
        session, draft_id=draft_id, owner_id=require_user_id(current_user)
    )
    return DraftDetailResponse(draft=await _draft_response(session, draft))


@router.put("/{draft_id}", response_model=DraftDetailResponse)
async def update_draft(
    draft_id: int,
    payload: DraftRequest,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DraftDetailResponse:
    """Replace the draft's content, reply target and attachments."""
    draft = await _require_owned_draft(
        session, draft_id=draft_id, owner_id=require_user_id(current_user)
    )
    await _validate_payload(session, payload)

    now = datetime.now(timezone.utc)
    kept_urls = {item.url for item in payload.media}
    try:
        replaced_urls = await soft_delete_draft_media(session, draft_id, deleted_at=now)
        session.add_all(build_draft_media(draft_id, payload.media))
        draft.content = payload.content.strip()
        draft.in_reply_to_post_id = payload.in_reply_to_post_id
        draft.media_count = len(payload.media)
        draft.updated_at = now
        session.add(draft)
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    await session.refresh(draft)

    await delete_stored_media(url for url in replaced_urls if url not in kept_urls)
    return DraftDetailResponse(draft=await _draft_response(session, draft))


@router.delete("/{draft_id}", response_model=DraftDeleteResponse)
async def delete_draft(
    draft_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DraftDeleteResponse:
    draft = await _require_owned_draft(
        session, draft_id=draft_id, owner_id=require_user_id(current_user)
    )
    deleted_at = datetime.now(timezone.utc)
    try:
        removed_urls = await soft_delete_draft_media(session, draft_id, deleted_at=deleted_at)
        draft.is_deleted = True
        draft.deleted_at = deleted_at
        session.add(draft)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    await delete_stored_media(removed_urls)
    return DraftDeleteResponse()
