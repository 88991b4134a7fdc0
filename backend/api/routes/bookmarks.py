"""Bookmark listing and creation endpoints."""

from __future__ import annotations

from typing import Any, cast

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlalchemy import false, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from api.deps import get_current_user, get_db
from models import Bookmark, Post, User
from services.pagination import PageParams, apply_cursor, paginate_rows
from services.post_policy import require_visible_post
from services.relationship_filter import (
    build_visible_post_filters,
    collect_community_post_ids,
    collect_excluded_user_ids,
)
from services.toggles import activate, count_active
from .pagination_params import get_page_params
from .post_views import build_post_responses, require_user_id
from .posts import BookmarkStatusResponse, PostListResponse

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


class BookmarkCreateRequest(BaseModel):
    post_id: int


@router.get("", response_model=PostListResponse)
async def list_bookmarks(
    page: PageParams = Depends(get_page_params),
    include_related: bool = False,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PostListResponse:
    """Return visible posts the viewer bookmarked, newest post first."""
    viewer_id = require_user_id(current_user)
    excluded_user_ids = await collect_excluded_user_ids(session, viewer_id)
    community_post_ids = await collect_community_post_ids(session)

    query = (
        select(Post)
        .join(Bookmark, _eq(Bookmark.post_id, Post.id))
        .where(
            _eq(Bookmark.user_id, viewer_id),
            _eq(Bookmark.is_deleted, false()),
            *build_visible_post_filters(
                excluded_user_ids=excluded_user_ids,
                excluded_post_ids=community_post_ids,
            ),
        )
        .distinct()
    )
    result = await session.execute(apply_cursor(query, Post.id, page))
    result_page = paginate_rows(result.scalars().all(), page, lambda post: post.id)
    posts = await build_post_responses(
        session,
        result_page.items,
        viewer_id=viewer_id,
        excluded_user_ids=excluded_user_ids,
        include_related=include_related,
    )
    return PostListResponse(posts=posts, pagination=result_page.pagination())


@router.post("", response_model=BookmarkStatusResponse)
async def create_bookmark(
    payload: BookmarkCreateRequest,
    response: Response,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> BookmarkStatusResponse:
    viewer_id = require_user_id(current_user)
    await require_visible_post(session, post_id=payload.post_id, viewer_id=viewer_id)
    result = await activate(session, Bookmark, user_id=viewer_id, post_id=payload.post_id)
    if result.changed:
        response.status_code = status.HTTP_201_CREATED
    return BookmarkStatusResponse(
        bookmarked=True,
        bookmark_count=await count_active(session, Bookmark, post_id=payload.post_id),
    )
