"""The viewer's own engagement history: liked posts and replies."""

from __future__ import annotations

from typing import Any, Literal, cast

from fastapi import APIRouter, Depends
from sqlalchemy import false, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from api.deps import get_current_user, get_db
from models import Like, Post, User
from services.pagination import PageParams, apply_cursor, paginate_rows
from services.relationship_filter import build_visible_post_filters, collect_excluded_user_ids
from .pagination_params import get_page_params
from .post_views import build_post_responses, require_user_id
from .posts import PostListResponse

router = APIRouter(prefix="/engagement", tags=["engagement"])

EngagementType = Literal["likes", "comments"]


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _resolve_type(raw: str | None) -> EngagementType:
    return "comments" if raw == "comments" else "likes"


@router.get("", response_model=PostListResponse)
async def list_engagement(
    type: str | None = None,
    page: PageParams = Depends(get_page_params),
    include_related: bool = False,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PostListResponse:
    """Return posts the viewer liked, or replies the viewer wrote.

    Unknown `type` values fall back to likes.
    """
    viewer_id = require_user_id(current_user)
    excluded_user_ids = await collect_excluded_user_ids(session, viewer_id)
    visible = build_visible_post_filters(excluded_user_ids=excluded_user_ids)

    if _resolve_type(type) == "comments":
        query = select(Post).where(
            _eq(Post.user_id, viewer_id),
            _eq(Post.post_type, "reply"),
            *visible,
        )
    else:
        query = (
            select(Post)
            .join(Like, _eq(Like.post_id, Post.id))
            .where(
                _eq(Like.user_id, viewer_id),
                _eq(Like.is_deleted, false()),
                *visible,
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
