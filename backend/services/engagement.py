"""Batched engagement counters for a page of posts.

Every metric is one grouped count restricted to the page ids plus, for
viewer flags, one membership query; the number of queries does not depend
on the page size.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, cast

from sqlalchemy import false, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from models import Bookmark, Like, Post


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


@dataclass(slots=True)
class EngagementMaps:
    like_counts: dict[int, int] = field(default_factory=dict)
    liked: set[int] = field(default_factory=set)
    bookmark_counts: dict[int, int] = field(default_factory=dict)
    bookmarked: set[int] = field(default_factory=set)
    reply_counts: dict[int, int] = field(default_factory=dict)
    repost_counts: dict[int, int] = field(default_factory=dict)
    reposted: set[int] = field(default_factory=set)


async def _grouped_counts(
    session: AsyncSession,
    key_column: Any,
    post_ids: Sequence[int],
    *filters: ColumnElement[bool],
) -> dict[int, int]:
    column = cast(ColumnElement[int], key_column)
    count_column = cast(Any, func.count())
    result = await session.execute(
        select(column, count_column)
        .where(column.in_(list(post_ids)), *filters)
        .group_by(column)
    )
    return {post_id: int(total) for post_id, total in result.all() if post_id is not None}


async def _viewer_membership(
    session: AsyncSession,
    key_column: Any,
    post_ids: Sequence[int],
    *filters: ColumnElement[bool],
) -> set[int]:
    column = cast(ColumnElement[int], key_column)
    result = await session.execute(
        select(column).where(column.in_(list(post_ids)), *filters).distinct()
    )
    return {post_id for post_id in result.scalars().all() if post_id is not None}


async def collect_engagement(
    session: AsyncSession,
    post_ids: Sequence[int],
    viewer_id: int | None,
) -> EngagementMaps:
    if not post_ids:
        return EngagementMaps()

    like_active = _eq(Like.is_deleted, false())
    bookmark_active = _eq(Bookmark.is_deleted, false())
    post_active = _eq(Post.is_deleted, false())
    is_reply = _eq(Post.post_type, "reply")
    is_repost = _eq(Post.post_type, "repost")

    maps = EngagementMaps(
        like_counts=await _grouped_counts(session, Like.post_id, post_ids, like_active),
        bookmark_counts=await _grouped_counts(
            session, Bookmark.post_id, post_ids, bookmark_active
        ),
        reply_counts=await _grouped_counts(
            session, Post.in_reply_to_post_id, post_ids, post_active, is_reply
        ),
        repost_counts=await _grouped_counts(
            session, Post.repost_of_post_id, post_ids, post_active, is_repost
        ),
    )
    if viewer_id is None:
        return maps

    maps.liked = await _viewer_membership(
        session, Like.post_id, post_ids, like_active, _eq(Like.user_id, viewer_id)
    )
    maps.bookmarked = await _viewer_membership(
        session, Bookmark.post_id, post_ids, bookmark_active, _eq(Bookmark.user_id, viewer_id)
    )
    maps.reposted = await _viewer_membership(
        session,
        Post.repost_of_post_id,
        post_ids,
        post_active,
        is_repost,
        _eq(Post.user_id, viewer_id),
    )
    return maps
