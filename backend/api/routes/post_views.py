"""Shared post view models and response assembly."""

from __future__ import annotations

from collections.abc import Collection, Sequence
from datetime import datetime
from typing import Any, cast

from fastapi import HTTPException, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from models import Post, User
from services.engagement import EngagementMaps, collect_engagement
from services.media import MediaResponse, load_post_media
from services.relationship_filter import is_post_visible


def require_user_id(user: User) -> int:
    if user.id is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="User record missing identifier",
        )
    return user.id


class PostAuthor(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    first_name: str | None = None
    last_name: str | None = None
    profile_image_url: str | None = None


class PostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    content: str
    post_type: str
    in_reply_to_post_id: int | None = None
    quote_of_post_id: int | None = None
    repost_of_post_id: int | None = None
    media_count: int = 0
    created_at: datetime | None = None
    user: PostAuthor | None = None
    media: list[MediaResponse] = []
    like_count: int = 0
    is_liked: bool = False
    bookmark_count: int = 0
    is_bookmarked: bool = False
    reply_count: int = 0
    repost_count: int = 0
    is_reposted: bool = False
    in_reply_to_post: "PostResponse | None" = None
    quote_of_post: "PostResponse | None" = None
    repost_of_post: "PostResponse | None" = None

    @classmethod
    def from_post(
        cls,
        post: Post,
        *,
        author: User | None = None,
        media: Sequence[MediaResponse] = (),
        engagement: EngagementMaps | None = None,
    ) -> "PostResponse":
        if post.id is None:
            raise ValueError("Post record missing identifier")
        maps = engagement or EngagementMaps()
        return cls(
            id=post.id,
            user_id=post.user_id,
            content=post.content,
            post_type=post.post_type,
            in_reply_to_post_id=post.in_reply_to_post_id,
            quote_of_post_id=post.quote_of_post_id,
            repost_of_post_id=post.repost_of_post_id,
            media_count=post.media_count,
            created_at=post.created_at,
            user=PostAuthor.model_validate(author) if author is not None else None,
            media=list(media),
            like_count=maps.like_counts.get(post.id, 0),
            is_liked=post.id in maps.liked,
            bookmark_count=maps.bookmark_counts.get(post.id, 0),
            is_bookmarked=post.id in maps.bookmarked,
            reply_count=maps.reply_counts.get(post.id, 0),
            repost_count=maps.repost_counts.get(post.id, 0),
            is_reposted=post.id in maps.reposted,
        )


PostResponse.model_rebuild()


async def load_users(session: AsyncSession, user_ids: Collection[int]) -> dict[int, User]:
    if not user_ids:
        return {}
    user_id_column = cast(ColumnElement[int], User.id)
    result = await session.execute(select(User).where(user_id_column.in_(list(user_ids))))
    return {user.id: user for user in result.scalars().all() if user.id is not None}


async def _load_posts(session: AsyncSession, post_ids: Collection[int]) -> list[Post]:
    post_id_column = cast(ColumnElement[int], Post.id)
    result = await session.execute(select(Post).where(post_id_column.in_(list(post_ids))))
    return list(result.scalars().all())


def _related_ids(post: Post) -> list[int]:
    return [
        related_id
        for related_id in (post.in_reply_to_post_id, post.quote_of_post_id, post.repost_of_post_id)
        if related_id is not None
    ]


async def _build_flat_responses(
    session: AsyncSession,
    posts: Sequence[Post],
    viewer_id: int,
) -> list[PostResponse]:
    post_ids = [post.id for post in posts if post.id is not None]
    authors = await load_users(session, {post.user_id for post in posts})
    media_map = await load_post_media(session, post_ids)
    engagement = await collect_engagement(session, post_ids, viewer_id)
    return [
        PostResponse.from_post(
            post,
            author=authors.get(post.user_id),
            media=[MediaResponse.from_media(item) for item in media_map.get(post.id or 0, [])],
            engagement=engagement,
        )
        for post in posts
    ]


async def build_post_responses(
    session: AsyncSession,
    posts: Sequence[Post],
    *,
    viewer_id: int,
    excluded_user_ids: Collection[int] = (),
    include_related: bool = False,
) -> list[PostResponse]:
    """Enrich a page of posts with authors, media and engagement.

    With `include_related`, reply/quote/repost targets are expanded one level
    deep. Targets the viewer may not see are returned as null.
    """
    responses = await _build_flat_responses(session, posts, viewer_id)
    if not include_related:
        return responses

    related_ids = {related_id for post in posts for related_id in _related_ids(post)}
    if not related_ids:
        return responses

    related_posts = [
        post
        for post in await _load_posts(session, related_ids)
        if is_post_visible(post, excluded_user_ids)
    ]
    related_map = {
        response.id: response
        for response in await _build_flat_responses(session, related_posts, viewer_id)
    }

    for response in responses:
        if response.in_reply_to_post_id is not None:
            response.in_reply_to_post = related_map.get(response.in_reply_to_post_id)
        if response.quote_of_post_id is not None:
            response.quote_of_post = related_map.get(response.quote_of_post_id)
        if response.repost_of_post_id is not None:
            response.repost_of_post = related_map.get(response.repost_of_post_id)
    return responses


async def build_post_response(
    session: AsyncSession,
    post: Post,
    *,
    viewer_id: int,
    excluded_user_ids: Collection[int] = (),
    include_related: bool = True,
) -> PostResponse:
    responses = await build_post_responses(
        session,
        [post],
        viewer_id=viewer_id,
        excluded_user_ids=excluded_user_ids,
        include_related=include_related,
    )
    return responses[0]
