"""Post creation, retrieval, deletion and per-post interaction endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, cast

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import false, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from api.deps import get_current_user, get_db
from core import settings
from models import Bookmark, Like, Post, User
from services.media import (
    MediaItem,
    build_post_media,
    delete_stored_media,
    soft_delete_post_media,
    validate_attachments,
)
from services.pagination import PageParams, Pagination, apply_cursor, paginate_rows
from services.post_policy import require_active_post, require_post_owner, require_visible_post
from services.relationship_filter import (
    build_visible_post_filters,
    collect_community_post_ids,
    collect_excluded_user_ids,
    get_block_state,
)
from services.toggles import activate, count_active, deactivate, find_active
from .pagination_params import get_page_params
from .post_views import PostResponse, build_post_response, build_post_responses, require_user_id

router = APIRouter(prefix="/posts", tags=["posts"])

PostType = Literal["original", "reply", "quote", "repost"]
TARGET_FIELD_BY_TYPE: dict[str, str] = {
    "reply": "in_reply_to_post_id",
    "quote": "quote_of_post_id",
    "repost": "repost_of_post_id",
}


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


class PostCreateRequest(BaseModel):
    """Post body; the parent reference must match `post_type`.

    `original` carries no parent, every other type carries exactly its own.
    """

    content: str = Field(default="", max_length=settings.max_content_length)
    post_type: PostType = "original"
    in_reply_to_post_id: int | None = None
    quote_of_post_id: int | None = None
    repost_of_post_id: int | None = None
    media: list[MediaItem] = []

    @model_validator(mode="after")
    def _check_parent_reference(self) -> "PostCreateRequest":
        expected_field = TARGET_FIELD_BY_TYPE.get(self.post_type)
        for field_name in TARGET_FIELD_BY_TYPE.values():
            value = getattr(self, field_name)
            if field_name == expected_field and value is None:
                raise ValueError(f"{field_name} is required for {self.post_type} posts")
            if field_name != expected_field and value is not None:
                raise ValueError(f"{field_name} is not allowed for {self.post_type} posts")
        return self

    @property
    def target_post_id(self) -> int | None:
        field_name = TARGET_FIELD_BY_TYPE.get(self.post_type)
        return getattr(self, field_name) if field_name else None


class PostCreateResponse(BaseModel):
    success: bool = True
    post: PostResponse


class PostListResponse(BaseModel):
    posts: list[PostResponse]
    pagination: Pagination


class PostDetailResponse(BaseModel):
    post: PostResponse


class PostDeleteResponse(BaseModel):
    success: bool = True
    message: str


class LikeStatusResponse(BaseModel):
    liked: bool
    like_count: int


class BookmarkStatusResponse(BaseModel):
    bookmarked: bool
    bookmark_count: int


class RepostDeleteResponse(BaseModel):
    success: bool = True
    reposted: bool = False


async def _list_visible_posts(
    session: AsyncSession,
    *,
    viewer_id: int,
    page: PageParams,
    include_related: bool,
    filters: list[ColumnElement[bool]],
    exclude_community_posts: bool = True,
) -> PostListResponse:
    excluded_user_ids = await collect_excluded_user_ids(session, viewer_id)
    excluded_post_ids = await collect_community_post_ids(session) if exclude_community_posts else set()
    query = select(Post).where(
        *build_visible_post_filters(
            excluded_user_ids=excluded_user_ids,
            excluded_post_ids=excluded_post_ids,
        ),
        *filters,
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


async def _find_active_repost(
    session: AsyncSession,
    *,
    user_id: int,
    target_post_id: int,
) -> Post | None:
    result = await session.execute(
        select(Post)
        .where(
            _eq(Post.user_id, user_id),
            _eq(Post.post_type, "repost"),
            _eq(Post.repost_of_post_id, target_post_id),
            _eq(Post.is_deleted, false()),
        )
        .limit(1)
    )
    return result.scalars().first()


async def _ensure_can_reference(
    session: AsyncSession,
    *,
    viewer_id: int,
    payload: PostCreateRequest,
) -> None:
    target_post_id = payload.target_post_id
    if target_post_id is None:
        return

    target = await require_active_post(session, target_post_id)
    if payload.post_type != "repost":
        return

    block_state = await get_block_state(session, viewer_id=viewer_id, target_id=target.user_id)
    if block_state.either_direction:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You cannot repost this post",
        )
    if await _find_active_repost(session, user_id=viewer_id, target_post_id=target_post_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You have already reposted this post",
        )


async def _create_post(
    session: AsyncSession,
    *,
    viewer_id: int,
    payload: PostCreateRequest,
) -> Post:
    if payload.post_type != "repost":
        validate_attachments(payload.content, payload.media)
    elif payload.media:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Reposts cannot carry media",
        )
    await _ensure_can_reference(session, viewer_id=viewer_id, payload=payload)

    post = Post(
        user_id=viewer_id,
        content=payload.content.strip(),
        post_type=payload.post_type,
        in_reply_to_post_id=payload.in_reply_to_post_id,
        quote_of_post_id=payload.quote_of_post_id,
        repost_of_post_id=payload.repost_of_post_id,
        media_count=len(payload.media),
    )
    session.add(post)
    try:
        await session.flush()
        if post.id is None:
            raise ValueError("Post record missing identifier")
        session.add_all(build_post_media(post.id, payload.media))
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    await session.refresh(post)
    return post


@router.get("", response_model=PostListResponse)
async def list_posts(
    page: PageParams = Depends(get_page_params),
    include_related: bool = False,
    user_id: Annotated[int | None, Query(alias="userId")] = None,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PostListResponse:
    filters: list[ColumnElement[bool]] = []
    if user_id is not None:
        filters.append(_eq(Post.user_id, user_id))
    return await _list_visible_posts(
        session,
        viewer_id=require_user_id(current_user),
        page=page,
        include_related=include_related,
        filters=filters,
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=PostCreateResponse)
async def create_post(
    payload: PostCreateRequest,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PostCreateResponse:
    viewer_id = require_user_id(current_user)
    post = await _create_post(session, viewer_id=viewer_id, payload=payload)
    return PostCreateResponse(
        post=await build_post_response(session, post, viewer_id=viewer_id, include_related=False)
    )


@router.get("/{post_id}", response_model=PostDetailResponse)
async def get_post(
    post_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PostDetailResponse:
    viewer_id = require_user_id(current_user)
    post = await require_visible_post(session, post_id=post_id, viewer_id=viewer_id)
    excluded_user_ids = await collect_excluded_user_ids(session, viewer_id)
    return PostDetailResponse(
        post=await build_post_response(
            session,
            post,
            viewer_id=viewer_id,
            excluded_user_ids=excluded_user_ids,
        )
    )


@router.delete("/{post_id}", response_model=PostDeleteResponse)
async def delete_post(
    post_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PostDeleteResponse:
    viewer_id = require_user_id(current_user)
    post = await require_active_post(session, post_id)
    require_post_owner(post, viewer_id)

    deleted_at = datetime.now(timezone.utc)
    try:
        removed_urls = await soft_delete_post_media(session, post_id, deleted_at=deleted_at)
        post.is_deleted = True
        post.deleted_at = deleted_at
        session.add(post)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    await delete_stored_media(removed_urls)
    return PostDeleteResponse(message="Post deleted")


@router.get("/{post_id}/replies", response_model=PostListResponse)
async def list_replies(
    post_id: int,
    page: PageParams = Depends(get_page_params),
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PostListResponse:
    viewer_id = require_user_id(current_user)
    await require_visible_post(session, post_id=post_id, viewer_id=viewer_id)
    return await _list_visible_posts(
        session,
        viewer_id=viewer_id,
        page=page,
        include_related=False,
        filters=[
            _eq(Post.in_reply_to_post_id, post_id),
            _eq(Post.post_type, "reply"),
        ],
        exclude_community_posts=False,
    )


async def _like_status(session: AsyncSession, *, post_id: int, viewer_id: int) -> LikeStatusResponse:
    liked = await find_active(session, Like, user_id=viewer_id, post_id=post_id) is not None
    return LikeStatusResponse(
        liked=liked,
        like_count=await count_active(session, Like, post_id=post_id),
    )


@router.get("/{post_id}/likes", response_model=LikeStatusResponse)
async def get_like_status(
    post_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> LikeStatusResponse:
    viewer_id = require_user_id(current_user)
    await require_visible_post(session, post_id=post_id, viewer_id=viewer_id)
    return await _like_status(session, post_id=post_id, viewer_id=viewer_id)


@router.post("/{post_id}/likes", response_model=LikeStatusResponse)
async def like_post(
    post_id: int,
    response: Response,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> LikeStatusResponse:
    viewer_id = require_user_id(current_user)
    await require_visible_post(session, post_id=post_id, viewer_id=viewer_id)
    result = await activate(session, Like, user_id=viewer_id, post_id=post_id)
    if result.changed:
        response.status_code = status.HTTP_201_CREATED
    return await _like_status(session, post_id=post_id, viewer_id=viewer_id)


@router.delete("/{post_id}/likes", response_model=LikeStatusResponse)
async def unlike_post(
    post_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> LikeStatusResponse:
    viewer_id = require_user_id(current_user)
    await require_active_post(session, post_id)
    await deactivate(session, Like, user_id=viewer_id, post_id=post_id)
    return await _like_status(session, post_id=post_id, viewer_id=viewer_id)


async def _bookmark_status(
    session: AsyncSession,
    *,
    post_id: int,
    viewer_id: int,
) -> BookmarkStatusResponse:
    bookmarked = await find_active(session, Bookmark, user_id=viewer_id, post_id=post_id) is not None
    return BookmarkStatusResponse(
        bookmarked=bookmarked,
        bookmark_count=await count_active(session, Bookmark, post_id=post_id),
    )


@router.get("/{post_id}/bookmark", response_model=BookmarkStatusResponse)
async def get_bookmark_status(
    post_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> BookmarkStatusResponse:
    viewer_id = require_user_id(current_user)
    await require_visible_post(session, post_id=post_id, viewer_id=viewer_id)
    return await _bookmark_status(session, post_id=post_id, viewer_id=viewer_id)


@router.post("/{post_id}/bookmark", response_model=BookmarkStatusResponse)
async def bookmark_post(
    post_id: int,
    response: Response,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> BookmarkStatusResponse:
    viewer_id = require_user_id(current_user)
    await require_visible_post(session, post_id=post_id, viewer_id=viewer_id)
    result = await activate(session, Bookmark, user_id=viewer_id, post_id=post_id)
    if result.changed:
        response.status_code = status.HTTP_201_CREATED
    return await _bookmark_status(session, post_id=post_id, viewer_id=viewer_id)


@router.delete("/{post_id}/bookmark", response_model=BookmarkStatusResponse)
async def remove_bookmark(
    post_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> BookmarkStatusResponse:
    viewer_id = require_user_id(current_user)
    await require_active_post(session, post_id)
    await deactivate(session, Bookmark, user_id=viewer_id, post_id=post_id)
    return await _bookmark_status(session, post_id=post_id, viewer_id=viewer_id)


@router.post("/{post_id}/repost", status_code=status.HTTP_201_CREATED, response_model=PostCreateResponse)
async def repost_post(
    post_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PostCreateResponse:
    viewer_id = require_user_id(current_user)
    post = await _create_post(
        session,
        viewer_id=viewer_id,
        payload=PostCreateRequest(post_type="repost", repost_of_post_id=post_id),
    )
    return PostCreateResponse(
        post=await build_post_response(session, post, viewer_id=viewer_id)
    )


@router.delete("/{post_id}/repost", response_model=RepostDeleteResponse)
async def undo_repost(
    post_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> RepostDeleteResponse:
    viewer_id = require_user_id(current_user)
    repost = await _find_active_repost(session, user_id=viewer_id, target_post_id=post_id)
    if repost is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Repost not found")

    repost.is_deleted = True
    repost.deleted_at = datetime.now(timezone.utc)
    session.add(repost)
    await session.commit()
    return RepostDeleteResponse()
