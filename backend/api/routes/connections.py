"""Follow, follower and block listings for the current user."""

from __future__ import annotations

from datetime import datetime
from typing import Any, cast

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy import Select, false, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from api.deps import get_current_user, get_db
from models import Block, Follow, User
from services.pagination import PageParams, Pagination, apply_cursor, paginate_rows
from services.relationship_filter import collect_excluded_user_ids
from .pagination_params import get_page_params
from .post_views import require_user_id

router = APIRouter(tags=["connections"])


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


class ConnectionUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    first_name: str | None = None
    last_name: str | None = None
    profile_image_url: str | None = None
    bio: str | None = None


class FollowingEntry(BaseModel):
    id: int
    follower_id: int
    following_id: int
    created_at: datetime
    following_user: ConnectionUser


class FollowerEntry(BaseModel):
    id: int
    follower_id: int
    following_id: int
    created_at: datetime
    follower_user: ConnectionUser


class BlockEntry(BaseModel):
    id: int
    blocker_id: int
    blocked_id: int
    created_at: datetime
    blocked_user: ConnectionUser


class FollowingListResponse(BaseModel):
    follows: list[FollowingEntry]
    pagination: Pagination


class FollowerListResponse(BaseModel):
    followers: list[FollowerEntry]
    pagination: Pagination


class BlockListResponse(BaseModel):
    blocks: list[BlockEntry]
    pagination: Pagination


async def _count(session: AsyncSession, query: Select) -> int:
    result = await session.execute(
        select(func.count()).select_from(query.order_by(None).subquery())
    )
    return int(result.scalar_one() or 0)


async def _follow_page(
    session: AsyncSession,
    *,
    page: PageParams,
    owner_column: Any,
    other_column: Any,
    viewer_id: int,
) -> tuple[list[tuple[Follow, User]], Pagination]:
    excluded_user_ids = await collect_excluded_user_ids(session, viewer_id)
    other_user_column = cast(ColumnElement[int], other_column)
    query = (
        select(Follow, User)
        .join(User, _eq(User.id, other_user_column))
        .where(
            _eq(owner_column, viewer_id),
            _eq(Follow.is_deleted, false()),
            _eq(User.is_deleted, false()),
        )
    )
    if excluded_user_ids:
        query = query.where(other_user_column.not_in(list(excluded_user_ids)))

    total = await _count(session, query)
    result = await session.execute(apply_cursor(query, Follow.id, page))
    rows = cast(list[tuple[Follow, User]], result.all())
    result_page = paginate_rows(rows, page, lambda row: row[0].id)
    return result_page.items, result_page.pagination(total=total)


@router.get("/follows", response_model=FollowingListResponse)
async def list_following(
    page: PageParams = Depends(get_page_params),
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FollowingListResponse:
    rows, pagination = await _follow_page(
        session,
        page=page,
        owner_column=Follow.follower_id,
        other_column=Follow.following_id,
        viewer_id=require_user_id(current_user),
    )
    return FollowingListResponse(
        follows=[
            FollowingEntry(
                id=cast(int, follow.id),
                follower_id=follow.follower_id,
                following_id=follow.following_id,
                created_at=follow.created_at,
                following_user=ConnectionUser.model_validate(user),
            )
            for follow, user in rows
        ],
        pagination=pagination,
    )


@router.get("/followers", response_model=FollowerListResponse)
async def list_followers(
    page: PageParams = Depends(get_page_params),
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FollowerListResponse:
    rows, pagination = await _follow_page(
        session,
        page=page,
        owner_column=Follow.following_id,
        other_column=Follow.follower_id,
        viewer_id=require_user_id(current_user),
    )
    return FollowerListResponse(
        followers=[
            FollowerEntry(
                id=cast(int, follow.id),
                follower_id=follow.follower_id,
                following_id=follow.following_id,
                created_at=follow.created_at,
                follower_user=ConnectionUser.model_validate(user),
            )
            for follow, user in rows
        ],
        pagination=pagination,
    )


@router.get("/blocks", response_model=BlockListResponse)
async def list_blocks(
    page: PageParams = Depends(get_page_params),
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> BlockListResponse:
    viewer_id = require_user_id(current_user)
    query = (
        select(Block, User)
        .join(User, _eq(User.id, Block.blocked_id))
        .where(
            _eq(Block.blocker_id, viewer_id),
            _eq(Block.is_deleted, false()),
        )
    )
    total = await _count(session, query)
    result = await session.execute(apply_cursor(query, Block.id, page))
    rows = cast(list[tuple[Block, User]], result.all())
    result_page = paginate_rows(rows, page, lambda row: row[0].id)
    return BlockListResponse(
        blocks=[
            BlockEntry(
                id=cast(int, block.id),
                blocker_id=block.blocker_id,
                blocked_id=block.blocked_id,
                created_at=block.created_at,
                blocked_user=ConnectionUser.model_validate(user),
            )
            for block, user in result_page.items
        ],
        pagination=result_page.pagination(total=total),
    )
