"""Block, ban and community exclusion rules for content listings."""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from typing import Any, cast

from sqlalchemy import and_, false, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from models import Block, CommunityPost, Post, User


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _is_active(column: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == false())


async def collect_excluded_user_ids(
    session: AsyncSession,
    viewer_id: int,
) -> set[int]:
    """Return ids of users whose content must be hidden from the viewer.

    Union of users the viewer blocks, users blocking the viewer and banned
    users. The viewer is never part of the set.
    """
    block_result = await session.execute(
        select(Block.blocker_id, Block.blocked_id).where(
            or_(
                _eq(Block.blocker_id, viewer_id),
                _eq(Block.blocked_id, viewer_id),
            ),
            _is_active(Block.is_deleted),
        )
    )
    excluded: set[int] = set()
    for blocker_id, blocked_id in block_result.all():
        excluded.add(blocked_id if blocker_id == viewer_id else blocker_id)

    banned_result = await session.execute(
        select(User.id).where(_eq(User.is_banned, True))
    )
    excluded.update(user_id for user_id in banned_result.scalars().all() if user_id is not None)
    excluded.discard(viewer_id)
    return excluded


async def collect_community_post_ids(session: AsyncSession) -> set[int]:
    """Return ids of posts published inside any community."""
    result = await session.execute(
        select(CommunityPost.post_id).where(_is_active(CommunityPost.is_deleted))
    )
    return set(result.scalars().all())


def build_visible_post_filters(
    *,
    excluded_user_ids: Collection[int],
    excluded_post_ids: Collection[int] = (),
) -> list[ColumnElement[bool]]:
    """Return SQL predicates selecting posts a viewer may see."""
    post_id_column = cast(ColumnElement[int], Post.id)
    author_column = cast(ColumnElement[int], Post.user_id)
    filters: list[ColumnElement[bool]] = [
        _is_active(Post.is_deleted),
        _is_active(Post.is_hidden),
    ]
    if excluded_user_ids:
        filters.append(author_column.not_in(list(excluded_user_ids)))
    if excluded_post_ids:
        filters.append(post_id_column.not_in(list(excluded_post_ids)))
    return filters


def is_post_visible(post: Post, excluded_user_ids: Collection[int]) -> bool:
    return not post.is_deleted and not post.is_hidden and post.user_id not in excluded_user_ids


@dataclass(slots=True)
class BlockState:
    is_blocked: bool
    is_blocked_by: bool

    @property
    def either_direction(self) -> bool:
        return self.is_blocked or self.is_blocked_by


async def get_block_state(
    session: AsyncSession,
    *,
    viewer_id: int,
    target_id: int,
) -> BlockState:
    if viewer_id == target_id:
        return BlockState(is_blocked=False, is_blocked_by=False)

    result = await session.execute(
        select(Block.blocker_id, Block.blocked_id).where(
            or_(
                and_(
                    _eq(Block.blocker_id, viewer_id),
                    _eq(Block.blocked_id, target_id),
                ),
                and_(
                    _eq(Block.blocker_id, target_id),
                    _eq(Block.blocked_id, viewer_id),
                ),
            ),
            _is_active(Block.is_deleted),
        )
    )
    rows = result.all()
    is_blocked = any(
        blocker_id == viewer_id and blocked_id == target_id for blocker_id, blocked_id in rows
    )
    is_blocked_by = any(
        blocker_id == target_id and blocked_id == viewer_id for blocker_id, blocked_id in rows
    )
    return BlockState(is_blocked=is_blocked, is_blocked_by=is_blocked_by)
