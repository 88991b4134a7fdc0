"""Post visibility and ownership policy checks."""

from __future__ import annotations

from typing import NoReturn

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from models import Post, User
from .relationship_filter import get_block_state


def _raise_post_not_found() -> NoReturn:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")


async def require_active_post(session: AsyncSession, post_id: int) -> Post:
    """Return the post or raise 404 when it does not exist or was deleted."""
    post = await session.get(Post, post_id)
    if post is None or post.is_deleted:
        _raise_post_not_found()
    return post


async def require_visible_post(
    session: AsyncSession,
    *,
    post_id: int,
    viewer_id: int,
) -> Post:
    """Return the post when the viewer may see it; otherwise raise 404.

    Hidden posts, posts by banned authors and posts across a block in either
    direction are reported as missing.
    """
    post = await require_active_post(session, post_id)
    if post.is_hidden:
        _raise_post_not_found()
    if post.user_id == viewer_id:
        return post

    author = await session.get(User, post.user_id)
    if author is None or author.is_banned:
        _raise_post_not_found()
    block_state = await get_block_state(session, viewer_id=viewer_id, target_id=post.user_id)
    if block_state.either_direction:
        _raise_post_not_found()
    return post


def require_post_owner(post: Post, viewer_id: int) -> None:
    if post.user_id != viewer_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only delete your own posts",
        )
