"""Follow and block toggles addressed by user id."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db
from models import Block, Follow, User
from services.relationship_filter import get_block_state
from services.toggles import activate, deactivate, find_active
from .post_views import require_user_id

router = APIRouter(prefix="/users", tags=["users"])


class FollowStatusResponse(BaseModel):
    success: bool = True
    following: bool


class BlockStatusResponse(BaseModel):
    success: bool = True
    blocked: bool


async def _require_target_user(session: AsyncSession, user_id: int) -> User:
    target = await session.get(User, user_id)
    if target is None or target.is_deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return target


def _reject_self(viewer_id: int, target_id: int, detail: str) -> None:
    if viewer_id == target_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


@router.get("/{user_id}/follow", response_model=FollowStatusResponse)
async def get_follow_status(
    user_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FollowStatusResponse:
    viewer_id = require_user_id(current_user)
    await _require_target_user(session, user_id)
    existing = await find_active(session, Follow, follower_id=viewer_id, following_id=user_id)
    return FollowStatusResponse(following=existing is not None)


@router.post("/{user_id}/follow", response_model=FollowStatusResponse)
async def follow_user(
    user_id: int,
    response: Response,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FollowStatusResponse:
    viewer_id = require_user_id(current_user)
    _reject_self(viewer_id, user_id, "You cannot follow yourself")
    target = await _require_target_user(session, user_id)
    if target.is_banned:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    block_state = await get_block_state(session, viewer_id=viewer_id, target_id=user_id)
    if block_state.either_direction:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot follow this user",
        )

    result = await activate(session, Follow, follower_id=viewer_id, following_id=user_id)
    if result.changed:
        response.status_code = status.HTTP_201_CREATED
    return FollowStatusResponse(following=True)


@router.delete("/{user_id}/follow", response_model=FollowStatusResponse)
async def unfollow_user(
    user_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FollowStatusResponse:
    viewer_id = require_user_id(current_user)
    _reject_self(viewer_id, user_id, "You cannot unfollow yourself")
    await _require_target_user(session, user_id)
    await deactivate(session, Follow, follower_id=viewer_id, following_id=user_id)
    return FollowStatusResponse(following=False)


@router.get("/{user_id}/block", response_model=BlockStatusResponse)
async def get_block_status(
    user_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> BlockStatusResponse:
    viewer_id = require_user_id(current_user)
    await _require_target_user(session, user_id)
    existing = await find_active(session, Block, blocker_id=viewer_id, blocked_id=user_id)
    return BlockStatusResponse(blocked=existing is not None)


@router.post("/{user_id}/block", response_model=BlockStatusResponse)
async def block_user(
    user_id: int,
    response: Response,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> BlockStatusResponse:
    viewer_id = require_user_id(current_user)
    target = await _require_target_user(session, user_id)
    if target.is_banned:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Banned users cannot be blocked",
        )
    _reject_self(viewer_id, user_id, "You cannot block yourself")

    result = await activate(session, Block, blocker_id=viewer_id, blocked_id=user_id)
    # Severed after the block settles; a lost insert race rolls the session back.
    await deactivate(session, Follow, commit=False, follower_id=viewer_id, following_id=user_id)
    await deactivate(session, Follow, commit=False, follower_id=user_id, following_id=viewer_id)
    await session.commit()
    if result.changed:
        response.status_code = status.HTTP_201_CREATED
    return BlockStatusResponse(blocked=True)


@router.delete("/{user_id}/block", response_model=BlockStatusResponse)
async def unblock_user(
    user_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> BlockStatusResponse:
    viewer_id = require_user_id(current_user)
    _reject_self(viewer_id, user_id, "You cannot unblock yourself")
    await _require_target_user(session, user_id)
    await deactivate(session, Block, blocker_id=viewer_id, blocked_id=user_id)
    return BlockStatusResponse(blocked=False)
