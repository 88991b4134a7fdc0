"""Current user and public profile endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, cast

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import false, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from api.deps import get_current_user, get_db
from core import settings
from models import Follow, Post, User
from services.relationship_filter import get_block_state
from services.toggles import count_active, find_active
from .post_views import require_user_id

router = APIRouter(tags=["profile"])


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


class UserProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    first_name: str | None = None
    last_name: str | None = None
    profile_image_url: str | None = None
    cover_image_url: str | None = None
    bio: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OwnProfile(UserProfile):
    email: str | None = None
    role: str = "user"
    subscription_type: str = "free"


class ProfileStats(BaseModel):
    follower_count: int = 0
    following_count: int = 0
    post_count: int = 0


class MeResponse(BaseModel):
    user: OwnProfile


class ProfileResponse(BaseModel):
    profile: OwnProfile


class PublicProfileResponse(BaseModel):
    profile: UserProfile
    stats: ProfileStats
    isOwnProfile: bool
    isFollowing: bool
    isBlocked: bool


class ProfileUpdateRequest(BaseModel):
    first_name: str | None = Field(default=None, max_length=settings.max_name_length)
    last_name: str | None = Field(default=None, max_length=settings.max_name_length)
    bio: str | None = Field(default=None, max_length=settings.max_bio_length)
    profile_image_url: str | None = Field(default=None, max_length=2048)
    cover_image_url: str | None = Field(default=None, max_length=2048)


def _normalize_optional(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


async def _profile_stats(session: AsyncSession, user_id: int) -> ProfileStats:
    post_count_result = await session.execute(
        select(func.count())
        .select_from(Post)
        .where(_eq(Post.user_id, user_id), _eq(Post.is_deleted, false()))
    )
    return ProfileStats(
        follower_count=await count_active(session, Follow, following_id=user_id),
        following_count=await count_active(session, Follow, follower_id=user_id),
        post_count=int(post_count_result.scalar_one() or 0),
    )


@router.get("/me", response_model=MeResponse)
async def read_me(current_user: User = Depends(get_current_user)) -> MeResponse:
    return MeResponse(user=OwnProfile.model_validate(current_user))


@router.get("/profile", response_model=ProfileResponse)
async def read_own_profile(current_user: User = Depends(get_current_user)) -> ProfileResponse:
    return ProfileResponse(profile=OwnProfile.model_validate(current_user))


@router.put("/profile", response_model=ProfileResponse)
async def update_own_profile(
    payload: ProfileUpdateRequest,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ProfileResponse:
    """Update only the fields present in the request body."""
    for field_name in payload.model_fields_set:
        setattr(current_user, field_name, _normalize_optional(getattr(payload, field_name)))

    session.add(current_user)
    await session.commit()
    await session.refresh(current_user)
    return ProfileResponse(profile=OwnProfile.model_validate(current_user))


@router.get("/profile/{username}", response_model=PublicProfileResponse)
async def read_profile(
    username: str,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PublicProfileResponse:
    """Return a profile with relationship flags.

    Deleted and banned users, and users blocking the viewer, are reported as
    missing. A user the viewer blocks stays visible so the block can be lifted.
    """
    viewer_id = require_user_id(current_user)
    result = await session.execute(
        select(User).where(_eq(User.username, username), _eq(User.is_deleted, false())).limit(1)
    )
    profile_user = result.scalar_one_or_none()
    if profile_user is None or profile_user.id is None or profile_user.is_banned:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    is_own_profile = profile_user.id == viewer_id
    block_state = await get_block_state(session, viewer_id=viewer_id, target_id=profile_user.id)
    if block_state.is_blocked_by:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    is_following = False
    if not is_own_profile:
        is_following = (
            await find_active(
                session, Follow, follower_id=viewer_id, following_id=profile_user.id
            )
            is not None
        )

    return PublicProfileResponse(
        profile=UserProfile.model_validate(profile_user),
        stats=await _profile_stats(session, profile_user.id),
        isOwnProfile=is_own_profile,
        isFollowing=is_following,
        isBlocked=block_state.is_blocked,
    )
