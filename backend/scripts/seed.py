"""Database seed script for local development.

Usage:
    uv run python scripts/seed.py

Seeded accounts carry ``seed_<username>`` external ids, so they can be
impersonated with any identity provider stub that maps tokens to ids.
Running the script twice leaves the data unchanged.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql import ColumnElement

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

from db.session import AsyncSessionMaker  # noqa: E402
from models import Follow, Post, User  # noqa: E402

logger = logging.getLogger(__name__)


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


@dataclass(frozen=True)
class SeedUser:
    username: str
    first_name: str
    bio: str


@dataclass(frozen=True)
class SeedPost:
    username: str
    content: str
    reply_to: int | None = None
    quote_of: int | None = None


@dataclass(frozen=True)
class SeedSummary:
    users: int
    posts: int
    follows: int


BASE_USERS: Sequence[SeedUser] = [
    SeedUser(username="demo_alex", first_name="Alex", bio="Trying things out."),
    SeedUser(username="demo_bella", first_name="Bella", bio="Coffee and city walks."),
    SeedUser(username="demo_cara", first_name="Cara", bio="Photographer in training."),
    SeedUser(username="demo_dan", first_name="Dan", bio="Weekend cyclist."),
    SeedUser(username="demo_ella", first_name="Ella", bio="Design and travel."),
]

# reply_to and quote_of index into this list.
BASE_POSTS: Sequence[SeedPost] = [
    SeedPost(username="demo_alex", content="Sunny day, first post."),
    SeedPost(username="demo_bella", content="First latte art attempt!"),
    SeedPost(username="demo_cara", content="Golden hour on the way home."),
    SeedPost(username="demo_dan", content="Sunday hill climb complete."),
    SeedPost(username="demo_bella", content="Looks great, where was this?", reply_to=2),
    SeedPost(username="demo_ella", content="Everyone needs to see this.", quote_of=3),
]


def build_seed_follows(usernames: Sequence[str]) -> list[tuple[str, str]]:
    """Each user follows the next two users in the list, wrapping around."""
    if len(usernames) < 2:
        return []

    relationships: set[tuple[str, str]] = set()
    total_users = len(usernames)
    for index, follower in enumerate(usernames):
        for step in (1, 2):
            if step >= total_users:
                break
            relationships.add((follower, usernames[(index + step) % total_users]))

    return sorted(relationships)


async def get_or_create_user(session: AsyncSession, payload: SeedUser) -> User:
    result = await session.execute(select(User).where(_eq(User.username, payload.username)))
    user = result.scalar_one_or_none()
    if user:
        return user

    user = User(
        external_id=f"seed_{payload.username}",
        username=payload.username,
        email=f"{payload.username}@example.com",
        first_name=payload.first_name,
        bio=payload.bio,
    )
    session.add(user)
    await session.flush()
    return user


async def ensure_posts(
    session: AsyncSession,
    users: dict[str, User],
    posts: Sequence[SeedPost],
) -> int:
    created_ids: list[int] = []
    created = 0
    for payload in posts:
        author = users[payload.username]
        if author.id is None:
            raise ValueError("Author missing identifier during seeding")

        result = await session.execute(
            select(Post).where(
                _eq(Post.user_id, author.id),
                _eq(Post.content, payload.content),
                _eq(Post.is_deleted, False),
            )
        )
        post = result.scalars().first()
        if post is None:
            reply_id = created_ids[payload.reply_to] if payload.reply_to is not None else None
            quote_id = created_ids[payload.quote_of] if payload.quote_of is not None else None
            post_type = "reply" if reply_id else "quote" if quote_id else "original"
            post = Post(
                user_id=author.id,
                content=payload.content,
                post_type=post_type,
                in_reply_to_post_id=reply_id,
                quote_of_post_id=quote_id,
            )
            session.add(post)
            await session.flush()
            created += 1

        assert post.id is not None
        created_ids.append(post.id)

    return created


async def ensure_follows(
    session: AsyncSession,
    users: dict[str, User],
    follows: Sequence[tuple[str, str]],
) -> int:
    created = 0
    for follower_username, following_username in follows:
        follower = users[follower_username]
        following = users[following_username]

        if follower.id is None or following.id is None:
            raise ValueError("Seed users missing identifiers")

        result = await session.execute(
            select(Follow).where(
                _eq(Follow.follower_id, follower.id),
                _eq(Follow.following_id, following.id),
                _eq(Follow.is_deleted, False),
            )
        )
        if result.scalar_one_or_none():
            continue

        session.add(Follow(follower_id=follower.id, following_id=following.id))
        created += 1

    return created


async def seed(
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionMaker,
) -> SeedSummary:
    follows = build_seed_follows([user.username for user in BASE_USERS])

    async with session_factory() as session:
        users: dict[str, User] = {}
        for payload in BASE_USERS:
            user = await get_or_create_user(session, payload)
            users[user.username] = user

        post_count = await ensure_posts(session, users, BASE_POSTS)
        follow_count = await ensure_follows(session, users, follows)
        await session.commit()

    summary = SeedSummary(users=len(users), posts=post_count, follows=follow_count)
    logger.info(
        "Seed data inserted: users=%s new_posts=%s new_follows=%s",
        summary.users,
        summary.posts,
        summary.follows,
    )
    return summary


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())
