"""Tests for follow and block toggles, feed exclusion and connection lists."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from fastapi import status
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Block, CommunityPost, Community, Follow, Post
from services.relationship_filter import collect_excluded_user_ids


@pytest.mark.asyncio
async def test_follow_is_idempotent_and_reversible(
    async_client: AsyncClient,
    db_session: AsyncSession,
    make_user,
    auth_headers,
) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")

    first = await async_client.post(f"/api/users/{bob.id}/follow", headers=auth_headers(alice))
    assert first.status_code == status.HTTP_201_CREATED
    assert first.json() == {"success": True, "following": True}

    second = await async_client.post(f"/api/users/{bob.id}/follow", headers=auth_headers(alice))
    assert second.status_code == status.HTTP_200_OK
    assert second.json()["following"] is True

    rows = (await db_session.execute(select(Follow))).scalars().all()
    assert len(rows) == 1

    status_resp = await async_client.get(f"/api/users/{bob.id}/follow", headers=auth_headers(alice))
    assert status_resp.json()["following"] is True

    unfollow = await async_client.delete(f"/api/users/{bob.id}/follow", headers=auth_headers(alice))
    assert unfollow.json()["following"] is False
    unfollow_again = await async_client.delete(
        f"/api/users/{bob.id}/follow", headers=auth_headers(alice)
    )
    assert unfollow_again.status_code == status.HTTP_200_OK

    refollow = await async_client.post(f"/api/users/{bob.id}/follow", headers=auth_headers(alice))
    assert refollow.status_code == status.HTTP_201_CREATED

    db_session.expire_all()
    rows = (await db_session.execute(select(Follow))).scalars().all()
    assert len(rows) == 2
    assert sorted(row.is_deleted for row in rows) == [False, True]


@pytest.mark.asyncio
async def test_follow_rejects_self_unknown_and_blocked_targets(
    async_client: AsyncClient,
    make_user,
    auth_headers,
) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")

    self_follow = await async_client.post(f"/api/users/{alice.id}/follow", headers=auth_headers(alice))
    assert self_follow.status_code == status.HTTP_400_BAD_REQUEST

    unknown = await async_client.post("/api/users/999999/follow", headers=auth_headers(alice))
    assert unknown.status_code == status.HTTP_404_NOT_FOUND

    not_numeric = await async_client.post("/api/users/abc/follow", headers=auth_headers(alice))
    assert not_numeric.status_code == status.HTTP_400_BAD_REQUEST
    assert "error" in not_numeric.json()

    await async_client.post(f"/api/users/{alice.id}/block", headers=auth_headers(bob))
    blocked = await async_client.post(f"/api/users/{bob.id}/follow", headers=auth_headers(alice))
    assert blocked.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.asyncio
async def test_block_severs_follows_in_both_directions(
    async_client: AsyncClient,
    db_session: AsyncSession,
    make_user,
    auth_headers,
) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")
    await async_client.post(f"/api/users/{bob.id}/follow", headers=auth_headers(alice))
    await async_client.post(f"/api/users/{alice.id}/follow", headers=auth_headers(bob))

    block = await async_client.post(f"/api/users/{bob.id}/block", headers=auth_headers(alice))
    assert block.status_code == status.HTTP_201_CREATED
    assert block.json() == {"success": True, "blocked": True}

    follows = (await db_session.execute(select(Follow))).scalars().all()
    assert follows and all(row.is_deleted for row in follows)

    repeat = await async_client.post(f"/api/users/{bob.id}/block", headers=auth_headers(alice))
    assert repeat.status_code == status.HTTP_200_OK
    blocks = (await db_session.execute(select(Block))).scalars().all()
    assert len(blocks) == 1

    unblock = await async_client.delete(f"/api/users/{bob.id}/block", headers=auth_headers(alice))
    assert unblock.json()["blocked"] is False


@pytest.mark.asyncio
async def test_block_severs_follows_when_insert_loses_race(
    async_client: AsyncClient,
    db_session: AsyncSession,
    make_user,
    auth_headers,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")
    db_session.add_all(
        [
            Follow(follower_id=alice.id, following_id=bob.id),
            Follow(follower_id=bob.id, following_id=alice.id),
            Block(blocker_id=alice.id, blocked_id=bob.id),
        ]
    )
    await db_session.commit()

    # A concurrent request committed the block after the existence check ran.
    monkeypatch.setattr("services.toggles.find_active", AsyncMock(return_value=None))

    response = await async_client.post(f"/api/users/{bob.id}/block", headers=auth_headers(alice))

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["blocked"] is True
    db_session.expire_all()
    follows = (await db_session.execute(select(Follow))).scalars().all()
    assert len(follows) == 2
    assert all(row.is_deleted for row in follows)
    blocks = (await db_session.execute(select(Block))).scalars().all()
    assert [row.is_deleted for row in blocks] == [False]


@pytest.mark.asyncio
async def test_block_rejects_banned_and_self(
    async_client: AsyncClient,
    make_user,
    auth_headers,
) -> None:
    alice = await make_user("alice")
    banned = await make_user("banned", is_banned=True)

    banned_resp = await async_client.post(f"/api/users/{banned.id}/block", headers=auth_headers(alice))
    assert banned_resp.status_code == status.HTTP_400_BAD_REQUEST
    assert banned_resp.json() == {"error": "Banned users cannot be blocked"}

    self_resp = await async_client.post(f"/api/users/{alice.id}/block", headers=auth_headers(alice))
    assert self_resp.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.asyncio
async def test_excluded_users_cover_both_block_directions_and_bans(
    db_session: AsyncSession,
    make_user,
) -> None:
    viewer = await make_user("viewer")
    blocked = await make_user("blocked")
    blocker = await make_user("blocker")
    banned = await make_user("banned", is_banned=True)
    bystander = await make_user("bystander")
    lifted = await make_user("lifted")

    db_session.add_all(
        [
            Block(blocker_id=viewer.id, blocked_id=blocked.id),
            Block(blocker_id=blocker.id, blocked_id=viewer.id),
            Block(blocker_id=viewer.id, blocked_id=lifted.id, is_deleted=True),
        ]
    )
    await db_session.commit()

    excluded = await collect_excluded_user_ids(db_session, viewer.id)

    assert excluded == {blocked.id, blocker.id, banned.id}
    assert bystander.id not in excluded


@pytest.mark.asyncio
async def test_feed_hides_blocked_banned_and_community_posts(
    async_client: AsyncClient,
    db_session: AsyncSession,
    make_user,
    auth_headers,
) -> None:
    viewer = await make_user("viewer")
    friend = await make_user("friend")
    blocker = await make_user("blocker")
    banned = await make_user("banned", is_banned=True)

    visible = Post(user_id=friend.id, content="visible")
    community_only = Post(user_id=friend.id, content="community")
    from_blocker = Post(user_id=blocker.id, content="blocker")
    from_banned = Post(user_id=banned.id, content="banned")
    db_session.add_all([visible, community_only, from_blocker, from_banned])
    db_session.add(Block(blocker_id=blocker.id, blocked_id=viewer.id))
    community = Community(name="club", creator_id=friend.id)
    db_session.add(community)
    await db_session.commit()
    db_session.add(CommunityPost(community_id=community.id, post_id=community_only.id))
    await db_session.commit()

    feed = await async_client.get("/api/posts", headers=auth_headers(viewer))
    assert [item["id"] for item in feed.json()["posts"]] == [visible.id]

    blocked_detail = await async_client.get(f"/api/posts/{from_blocker.id}", headers=auth_headers(viewer))
    assert blocked_detail.status_code == status.HTTP_404_NOT_FOUND

    like_blocked = await async_client.post(
        f"/api/posts/{from_blocker.id}/likes", headers=auth_headers(viewer)
    )
    assert like_blocked.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.asyncio
async def test_block_hides_posts_both_ways_but_not_from_third_parties(
    async_client: AsyncClient,
    db_session: AsyncSession,
    make_user,
    auth_headers,
) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")
    carol = await make_user("carol")
    from_alice = Post(user_id=alice.id, content="alice writes")
    from_bob = Post(user_id=bob.id, content="bob writes")
    db_session.add_all([from_alice, from_bob])
    await db_session.commit()

    block = await async_client.post(f"/api/users/{bob.id}/block", headers=auth_headers(alice))
    assert block.status_code == status.HTTP_201_CREATED

    async def feed_ids(viewer) -> set[int]:
        response = await async_client.get("/api/posts", headers=auth_headers(viewer))
        assert response.status_code == status.HTTP_200_OK
        return {item["id"] for item in response.json()["posts"]}

    assert await feed_ids(alice) == {from_alice.id}
    assert await feed_ids(bob) == {from_bob.id}
    assert await feed_ids(carol) == {from_alice.id, from_bob.id}


@pytest.mark.asyncio
async def test_connection_lists_report_totals_and_skip_excluded_users(
    async_client: AsyncClient,
    make_user,
    auth_headers,
) -> None:
    viewer = await make_user("viewer")
    followed = [await make_user(f"followed{index}") for index in range(3)]
    fan = await make_user("fan")
    for user in followed:
        await async_client.post(f"/api/users/{user.id}/follow", headers=auth_headers(viewer))
    await async_client.post(f"/api/users/{viewer.id}/follow", headers=auth_headers(fan))

    follows = await async_client.get("/api/follows", params={"limit": 2}, headers=auth_headers(viewer))
    body = follows.json()
    assert [entry["following_user"]["id"] for entry in body["follows"]] == [
        followed[2].id,
        followed[1].id,
    ]
    assert body["pagination"]["hasNextPage"] is True
    assert body["pagination"]["total"] == 3

    followers = await async_client.get("/api/followers", headers=auth_headers(viewer))
    assert [entry["follower_user"]["id"] for entry in followers.json()["followers"]] == [fan.id]
    assert followers.json()["pagination"]["total"] == 1

    await async_client.post(f"/api/users/{viewer.id}/block", headers=auth_headers(followed[0]))
    follows_after = await async_client.get("/api/follows", headers=auth_headers(viewer))
    ids = [entry["following_user"]["id"] for entry in follows_after.json()["follows"]]
    assert followed[0].id not in ids
    assert follows_after.json()["pagination"]["total"] == 2

    await async_client.post(f"/api/users/{fan.id}/block", headers=auth_headers(viewer))
    blocks = await async_client.get("/api/blocks", headers=auth_headers(viewer))
    assert [entry["blocked_user"]["id"] for entry in blocks.json()["blocks"]] == [fan.id]
    assert blocks.json()["pagination"]["total"] == 1
