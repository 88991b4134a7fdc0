"""Tests for profile endpoints."""

from __future__ import annotations

import pytest
from fastapi import status
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from models import Post


@pytest.mark.asyncio
async def test_update_own_profile_only_touches_sent_fields(
    async_client: AsyncClient,
    make_user,
    auth_headers,
) -> None:
    user = await make_user("editor", first_name="Old", bio="keep me")

    response = await async_client.put(
        "/api/profile",
        json={"first_name": "  New  ", "cover_image_url": "https://media.example.com/cover-images/1/a.png"},
        headers=auth_headers(user),
    )

    assert response.status_code == status.HTTP_200_OK
    profile = response.json()["profile"]
    assert profile["first_name"] == "New"
    assert profile["bio"] == "keep me"
    assert profile["cover_image_url"] == "https://media.example.com/cover-images/1/a.png"

    current = await async_client.get("/api/profile", headers=auth_headers(user))
    assert current.json()["profile"]["first_name"] == "New"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [{"first_name": "x" * 51}, {"last_name": "y" * 51}, {"bio": "z" * 201}],
)
async def test_update_profile_enforces_length_limits(
    payload: dict[str, str],
    async_client: AsyncClient,
    make_user,
    auth_headers,
) -> None:
    user = await make_user("editor")

    response = await async_client.put("/api/profile", json=payload, headers=auth_headers(user))

    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.asyncio
async def test_public_profile_reports_counts_and_flags(
    async_client: AsyncClient,
    db_session: AsyncSession,
    make_user,
    auth_headers,
) -> None:
    viewer = await make_user("viewer")
    star = await make_user("star")
    db_session.add_all([Post(user_id=star.id, content="one"), Post(user_id=star.id, content="two")])
    await db_session.commit()
    await async_client.post(f"/api/users/{star.id}/follow", headers=auth_headers(viewer))

    response = await async_client.get("/api/profile/star", headers=auth_headers(viewer))

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["profile"]["username"] == "star"
    assert body["stats"] == {"follower_count": 1, "following_count": 0, "post_count": 2}
    assert body["isOwnProfile"] is False
    assert body["isFollowing"] is True
    assert body["isBlocked"] is False

    own = await async_client.get("/api/profile/viewer", headers=auth_headers(viewer))
    assert own.json()["isOwnProfile"] is True
    assert own.json()["stats"]["following_count"] == 1


@pytest.mark.asyncio
async def test_public_profile_hides_banned_and_blocking_users(
    async_client: AsyncClient,
    make_user,
    auth_headers,
) -> None:
    viewer = await make_user("viewer")
    await make_user("banned", is_banned=True)
    blocker = await make_user("blocker")
    blocked = await make_user("blocked")

    await async_client.post(f"/api/users/{viewer.id}/block", headers=auth_headers(blocker))
    await async_client.post(f"/api/users/{blocked.id}/block", headers=auth_headers(viewer))

    for username in ("banned", "blocker", "nobody"):
        response = await async_client.get(f"/api/profile/{username}", headers=auth_headers(viewer))
        assert response.status_code == status.HTTP_404_NOT_FOUND

    blocked_view = await async_client.get("/api/profile/blocked", headers=auth_headers(viewer))
    assert blocked_view.status_code == status.HTTP_200_OK
    assert blocked_view.json()["isBlocked"] is True
