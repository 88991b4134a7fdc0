"""Tests for post endpoints."""

from __future__ import annotations

from typing import Any, cast
from unittest.mock import MagicMock

import pytest
from fastapi import status
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from models import Post, PostMedia
from services import media as media_service


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


@pytest.mark.asyncio
async def test_create_and_like_post_scenario(
    async_client: AsyncClient,
    make_user,
    auth_headers,
) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")
    carol = await make_user("carol")

    create_resp = await async_client.post(
        "/api/posts", json={"content": "hello"}, headers=auth_headers(alice)
    )
    assert create_resp.status_code == status.HTTP_201_CREATED
    created = create_resp.json()
    assert created["success"] is True
    post = created["post"]
    assert post["post_type"] == "original"
    assert post["media"] == []
    assert post["user"]["username"] == "alice"

    feed_resp = await async_client.get("/api/posts", headers=auth_headers(bob))
    assert feed_resp.status_code == status.HTTP_200_OK
    feed_post = next(item for item in feed_resp.json()["posts"] if item["id"] == post["id"])
    assert feed_post["is_liked"] is False
    assert feed_post["like_count"] == 0

    like_resp = await async_client.post(f"/api/posts/{post['id']}/likes", headers=auth_headers(bob))
    assert like_resp.status_code == status.HTTP_201_CREATED
    assert like_resp.json() == {"liked": True, "like_count": 1}

    bob_view = await async_client.get(f"/api/posts/{post['id']}", headers=auth_headers(bob))
    assert bob_view.json()["post"]["like_count"] == 1
    assert bob_view.json()["post"]["is_liked"] is True

    carol_view = await async_client.get(f"/api/posts/{post['id']}", headers=auth_headers(carol))
    assert carol_view.json()["post"]["like_count"] == 1
    assert carol_view.json()["post"]["is_liked"] is False


@pytest.mark.asyncio
async def test_create_post_with_media_sets_media_count(
    async_client: AsyncClient,
    db_session: AsyncSession,
    make_user,
    auth_headers,
) -> None:
    author = await make_user("author")

    response = await async_client.post(
        "/api/posts",
        json={
            "content": "",
            "media": [
                {"url": "https://cdn.example.com/one.png", "width": 640, "height": 480},
                {"url": "https://cdn.example.com/videos/two"},
            ],
        },
        headers=auth_headers(author),
    )

    assert response.status_code == status.HTTP_201_CREATED
    post = response.json()["post"]
    assert post["media_count"] == 2
    assert [item["mediaType"] for item in post["media"]] == ["image", "video"]

    result = await db_session.execute(select(PostMedia).where(_eq(PostMedia.post_id, post["id"])))
    assert len(result.scalars().all()) == 2


@pytest.mark.asyncio
async def test_create_post_strips_content(
    async_client: AsyncClient,
    db_session: AsyncSession,
    make_user,
    auth_headers,
) -> None:
    author = await make_user("author")

    text_post = await async_client.post(
        "/api/posts", json={"content": "  hello there \n"}, headers=auth_headers(author)
    )
    media_post = await async_client.post(
        "/api/posts",
        json={"content": "   ", "media": [{"url": "https://cdn.example.com/one.png"}]},
        headers=auth_headers(author),
    )

    assert text_post.status_code == status.HTTP_201_CREATED
    assert media_post.status_code == status.HTTP_201_CREATED
    stored = await db_session.execute(select(Post.content).order_by(Post.id))
    assert stored.scalars().all() == ["hello there", ""]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fields",
    [
        {"post_type": "reply"},
        {"post_type": "original", "repost_of_post_id": "target"},
        {"post_type": "quote", "quote_of_post_id": "target", "in_reply_to_post_id": "target"},
    ],
)
async def test_post_table_rejects_mismatched_parent_columns(
    db_session: AsyncSession,
    make_user,
    fields: dict[str, Any],
) -> None:
    author = await make_user("author")
    target = Post(user_id=author.id, content="target")
    db_session.add(target)
    await db_session.commit()
    values = {key: target.id if value == "target" else value for key, value in fields.items()}

    db_session.add(Post(user_id=author.id, content="broken", **values))
    with pytest.raises(IntegrityError):
        await db_session.commit()
    await db_session.rollback()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"content": "   "},
        {"content": "x" * 501},
        {"content": "hi", "media": [{"url": f"https://cdn.example.com/{i}.jpg"} for i in range(3)]},
        {"content": "reply", "post_type": "reply"},
        {"content": "quote", "post_type": "quote", "quote_of_post_id": 1, "in_reply_to_post_id": 1},
        {"content": "original", "repost_of_post_id": 1},
        {"content": "kind", "post_type": "story"},
    ],
)
async def test_create_post_rejects_invalid_payloads(
    payload: dict[str, Any],
    async_client: AsyncClient,
    make_user,
    auth_headers,
) -> None:
    author = await make_user("author")

    response = await async_client.post("/api/posts", json=payload, headers=auth_headers(author))

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert isinstance(response.json()["error"], str)


@pytest.mark.asyncio
async def test_reply_to_missing_post_is_not_found(
    async_client: AsyncClient,
    make_user,
    auth_headers,
) -> None:
    author = await make_user("author")

    response = await async_client.post(
        "/api/posts",
        json={"content": "reply", "post_type": "reply", "in_reply_to_post_id": 999_999},
        headers=auth_headers(author),
    )

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json() == {"error": "Post not found"}


@pytest.mark.asyncio
async def test_reply_counts_and_related_expansion(
    async_client: AsyncClient,
    make_user,
    auth_headers,
) -> None:
    author = await make_user("author")
    replier = await make_user("replier")

    parent = (
        await async_client.post("/api/posts", json={"content": "parent"}, headers=auth_headers(author))
    ).json()["post"]
    reply = (
        await async_client.post(
            "/api/posts",
            json={"content": "child", "post_type": "reply", "in_reply_to_post_id": parent["id"]},
            headers=auth_headers(replier),
        )
    ).json()["post"]

    parent_view = await async_client.get(f"/api/posts/{parent['id']}", headers=auth_headers(author))
    assert parent_view.json()["post"]["reply_count"] == 1

    feed = await async_client.get(
        "/api/posts", params={"include_related": "true"}, headers=auth_headers(author)
    )
    reply_entry = next(item for item in feed.json()["posts"] if item["id"] == reply["id"])
    assert reply_entry["in_reply_to_post"]["id"] == parent["id"]
    assert reply_entry["in_reply_to_post"]["reply_count"] == 1
    assert reply_entry["quote_of_post"] is None

    plain_feed = await async_client.get("/api/posts", headers=auth_headers(author))
    plain_entry = next(item for item in plain_feed.json()["posts"] if item["id"] == reply["id"])
    assert plain_entry["in_reply_to_post"] is None

    replies = await async_client.get(f"/api/posts/{parent['id']}/replies", headers=auth_headers(author))
    assert [item["id"] for item in replies.json()["posts"]] == [reply["id"]]


@pytest.mark.asyncio
async def test_related_post_by_blocked_author_is_null(
    async_client: AsyncClient,
    make_user,
    auth_headers,
) -> None:
    viewer = await make_user("viewer")
    quoted_author = await make_user("quoted")
    quoter = await make_user("quoter")

    quoted = (
        await async_client.post("/api/posts", json={"content": "source"}, headers=auth_headers(quoted_author))
    ).json()["post"]
    quote = (
        await async_client.post(
            "/api/posts",
            json={"content": "look", "post_type": "quote", "quote_of_post_id": quoted["id"]},
            headers=auth_headers(quoter),
        )
    ).json()["post"]

    block_resp = await async_client.post(
        f"/api/users/{quoted_author.id}/block", headers=auth_headers(viewer)
    )
    assert block_resp.status_code == status.HTTP_201_CREATED

    feed = await async_client.get(
        "/api/posts", params={"include_related": "true"}, headers=auth_headers(viewer)
    )
    ids = [item["id"] for item in feed.json()["posts"]]
    assert quoted["id"] not in ids
    quote_entry = next(item for item in feed.json()["posts"] if item["id"] == quote["id"])
    assert quote_entry["quote_of_post_id"] == quoted["id"]
    assert quote_entry["quote_of_post"] is None


@pytest.mark.asyncio
async def test_delete_post_requires_owner_and_soft_deletes_media(
    async_client: AsyncClient,
    db_session: AsyncSession,
    make_user,
    auth_headers,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    owner = await make_user("owner")
    stranger = await make_user("stranger")
    monkeypatch.setattr(media_service.settings, "storage_public_base_url", "https://media.example.com")
    delete_object = MagicMock()
    monkeypatch.setattr(media_service, "delete_object", delete_object)

    post = (
        await async_client.post(
            "/api/posts",
            json={"content": "bye", "media": [{"url": "https://media.example.com/post-media/a.jpg"}]},
            headers=auth_headers(owner),
        )
    ).json()["post"]

    forbidden = await async_client.delete(f"/api/posts/{post['id']}", headers=auth_headers(stranger))
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN

    deleted = await async_client.delete(f"/api/posts/{post['id']}", headers=auth_headers(owner))
    assert deleted.status_code == status.HTTP_200_OK
    assert deleted.json()["success"] is True
    delete_object.assert_called_once_with("post-media/a.jpg")

    stored = await db_session.get(Post, post["id"])
    assert stored is not None and stored.is_deleted is True
    media_rows = (
        await db_session.execute(select(PostMedia).where(_eq(PostMedia.post_id, post["id"])))
    ).scalars().all()
    assert all(row.is_deleted for row in media_rows)

    missing = await async_client.get(f"/api/posts/{post['id']}", headers=auth_headers(owner))
    assert missing.status_code == status.HTTP_404_NOT_FOUND
    again = await async_client.delete(f"/api/posts/{post['id']}", headers=auth_headers(owner))
    assert again.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.asyncio
async def test_hidden_posts_are_not_found(
    async_client: AsyncClient,
    db_session: AsyncSession,
    make_user,
    auth_headers,
) -> None:
    author = await make_user("author")
    post = Post(user_id=author.id, content="moderated", is_hidden=True)
    db_session.add(post)
    await db_session.commit()

    response = await async_client.get(f"/api/posts/{post.id}", headers=auth_headers(author))
    assert response.status_code == status.HTTP_404_NOT_FOUND

    feed = await async_client.get("/api/posts", headers=auth_headers(author))
    assert feed.json()["posts"] == []


@pytest.mark.asyncio
async def test_repost_lifecycle(
    async_client: AsyncClient,
    make_user,
    auth_headers,
) -> None:
    author = await make_user("author")
    fan = await make_user("fan")
    post = (
        await async_client.post("/api/posts", json={"content": "share me"}, headers=auth_headers(author))
    ).json()["post"]

    repost = await async_client.post(f"/api/posts/{post['id']}/repost", headers=auth_headers(fan))
    assert repost.status_code == status.HTTP_201_CREATED
    assert repost.json()["post"]["post_type"] == "repost"
    assert repost.json()["post"]["repost_of_post"]["id"] == post["id"]

    duplicate = await async_client.post(f"/api/posts/{post['id']}/repost", headers=auth_headers(fan))
    assert duplicate.status_code == status.HTTP_400_BAD_REQUEST

    view = await async_client.get(f"/api/posts/{post['id']}", headers=auth_headers(fan))
    assert view.json()["post"]["repost_count"] == 1
    assert view.json()["post"]["is_reposted"] is True

    undo = await async_client.delete(f"/api/posts/{post['id']}/repost", headers=auth_headers(fan))
    assert undo.status_code == status.HTTP_200_OK
    assert undo.json() == {"success": True, "reposted": False}

    missing = await async_client.delete(f"/api/posts/{post['id']}/repost", headers=auth_headers(fan))
    assert missing.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.asyncio
async def test_repost_of_blocking_author_is_forbidden(
    async_client: AsyncClient,
    make_user,
    auth_headers,
) -> None:
    author = await make_user("author")
    fan = await make_user("fan")
    post = (
        await async_client.post("/api/posts", json={"content": "mine"}, headers=auth_headers(author))
    ).json()["post"]
    await async_client.post(f"/api/users/{fan.id}/block", headers=auth_headers(author))

    response = await async_client.post(
        "/api/posts",
        json={"post_type": "repost", "repost_of_post_id": post["id"]},
        headers=auth_headers(fan),
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.asyncio
async def test_author_filter_limits_feed(
    async_client: AsyncClient,
    make_user,
    auth_headers,
) -> None:
    first = await make_user("first")
    second = await make_user("second")
    await async_client.post("/api/posts", json={"content": "a"}, headers=auth_headers(first))
    await async_client.post("/api/posts", json={"content": "b"}, headers=auth_headers(second))

    response = await async_client.get(
        "/api/posts", params={"userId": second.id}, headers=auth_headers(first)
    )

    assert [item["user_id"] for item in response.json()["posts"]] == [second.id]
