"""Tests for the Redis-backed rate limiter middleware."""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Generator

import pytest
from httpx import AsyncClient
from starlette.requests import Request

from core.config import settings
from services import RateLimiter, set_rate_limiter
from services.rate_limiter import classify_request, default_client_identifier


class InMemoryRedis:
    def __init__(self) -> None:
        self.data: dict[str, int] = {}

    async def incr(self, key: str) -> int:  # pragma: no cover - simple helper
        value = self.data.get(key, 0) + 1
        self.data[key] = value
        return value

    async def expire(self, key: str, ttl: int) -> None:  # pragma: no cover - noop
        return None


class UnavailableRedis:
    async def incr(self, key: str) -> int:
        raise ConnectionError("redis is down")

    async def expire(self, key: str, ttl: int) -> None:  # pragma: no cover - never reached
        return None


@pytest.fixture(autouse=True)
def _ensure_rate_limit_proxy_secret() -> Generator[None, None, None]:
    original = settings.rate_limit_proxy_secret
    if not original:
        settings.rate_limit_proxy_secret = "test-rate-limit-proxy-secret"
    try:
        yield
    finally:
        settings.rate_limit_proxy_secret = original


def _build_request(
    *,
    headers: list[tuple[bytes, bytes]] | None = None,
    client_host: str = "10.0.0.12",
) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/api/posts",
        "headers": headers or [],
        "query_string": b"",
        "client": (client_host, 1234),
        "app": None,
    }
    return Request(scope)


def _build_proxy_signature(client_key: str) -> str:
    return hmac.new(
        settings.rate_limit_proxy_secret.encode("utf-8"),
        client_key.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def test_default_client_identifier_uses_signed_forwarded_key() -> None:
    client_key = "ABCDEFGHIJKLMNOP"
    request = _build_request(
        headers=[
            (b"x-rate-limit-client", client_key.encode("ascii")),
            (b"x-rate-limit-signature", _build_proxy_signature(client_key).encode("ascii")),
        ],
    )

    assert default_client_identifier(request) == f"proxy:{client_key}"


def test_default_client_identifier_ignores_forwarded_key_without_signature() -> None:
    request = _build_request(headers=[(b"x-rate-limit-client", b"ABCDEFGHIJKLMNOP")])

    assert default_client_identifier(request) == "10.0.0.12"


def test_forwarded_ip_is_only_trusted_from_configured_proxies() -> None:
    forwarded = [(b"x-forwarded-for", b"203.0.113.9, 10.0.0.1")]

    trusted = _build_request(headers=forwarded, client_host="127.0.0.1")
    untrusted = _build_request(headers=forwarded, client_host="198.51.100.7")

    assert default_client_identifier(trusted) == "203.0.113.9"
    assert default_client_identifier(untrusted) == "198.51.100.7"


@pytest.mark.asyncio
async def test_rate_limiter_blocks_after_threshold(async_client: AsyncClient) -> None:
    set_rate_limiter(RateLimiter(InMemoryRedis(), limit=2, window_seconds=60))

    first = await async_client.get("/api/posts")
    second = await async_client.get("/api/posts")
    third = await async_client.get("/api/posts")

    assert first.status_code == 401
    assert second.status_code == 401
    assert third.status_code == 429
    assert third.json() == {"error": "Too Many Requests"}
    assert 1 <= int(third.headers["retry-after"]) <= 60


@pytest.mark.asyncio
async def test_health_check_is_exempt(async_client: AsyncClient) -> None:
    set_rate_limiter(RateLimiter(InMemoryRedis(), limit=1, window_seconds=60))

    for _ in range(3):
        response = await async_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_rate_limiter_can_be_disabled(async_client: AsyncClient) -> None:
    set_rate_limiter(RateLimiter(InMemoryRedis(), limit=0, window_seconds=60))

    for _ in range(5):
        response = await async_client.get("/api/posts")
        assert response.status_code == 401


@pytest.mark.asyncio
async def test_redis_outage_fails_open_except_for_uploads(async_client: AsyncClient) -> None:
    set_rate_limiter(RateLimiter(UnavailableRedis(), limit=5, window_seconds=60))

    listing = await async_client.get("/api/posts")
    upload = await async_client.post(
        "/api/upload/post-media", data={"filename": "a.png", "size": "1"}
    )

    assert listing.status_code == 401
    assert upload.status_code == 503
    assert upload.json() == {"error": "Service unavailable"}


@pytest.mark.asyncio
async def test_forwarded_client_keys_are_limited_separately(async_client: AsyncClient) -> None:
    set_rate_limiter(RateLimiter(InMemoryRedis(), limit=1, window_seconds=60))
    client_key_one = "CLIENTKEYAAAAAAAA"
    client_key_two = "CLIENTKEYBBBBBBBB"
    headers_one = {
        "x-rate-limit-client": client_key_one,
        "x-rate-limit-signature": _build_proxy_signature(client_key_one),
    }
    headers_two = {
        "x-rate-limit-client": client_key_two,
        "x-rate-limit-signature": _build_proxy_signature(client_key_two),
    }

    first = await async_client.get("/api/posts", headers=headers_one)
    second_same_key = await async_client.get("/api/posts", headers=headers_one)
    third_other_key = await async_client.get("/api/posts", headers=headers_two)

    assert first.status_code == 401
    assert second_same_key.status_code == 429
    assert third_other_key.status_code == 401


@pytest.mark.parametrize(
    ("method", "path", "tier"),
    [
        ("GET", "/api/posts", "read"),
        ("HEAD", "/api/posts", "read"),
        ("POST", "/api/posts", "write"),
        ("DELETE", "/api/posts/1/likes", "write"),
        ("POST", "/api/upload/post-media", "upload"),
        ("POST", "/api/uploads-archive", "write"),
    ],
)
def test_classify_request(method: str, path: str, tier: str) -> None:
    assert classify_request(method, path) == tier


@pytest.mark.asyncio
async def test_tiers_have_separate_budgets(async_client: AsyncClient) -> None:
    set_rate_limiter(
        RateLimiter(InMemoryRedis(), limit=1, window_seconds=60, write_limit=1, upload_limit=1)
    )

    read = await async_client.get("/api/posts")
    write = await async_client.post("/api/posts", json={"content": "hi"})
    second_read = await async_client.get("/api/posts")
    second_write = await async_client.post("/api/posts", json={"content": "hi"})

    assert read.status_code == 401
    assert write.status_code == 401
    assert second_read.status_code == 429
    assert second_write.status_code == 429


@pytest.mark.asyncio
async def test_zero_tier_limit_disables_only_that_tier() -> None:
    limiter = RateLimiter(InMemoryRedis(), limit=1, window_seconds=60, write_limit=0)

    assert (await limiter.allow("client", "write")).allowed
    assert (await limiter.allow("client", "write")).allowed
    assert (await limiter.allow("client", "read")).allowed
    assert not (await limiter.allow("client", "read")).allowed
