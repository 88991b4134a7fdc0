"""Redis-backed rate limiting for the API.

Requests are counted per client in fixed windows, in one of three tiers:
``upload`` for the upload endpoints, ``write`` for other mutating requests
and ``read`` for everything else. Each tier has its own budget.
"""

from __future__ import annotations

import hashlib
import hmac
import re
import time
from dataclasses import dataclass
from functools import lru_cache
from ipaddress import IPv4Network, IPv6Network, ip_address, ip_network
from typing import Callable, Iterable, Protocol, runtime_checkable

from fastapi import status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.types import ASGIApp

from core import settings


@runtime_checkable
class SupportsRateLimitClient(Protocol):
    async def incr(self, key: str) -> int: ...

    async def expire(self, key: str, ttl: int) -> None: ...


READ_TIER = "read"
WRITE_TIER = "write"
UPLOAD_TIER = "upload"
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
UPLOAD_PATH_PREFIX = "/api/upload"

FORWARDED_CLIENT_KEY_HEADER = "x-rate-limit-client"
FORWARDED_CLIENT_SIGNATURE_HEADER = "x-rate-limit-signature"
FORWARDED_CLIENT_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]{16,128}$")
FORWARDED_CLIENT_SIGNATURE_PATTERN = re.compile(r"^[0-9a-f]{64}$")


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0


def is_upload_path(path: str) -> bool:
    return path == UPLOAD_PATH_PREFIX or path.startswith(f"{UPLOAD_PATH_PREFIX}/")


def classify_request(method: str, path: str) -> str:
    """Return the rate limit tier a request is counted against."""
    if is_upload_path(path):
        return UPLOAD_TIER
    if method.upper() in SAFE_METHODS:
        return READ_TIER
    return WRITE_TIER


@lru_cache
def _trusted_proxy_networks() -> tuple[IPv4Network | IPv6Network, ...]:
    networks: list[IPv4Network | IPv6Network] = []
    for cidr in settings.rate_limit_trusted_proxies:
        try:
            networks.append(ip_network(cidr, strict=False))
        except ValueError as exc:  # pragma: no cover - invalid configuration
            raise ValueError(f"Invalid CIDR in RATE_LIMIT_TRUSTED_PROXIES: {cidr}") from exc
    return tuple(networks)


def _signed_client_key(request: Request) -> str | None:
    proxy_secret = settings.rate_limit_proxy_secret.strip()
    if not proxy_secret:
        return None

    client_key = (request.headers.get(FORWARDED_CLIENT_KEY_HEADER) or "").strip()
    signature = (request.headers.get(FORWARDED_CLIENT_SIGNATURE_HEADER) or "").strip().lower()
    if not FORWARDED_CLIENT_KEY_PATTERN.fullmatch(client_key):
        return None
    if not FORWARDED_CLIENT_SIGNATURE_PATTERN.fullmatch(signature):
        return None

    expected = hmac.new(
        proxy_secret.encode("utf-8"),
        client_key.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    if not hmac.compare_digest(signature, expected):
        return None
    return client_key


def _forwarded_ip(request: Request) -> str | None:
    for header in settings.rate_limit_ip_headers:
        for candidate in (request.headers.get(header) or "").split(","):
            candidate = candidate.strip()
            if not candidate:
                continue
            try:
                ip_address(candidate)
            except ValueError:
                continue
            return candidate
    return None


def _is_trusted_proxy(host: str) -> bool:
    try:
        remote = ip_address(host)
    except ValueError:
        return False
    return any(remote in network for network in _trusted_proxy_networks())


def default_client_identifier(request: Request) -> str:
    """Resolve a stable client identifier for rate limiting.

    A proxy-signed client key wins, then a forwarded IP when the request came
    through a trusted proxy, then the socket peer address.
    """
    client_key = _signed_client_key(request)
    if client_key is not None:
        return f"proxy:{client_key}"

    host = request.client.host if request.client else None
    if not host:
        return "anonymous"

    if _is_trusted_proxy(host):
        forwarded = _forwarded_ip(request)
        if forwarded:
            return forwarded
    return host


class RateLimiter:
    """Fixed-window counter per client and tier, stored in Redis."""

    def __init__(
        self,
        redis_client: SupportsRateLimitClient,
        limit: int,
        window_seconds: int,
        *,
        write_limit: int | None = None,
        upload_limit: int | None = None,
        prefix: str = "rate-limit",
    ) -> None:
        self.redis = redis_client
        self.window_seconds = max(window_seconds, 0)
        self.prefix = prefix
        self.limits = {
            READ_TIER: max(limit, 0),
            WRITE_TIER: max(limit if write_limit is None else write_limit, 0),
            UPLOAD_TIER: max(limit if upload_limit is None else upload_limit, 0),
        }

    def limit_for(self, tier: str) -> int:
        return self.limits.get(tier, self.limits[READ_TIER])

    async def allow(self, key: str, tier: str = READ_TIER) -> RateLimitDecision:
        """Count one request for `key` in `tier`; a zero limit disables the tier."""
        limit = self.limit_for(tier)
        if limit == 0 or self.window_seconds == 0:
            return RateLimitDecision(allowed=True)

        now = int(time.time())
        bucket = now // self.window_seconds
        redis_key = f"{self.prefix}:{tier}:{key}:{bucket}"

        count = await self.redis.incr(redis_key)
        if count == 1:
            await self.redis.expire(redis_key, self.window_seconds)
        if count <= limit:
            return RateLimitDecision(allowed=True)

        retry_after = (bucket + 1) * self.window_seconds - now
        return RateLimitDecision(allowed=False, retry_after=max(retry_after, 1))


@lru_cache
def get_redis_client() -> SupportsRateLimitClient:
    """Return a cached async Redis client."""
    return Redis.from_url(settings.redis_url, decode_responses=False)


_cached_rate_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Return the shared limiter configured from settings."""
    global _cached_rate_limiter
    if _cached_rate_limiter is None:
        _cached_rate_limiter = RateLimiter(
            redis_client=get_redis_client(),
            limit=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
            write_limit=settings.rate_limit_write_requests,
            upload_limit=settings.rate_limit_upload_requests,
        )
    return _cached_rate_limiter


def set_rate_limiter(limiter: RateLimiter | None) -> None:
    """Replace the shared limiter; None rebuilds it from settings on next use."""
    global _cached_rate_limiter
    _cached_rate_limiter = limiter


def _error(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=headers)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests over their tier budget with 429.

    When the limiter backend is unavailable uploads fail closed with 503 and
    every other request is let through.
    """

    def __init__(
        self,
        app: ASGIApp,
        limiter_factory: Callable[[], RateLimiter],
        exempt_paths: Iterable[str] | None = None,
        exempt_prefixes: Iterable[str] | None = None,
        client_identifier: Callable[[Request], str] | None = None,
    ) -> None:
        super().__init__(app)
        self.limiter_factory = limiter_factory
        self.exempt_paths = set(exempt_paths or ())
        self.exempt_prefixes = tuple(exempt_prefixes or ())
        self.client_identifier = client_identifier or default_client_identifier

    def _is_exempt(self, path: str) -> bool:
        return path in self.exempt_paths or any(
            path.startswith(prefix) for prefix in self.exempt_prefixes
        )

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint):
        path = request.url.path
        if self._is_exempt(path):
            return await call_next(request)

        tier = classify_request(request.method, path)
        try:
            limiter = self.limiter_factory()
            decision = await limiter.allow(self.client_identifier(request) or "anonymous", tier)
        except Exception:
            if tier == UPLOAD_TIER:
                return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Service unavailable")
            return await call_next(request)

        if not decision.allowed:
            return _error(
                status.HTTP_429_TOO_MANY_REQUESTS,
                "Too Many Requests",
                headers={"Retry-After": str(decision.retry_after)},
            )
        return await call_next(request)
