"""Business logic services."""

from .rate_limiter import (
    RateLimitMiddleware,
    RateLimiter,
    get_rate_limiter,
    set_rate_limiter,
)
from .storage import (
    create_presigned_put_url,
    delete_object,
    ensure_bucket,
    get_minio_client,
    public_url_for,
    put_object_stream,
    storage_key_from_url,
)

__all__ = [
    "get_minio_client",
    "ensure_bucket",
    "delete_object",
    "create_presigned_put_url",
    "put_object_stream",
    "public_url_for",
    "storage_key_from_url",
    "RateLimiter",
    "RateLimitMiddleware",
    "get_rate_limiter",
    "set_rate_limiter",
]
