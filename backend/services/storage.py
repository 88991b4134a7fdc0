"""S3-compatible object storage utilities (MinIO client)."""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import BinaryIO
from urllib.parse import unquote

from minio import Minio
from minio.error import S3Error

from core import settings

# Multipart part size used when the stream length is unknown.
STREAM_PART_SIZE = 10 * 1024 * 1024


@lru_cache
def get_minio_client() -> Minio:
    """Return a cached MinIO client configured from settings."""
    return Minio(
        settings.storage_endpoint,
        access_key=settings.storage_access_key,
        secret_key=settings.storage_secret_key,
        secure=settings.storage_secure,
        region=settings.storage_region,
    )


def ensure_bucket(client: Minio | None = None) -> None:
    """Ensure the configured bucket exists."""
    client = client or get_minio_client()
    bucket_name = settings.storage_bucket

    if client.bucket_exists(bucket_name):  # pragma: no cover - network call
        return

    try:
        client.make_bucket(bucket_name)  # pragma: no cover - network call
    except S3Error as exc:  # pragma: no cover - handle race conditions
        allowed_codes = {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}
        if exc.code not in allowed_codes:
            raise


def delete_object(object_key: str, client: Minio | None = None) -> None:
    """Delete an object from the configured bucket when it exists."""
    client = client or get_minio_client()
    try:
        client.remove_object(settings.storage_bucket, object_key)  # pragma: no cover - network call
    except S3Error as exc:  # pragma: no cover - network call
        allowed_codes = {"NoSuchKey", "NoSuchObject", "ResourceNotFound"}
        if exc.code not in allowed_codes:
            raise


def create_presigned_put_url(
    object_key: str,
    *,
    expires_seconds: int | None = None,
    client: Minio | None = None,
) -> str:
    """Return a time-limited URL the client can PUT the object to."""
    normalized_object_key = object_key.strip()
    if not normalized_object_key:
        raise ValueError("object_key must not be empty")
    ttl = settings.upload_url_expires_seconds if expires_seconds is None else expires_seconds
    if ttl <= 0:
        raise ValueError("expires_seconds must be positive")

    client = client or get_minio_client()
    return client.presigned_put_object(
        settings.storage_bucket,
        normalized_object_key,
        expires=timedelta(seconds=ttl),
    )


def put_object_stream(
    object_key: str,
    data: BinaryIO,
    *,
    content_type: str,
    length: int = -1,
    client: Minio | None = None,
) -> None:
    """Stream an object body into the configured bucket."""
    client = client or get_minio_client()
    ensure_bucket(client)
    client.put_object(
        settings.storage_bucket,
        object_key,
        data=data,
        length=length,
        content_type=content_type,
        part_size=STREAM_PART_SIZE if length < 0 else 0,
    )


def public_url_for(object_key: str) -> str:
    base_url = settings.storage_public_base_url.rstrip("/")
    return f"{base_url}/{object_key.lstrip('/')}"


def storage_key_from_url(url: str) -> str | None:
    """Return the object key for a URL served from the public bucket URL.

    URLs pointing anywhere else (external hosts, other buckets) yield None.
    """
    base_url = settings.storage_public_base_url.rstrip("/")
    if not base_url or not url.startswith(f"{base_url}/"):
        return None
    object_key = unquote(url[len(base_url) + 1:].split("?", 1)[0]).strip("/")
    return object_key or None
