"""Session token and webhook signature verification."""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
from collections.abc import Mapping
from functools import lru_cache
from typing import Any

import jwt
from jwt import PyJWKClient

from .config import settings

SESSION_TOKEN_ALGORITHMS = ["RS256"]
WEBHOOK_SECRET_PREFIX = "whsec_"
WEBHOOK_SIGNATURE_VERSION = "v1"


class WebhookVerificationError(ValueError):
    """Raised when a webhook delivery cannot be authenticated."""


@lru_cache
def get_jwks_client() -> PyJWKClient:
    """Return a cached JWKS client for the identity provider."""
    return PyJWKClient(settings.auth_jwks_url)


def decode_session_token(
    token: str,
    *,
    jwks_client: PyJWKClient | None = None,
) -> dict[str, Any]:
    """Verify an identity provider session token and return its claims.

    Raises ValueError for any token that fails verification.
    """
    if not settings.auth_jwks_url and jwks_client is None:
        raise ValueError("Identity provider is not configured")

    client = jwks_client or get_jwks_client()
    try:
        signing_key = client.get_signing_key_from_jwt(token)
        payload = jwt.decode(
            token,
            signing_key.key,
            algorithms=SESSION_TOKEN_ALGORITHMS,
            issuer=settings.auth_issuer,
            audience=settings.auth_audience,
            options={
                "require": ["exp", "sub"],
                "verify_aud": settings.auth_audience is not None,
            },
        )
    except jwt.PyJWTError as exc:
        raise ValueError("Invalid session token") from exc

    authorized_party = payload.get("azp")
    if (
        settings.auth_authorized_parties
        and authorized_party is not None
        and authorized_party not in settings.auth_authorized_parties
    ):
        raise ValueError("Invalid session token")
    return payload


def _decode_webhook_secret(secret: str) -> bytes:
    normalized = secret.strip()
    if normalized.startswith(WEBHOOK_SECRET_PREFIX):
        normalized = normalized[len(WEBHOOK_SECRET_PREFIX):]
    try:
        return base64.b64decode(normalized, validate=True)
    except ValueError as exc:
        raise WebhookVerificationError("Webhook secret is not valid base64") from exc


def sign_webhook_payload(
    secret: str,
    *,
    message_id: str,
    timestamp: str,
    payload: bytes,
) -> str:
    """Return the `v1,<base64>` signature for a webhook delivery."""
    key = _decode_webhook_secret(secret)
    signed_content = b".".join([message_id.encode("utf-8"), timestamp.encode("utf-8"), payload])
    digest = hmac.new(key, signed_content, hashlib.sha256).digest()
    return f"{WEBHOOK_SIGNATURE_VERSION},{base64.b64encode(digest).decode('ascii')}"


def verify_webhook_signature(
    payload: bytes,
    headers: Mapping[str, str],
    *,
    secret: str | None = None,
    now: float | None = None,
) -> None:
    """Authenticate a signed webhook delivery.

    Expects the `svix-id`, `svix-timestamp` and `svix-signature` headers. The
    signature header may carry several space separated `v1,<sig>` entries.
    """
    signing_secret = secret if secret is not None else settings.webhook_signing_secret
    if not signing_secret:
        raise WebhookVerificationError("Webhook secret is not configured")

    message_id = headers.get("svix-id")
    timestamp = headers.get("svix-timestamp")
    signature_header = headers.get("svix-signature")
    if not message_id or not timestamp or not signature_header:
        raise WebhookVerificationError("Missing webhook signature headers")

    try:
        sent_at = int(timestamp)
    except ValueError as exc:
        raise WebhookVerificationError("Invalid webhook timestamp") from exc

    current_time = time.time() if now is None else now
    if abs(current_time - sent_at) > settings.webhook_tolerance_seconds:
        raise WebhookVerificationError("Webhook timestamp outside tolerance")

    expected = sign_webhook_payload(
        signing_secret,
        message_id=message_id,
        timestamp=timestamp,
        payload=payload,
    )
    for candidate in signature_header.split():
        if hmac.compare_digest(candidate.strip(), expected):
            return
    raise WebhookVerificationError("Webhook signature mismatch")
