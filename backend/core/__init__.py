"""Core configuration and security helpers."""

from .config import settings
from .security import (
    WebhookVerificationError,
    decode_session_token,
    verify_webhook_signature,
)

__all__ = [
    "settings",
    "decode_session_token",
    "verify_webhook_signature",
    "WebhookVerificationError",
]
