"""Resolve the authenticated identity of a request to a local user."""

from __future__ import annotations

import logging
from typing import Any, Protocol, cast

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement
from starlette.requests import Request

from core import decode_session_token
from models import User

logger = logging.getLogger(__name__)


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


class IdentityProvider(Protocol):
    """Strategy returning the external identity attached to a request."""

    def external_id(self, request: Request) -> str | None: ...


def extract_bearer_token(request: Request) -> str | None:
    authorization = request.headers.get("authorization")
    if not authorization:
        return None

    scheme, _, value = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = value.strip()
    return token or None


class BearerTokenIdentityProvider:
    """Reads the identity provider session token from the Authorization header."""

    def external_id(self, request: Request) -> str | None:
        token = extract_bearer_token(request)
        if token is None:
            return None
        try:
            payload = decode_session_token(token)
        except ValueError:
            logger.info("Rejected session token", extra={"path": request.url.path})
            return None

        subject = payload.get("sub")
        if isinstance(subject, str) and subject.strip():
            return subject.strip()
        return None


async def resolve_user(session: AsyncSession, external_id: str | None) -> User:
    """Return the local user for an external identity.

    Raises 401 when no identity is attached and 404 when the identity has no
    local row yet (for example before the sign-up webhook has been processed).
    """
    if external_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    result = await session.execute(
        select(User).where(_eq(User.external_id, external_id)).limit(1)
    )
    user = result.scalar_one_or_none()
    if user is None or user.is_deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user
