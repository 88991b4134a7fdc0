"""Shared FastAPI dependencies."""

from __future__ import annotations

from collections.abc import AsyncIterator
from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from models import User
from services.identity import BearerTokenIdentityProvider, IdentityProvider, resolve_user


async def get_db() -> AsyncIterator[AsyncSession]:
    async for session in get_session():
        yield session


@lru_cache
def get_identity_provider() -> IdentityProvider:
    """Return the identity lookup strategy; overridden in tests."""
    return BearerTokenIdentityProvider()


async def get_current_user(
    request: Request,
    session: AsyncSession = Depends(get_db),
    identity_provider: IdentityProvider = Depends(get_identity_provider),
) -> User:
    return await resolve_user(session, identity_provider.external_id(request))
