"""Mirror identity provider user events into the local users table."""

from __future__ import annotations

import logging
from typing import Any, cast

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from db.errors import is_unique_violation
from models import User

logger = logging.getLogger(__name__)

USER_CREATED_EVENT = "user.created"
USER_UPDATED_EVENT = "user.updated"
MAX_USERNAME_LENGTH = 64
MAX_USERNAME_ATTEMPTS = 20
# A concurrent event for the same user can win the insert; the retry sees its row.
MAX_SYNC_ATTEMPTS = 3


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _clean(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    return normalized or None


def derive_username(data: dict[str, Any]) -> str:
    """Pick a username: explicit username, else first name, else `user_<id>`."""
    username = _clean(data.get("username")) or _clean(data.get("first_name"))
    if username is None:
        external_id = str(data.get("id") or "")
        username = f"user_{external_id[:8]}"
    return username[:MAX_USERNAME_LENGTH]


def primary_email(data: dict[str, Any]) -> str | None:
    addresses = data.get("email_addresses")
    if not isinstance(addresses, list) or not addresses:
        return None
    primary_id = data.get("primary_email_address_id")
    for entry in addresses:
        if isinstance(entry, dict) and entry.get("id") == primary_id:
            return _clean(entry.get("email_address"))
    first = addresses[0]
    return _clean(first.get("email_address")) if isinstance(first, dict) else None


async def _username_owner(session: AsyncSession, username: str) -> str | None:
    result = await session.execute(
        select(User.external_id).where(_eq(User.username, username)).limit(1)
    )
    return result.scalar_one_or_none()


async def _unique_username(
    session: AsyncSession,
    candidate: str,
    *,
    external_id: str,
) -> str:
    """Return `candidate`, or the first free `candidate_<id6>[_n]` variant."""
    base_suffix = f"_{external_id[-6:]}"
    attempt = candidate
    for index in range(MAX_USERNAME_ATTEMPTS):
        owner = await _username_owner(session, attempt)
        if owner is None or owner == external_id:
            return attempt
        suffix = base_suffix if index == 0 else f"{base_suffix}_{index + 1}"
        attempt = f"{candidate[: MAX_USERNAME_LENGTH - len(suffix)]}{suffix}"
    raise ValueError(f"Could not find a free username for {candidate!r}")


def _apply_profile(user: User, data: dict[str, Any]) -> None:
    user.email = primary_email(data) or user.email
    user.first_name = _clean(data.get("first_name"))
    user.last_name = _clean(data.get("last_name"))
    image_url = _clean(data.get("image_url")) or _clean(data.get("profile_image_url"))
    if image_url is not None:
        user.profile_image_url = image_url


async def sync_user_from_event(
    session: AsyncSession,
    event_type: str,
    data: dict[str, Any],
) -> User | None:
    """Create or update the user described by an identity event.

    Returns None for event types that do not concern user records.
    """
    if event_type not in {USER_CREATED_EVENT, USER_UPDATED_EVENT}:
        logger.info("Ignoring identity event", extra={"event_type": event_type})
        return None

    external_id = _clean(data.get("id"))
    if external_id is None:
        raise ValueError("Identity event is missing the user id")

    for attempt in range(1, MAX_SYNC_ATTEMPTS):
        try:
            return await _upsert_user(session, event_type, external_id, data)
        except IntegrityError as exc:
            await session.rollback()
            if not is_unique_violation(exc):
                raise
            logger.info(
                "Retrying identity event after unique conflict",
                extra={"event_type": event_type, "attempt": attempt},
            )
    return await _upsert_user(session, event_type, external_id, data)


async def _upsert_user(
    session: AsyncSession,
    event_type: str,
    external_id: str,
    data: dict[str, Any],
) -> User:
    result = await session.execute(
        select(User).where(_eq(User.external_id, external_id)).limit(1)
    )
    user = result.scalar_one_or_none()
    username = await _unique_username(
        session,
        derive_username(data),
        external_id=external_id,
    )
    if user is None:
        user = User(external_id=external_id, username=username)
    elif event_type == USER_UPDATED_EVENT and _clean(data.get("username")) is not None:
        user.username = username

    _apply_profile(user, data)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user
