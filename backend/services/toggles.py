"""Idempotent create/remove transitions for soft-deleted relationship rows.

A relationship (like, bookmark, follow, block) is either absent or active.
Creating an active relationship is a no-op, creating over a soft-deleted
history inserts a fresh row, and removing an absent one is a no-op.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, TypeVar, cast

from sqlalchemy import false, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement
from sqlmodel import SQLModel

from db.errors import is_unique_violation

RelationshipModel = TypeVar("RelationshipModel", bound=SQLModel)


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


@dataclass(slots=True)
class ToggleResult:
    changed: bool
    active: bool


def _pair_filters(model: type[SQLModel], pair: dict[str, int]) -> list[ColumnElement[bool]]:
    filters = [_eq(getattr(model, name), value) for name, value in pair.items()]
    filters.append(_eq(getattr(model, "is_deleted"), false()))
    return filters


async def find_active(
    session: AsyncSession,
    model: type[RelationshipModel],
    **pair: int,
) -> RelationshipModel | None:
    result = await session.execute(
        select(model).where(*_pair_filters(model, pair)).limit(1)
    )
    return result.scalars().first()


async def activate(
    session: AsyncSession,
    model: type[SQLModel],
    **pair: int,
) -> ToggleResult:
    """Ensure an active row exists for `pair`; commits on change."""
    if await find_active(session, model, **pair) is not None:
        return ToggleResult(changed=False, active=True)

    session.add(model(**pair))
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if not is_unique_violation(exc):
            raise
        # A concurrent request inserted the active row first.
        return ToggleResult(changed=False, active=True)
    return ToggleResult(changed=True, active=True)


async def deactivate(
    session: AsyncSession,
    model: type[SQLModel],
    *,
    commit: bool = True,
    **pair: int,
) -> ToggleResult:
    """Soft-delete the active row for `pair` when one exists."""
    result = await session.execute(
        update(model)
        .where(*_pair_filters(model, pair))
        .values(is_deleted=True, deleted_at=datetime.now(timezone.utc))
    )
    if commit:
        await session.commit()
    changed = (result.rowcount or 0) > 0
    return ToggleResult(changed=changed, active=False)


async def count_active(
    session: AsyncSession,
    model: type[SQLModel],
    **filters: int,
) -> int:
    id_column = cast(Any, getattr(model, "id"))
    result = await session.execute(
        select(func.count(id_column)).where(*_pair_filters(model, filters))
    )
    return int(result.scalar_one() or 0)
