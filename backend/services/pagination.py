"""Id-ordered cursor pagination shared by every listing endpoint."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar, cast

from pydantic import BaseModel
from sqlalchemy import Select

from core import settings

T = TypeVar("T")
SortOrder = Literal["asc", "desc"]
# Ids are BIGINT; longer digit strings cannot be a real cursor.
MAX_CURSOR_DIGITS = 18


class Pagination(BaseModel):
    hasNextPage: bool
    nextCursor: str | None = None
    total: int | None = None


@dataclass(frozen=True, slots=True)
class PageParams:
    limit: int
    cursor: int | None
    sort: SortOrder

    @classmethod
    def from_query(
        cls,
        limit: int | None = None,
        cursor: str | None = None,
        sort: str | None = None,
    ) -> "PageParams":
        """Normalize raw query values.

        Out of range limits are clamped, unknown sort values fall back to
        `desc` and a non-numeric cursor is ignored.
        """
        resolved_limit = settings.items_per_page if limit is None else limit
        resolved_limit = max(1, min(resolved_limit, settings.max_page_size))
        resolved_sort: SortOrder = "asc" if (sort or "").lower() == "asc" else "desc"
        resolved_cursor: int | None = None
        raw_cursor = (cursor or "").strip()
        if raw_cursor.isascii() and raw_cursor.isdigit() and len(raw_cursor) <= MAX_CURSOR_DIGITS:
            resolved_cursor = int(raw_cursor)
        return cls(limit=resolved_limit, cursor=resolved_cursor, sort=resolved_sort)


@dataclass(slots=True)
class Page(Generic[T]):
    items: list[T]
    has_next_page: bool
    next_cursor: str | None

    def pagination(self, total: int | None = None) -> Pagination:
        return Pagination(
            hasNextPage=self.has_next_page,
            nextCursor=self.next_cursor,
            total=total,
        )


def apply_cursor(query: Select, id_column: Any, params: PageParams) -> Select:
    """Restrict, order and limit a query for one page keyed on `id_column`.

    Fetches one extra row so `paginate_rows` can tell whether another page
    exists.
    """
    column = cast(Any, id_column)
    if params.sort == "asc":
        if params.cursor is not None:
            query = query.where(column > params.cursor)
        query = query.order_by(column.asc())
    else:
        if params.cursor is not None:
            query = query.where(column < params.cursor)
        query = query.order_by(column.desc())
    return query.limit(params.limit + 1)


def paginate_rows(
    rows: Sequence[T],
    params: PageParams,
    id_getter: Callable[[T], int | None],
) -> Page[T]:
    has_next_page = len(rows) > params.limit
    items = list(rows[: params.limit])
    next_cursor: str | None = None
    if has_next_page and items:
        last_id = id_getter(items[-1])
        next_cursor = str(last_id) if last_id is not None else None
    return Page(items=items, has_next_page=has_next_page, next_cursor=next_cursor)
