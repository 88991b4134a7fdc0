"""Query parameter dependency for cursor-paginated listings."""

from __future__ import annotations

from typing import Annotated

from fastapi import Query

from services.pagination import PageParams


def get_page_params(
    limit: Annotated[int | None, Query()] = None,
    cursor: Annotated[str | None, Query()] = None,
    sort: Annotated[str | None, Query()] = None,
) -> PageParams:
    return PageParams.from_query(limit=limit, cursor=cursor, sort=sort)
