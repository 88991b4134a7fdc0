"""Database error helpers."""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

# Postgres reports unique violations as SQLSTATE 23505; sqlite only by message.
_UNIQUE_SQLSTATE = "23505"
_UNIQUE_MARKERS = ("duplicate key", "unique constraint")


def _driver_error(error: IntegrityError) -> object:
    original = getattr(error, "orig", None)
    # asyncpg errors arrive wrapped by the SQLAlchemy dbapi adapter.
    return getattr(original, "__cause__", None) or original or error


def is_unique_violation(error: IntegrityError) -> bool:
    """Return True when a partial unique index rejected a duplicate active row."""
    for candidate in (getattr(error, "orig", None), _driver_error(error)):
        sqlstate = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if sqlstate == _UNIQUE_SQLSTATE:
            return True
    message = str(_driver_error(error)).lower()
    return any(marker in message for marker in _UNIQUE_MARKERS)


__all__ = ["is_unique_violation"]
