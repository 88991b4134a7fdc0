"""Draft model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, Text, func, text
from sqlmodel import Field, SQLModel


class Draft(SQLModel, table=True):
    """Unpublished post content owned by its author."""

    __tablename__ = "drafts"
    __table_args__ = (
        Index("ix_drafts_user_id_id", "user_id", "id"),
    )

    id: int | None = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True),
    )
    user_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    content: str = Field(
        default="",
        sa_column=Column(Text, nullable=False, server_default=text("''")),
    )
    in_reply_to_post_id: int | None = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("posts.id"), nullable=True),
    )
    media_count: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default=text("0")),
    )
    is_deleted: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=text("false")),
    )
    created_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )
    )
    updated_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True),
            server_default=func.now(),
            onupdate=func.now(),
            nullable=False,
        )
    )
    deleted_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
