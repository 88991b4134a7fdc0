"""Media attachment models for posts and drafts."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlmodel import Field, SQLModel

MEDIA_TYPES = ("image", "video")


class PostMedia(SQLModel, table=True):
    """Media attached to a single post."""

    __tablename__ = "post_media"
    __table_args__ = (
        CheckConstraint("media_type IN ('image', 'video')", name="ck_post_media_media_type"),
        Index("ix_post_media_post_id", "post_id"),
    )

    id: int | None = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True),
    )
    post_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("posts.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    media_type: str = Field(sa_column=Column(String(10), nullable=False))
    url: str = Field(sa_column=Column(Text, nullable=False))
    width: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))
    height: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))
    duration_sec: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))
    is_deleted: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=text("false")),
    )
    created_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )
    )
    deleted_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )


class DraftMedia(SQLModel, table=True):
    """Media attached to a single draft."""

    __tablename__ = "draft_media"
    __table_args__ = (
        CheckConstraint("media_type IN ('image', 'video')", name="ck_draft_media_media_type"),
        Index("ix_draft_media_draft_id", "draft_id"),
    )

    id: int | None = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True),
    )
    draft_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("drafts.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    media_type: str = Field(sa_column=Column(String(10), nullable=False))
    url: str = Field(sa_column=Column(Text, nullable=False))
    width: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))
    height: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))
    duration_sec: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))
    is_deleted: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=text("false")),
    )
    created_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )
    )
    deleted_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
