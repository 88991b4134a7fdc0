"""Post model."""

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

POST_TYPES = ("original", "reply", "quote", "repost")

# Each post type carries exactly its own parent id and none of the others.
POST_PARENT_CHECK = (
    "(post_type = 'original' AND in_reply_to_post_id IS NULL"
    " AND quote_of_post_id IS NULL AND repost_of_post_id IS NULL)"
    " OR (post_type = 'reply' AND in_reply_to_post_id IS NOT NULL"
    " AND quote_of_post_id IS NULL AND repost_of_post_id IS NULL)"
    " OR (post_type = 'quote' AND quote_of_post_id IS NOT NULL"
    " AND in_reply_to_post_id IS NULL AND repost_of_post_id IS NULL)"
    " OR (post_type = 'repost' AND repost_of_post_id IS NOT NULL"
    " AND in_reply_to_post_id IS NULL AND quote_of_post_id IS NULL)"
)


class Post(SQLModel, table=True):
    """A user authored post, reply, quote or repost."""

    __tablename__ = "posts"
    __table_args__ = (
        CheckConstraint(
            "post_type IN ('original', 'reply', 'quote', 'repost')",
            name="ck_posts_post_type",
        ),
        CheckConstraint(POST_PARENT_CHECK, name="ck_posts_parent_matches_type"),
        Index("ix_posts_user_id_id", "user_id", "id"),
        Index("ix_posts_in_reply_to_post_id", "in_reply_to_post_id"),
        Index("ix_posts_quote_of_post_id", "quote_of_post_id"),
        Index("ix_posts_repost_of_post_id", "repost_of_post_id"),
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
    post_type: str = Field(
        default="original",
        sa_column=Column(String(20), nullable=False, server_default=text("'original'")),
    )
    in_reply_to_post_id: int | None = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("posts.id"), nullable=True),
    )
    quote_of_post_id: int | None = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("posts.id"), nullable=True),
    )
    repost_of_post_id: int | None = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("posts.id"), nullable=True),
    )
    media_count: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default=text("0")),
    )
    is_hidden: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=text("false")),
    )
    hidden_reason: str | None = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    hidden_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    report_count: int = Field(
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
