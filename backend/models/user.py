"""User domain model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, func, text
from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    """Local user record mirrored from the identity provider."""

    __tablename__ = "users"

    id: int | None = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True),
    )
    external_id: str = Field(
        sa_column=Column(String(255), unique=True, nullable=False, index=True)
    )
    username: str = Field(
        sa_column=Column(String(64), unique=True, nullable=False, index=True)
    )
    email: str | None = Field(
        default=None, sa_column=Column(String(255), nullable=True)
    )
    first_name: str | None = Field(
        default=None, sa_column=Column(String(50), nullable=True)
    )
    last_name: str | None = Field(
        default=None, sa_column=Column(String(50), nullable=True)
    )
    profile_image_url: str | None = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    cover_image_url: str | None = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    bio: str | None = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    role: str = Field(
        default="user",
        sa_column=Column(String(20), nullable=False, server_default=text("'user'")),
    )
    is_banned: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=text("false")),
    )
    subscription_type: str = Field(
        default="free",
        sa_column=Column(String(20), nullable=False, server_default=text("'free'")),
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
