"""Enforce at most one active row per like, bookmark, follow and block pair."""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

revision: str = "20261019_0002"
down_revision: str | None = "20261019_0001"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

ACTIVE_ROW_INDEXES = (
    ("uq_likes_active_user_post", "likes", ["user_id", "post_id"]),
    ("uq_bookmarks_active_user_post", "bookmarks", ["user_id", "post_id"]),
    ("uq_follows_active_pair", "follows", ["follower_id", "following_id"]),
    ("uq_blocks_active_pair", "blocks", ["blocker_id", "blocked_id"]),
)


def upgrade() -> None:
    for index_name, table_name, columns in ACTIVE_ROW_INDEXES:
        op.create_index(
            index_name,
            table_name,
            columns,
            unique=True,
            postgresql_where=sa.text("is_deleted = false"),
            sqlite_where=sa.text("is_deleted = 0"),
        )


def downgrade() -> None:
    for index_name, table_name, _columns in reversed(ACTIVE_ROW_INDEXES):
        op.drop_index(index_name, table_name=table_name)
