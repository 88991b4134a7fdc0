"""Create users, posts, drafts, media, relationship and community tables."""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

revision: str = "20261019_0001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

TIMESTAMP_DEFAULT = sa.text("CURRENT_TIMESTAMP")
FALSE_DEFAULT = sa.text("false")


def _timestamps(*, with_updated_at: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=TIMESTAMP_DEFAULT,
            nullable=False,
        ),
    ]
    if with_updated_at:
        columns.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=TIMESTAMP_DEFAULT,
                nullable=False,
            )
        )
    return columns


def _soft_delete_columns() -> list[sa.Column]:
    return [
        sa.Column("is_deleted", sa.Boolean(), server_default=FALSE_DEFAULT, nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _media_columns(parent_column: str, parent_table: str) -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            parent_column,
            sa.Integer(),
            sa.ForeignKey(f"{parent_table}.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("media_type", sa.String(length=10), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("duration_sec", sa.Integer(), nullable=True),
        *_timestamps(with_updated_at=False),
        *_soft_delete_columns(),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("external_id", sa.String(length=255), nullable=False),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("first_name", sa.String(length=50), nullable=True),
        sa.Column("last_name", sa.String(length=50), nullable=True),
        sa.Column("profile_image_url", sa.Text(), nullable=True),
        sa.Column("cover_image_url", sa.Text(), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("role", sa.String(length=20), server_default=sa.text("'user'"), nullable=False),
        sa.Column("is_banned", sa.Boolean(), server_default=FALSE_DEFAULT, nullable=False),
        sa.Column(
            "subscription_type",
            sa.String(length=20),
            server_default=sa.text("'free'"),
            nullable=False,
        ),
        *_timestamps(),
        *_soft_delete_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_external_id", "users", ["external_id"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "posts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("content", sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column(
            "post_type",
            sa.String(length=20),
            server_default=sa.text("'original'"),
            nullable=False,
        ),
        sa.Column("in_reply_to_post_id", sa.Integer(), sa.ForeignKey("posts.id"), nullable=True),
        sa.Column("quote_of_post_id", sa.Integer(), sa.ForeignKey("posts.id"), nullable=True),
        sa.Column("repost_of_post_id", sa.Integer(), sa.ForeignKey("posts.id"), nullable=True),
        sa.Column("media_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("is_hidden", sa.Boolean(), server_default=FALSE_DEFAULT, nullable=False),
        sa.Column("hidden_reason", sa.Text(), nullable=True),
        sa.Column("hidden_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("report_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        *_timestamps(),
        *_soft_delete_columns(),
        sa.CheckConstraint(
            "post_type IN ('original', 'reply', 'quote', 'repost')",
            name="ck_posts_post_type",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_posts_user_id_id", "posts", ["user_id", "id"], unique=False)
    op.create_index("ix_posts_in_reply_to_post_id", "posts", ["in_reply_to_post_id"], unique=False)
    op.create_index("ix_posts_quote_of_post_id", "posts", ["quote_of_post_id"], unique=False)
    op.create_index("ix_posts_repost_of_post_id", "posts", ["repost_of_post_id"], unique=False)

    op.create_table(
        "post_media",
        *_media_columns("post_id", "posts"),
        sa.CheckConstraint("media_type IN ('image', 'video')", name="ck_post_media_media_type"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_post_media_post_id", "post_media", ["post_id"], unique=False)

    op.create_table(
        "drafts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("content", sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column("in_reply_to_post_id", sa.Integer(), sa.ForeignKey("posts.id"), nullable=True),
        sa.Column("media_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        *_timestamps(),
        *_soft_delete_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_drafts_user_id_id", "drafts", ["user_id", "id"], unique=False)

    op.create_table(
        "draft_media",
        *_media_columns("draft_id", "drafts"),
        sa.CheckConstraint("media_type IN ('image', 'video')", name="ck_draft_media_media_type"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_draft_media_draft_id", "draft_media", ["draft_id"], unique=False)

    for table_name in ("likes", "bookmarks"):
        op.create_table(
            table_name,
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column(
                "user_id",
                sa.Integer(),
                sa.ForeignKey("users.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column(
                "post_id",
                sa.Integer(),
                sa.ForeignKey("posts.id", ondelete="CASCADE"),
                nullable=False,
            ),
            *_timestamps(with_updated_at=False),
            *_soft_delete_columns(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(f"ix_{table_name}_post_id", table_name, ["post_id"], unique=False)

    op.create_table(
        "follows",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "follower_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "following_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_timestamps(with_updated_at=False),
        *_soft_delete_columns(),
        sa.CheckConstraint("follower_id <> following_id", name="ck_follows_no_self_follow"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_follows_following_id", "follows", ["following_id"], unique=False)

    op.create_table(
        "blocks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "blocker_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "blocked_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_timestamps(with_updated_at=False),
        *_soft_delete_columns(),
        sa.CheckConstraint("blocker_id <> blocked_id", name="ck_blocks_no_self_block"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_blocks_blocked_blocker",
        "blocks",
        ["blocked_id", "blocker_id"],
        unique=False,
    )

    op.create_table(
        "communities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "creator_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("is_private", sa.Boolean(), server_default=FALSE_DEFAULT, nullable=False),
        sa.Column("member_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        *_timestamps(),
        *_soft_delete_columns(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "community_members",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "community_id",
            sa.Integer(),
            sa.ForeignKey("communities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(length=20), server_default=sa.text("'member'"), nullable=False),
        *_timestamps(with_updated_at=False),
        *_soft_delete_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_community_members_community_user",
        "community_members",
        ["community_id", "user_id"],
        unique=False,
    )

    op.create_table(
        "community_posts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "community_id",
            sa.Integer(),
            sa.ForeignKey("communities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "post_id",
            sa.Integer(),
            sa.ForeignKey("posts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("is_pinned", sa.Boolean(), server_default=FALSE_DEFAULT, nullable=False),
        *_timestamps(with_updated_at=False),
        *_soft_delete_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_community_posts_post_id", "community_posts", ["post_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_community_posts_post_id", table_name="community_posts")
    op.drop_table("community_posts")
    op.drop_index("ix_community_members_community_user", table_name="community_members")
    op.drop_table("community_members")
    op.drop_table("communities")
    op.drop_index("ix_blocks_blocked_blocker", table_name="blocks")
    op.drop_table("blocks")
    op.drop_index("ix_follows_following_id", table_name="follows")
    op.drop_table("follows")
    for table_name in ("bookmarks", "likes"):
        op.drop_index(f"ix_{table_name}_post_id", table_name=table_name)
        op.drop_table(table_name)
    op.drop_index("ix_draft_media_draft_id", table_name="draft_media")
    op.drop_table("draft_media")
    op.drop_index("ix_drafts_user_id_id", table_name="drafts")
    op.drop_table("drafts")
    op.drop_index("ix_post_media_post_id", table_name="post_media")
    op.drop_table("post_media")
    op.drop_index("ix_posts_repost_of_post_id", table_name="posts")
    op.drop_index("ix_posts_quote_of_post_id", table_name="posts")
    op.drop_index("ix_posts_in_reply_to_post_id", table_name="posts")
    op.drop_index("ix_posts_user_id_id", table_name="posts")
    op.drop_table("posts")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_index("ix_users_external_id", table_name="users")
    op.drop_table("users")
