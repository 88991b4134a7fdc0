"""Tie each post type to exactly one parent column."""

from collections.abc import Sequence

from alembic import op

revision: str = "20261019_0003"
down_revision: str | None = "20261019_0002"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

CONSTRAINT_NAME = "ck_posts_parent_matches_type"
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


def upgrade() -> None:
    with op.batch_alter_table("posts") as batch_op:
        batch_op.create_check_constraint(CONSTRAINT_NAME, POST_PARENT_CHECK)


def downgrade() -> None:
    with op.batch_alter_table("posts") as batch_op:
        batch_op.drop_constraint(CONSTRAINT_NAME, type_="check")
