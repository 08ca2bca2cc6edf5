"""Initial schema: user, post, postsearchterm

Revision ID: b1_1_initial_schema
"""
from alembic import op
import sqlalchemy as sa

revision = "b1_1_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.String(36), primary_key=True, index=True),
        sa.Column("name", sa.String(64), unique=True, nullable=False, index=True),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("about", sa.Text(), nullable=True),
        sa.Column("link", sa.String(512), nullable=True),
        sa.Column("photo", sa.String(1024), nullable=True),
        sa.Column("custom_domain", sa.String(255), unique=True, nullable=True, index=True),
        sa.Column("custom_domain_status", sa.String(16), nullable=False, server_default="unset"),
        sa.Column("custom_domain_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("subscription_id", sa.String(128), nullable=True, index=True),
        sa.Column("subscription_status", sa.String(32), nullable=False, server_default="none"),
        sa.Column("billing_customer_id", sa.String(128), nullable=True),
        sa.Column("grace_period_ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "post",
        sa.Column("id", sa.String(36), primary_key=True, index=True),
        sa.Column("author_id", sa.String(36), sa.ForeignKey("user.id"), nullable=False, index=True),
        sa.Column("title", sa.String(512), nullable=False, server_default=""),
        sa.Column("excerpt", sa.Text(), nullable=False, server_default=""),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("published", sa.Boolean(), nullable=False, server_default=sa.false(), index=True),
        sa.Column("last_edited", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(), index=True),
        sa.Column("search_queries", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("author_id", "slug", name="uq_post_author_slug"),
    )

    op.create_table(
        "postsearchterm",
        sa.Column("post_id", sa.String(36), sa.ForeignKey("post.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("term", sa.String(255), primary_key=True, index=True),
    )


def downgrade() -> None:
    op.drop_table("postsearchterm")
    op.drop_table("post")
    op.drop_table("user")
