"""users, follow relationships and communities

Revision ID: 0001_users_and_communities
Revises: None
Create Date: 2026-10-12
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_users_and_communities"
down_revision = None
branch_labels = None
depends_on = None


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("avatar_url", sa.String(length=1024), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False, server_default=sa.text("'general'")),
        _created_at(),
        sa.CheckConstraint("role in ('general','moderator')", name="ck_users_role"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "relationships",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("follower_user_id", sa.Integer(), nullable=False),
        sa.Column("following_user_id", sa.Integer(), nullable=False),
        _created_at(),
        sa.CheckConstraint("follower_user_id <> following_user_id", name="ck_relationship_self"),
        sa.ForeignKeyConstraint(["follower_user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["following_user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("follower_user_id", "following_user_id", name="uq_relationship_pair"),
    )
    op.create_index("ix_relationships_follower_user_id", "relationships", ["follower_user_id"], unique=False)
    op.create_index("ix_relationships_following_user_id", "relationships", ["following_user_id"], unique=False)

    op.create_table(
        "communities",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("banner_url", sa.String(length=1200), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "community_members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("community_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["community_id"], ["communities.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("community_id", "user_id", name="uq_community_member"),
    )
    op.create_index("ix_community_members_community_id", "community_members", ["community_id"], unique=False)
    op.create_index("ix_community_members_user_id", "community_members", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_community_members_user_id", table_name="community_members")
    op.drop_index("ix_community_members_community_id", table_name="community_members")
    op.drop_table("community_members")
    op.drop_table("communities")
    op.drop_index("ix_relationships_following_user_id", table_name="relationships")
    op.drop_index("ix_relationships_follower_user_id", table_name="relationships")
    op.drop_table("relationships")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
