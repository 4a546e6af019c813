"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:12:44.318201

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(*, updated: bool = False) -> list[sa.Column]:
    columns = [sa.Column("created_at", sa.DateTime(), nullable=False)]
    if updated:
        columns.append(sa.Column("updated_at", sa.DateTime(), nullable=False))
    return columns


def _user_fk(column: str, *, nullable: bool = False, ondelete: str | None = "CASCADE") -> sa.Column:
    return sa.Column(
        column,
        sa.Integer(),
        sa.ForeignKey("user_account.id", ondelete=ondelete),
        nullable=nullable,
    )


def upgrade() -> None:
    """Create users, content, social graph, communities and notifications."""
    op.create_table(
        "user_account",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("username", sa.String(length=30), nullable=True, unique=True),
        sa.Column("email", sa.String(length=320), nullable=True, unique=True),
        sa.Column("password_hash", sa.Text(), nullable=True),
        sa.Column("image", sa.Text(), nullable=True),
        sa.Column("preferences", sa.JSON(), nullable=True),
        sa.Column("preferences_version", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_table(
        "user_profile",
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("user_account.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("bio", sa.String(length=160), nullable=True),
        sa.Column("location", sa.String(length=100), nullable=True),
        sa.Column("website", sa.Text(), nullable=True),
        sa.Column("birth_date", sa.Date(), nullable=True),
    )
    op.create_table(
        "follow",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk("follower_id"),
        _user_fk("following_id"),
        *_timestamps(),
        sa.UniqueConstraint("follower_id", "following_id", name="uq_follow_pair"),
        sa.CheckConstraint("follower_id <> following_id", name="ck_follow_not_self"),
    )
    op.create_index("ix_follow_follower_id", "follow", ["follower_id"])
    op.create_index("ix_follow_following_id", "follow", ["following_id"])

    op.create_table(
        "community",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=64), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image", sa.Text(), nullable=True),
        sa.Column("visibility", sa.String(length=16), nullable=False, server_default="PUBLIC"),
        _user_fk("creator_id", ondelete=None),
        *_timestamps(),
    )

    op.create_table(
        "post",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk("author_id", ondelete=None),
        sa.Column("parent_id", sa.Integer(), sa.ForeignKey("post.id"), nullable=True),
        sa.Column("community_id", sa.Integer(), sa.ForeignKey("community.id"), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("media_attachments", sa.JSON(), nullable=False),
        sa.Column("visibility", sa.String(length=16), nullable=False, server_default="followers"),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(updated=True),
    )
    op.create_index("ix_post_author_id", "post", ["author_id"])
    op.create_index("ix_post_parent_id", "post", ["parent_id"])
    op.create_index("ix_post_community_id", "post", ["community_id"])

    op.create_table(
        "reaction",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "post_id", sa.Integer(), sa.ForeignKey("post.id", ondelete="CASCADE"), nullable=False
        ),
        _user_fk("user_id"),
        sa.Column("type", sa.String(length=16), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "post_id", "type", name="uq_reaction_user_post_type"),
    )
    op.create_index("ix_reaction_post_id", "reaction", ["post_id"])

    op.create_table(
        "bookmark",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk("user_id"),
        sa.Column(
            "post_id", sa.Integer(), sa.ForeignKey("post.id", ondelete="CASCADE"), nullable=False
        ),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "post_id", name="uq_bookmark_user_post"),
    )
    op.create_index("ix_bookmark_user_id", "bookmark", ["user_id"])

    op.create_table(
        "connection",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk("requester_id"),
        _user_fk("target_id"),
        sa.Column("low_user_id", sa.Integer(), nullable=False),
        sa.Column("high_user_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="PENDING"),
        *_timestamps(updated=True),
        sa.UniqueConstraint("low_user_id", "high_user_id", name="uq_connection_pair"),
        sa.CheckConstraint("requester_id <> target_id", name="ck_connection_not_self"),
    )
    op.create_index("ix_connection_requester_id", "connection", ["requester_id"])
    op.create_index("ix_connection_target_id", "connection", ["target_id"])

    op.create_table(
        "community_member",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk("user_id"),
        sa.Column(
            "community_id",
            sa.Integer(),
            sa.ForeignKey("community.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="USER"),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "community_id", name="uq_community_member_pair"),
    )
    op.create_index("ix_community_member_community_id", "community_member", ["community_id"])

    op.create_table(
        "join_request",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk("user_id"),
        sa.Column(
            "community_id",
            sa.Integer(),
            sa.ForeignKey("community.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="PENDING"),
        *_timestamps(updated=True),
        sa.UniqueConstraint("user_id", "community_id", name="uq_join_request_pair"),
    )
    op.create_index("ix_join_request_community_id", "join_request", ["community_id"])

    op.create_table(
        "community_invitation",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "community_id",
            sa.Integer(),
            sa.ForeignKey("community.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("inviter_id"),
        _user_fk("invitee_id"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="PENDING"),
        *_timestamps(updated=True),
        sa.UniqueConstraint("community_id", "invitee_id", name="uq_invitation_pair"),
    )
    op.create_index("ix_community_invitation_invitee_id", "community_invitation", ["invitee_id"])

    op.create_table(
        "notification",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk("user_id"),
        _user_fk("actor_id", nullable=True, ondelete="SET NULL"),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column(
            "post_id", sa.Integer(), sa.ForeignKey("post.id", ondelete="CASCADE"), nullable=True
        ),
        sa.Column(
            "community_id",
            sa.Integer(),
            sa.ForeignKey("community.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_notification_user_id", "notification", ["user_id"])


def downgrade() -> None:
    """Drop every table in reverse dependency order."""
    for table in (
        "notification",
        "community_invitation",
        "join_request",
        "community_member",
        "connection",
        "bookmark",
        "reaction",
        "post",
        "community",
        "follow",
        "user_profile",
        "user_account",
    ):
        op.drop_table(table)
