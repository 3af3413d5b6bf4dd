"""Initial schema - users, friendship requests, friendships

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(255), nullable=True),
        sa.Column("last_name", sa.String(255), nullable=True),
        sa.Column("profile_picture", sa.String(1024), nullable=True),
        sa.Column("is_online", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("friend_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    # Friendship requests: one row per ordered pair, reactivated rather than duplicated
    op.create_table(
        "friendship_requests",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("requester_id", sa.Uuid(), nullable=False),
        sa.Column("receiver_id", sa.Uuid(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_friendship_requests"),
        sa.ForeignKeyConstraint(["requester_id"], ["users.id"], name="fk_friendship_requests_requester_id_users", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["receiver_id"], ["users.id"], name="fk_friendship_requests_receiver_id_users", ondelete="CASCADE"),
        sa.UniqueConstraint("requester_id", "receiver_id", name="uq_friendship_requests_pair"),
        sa.CheckConstraint("requester_id <> receiver_id", name="ck_friendship_requests_not_self"),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected', 'deleted')",
            name="ck_friendship_requests_status",
        ),
    )
    op.create_index("ix_friendship_requests_requester_id", "friendship_requests", ["requester_id"])
    op.create_index("ix_friendship_requests_receiver_id", "friendship_requests", ["receiver_id"])

    # Friendships
    op.create_table(
        "friendships",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id_1", sa.Uuid(), nullable=False),
        sa.Column("user_id_2", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_friendships"),
        sa.ForeignKeyConstraint(["user_id_1"], ["users.id"], name="fk_friendships_user_id_1_users", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id_2"], ["users.id"], name="fk_friendships_user_id_2_users", ondelete="CASCADE"),
        sa.UniqueConstraint("user_id_1", "user_id_2", name="uq_friendships_pair"),
        sa.CheckConstraint("user_id_1 < user_id_2", name="ck_friendships_canonical_order"),
    )
    op.create_index("ix_friendships_user_id_1", "friendships", ["user_id_1"])
    op.create_index("ix_friendships_user_id_2", "friendships", ["user_id_2"])


def downgrade() -> None:
    op.drop_table("friendships")
    op.drop_table("friendship_requests")
    op.drop_table("users")
