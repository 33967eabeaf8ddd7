"""Users, rewards, and redemptions.

Revision ID: 20260108_01
Revises:
Create Date: 2026-01-08
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20260108_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("points_balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("points_balance >= 0", name="ck_users_points_balance_non_negative"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "rewards",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("points_cost", sa.Integer(), nullable=False),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("points_cost > 0", name="ck_rewards_points_cost_positive"),
    )
    op.create_index("ix_rewards_available_points_cost", "rewards", ["available", "points_cost"])

    op.create_table(
        "redemptions",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            sa.dialects.postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id"),
            nullable=False,
        ),
        sa.Column(
            "reward_id",
            sa.dialects.postgresql.UUID(as_uuid=True),
            sa.ForeignKey("rewards.id"),
            nullable=False,
        ),
        sa.Column("points_spent", sa.Integer(), nullable=False),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("points_spent > 0", name="ck_redemptions_points_spent_positive"),
    )
    op.create_index("ix_redemptions_user_id_redeemed_at", "redemptions", ["user_id", "redeemed_at"])
    op.create_index("ix_redemptions_reward_id", "redemptions", ["reward_id"])


def downgrade() -> None:
    op.drop_index("ix_redemptions_reward_id", table_name="redemptions")
    op.drop_index("ix_redemptions_user_id_redeemed_at", table_name="redemptions")
    op.drop_table("redemptions")
    op.drop_index("ix_rewards_available_points_cost", table_name="rewards")
    op.drop_table("rewards")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
