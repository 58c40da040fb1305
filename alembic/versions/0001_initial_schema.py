"""Initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2025-11-01 00:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("is_super_admin", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "draw_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("email_subject_template", sa.String(), nullable=True),
        sa.Column("email_template", sa.Text(), nullable=True),
        sa.Column("last_draw_seed", sa.Integer(), nullable=True),
        sa.Column("drawn_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("owner_id", "name", name="uq_draw_sessions_owner_name"),
    )
    op.create_index("ix_draw_sessions_owner_id", "draw_sessions", ["owner_id"])

    op.create_table(
        "exclusion_groups",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("draw_session_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["draw_session_id"], ["draw_sessions.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("draw_session_id", "name", name="uq_exclusion_groups_session_name"),
    )

    op.create_table(
        "participants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("draw_session_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["draw_session_id"], ["draw_sessions.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("draw_session_id", "name", name="uq_participants_session_name"),
    )

    op.create_table(
        "participant_groups",
        sa.Column("participant_id", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["participant_id"], ["participants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["group_id"], ["exclusion_groups.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("participant_id", "group_id"),
    )

    op.create_table(
        "assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("draw_session_id", sa.Integer(), nullable=False),
        sa.Column("giver_id", sa.Integer(), nullable=False),
        sa.Column("receiver_id", sa.Integer(), nullable=False),
        sa.Column("email_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("email_send_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["draw_session_id"], ["draw_sessions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["giver_id"], ["participants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["receiver_id"], ["participants.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("draw_session_id", "giver_id", name="uq_assignments_session_giver"),
    )

    op.create_table(
        "draw_session_shares",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("draw_session_id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("shared_by_id", sa.Integer(), nullable=False),
        sa.Column("shared_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("accepted_by_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["draw_session_id"], ["draw_sessions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["shared_by_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["accepted_by_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_draw_session_shares_email", "draw_session_shares", ["email"])

    op.create_table(
        "smtp_configs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("host", sa.String(), nullable=False),
        sa.Column("port", sa.Integer(), nullable=False),
        sa.Column("secure", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("user_name", sa.String(), nullable=True),
        sa.Column("password", sa.String(), nullable=True),
        sa.Column("sender", sa.String(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", name="uq_smtp_configs_user"),
    )


def downgrade() -> None:
    op.drop_table("smtp_configs")
    op.drop_index("ix_draw_session_shares_email", table_name="draw_session_shares")
    op.drop_table("draw_session_shares")
    op.drop_table("assignments")
    op.drop_table("participant_groups")
    op.drop_table("participants")
    op.drop_table("exclusion_groups")
    op.drop_index("ix_draw_sessions_owner_id", table_name="draw_sessions")
    op.drop_table("draw_sessions")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
