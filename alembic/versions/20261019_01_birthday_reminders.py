"""Church roster, birthday ledger and in-app notifications.

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


notification_status = sa.Enum("PENDING", "SENT", "FAILED", name="birthday_notification_status_enum")


def upgrade() -> None:
    op.create_table(
        "churches",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("birthday_notifications_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("email_notifications_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notification_offsets", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "bacentas",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("church_id", sa.String(length=64), sa.ForeignKey("churches.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("leader_ids", sa.JSON(), nullable=False),
    )
    op.create_index("ix_bacentas_church_id", "bacentas", ["church_id"])

    op.create_table(
        "members",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("church_id", sa.String(length=64), sa.ForeignKey("churches.id", ondelete="CASCADE"), nullable=False),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.Column("birthday", sa.String(length=10), nullable=True),
        sa.Column("bacenta_id", sa.String(length=64), nullable=True),
        sa.Column("role", sa.String(length=64), nullable=False, server_default="Member"),
        sa.Column("phone_number", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_members_church_id", "members", ["church_id"])
    op.create_index("ix_members_bacenta_id", "members", ["bacenta_id"])

    op.create_table(
        "church_users",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("church_id", sa.String(length=64), sa.ForeignKey("churches.id", ondelete="CASCADE"), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="unit_leader"),
        sa.Column("bacenta_ids", sa.JSON(), nullable=False),
        sa.Column("supervisor_id", sa.String(length=64), nullable=True),
        sa.Column("invited_by_admin_id", sa.String(length=64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("birthday_notifications_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("email_notifications_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_church_users_church_id", "church_users", ["church_id"])
    op.create_index("ix_church_users_invited_by_admin_id", "church_users", ["invited_by_admin_id"])

    op.create_table(
        "birthday_notifications",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("church_id", sa.String(length=64), nullable=False),
        sa.Column("member_id", sa.String(length=64), nullable=False),
        sa.Column("member_name", sa.String(), nullable=True),
        sa.Column("bacenta_id", sa.String(length=64), nullable=True),
        sa.Column("bacenta_name", sa.String(), nullable=True),
        sa.Column("notification_date", sa.Date(), nullable=False),
        sa.Column("days_until_birthday", sa.Integer(), nullable=False),
        sa.Column("recipient_ids", sa.JSON(), nullable=False),
        sa.Column("status", notification_status, nullable=False, server_default="PENDING"),
        sa.Column("forced", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("claim_key", sa.String(length=160), nullable=True),
        sa.Column("subject", sa.String(), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("provider_message_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("church_id", "claim_key", name="uq_birthday_notifications_church_claim"),
    )
    op.create_index("ix_birthday_notifications_member_id", "birthday_notifications", ["member_id"])
    op.create_index(
        "ix_birthday_notifications_church_date",
        "birthday_notifications",
        ["church_id", "notification_date"],
    )

    op.create_table(
        "in_app_notifications",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("church_id", sa.String(length=64), nullable=False),
        sa.Column("recipient_user_id", sa.String(length=64), nullable=False),
        sa.Column("kind", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("actor_id", sa.String(length=64), nullable=False),
        sa.Column("actor_name", sa.String(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_in_app_notifications_church_id", "in_app_notifications", ["church_id"])
    op.create_index("ix_in_app_notifications_recipient_user_id", "in_app_notifications", ["recipient_user_id"])


def downgrade() -> None:
    op.drop_index("ix_in_app_notifications_recipient_user_id", table_name="in_app_notifications")
    op.drop_index("ix_in_app_notifications_church_id", table_name="in_app_notifications")
    op.drop_table("in_app_notifications")
    op.drop_index("ix_birthday_notifications_church_date", table_name="birthday_notifications")
    op.drop_index("ix_birthday_notifications_member_id", table_name="birthday_notifications")
    op.drop_table("birthday_notifications")
    notification_status.drop(op.get_bind(), checkfirst=True)
    op.drop_index("ix_church_users_invited_by_admin_id", table_name="church_users")
    op.drop_index("ix_church_users_church_id", table_name="church_users")
    op.drop_table("church_users")
    op.drop_index("ix_members_bacenta_id", table_name="members")
    op.drop_index("ix_members_church_id", table_name="members")
    op.drop_table("members")
    op.drop_index("ix_bacentas_church_id", table_name="bacentas")
    op.drop_table("bacentas")
    op.drop_table("churches")
