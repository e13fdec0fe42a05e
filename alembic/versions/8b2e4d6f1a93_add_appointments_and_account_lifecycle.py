"""Add case appointments and account lifecycle fields

Revision ID: 8b2e4d6f1a93
Revises: 3f1a9c2b7d10
Create Date: 2025-11-09 10:42:18.203117

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8b2e4d6f1a93'
down_revision: Union[str, None] = '3f1a9c2b7d10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

appointment_status = sa.Enum("SCHEDULED", "RESCHEDULED", "COMPLETED", "CANCELLED", name="appointmentstatus")


def upgrade():
    if op.get_bind().dialect.name == "postgresql":
        op.execute("ALTER TYPE notificationtype ADD VALUE IF NOT EXISTS 'APPOINTMENT_SCHEDULED'")

    op.add_column("users", sa.Column("verification_token_hash", sa.String(length=64), nullable=True))
    op.add_column("users", sa.Column("reset_token_hash", sa.String(length=64), nullable=True))
    op.add_column("users", sa.Column("reset_token_expires", sa.DateTime(), nullable=True))
    op.add_column("users", sa.Column("data_export_requests", sa.Integer(), nullable=False, server_default="0"))
    op.add_column("users", sa.Column("last_data_export", sa.DateTime(), nullable=True))
    op.add_column("users", sa.Column("deletion_scheduled_for", sa.DateTime(), nullable=True))
    op.add_column("users", sa.Column("deletion_reason", sa.Text(), nullable=True))
    op.create_index("ix_users_verification_token_hash", "users", ["verification_token_hash"])
    op.create_index("ix_users_reset_token_hash", "users", ["reset_token_hash"])

    op.create_table(
        "appointments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("case_id", sa.String(length=36), sa.ForeignKey("cases.id", ondelete="CASCADE"), nullable=False),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_by_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("assigned_agent_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", appointment_status, nullable=False, server_default="SCHEDULED"),
        sa.Column("reminder_sent_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_appointments_case_id", "appointments", ["case_id"])
    op.create_index("ix_appointments_client_id", "appointments", ["client_id"])
    op.create_index("ix_appointments_created_by_id", "appointments", ["created_by_id"])
    op.create_index("ix_appointments_assigned_agent_id", "appointments", ["assigned_agent_id"])
    op.create_index("ix_appointments_scheduled_at", "appointments", ["scheduled_at"])
    op.create_index("ix_appointments_status", "appointments", ["status"])


def downgrade():
    op.drop_index("ix_appointments_status", table_name="appointments")
    op.drop_index("ix_appointments_scheduled_at", table_name="appointments")
    op.drop_index("ix_appointments_assigned_agent_id", table_name="appointments")
    op.drop_index("ix_appointments_created_by_id", table_name="appointments")
    op.drop_index("ix_appointments_client_id", table_name="appointments")
    op.drop_index("ix_appointments_case_id", table_name="appointments")
    op.drop_table("appointments")
    appointment_status.drop(op.get_bind(), checkfirst=True)

    op.drop_index("ix_users_reset_token_hash", table_name="users")
    op.drop_index("ix_users_verification_token_hash", table_name="users")
    op.drop_column("users", "deletion_reason")
    op.drop_column("users", "deletion_scheduled_for")
    op.drop_column("users", "last_data_export")
    op.drop_column("users", "data_export_requests")
    op.drop_column("users", "reset_token_expires")
    op.drop_column("users", "reset_token_hash")
    op.drop_column("users", "verification_token_hash")
    # Postgres cannot drop a single enum value; APPOINTMENT_SCHEDULED stays on notificationtype
