"""Baseline schema

Revision ID: 3f1a9c2b7d10
Revises:
Create Date: 2025-10-02 09:14:37.512204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2b7d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum("CLIENT", "AGENT", "ADMIN", name="userrole")
service_type = sa.Enum(
    "STUDENT_VISA", "WORK_PERMIT", "FAMILY_REUNIFICATION", "TOURIST_VISA", "BUSINESS_VISA", "PERMANENT_RESIDENCY",
    name="servicetype",
)
case_status = sa.Enum(
    "SUBMITTED", "UNDER_REVIEW", "DOCUMENTS_REQUIRED", "PROCESSING", "APPROVED", "REJECTED", "CLOSED",
    name="casestatus",
)
priority = sa.Enum("LOW", "NORMAL", "HIGH", "URGENT", name="priority")
document_type = sa.Enum(
    "PASSPORT", "ID_CARD", "BIRTH_CERTIFICATE", "MARRIAGE_CERTIFICATE", "DIPLOMA", "EMPLOYMENT_LETTER",
    "BANK_STATEMENT", "PROOF_OF_RESIDENCE", "PHOTO", "OTHER",
    name="documenttype",
)
document_status = sa.Enum("PENDING", "APPROVED", "REJECTED", name="documentstatus")
notification_type = sa.Enum(
    "CASE_STATUS_UPDATE", "NEW_MESSAGE", "DOCUMENT_UPLOADED", "DOCUMENT_VERIFIED", "DOCUMENT_REJECTED",
    "CASE_ASSIGNED", "SYSTEM_ANNOUNCEMENT",
    name="notificationtype",
)
transfer_reason = sa.Enum("REASSIGNMENT", "COVERAGE", "SPECIALIZATION", "WORKLOAD", "OTHER", name="transferreason")
message_type = sa.Enum("CHAT", "EMAIL", name="messagetype")
payment_status = sa.Enum(
    "PENDING", "PROCESSING", "COMPLETED", "FAILED", "CANCELED", "REFUNDED", name="paymentstatus"
)
legal_document_type = sa.Enum("PRIVACY", "TERMS", name="legaldocumenttype")


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("avatar_url", sa.String(length=500), nullable=True),
        sa.Column("role", user_role, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("google_id", sa.String(length=50), nullable=True),
        sa.Column("push_token", sa.String(length=255), nullable=True),
        sa.Column("last_login", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("google_id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "cases",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("reference_number", sa.String(length=50), nullable=False),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("assigned_agent_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("service_type", service_type, nullable=False),
        sa.Column("status", case_status, nullable=False),
        sa.Column("priority", priority, nullable=False),
        sa.Column("submission_date", sa.DateTime(), nullable=True),
        sa.Column("last_updated", sa.DateTime(), nullable=True),
        sa.Column("internal_notes", sa.Text(), nullable=True),
        sa.Column("estimated_completion", sa.DateTime(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_cases_reference_number", "cases", ["reference_number"], unique=True)
    op.create_index("ix_cases_client_id", "cases", ["client_id"])
    op.create_index("ix_cases_assigned_agent_id", "cases", ["assigned_agent_id"])

    op.create_table(
        "status_history",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("case_id", sa.String(length=36), sa.ForeignKey("cases.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", case_status, nullable=False),
        sa.Column("changed_by", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_status_history_case_id", "status_history", ["case_id"])

    op.create_table(
        "transfer_history",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("case_id", sa.String(length=36), sa.ForeignKey("cases.id", ondelete="CASCADE"), nullable=False),
        sa.Column("from_agent_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("from_agent_name", sa.String(length=255), nullable=True),
        sa.Column("to_agent_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("to_agent_name", sa.String(length=255), nullable=False),
        sa.Column("transferred_by", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("reason", transfer_reason, nullable=False),
        sa.Column("handover_notes", sa.Text(), nullable=True),
        sa.Column("notify_client", sa.Boolean(), nullable=True),
        sa.Column("notify_agent", sa.Boolean(), nullable=True),
        sa.Column("transferred_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_transfer_history_case_id", "transfer_history", ["case_id"])

    op.create_table(
        "documents",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("case_id", sa.String(length=36), sa.ForeignKey("cases.id", ondelete="CASCADE"), nullable=False),
        sa.Column("uploaded_by_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("original_name", sa.String(length=255), nullable=False),
        sa.Column("file_path", sa.String(length=500), nullable=False),
        sa.Column("file_key", sa.String(length=255), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("mime_type", sa.String(length=100), nullable=False),
        sa.Column("document_type", document_type, nullable=False),
        sa.Column("status", document_status, nullable=False),
        sa.Column("upload_date", sa.DateTime(), nullable=True),
        sa.Column("verified_by", sa.String(length=36), nullable=True),
        sa.Column("verified_at", sa.DateTime(), nullable=True),
        sa.Column("rejected_by", sa.String(length=36), nullable=True),
        sa.Column("rejected_at", sa.DateTime(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
    )
    op.create_index("ix_documents_case_id", "documents", ["case_id"])
    op.create_index("ix_documents_uploaded_by_id", "documents", ["uploaded_by_id"])

    op.create_table(
        "document_templates",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("service_type", service_type, nullable=True),
        sa.Column("file_url", sa.String(length=500), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("mime_type", sa.String(length=100), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("is_required", sa.Boolean(), nullable=True),
        sa.Column("download_count", sa.Integer(), nullable=True),
        sa.Column("version", sa.String(length=20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_by_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("sender_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("recipient_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("case_id", sa.String(length=36), sa.ForeignKey("cases.id", ondelete="SET NULL"), nullable=True),
        sa.Column("subject", sa.String(length=255), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("message_type", message_type, nullable=False),
        sa.Column("email_thread_id", sa.String(length=100), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=True),
        sa.Column("read_at", sa.DateTime(), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("attachments", sa.JSON(), nullable=True),
    )
    op.create_index("ix_messages_sender_id", "messages", ["sender_id"])
    op.create_index("ix_messages_recipient_id", "messages", ["recipient_id"])
    op.create_index("ix_messages_case_id", "messages", ["case_id"])
    op.create_index("ix_messages_email_thread_id", "messages", ["email_thread_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("case_id", sa.String(length=36), sa.ForeignKey("cases.id", ondelete="SET NULL"), nullable=True),
        sa.Column("type", notification_type, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=True),
        sa.Column("read_at", sa.DateTime(), nullable=True),
        sa.Column("action_url", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("ip_address", sa.String(length=100), nullable=True),
        sa.Column("user_agent", sa.String(length=500), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_activity_logs_user_id", "activity_logs", ["user_id"])
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])
    op.create_index("ix_activity_logs_timestamp", "activity_logs", ["timestamp"])

    op.create_table(
        "invite_codes",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("code", sa.String(length=100), nullable=False),
        sa.Column("role", user_role, nullable=False),
        sa.Column("created_by_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("last_used_by_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("max_uses", sa.Integer(), nullable=False),
        sa.Column("used_count", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("purpose", sa.String(length=100), nullable=True),
        sa.Column("last_used_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_invite_codes_code", "invite_codes", ["code"], unique=True)

    op.create_table(
        "invite_usages",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "invite_code_id", sa.String(length=36),
            sa.ForeignKey("invite_codes.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("used_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "faqs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("question", sa.String(length=500), nullable=False, unique=True),
        sa.Column("answer", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=True),
        sa.Column("language", sa.String(length=5), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "legal_documents",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("type", legal_document_type, nullable=False),
        sa.Column("language", sa.String(length=5), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        sa.Column("version", sa.String(length=20), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("published_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_legal_documents_type", "legal_documents", ["type"])

    op.create_table(
        "payments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("stripe_intent_id", sa.String(length=255), nullable=False, unique=True),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("status", payment_status, nullable=False),
        sa.Column("case_number", sa.String(length=50), nullable=True),
        sa.Column("client_secret", sa.String(length=255), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_payments_user_id", "payments", ["user_id"])

    op.create_table(
        "refunds",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("payment_id", sa.String(length=36), sa.ForeignKey("payments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("stripe_refund_id", sa.String(length=255), nullable=False, unique=True),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=100), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("created_by_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )


def downgrade():
    for table in (
        "refunds", "payments", "legal_documents", "faqs", "invite_usages", "invite_codes",
        "activity_logs", "notifications", "messages", "document_templates", "documents",
        "transfer_history", "status_history", "cases", "users",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in (
        legal_document_type, payment_status, message_type, transfer_reason, notification_type,
        document_status, document_type, priority, case_status, service_type, user_role,
    ):
        enum_type.drop(bind, checkfirst=True)
