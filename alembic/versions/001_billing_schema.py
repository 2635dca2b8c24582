"""Billing schema: tenants, academics, fees, invoices, payments, receipts, results, events

Revision ID: 001_billing_schema
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_billing_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False)


def _school_id(nullable: bool = False) -> sa.Column:
    return sa.Column("school_id", sa.BigInteger(), sa.ForeignKey("schools.id"), nullable=nullable)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _money(name: str, nullable: bool = False, default: str | None = "0.00") -> sa.Column:
    return sa.Column(
        name,
        sa.Numeric(15, 2),
        nullable=nullable,
        server_default=default if not nullable else None,
    )


def _json(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, postgresql.JSONB(astext_type=sa.Text()), nullable=nullable)


def _school_index(table: str) -> None:
    op.create_index(f"ix_{table}_school_id", table, ["school_id"], unique=False)


def upgrade() -> None:
    # Tenants
    op.create_table(
        "schools",
        _id(),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="NGN"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_schools_code", "schools", ["code"], unique=True)

    # Academic reference data
    op.create_table(
        "academic_sessions",
        _id(),
        _school_id(),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("starts_on", sa.Date(), nullable=True),
        sa.Column("ends_on", sa.Date(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("school_id", "name", name="uq_session_school_name"),
    )
    _school_index("academic_sessions")

    op.create_table(
        "terms",
        _id(),
        _school_id(),
        sa.Column("session_id", sa.BigInteger(), sa.ForeignKey("academic_sessions.id"), nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("starts_on", sa.Date(), nullable=True),
        sa.Column("ends_on", sa.Date(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _school_index("terms")
    op.create_index("ix_terms_session_id", "terms", ["session_id"])

    op.create_table(
        "class_groups",
        _id(),
        _school_id(),
        sa.Column("class_year", sa.String(50), nullable=False),
        sa.Column("arm", sa.String(20), nullable=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("school_id", "display_name", name="uq_class_group_school_name"),
    )
    _school_index("class_groups")

    op.create_table(
        "students",
        _id(),
        _school_id(),
        sa.Column("admission_no", sa.String(50), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("current_class_group_id", sa.BigInteger(), sa.ForeignKey("class_groups.id"), nullable=True),
        sa.Column("guardian_user_id", sa.String(64), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("school_id", "admission_no", name="uq_student_school_admission"),
    )
    _school_index("students")
    op.create_index("ix_students_current_class_group_id", "students", ["current_class_group_id"])
    op.create_index("ix_students_guardian_user_id", "students", ["guardian_user_id"])

    op.create_table(
        "enrollments",
        _id(),
        _school_id(),
        sa.Column("student_id", sa.BigInteger(), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("term_id", sa.BigInteger(), sa.ForeignKey("terms.id"), nullable=False),
        sa.Column("class_group_id", sa.BigInteger(), sa.ForeignKey("class_groups.id"), nullable=False),
        sa.Column("session_id", sa.BigInteger(), sa.ForeignKey("academic_sessions.id"), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("school_id", "student_id", "term_id", name="uq_enrollment_student_term"),
    )
    _school_index("enrollments")
    op.create_index("ix_enrollments_student_id", "enrollments", ["student_id"])
    op.create_index(
        "ix_enrollments_term_class_group", "enrollments", ["school_id", "term_id", "class_group_id", "id"]
    )

    # Fee schedule store
    op.create_table(
        "fee_items",
        _id(),
        _school_id(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("category", sa.String(100), nullable=False, server_default="general"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_optional", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _school_index("fee_items")

    op.create_table(
        "fee_schedules",
        _id(),
        _school_id(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("session_id", sa.BigInteger(), sa.ForeignKey("academic_sessions.id"), nullable=True),
        sa.Column("term_id", sa.BigInteger(), sa.ForeignKey("terms.id"), nullable=False),
        sa.Column("class_year", sa.String(50), nullable=True),
        sa.Column("class_group_id", sa.BigInteger(), sa.ForeignKey("class_groups.id"), nullable=True),
        sa.Column("currency", sa.String(3), nullable=False, server_default="NGN"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _school_index("fee_schedules")
    op.create_index("ix_fee_schedules_term", "fee_schedules", ["school_id", "term_id"])

    op.create_table(
        "fee_schedule_lines",
        _id(),
        _school_id(),
        sa.Column(
            "fee_schedule_id",
            sa.BigInteger(),
            sa.ForeignKey("fee_schedules.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("fee_item_id", sa.BigInteger(), sa.ForeignKey("fee_items.id"), nullable=False),
        _money("amount", default=None),
        sa.Column("is_optional_override", sa.Boolean(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("label", sa.String(200), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _school_index("fee_schedule_lines")
    op.create_index("ix_fee_schedule_lines_fee_schedule_id", "fee_schedule_lines", ["fee_schedule_id"])
    op.create_index("ix_fee_schedule_lines_fee_item_id", "fee_schedule_lines", ["fee_item_id"])

    # Invoices
    op.create_table(
        "invoices",
        _id(),
        _school_id(),
        sa.Column("invoice_no", sa.String(50), nullable=False),
        sa.Column("student_id", sa.BigInteger(), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("term_id", sa.BigInteger(), sa.ForeignKey("terms.id"), nullable=False),
        sa.Column("session_id", sa.BigInteger(), sa.ForeignKey("academic_sessions.id"), nullable=True),
        sa.Column("class_group_id", sa.BigInteger(), sa.ForeignKey("class_groups.id"), nullable=False),
        sa.Column("fee_schedule_id", sa.BigInteger(), sa.ForeignKey("fee_schedules.id"), nullable=False),
        sa.Column("enrollment_id", sa.BigInteger(), sa.ForeignKey("enrollments.id"), nullable=True),
        sa.Column("generation_key", sa.String(120), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="issued"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="NGN"),
        _money("required_subtotal"),
        _money("optional_subtotal"),
        _money("discount_total"),
        _money("penalty_total"),
        _money("amount_paid"),
        _money("amount_due"),
        _money("min_first_amount_override", nullable=True),
        sa.Column("min_first_percent", sa.Integer(), nullable=True),
        _money("min_first_amount"),
        sa.Column("below_min_first", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by_user_id", sa.String(64), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("school_id", "invoice_no", name="uq_invoices_school_invoice_no"),
        sa.UniqueConstraint("school_id", "generation_key", name="uq_invoices_school_generation_key"),
    )
    _school_index("invoices")
    op.create_index("ix_invoices_status", "invoices", ["status"])
    op.create_index("ix_invoices_student_term", "invoices", ["school_id", "student_id", "term_id"])
    op.create_index("ix_invoices_term_class_group", "invoices", ["school_id", "term_id", "class_group_id"])

    op.create_table(
        "invoice_lines",
        _id(),
        _school_id(),
        sa.Column(
            "invoice_id", sa.BigInteger(), sa.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "fee_schedule_line_id", sa.BigInteger(), sa.ForeignKey("fee_schedule_lines.id"), nullable=True
        ),
        sa.Column("fee_item_id", sa.BigInteger(), sa.ForeignKey("fee_items.id"), nullable=False),
        sa.Column("label", sa.String(200), nullable=False),
        _money("amount", default=None),
        sa.Column("is_optional", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_selected", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_id", "fee_schedule_line_id", name="uq_invoice_lines_schedule_line"),
    )
    _school_index("invoice_lines")
    op.create_index("ix_invoice_lines_invoice_id", "invoice_lines", ["invoice_id"])

    op.create_table(
        "fee_adjustments",
        _id(),
        _school_id(),
        sa.Column("invoice_id", sa.BigInteger(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("adjustment_type", sa.String(20), nullable=False),
        _money("amount", default=None),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("created_by_user_id", sa.String(64), nullable=True),
        sa.Column("approved_by_user_id", sa.String(64), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _school_index("fee_adjustments")
    op.create_index("ix_fee_adjustments_invoice_id", "fee_adjustments", ["invoice_id"])

    op.create_table(
        "installment_plans",
        _id(),
        _school_id(),
        sa.Column("invoice_id", sa.BigInteger(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("template", sa.String(50), nullable=False),
        _money("total_amount", default=None),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_id"),
    )
    _school_index("installment_plans")

    op.create_table(
        "installments",
        _id(),
        _school_id(),
        sa.Column(
            "plan_id",
            sa.BigInteger(),
            sa.ForeignKey("installment_plans.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("invoice_id", sa.BigInteger(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("percent", sa.Integer(), nullable=False),
        _money("amount", default=None),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="due"),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("plan_id", "sequence", name="uq_installments_plan_sequence"),
    )
    _school_index("installments")
    op.create_index("ix_installments_invoice_id", "installments", ["invoice_id"])

    # Payments
    op.create_table(
        "payment_intents",
        _id(),
        _school_id(),
        sa.Column("invoice_id", sa.BigInteger(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("payer_parent_id", sa.String(64), nullable=True),
        sa.Column("provider", sa.String(30), nullable=False),
        _money("amount", default=None),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="initiated"),
        sa.Column("external_reference", sa.String(100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("school_id", "external_reference", name="uq_payment_intents_reference"),
    )
    _school_index("payment_intents")
    op.create_index("ix_payment_intents_invoice_id", "payment_intents", ["invoice_id"])

    op.create_table(
        "payment_transactions",
        _id(),
        _school_id(),
        sa.Column("invoice_id", sa.BigInteger(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("intent_id", sa.BigInteger(), sa.ForeignKey("payment_intents.id"), nullable=True),
        sa.Column("provider", sa.String(30), nullable=False),
        sa.Column("method", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("reference", sa.String(100), nullable=False),
        _money("amount", default=None),
        _money("gross_amount", nullable=True),
        _money("fee_amount", nullable=True),
        _money("net_amount", nullable=True),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("receipt_no", sa.String(50), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reversed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("school_id", "reference", name="uq_payment_transactions_reference"),
        sa.UniqueConstraint("school_id", "receipt_no", name="uq_payment_transactions_receipt_no"),
    )
    _school_index("payment_transactions")
    op.create_index("ix_payment_transactions_invoice_id", "payment_transactions", ["invoice_id"])
    op.create_index("ix_payment_transactions_status", "payment_transactions", ["status"])
    op.create_index(
        "ix_payment_transactions_invoice_status", "payment_transactions", ["invoice_id", "status"]
    )

    op.create_table(
        "manual_payment_proofs",
        _id(),
        _school_id(),
        sa.Column(
            "transaction_id", sa.BigInteger(), sa.ForeignKey("payment_transactions.id"), nullable=False
        ),
        sa.Column("invoice_id", sa.BigInteger(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("file_url", sa.String(1000), nullable=False),
        sa.Column("submitted_by_parent_id", sa.String(64), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="submitted"),
        sa.Column("reviewed_by_user_id", sa.String(64), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("transaction_id"),
    )
    _school_index("manual_payment_proofs")
    op.create_index("ix_manual_payment_proofs_invoice_id", "manual_payment_proofs", ["invoice_id"])

    op.create_table(
        "payment_webhook_events",
        _id(),
        _school_id(nullable=True),
        sa.Column("provider", sa.String(30), nullable=False),
        sa.Column("event_type", sa.String(100), nullable=True),
        sa.Column("reference", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("error_message", sa.String(500), nullable=True),
        sa.Column(
            "payment_txn_id",
            sa.BigInteger(),
            sa.ForeignKey("payment_transactions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _json("raw_payload"),
        sa.Column("received_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    _school_index("payment_webhook_events")
    op.create_index("ix_payment_webhook_events_status", "payment_webhook_events", ["status"])
    op.create_index(
        "ix_payment_webhook_events_reference", "payment_webhook_events", ["provider", "reference"]
    )

    # Receipts
    op.create_table(
        "receipts",
        _id(),
        _school_id(),
        sa.Column("receipt_no", sa.String(50), nullable=False),
        sa.Column("invoice_id", sa.BigInteger(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column(
            "payment_txn_id", sa.BigInteger(), sa.ForeignKey("payment_transactions.id"), nullable=True
        ),
        sa.Column("payment_reference", sa.String(100), nullable=True),
        _money("amount", default=None),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("receipt_url", sa.String(1000), nullable=True),
        sa.Column("receipt_bucket", sa.String(200), nullable=True),
        sa.Column("receipt_key", sa.String(500), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("school_id", "receipt_no", name="uq_receipts_school_receipt_no"),
    )
    _school_index("receipts")
    op.create_index("ix_receipts_invoice_id", "receipts", ["invoice_id"])

    # Results
    op.create_table(
        "result_release_policies",
        _id(),
        _school_id(),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("minimum_payment_percent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("message_to_parent", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("school_id", name="uq_result_release_policies_school"),
    )
    _school_index("result_release_policies")

    op.create_table(
        "report_cards",
        _id(),
        _school_id(),
        sa.Column("student_id", sa.BigInteger(), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("term_id", sa.BigInteger(), sa.ForeignKey("terms.id"), nullable=False),
        sa.Column("class_group_id", sa.BigInteger(), sa.ForeignKey("class_groups.id"), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        _json("summary"),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("school_id", "student_id", "term_id", name="uq_report_cards_student_term"),
    )
    _school_index("report_cards")

    # Messaging outbox
    op.create_table(
        "outbound_messages",
        _id(),
        _school_id(),
        sa.Column("template", sa.String(50), nullable=False),
        sa.Column("dedupe_key", sa.String(200), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="queued"),
        sa.Column("student_id", sa.BigInteger(), nullable=True),
        sa.Column("invoice_id", sa.BigInteger(), nullable=True),
        sa.Column("recipient_user_id", sa.String(64), nullable=True),
        sa.Column("source_event_id", sa.String(64), nullable=True),
        _json("payload", nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("school_id", "dedupe_key", name="uq_outbound_messages_dedupe"),
    )
    _school_index("outbound_messages")

    # Document sequences (receipt and invoice numbers)
    op.create_table(
        "document_sequences",
        _id(),
        _school_id(),
        sa.Column("name", sa.String(30), nullable=False),
        sa.Column("period", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_seq", sa.BigInteger(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("school_id", "name", "period", name="uq_document_sequence_scope"),
    )

    # Event log and queues
    op.create_table(
        "event_log",
        _id(),
        sa.Column("event_id", sa.String(36), nullable=False),
        sa.Column("school_id", sa.BigInteger(), nullable=True),
        sa.Column("source", sa.String(50), nullable=False),
        sa.Column("detail_type", sa.String(100), nullable=False),
        _json("detail", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("event_id"),
    )
    op.create_index("ix_event_log_school_id", "event_log", ["school_id"])
    op.create_index("ix_event_log_detail_type", "event_log", ["detail_type"])

    op.create_table(
        "queue_messages",
        _id(),
        sa.Column("queue_name", sa.String(50), nullable=False),
        sa.Column("source_queue", sa.String(50), nullable=True),
        sa.Column("event_id", sa.String(36), nullable=False),
        _json("body", nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("receive_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("visible_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_received_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dead_lettered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_queue_messages_event_id", "queue_messages", ["event_id"])
    op.create_index("ix_queue_messages_receive", "queue_messages", ["queue_name", "status", "visible_at"])

    # Audit trail
    op.create_table(
        "audit_logs",
        _id(),
        _school_id(),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", sa.BigInteger(), nullable=False),
        sa.Column("entity_identifier", sa.String(200), nullable=True),
        sa.Column("old_values", sa.JSON(), nullable=True),
        sa.Column("new_values", sa.JSON(), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _school_index("audit_logs")
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])
    op.create_index("ix_audit_logs_entity", "audit_logs", ["school_id", "entity_type", "entity_id"])


def downgrade() -> None:
    for table in (
        "audit_logs",
        "queue_messages",
        "event_log",
        "document_sequences",
        "outbound_messages",
        "report_cards",
        "result_release_policies",
        "receipts",
        "payment_webhook_events",
        "manual_payment_proofs",
        "payment_transactions",
        "payment_intents",
        "installments",
        "installment_plans",
        "fee_adjustments",
        "invoice_lines",
        "invoices",
        "fee_schedule_lines",
        "fee_schedules",
        "fee_items",
        "enrollments",
        "students",
        "class_groups",
        "terms",
        "academic_sessions",
        "schools",
    ):
        op.drop_table(table)
