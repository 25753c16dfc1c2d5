"""ledger core

Revision ID: 0001_ledger_core
Revises: 
Create Date: 2026-10-18 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_ledger_core"
down_revision = None
branch_labels = None
depends_on = None


def _money(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Numeric(14, 2), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=50), nullable=False, unique=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("subtype", sa.String(length=50)),
        sa.Column("normal_balance", sa.String(length=10), nullable=False),
        sa.Column("parent_id", sa.Integer(), sa.ForeignKey("accounts.id")),
        sa.Column("description", sa.Text()),
        sa.Column("is_system_account", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _money("balance"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_accounts_type", "accounts", ["type"], unique=False)
    op.create_index("ix_accounts_is_active", "accounts", ["is_active"], unique=False)

    for table in ("cost_centers", "projects"):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("code", sa.String(length=50), nullable=False, unique=True),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text()),
            sa.Column("is_active", sa.Boolean(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )

    op.create_table(
        "tax_codes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=30), nullable=False, unique=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("rate", sa.Numeric(9, 4), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("is_inclusive", sa.Boolean(), nullable=False),
        sa.Column("sales_account_id", sa.Integer(), sa.ForeignKey("accounts.id")),
        sa.Column("purchase_account_id", sa.Integer(), sa.ForeignKey("accounts.id")),
        sa.Column("description", sa.Text()),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "tax_groups",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sa.Column("description", sa.Text()),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "tax_group_taxes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tax_group_id", sa.Integer(), sa.ForeignKey("tax_groups.id"), nullable=False),
        sa.Column("tax_code_id", sa.Integer(), sa.ForeignKey("tax_codes.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.UniqueConstraint("tax_group_id", "tax_code_id", name="uq_tax_group_tax_code"),
    )
    op.create_table(
        "sequence_counters",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("prefix", sa.String(length=20), nullable=False, unique=True),
        sa.Column("current_value", sa.Integer(), nullable=False),
        sa.Column("padding", sa.Integer(), nullable=False),
    )
    op.create_table(
        "fiscal_years",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=50), nullable=False, unique=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "accounting_periods",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("fiscal_year_id", sa.Integer(), sa.ForeignKey("fiscal_years.id"), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("period_number", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("closed_by", sa.String(length=100)),
        sa.Column("closed_at", sa.DateTime()),
    )
    op.create_index("ix_accounting_periods_start_date", "accounting_periods", ["start_date"], unique=False)
    op.create_index("ix_accounting_periods_end_date", "accounting_periods", ["end_date"], unique=False)

    op.create_table(
        "parties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255)),
        sa.Column("phone", sa.String(length=50)),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "journal_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("number", sa.String(length=30), nullable=False, unique=True),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("description", sa.String(length=255)),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("source_type", sa.String(length=30), nullable=False),
        sa.Column("source_id", sa.Integer()),
        sa.Column("idempotency_key", sa.String(length=100), unique=True),
        sa.Column("period_id", sa.Integer(), sa.ForeignKey("accounting_periods.id")),
        _money("total_debit"),
        _money("total_credit"),
        sa.Column("reversal_of_id", sa.Integer(), sa.ForeignKey("journal_entries.id")),
        sa.Column("reversed_by_id", sa.Integer(), sa.ForeignKey("journal_entries.id")),
        sa.Column("reversal_reason", sa.Text()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.String(length=100)),
        sa.Column("approved_by", sa.String(length=100)),
        sa.Column("approved_at", sa.DateTime()),
        sa.Column("posted_by", sa.String(length=100)),
        sa.Column("posted_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_journal_entries_entry_date", "journal_entries", ["entry_date"], unique=False)
    op.create_index("ix_journal_entries_status", "journal_entries", ["status"], unique=False)

    op.create_table(
        "journal_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("journal_entry_id", sa.Integer(), sa.ForeignKey("journal_entries.id"), nullable=False),
        sa.Column("line_number", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("description", sa.String(length=255)),
        _money("debit"),
        _money("credit"),
        sa.Column("cost_center_id", sa.Integer(), sa.ForeignKey("cost_centers.id")),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id")),
        sa.Column("party_id", sa.Integer(), sa.ForeignKey("parties.id")),
        sa.Column("tax_code_id", sa.Integer(), sa.ForeignKey("tax_codes.id")),
    )
    op.create_index("ix_journal_lines_account_id", "journal_lines", ["account_id"], unique=False)

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor", sa.String(length=100)),
        sa.Column("entity_type", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("before_hash", sa.String(length=64)),
        sa.Column("after_hash", sa.String(length=64)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("event_metadata", sa.Text()),
    )

    op.create_table(
        "documents",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("family", sa.String(length=20), nullable=False),
        sa.Column("number", sa.String(length=30), nullable=False),
        sa.Column("party_id", sa.Integer(), sa.ForeignKey("parties.id"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date()),
        _money("sub_total"),
        _money("tax_total"),
        _money("total"),
        _money("amount_paid"),
        _money("balance_due"),
        sa.Column("journal_entry_id", sa.Integer(), sa.ForeignKey("journal_entries.id")),
        sa.Column("original_document_id", sa.Integer(), sa.ForeignKey("documents.id")),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.String(length=100)),
        sa.Column("approved_by", sa.String(length=100)),
        sa.Column("approved_at", sa.DateTime()),
        sa.Column("sent_at", sa.DateTime()),
        sa.Column("voided_by", sa.String(length=100)),
        sa.Column("voided_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("family", "number", name="uq_document_family_number"),
    )
    op.create_index("ix_documents_status", "documents", ["status"], unique=False)

    op.create_table(
        "document_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("document_id", sa.Integer(), sa.ForeignKey("documents.id"), nullable=False),
        sa.Column("line_number", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("accounts.id")),
        sa.Column("quantity", sa.Numeric(14, 4), nullable=False),
        sa.Column("rate", sa.Numeric(14, 4), nullable=False),
        sa.Column("tax_code_id", sa.Integer(), sa.ForeignKey("tax_codes.id")),
        sa.Column("tax_group_id", sa.Integer(), sa.ForeignKey("tax_groups.id")),
        sa.Column("tax_rate", sa.Numeric(9, 4)),
        _money("taxable_amount"),
        _money("tax_amount"),
        _money("amount"),
        sa.Column("cost_center_id", sa.Integer(), sa.ForeignKey("cost_centers.id")),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id")),
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("number", sa.String(length=30), nullable=False, unique=True),
        sa.Column("type", sa.String(length=30), nullable=False),
        sa.Column("party_id", sa.Integer(), sa.ForeignKey("parties.id"), nullable=False),
        sa.Column("payment_date", sa.Date(), nullable=False),
        _money("amount"),
        sa.Column("method", sa.String(length=50)),
        sa.Column("reference", sa.String(length=100)),
        sa.Column("deposit_account_id", sa.Integer(), sa.ForeignKey("accounts.id")),
        sa.Column("status", sa.String(length=20), nullable=False),
        _money("amount_allocated"),
        _money("amount_unallocated"),
        sa.Column("journal_entry_id", sa.Integer(), sa.ForeignKey("journal_entries.id")),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.String(length=100)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "payment_allocations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("payment_id", sa.Integer(), sa.ForeignKey("payments.id"), nullable=False),
        sa.Column("document_id", sa.Integer(), sa.ForeignKey("documents.id"), nullable=False),
        _money("amount"),
    )
    op.create_table(
        "credit_applications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("credit_id", sa.Integer(), sa.ForeignKey("documents.id"), nullable=False),
        sa.Column("document_id", sa.Integer(), sa.ForeignKey("documents.id"), nullable=False),
        _money("amount"),
        sa.Column("applied_by", sa.String(length=100)),
        sa.Column("applied_at", sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("credit_applications")
    op.drop_table("payment_allocations")
    op.drop_table("payments")
    op.drop_table("document_lines")
    op.drop_index("ix_documents_status", table_name="documents")
    op.drop_table("documents")
    op.drop_table("audit_events")
    op.drop_index("ix_journal_lines_account_id", table_name="journal_lines")
    op.drop_table("journal_lines")
    op.drop_index("ix_journal_entries_status", table_name="journal_entries")
    op.drop_index("ix_journal_entries_entry_date", table_name="journal_entries")
    op.drop_table("journal_entries")
    op.drop_table("parties")
    op.drop_index("ix_accounting_periods_end_date", table_name="accounting_periods")
    op.drop_index("ix_accounting_periods_start_date", table_name="accounting_periods")
    op.drop_table("accounting_periods")
    op.drop_table("fiscal_years")
    op.drop_table("sequence_counters")
    op.drop_table("tax_group_taxes")
    op.drop_table("tax_groups")
    op.drop_table("tax_codes")
    op.drop_table("projects")
    op.drop_table("cost_centers")
    op.drop_index("ix_accounts_is_active", table_name="accounts")
    op.drop_index("ix_accounts_type", table_name="accounts")
    op.drop_table("accounts")
