"""initial ledger schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 09:00:00
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


ACCOUNT_TYPES = ("checking", "savings", "credit", "investment", "cash")
TRANSACTION_TYPES = ("expense", "income", "transfer")
IMPORT_STATUSES = ("pending", "processing", "completed", "cancelled", "failed")


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, index=True),
        sa.Column("account_type", sa.Enum(*ACCOUNT_TYPES, name="accounttype"), nullable=False),
        sa.Column("institution", sa.String(100), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("balance", sa.Numeric(18, 6), nullable=True),
        sa.Column("last_sync_date", sa.DateTime, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False),
        sa.Column("masked_account_number", sa.String(50), nullable=True),
        sa.Column("historical_balance", sa.Numeric(18, 6), nullable=True),
        sa.Column("historical_balance_date", sa.Date, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("signature", sa.String(64), nullable=False, index=True),
        sa.Column("date", sa.Date, nullable=False, index=True),
        sa.Column("amount", sa.Numeric(18, 6), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("subcategory", sa.String(100), nullable=True),
        sa.Column("account", sa.String(100), nullable=False),
        sa.Column("type", sa.Enum(*TRANSACTION_TYPES, name="transactiontype"), nullable=False),
        sa.Column("is_verified", sa.Boolean, nullable=False),
        sa.Column("confidence", sa.Float, nullable=True),
        sa.Column("reasoning", sa.Text, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("vendor", sa.String(255), nullable=True),
        sa.Column("tags", sa.JSON, nullable=True),
        sa.Column("is_recurring", sa.Boolean, nullable=False),
        sa.Column("original_text", sa.Text, nullable=True),
        sa.Column("reimbursed", sa.Boolean, nullable=False),
        sa.Column("reimbursement_id", sa.String(64), nullable=True),
        sa.Column("transfer_id", sa.String(64), nullable=True),
        sa.Column("original_currency", sa.String(3), nullable=True),
        sa.Column("exchange_rate", sa.Float, nullable=True),
        sa.Column("added_date", sa.DateTime, nullable=False),
        sa.Column("last_modified_date", sa.DateTime, nullable=False),
    )
    op.create_index("idx_transaction_date_account", "transactions", ["date", "account"])
    op.create_index("idx_transaction_category", "transactions", ["category"])

    op.create_table(
        "transaction_history",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("transaction_id", sa.String(64), nullable=False, index=True),
        sa.Column("timestamp", sa.DateTime, nullable=False),
        sa.Column("data", sa.JSON, nullable=False),
        sa.Column("note", sa.Text, nullable=True),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("type", sa.String(20), nullable=True),
        sa.Column("data", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )

    op.create_table(
        "budgets",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("data", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )

    op.create_table(
        "category_rules",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False),
        sa.Column("priority", sa.Integer, nullable=False),
        sa.Column("conditions", sa.JSON, nullable=False),
        sa.Column("action", sa.JSON, nullable=False),
        sa.Column("created_date", sa.DateTime, nullable=False),
        sa.Column("last_modified_date", sa.DateTime, nullable=False),
    )

    op.create_table(
        "user_preferences",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("data", sa.JSON, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "ledger_extras",
        sa.Column(
            "domain",
            sa.Enum("balance_history", "currency_rates", "transfer_matches", name="extradomain"),
            primary_key=True,
        ),
        sa.Column("payload", sa.JSON, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=False),
    )

    op.create_table(
        "backup_payloads",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("data", sa.Text, nullable=False),
    )

    op.create_table(
        "backup_metadata",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("timestamp", sa.DateTime, nullable=False, index=True),
        sa.Column("transaction_count", sa.Integer, nullable=False),
        sa.Column("account_count", sa.Integer, nullable=False),
        sa.Column("size", sa.Integer, nullable=False),
        sa.Column("version", sa.String(20), nullable=False),
        sa.Column("created_by", sa.Enum("manual", "auto", name="backupcreator"), nullable=False),
    )

    op.create_table(
        "import_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("account_id", sa.String(100), nullable=True),
        sa.Column("detected_format", sa.String(50), nullable=True),
        sa.Column("status", sa.Enum(*IMPORT_STATUSES, name="importstatus"), nullable=False),
        sa.Column("transactions_imported", sa.Integer, nullable=False),
        sa.Column("transactions_skipped", sa.Integer, nullable=False),
        sa.Column("duplicates_flagged", sa.Integer, nullable=False),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )


def downgrade() -> None:
    for table in (
        "import_logs",
        "backup_metadata",
        "backup_payloads",
        "ledger_extras",
        "user_preferences",
        "category_rules",
        "budgets",
        "categories",
        "transaction_history",
        "transactions",
        "accounts",
    ):
        op.drop_table(table)
