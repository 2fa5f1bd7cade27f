"""create categories, transactions, expense plans and suggestions

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

FREQUENCY_TYPES = ("weekly", "biweekly", "monthly", "quarterly", "semiannual", "annual")
EXPENSE_TYPES = (
    "subscription", "utility", "insurance", "mortgage", "rent", "loan",
    "tax", "salary", "investment", "other_fixed", "variable",
)
PURPOSES = ("sinking_fund", "spending_budget")


def upgrade() -> None:
    op.create_table(
        "categories",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("parent_id", sa.String(36), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("exclude_from_expense_analytics", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("exclude_from_pattern_detection", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_categories_user_id", "categories", ["user_id"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("execution_date", sa.Date(), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("merchant_name", sa.String(255), nullable=True),
        sa.Column("category_id", sa.String(36), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_transactions_user_id", "transactions", ["user_id"])
    op.create_index("ix_transactions_execution_date", "transactions", ["execution_date"])
    op.create_index("idx_transaction_user_date", "transactions", ["user_id", "execution_date"])
    op.create_index("idx_transaction_category", "transactions", ["category_id"])

    op.create_table(
        "expense_plans",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "plan_type",
            sa.Enum("fixed_monthly", "yearly_fixed", "yearly_variable", name="plantype"),
            nullable=False,
        ),
        sa.Column("purpose", sa.Enum(*PURPOSES, name="suggestedpurpose"), nullable=False),
        sa.Column("is_essential", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "category_id", sa.String(36),
            sa.ForeignKey("categories.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("target_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("monthly_contribution", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "frequency",
            sa.Enum("monthly", "quarterly", "yearly", name="planfrequency"),
            nullable=False,
        ),
        sa.Column("next_due_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_expense_plans_user_id", "expense_plans", ["user_id"])

    op.create_table(
        "expense_plan_suggestions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("suggested_name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("merchant_name", sa.String(255), nullable=True),
        sa.Column("representative_description", sa.Text(), nullable=False),
        sa.Column(
            "category_id", sa.String(36),
            sa.ForeignKey("categories.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("category_name", sa.String(100), nullable=True),
        sa.Column("average_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("monthly_contribution", sa.Numeric(12, 2), nullable=False),
        sa.Column("yearly_total", sa.Numeric(12, 2), nullable=False),
        sa.Column("expense_type", sa.Enum(*EXPENSE_TYPES, name="expensetype"), nullable=False),
        sa.Column("is_essential", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("frequency_type", sa.Enum(*FREQUENCY_TYPES, name="frequencytype"), nullable=False),
        sa.Column("interval_days", sa.Integer(), nullable=False),
        sa.Column(
            "suggested_purpose",
            sa.Enum(*PURPOSES, name="suggestedpurpose", create_type=False),
            nullable=True,
        ),
        sa.Column(
            "suggestion_source",
            sa.Enum("pattern", "category_average", name="suggestionsource"),
            nullable=False,
        ),
        sa.Column("category_monthly_average", sa.Numeric(12, 2), nullable=True),
        sa.Column("discrepancy_percentage", sa.Numeric(5, 2), nullable=True),
        sa.Column("has_discrepancy_warning", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("discrepancy_message", sa.Text(), nullable=True),
        sa.Column("pattern_confidence", sa.Integer(), nullable=False),
        sa.Column("classification_confidence", sa.Integer(), nullable=False),
        sa.Column("overall_confidence", sa.Integer(), nullable=False),
        sa.Column("classification_reasoning", sa.Text(), nullable=True),
        sa.Column("occurrence_count", sa.Integer(), nullable=False),
        sa.Column("first_occurrence", sa.Date(), nullable=False),
        sa.Column("last_occurrence", sa.Date(), nullable=False),
        sa.Column("next_expected_date", sa.Date(), nullable=False),
        sa.Column("suggested_template", sa.String(50), nullable=True),
        sa.Column("template_confidence", sa.Integer(), nullable=True),
        sa.Column("template_reasons", sa.JSON(), nullable=True),
        sa.Column("template_config", sa.JSON(), nullable=True),
        sa.Column("suggestion_metadata", sa.JSON(), nullable=True),
        sa.Column(
            "status",
            sa.Enum("pending", "approved", "rejected", "expired", name="suggestionstatus"),
            nullable=False,
        ),
        sa.Column(
            "approved_expense_plan_id", sa.String(36),
            sa.ForeignKey("expense_plans.id"), nullable=True,
        ),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("idx_suggestion_user_status", "expense_plan_suggestions", ["user_id", "status"])
    op.create_index("idx_suggestion_user_created", "expense_plan_suggestions", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_suggestion_user_created", table_name="expense_plan_suggestions")
    op.drop_index("idx_suggestion_user_status", table_name="expense_plan_suggestions")
    op.drop_table("expense_plan_suggestions")
    op.drop_index("ix_expense_plans_user_id", table_name="expense_plans")
    op.drop_table("expense_plans")
    op.drop_index("idx_transaction_category", table_name="transactions")
    op.drop_index("idx_transaction_user_date", table_name="transactions")
    op.drop_index("ix_transactions_execution_date", table_name="transactions")
    op.drop_index("ix_transactions_user_id", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_categories_user_id", table_name="categories")
    op.drop_table("categories")
