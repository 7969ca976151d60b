"""initial schema

Revision ID: 202501100900
Revises:
Create Date: 2025-01-10 09:00:00.000000

"""

import uuid
from datetime import datetime

from alembic import op
import sqlalchemy as sa


revision = "202501100900"
down_revision = None
branch_labels = None
depends_on = None


DEFAULT_CATEGORIES = [
    ("Food & Groceries", "#FF6B6B", "shopping-cart"),
    ("Rent/Mortgage", "#4ECDC4", "home"),
    ("Utilities", "#45B7D1", "zap"),
    ("Transport", "#96CEB4", "car"),
    ("Health/Medical", "#FFEAA7", "heart"),
    ("Entertainment", "#DDA0DD", "music"),
    ("Miscellaneous", "#98D8C8", "more-horizontal"),
]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_users_active", "users", ["is_active"])

    categories = op.create_table(
        "categories",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("color", sa.String(length=7), nullable=False),
        sa.Column("icon", sa.String(length=50), nullable=False),
        sa.Column(
            "is_default", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("name", "user_id", name="uq_category_name_user"),
    )
    op.create_index("ix_categories_user", "categories", ["user_id"])
    op.create_index("ix_categories_default", "categories", ["is_default"])

    op.create_table(
        "monthly_goals",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("month", sa.String(length=7), nullable=False),
        sa.Column("income", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "month", name="uq_goal_user_month"),
    )

    op.create_table(
        "monthly_goal_expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "goal_id",
            sa.String(length=36),
            sa.ForeignKey("monthly_goals.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("category_id", sa.String(length=100), nullable=False),
        sa.Column("category_name", sa.String(length=100), nullable=False),
        sa.Column("expected_amount", sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint(
            "expected_amount >= 0", name="ck_goal_expense_non_negative"
        ),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "category_id",
            sa.String(length=36),
            sa.ForeignKey("categories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("category_name", sa.String(length=100), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("month", sa.String(length=7), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )
    op.create_index(
        "ix_transactions_user_month", "transactions", ["user_id", "month"]
    )
    op.create_index("ix_transactions_category", "transactions", ["category_id"])

    op.create_table(
        "monthly_history",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("month", sa.String(length=7), nullable=False),
        sa.Column("goal", sa.JSON(), nullable=False),
        sa.Column("transactions", sa.JSON(), nullable=False),
        sa.Column("total_income", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_expenses", sa.Numeric(12, 2), nullable=False),
        sa.Column("actual_savings", sa.Numeric(12, 2), nullable=False),
        sa.Column("finalized_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "month", name="uq_history_user_month"),
    )

    now = datetime.utcnow()
    op.bulk_insert(
        categories,
        [
            {
                "id": str(uuid.uuid4()),
                "name": name,
                "color": color,
                "icon": icon,
                "is_default": True,
                "user_id": None,
                "created_at": now,
                "updated_at": now,
            }
            for name, color, icon in DEFAULT_CATEGORIES
        ],
    )


def downgrade():
    op.drop_table("monthly_history")
    op.drop_index("ix_transactions_category", table_name="transactions")
    op.drop_index("ix_transactions_user_month", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("monthly_goal_expenses")
    op.drop_table("monthly_goals")
    op.drop_index("ix_categories_default", table_name="categories")
    op.drop_index("ix_categories_user", table_name="categories")
    op.drop_table("categories")
    op.drop_index("ix_users_active", table_name="users")
    op.drop_table("users")
