"""expenses and categories

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 10:00:00

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


expense_type_enum = postgresql.ENUM(
    "EXPENSE",
    "INCOME",
    name="expense_type",
    create_type=False,
)


def upgrade() -> None:
    op.execute(
        """
        DO $$
        BEGIN
            IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'expense_type') THEN
                CREATE TYPE expense_type AS ENUM ('EXPENSE', 'INCOME');
            END IF;
        END$$;
        """
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("icon", sa.String(length=64), nullable=True),
        sa.Column("color", sa.String(length=7), nullable=True),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.UniqueConstraint("user_id", "name", name="uq_categories_user_name"),
    )
    op.create_index("ix_categories_user_id", "categories", ["user_id"])

    op.create_table(
        "expenses",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("category_id", sa.String(length=36), nullable=False),
        sa.Column("category_name", sa.String(length=50), nullable=False),
        sa.Column("type", expense_type_enum, nullable=False, server_default="EXPENSE"),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("budget_start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("budget_end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("budget_month_key", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column("payment_method", sa.String(length=64), nullable=True),
        sa.Column("receipt_url", sa.String(length=512), nullable=True),
        sa.Column("tags", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="RESTRICT"),
    )
    op.create_index("ix_expenses_user_created", "expenses", ["user_id", "created_at", "id"])
    op.create_index("ix_expenses_user_month", "expenses", ["user_id", "budget_month_key"])


def downgrade() -> None:
    op.drop_index("ix_expenses_user_month", table_name="expenses")
    op.drop_index("ix_expenses_user_created", table_name="expenses")
    op.drop_table("expenses")
    op.drop_index("ix_categories_user_id", table_name="categories")
    op.drop_table("categories")
    op.execute("DROP TYPE IF EXISTS expense_type;")
