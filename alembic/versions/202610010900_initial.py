"""initial tenant-scoped schema

Revision ID: 202610010900
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610010900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "tenant_config",
        sa.Column("tenant_id", sa.String(length=36), primary_key=True),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("start_day", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "start_day >= 1 AND start_day <= 31", name="ck_tenant_config_start_day"
        ),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("tenant_id", "name", name="uq_category_tenant_name"),
        sa.CheckConstraint("position > 0", name="ck_category_position_positive"),
    )
    op.create_index(
        "ix_categories_tenant_position", "categories", ["tenant_id", "position"]
    )

    op.create_table(
        "recurring_rules",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("category", sa.String(length=255), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column(
            "interval",
            sa.Enum("daily", "weekly", "monthly", "yearly", name="intervalunit"),
            nullable=False,
        ),
        sa.Column("occurrences", sa.Integer(), nullable=False),
        sa.Column("tags_json", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("occurrences >= 2", name="ck_rule_occurrences_min"),
    )
    op.create_index("ix_recurring_rules_tenant", "recurring_rules", ["tenant_id"])

    op.create_table(
        "expenses",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("recurring_id", sa.String(length=36)),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=255), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("tags_json", sa.Text()),
        sa.Column("source", sa.String(length=50)),
        sa.Column("card", sa.String(length=100)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_expenses_tenant_date", "expenses", ["tenant_id", "date"])
    op.create_index(
        "ix_expenses_tenant_recurring", "expenses", ["tenant_id", "recurring_id"]
    )


def downgrade():
    op.drop_index("ix_expenses_tenant_recurring", table_name="expenses")
    op.drop_index("ix_expenses_tenant_date", table_name="expenses")
    op.drop_table("expenses")
    op.drop_index("ix_recurring_rules_tenant", table_name="recurring_rules")
    op.drop_table("recurring_rules")
    op.drop_index("ix_categories_tenant_position", table_name="categories")
    op.drop_table("categories")
    op.drop_table("tenant_config")
    sa.Enum(name="intervalunit").drop(op.get_bind(), checkfirst=True)
