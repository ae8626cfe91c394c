"""create pl_reports

Revision ID: 202510010900
Revises:
Create Date: 2025-10-01 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202510010900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "pl_reports",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("date", sa.String(length=7), nullable=False),
        sa.Column("revenue_items", sa.JSON(), nullable=False),
        sa.Column("cost_of_goods_items", sa.JSON(), nullable=False),
        sa.Column("salary_expenses", sa.JSON(), nullable=False),
        sa.Column("distributor_expenses", sa.JSON(), nullable=False),
        sa.Column("utilities_expenses", sa.JSON(), nullable=False),
        sa.Column("operational_expenses", sa.JSON(), nullable=False),
        sa.Column("other_expenses", sa.JSON(), nullable=False),
        sa.Column("subcategories", sa.JSON()),
        sa.Column("budget", sa.JSON()),
        sa.Column(
            "template_version", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "date", name="uq_pl_report_user_date"),
    )
    op.create_index("ix_pl_reports_user", "pl_reports", ["user_id"])


def downgrade():
    op.drop_index("ix_pl_reports_user", table_name="pl_reports")
    op.drop_table("pl_reports")
