"""001 - Bills and payment ledger

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

AMOUNT_COLUMNS = [
    "amount_paid",
    "primary_1st_term",
    "primary_2nd_term",
    "primary_3rd_term",
    "secondary_1st_term",
    "secondary_2nd_term",
    "secondary_3rd_term",
    "university_1st_semester",
    "university_2nd_semester",
    "assist_primary_1st_term",
    "assist_primary_2nd_term",
    "assist_primary_3rd_term",
    "assist_secondary_1st_term",
    "assist_secondary_2nd_term",
    "assist_secondary_3rd_term",
    "assist_university_1st_semester",
    "assist_university_2nd_semester",
]


def upgrade() -> None:
    op.create_table(
        "bills",
        sa.Column("id", sa.String(24), nullable=False),
        sa.Column("serial", sa.String(20), nullable=False),
        sa.Column("student_name", sa.String(200), nullable=False),
        sa.Column("school_name", sa.String(200), nullable=False, server_default=""),
        sa.Column("academic_year", sa.String(20), nullable=False, server_default=""),
        sa.Column("school_type", sa.String(20), nullable=False),
        *[
            sa.Column(name, sa.String(50), nullable=False, server_default="0")
            for name in AMOUNT_COLUMNS
        ],
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_bills"),
    )
    op.create_index("ix_bills_serial", "bills", ["serial"])
    op.create_index("ix_bills_academic_year", "bills", ["academic_year"])
    op.create_index(
        "ix_bills_natural_key", "bills", ["student_name", "school_name", "academic_year"]
    )

    op.create_table(
        "bill_payments",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("bill_id", sa.String(24), nullable=False),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period", sa.String(50), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_bill_payments"),
        sa.ForeignKeyConstraint(
            ["bill_id"],
            ["bills.id"],
            name="fk_bill_payments_bill_id_bills",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_bill_payments_bill_id", "bill_payments", ["bill_id"])


def downgrade() -> None:
    op.drop_index("ix_bill_payments_bill_id", table_name="bill_payments")
    op.drop_table("bill_payments")
    op.drop_index("ix_bills_natural_key", table_name="bills")
    op.drop_index("ix_bills_academic_year", table_name="bills")
    op.drop_index("ix_bills_serial", table_name="bills")
    op.drop_table("bills")
