"""create users, products and payments

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00

"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

payment_status = sa.Enum("PENDING", "COMPLETED", "FAILED", "REFUNDED", "CANCELLED", name="paymentstatus")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(100), nullable=False, unique=True),
        sa.Column("full_name", sa.String(100)),
        sa.Column("role", sa.String(20), nullable=False, server_default="USER"),
    )
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
    )
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("user_email", sa.String(100), nullable=False),
        sa.Column("user_name", sa.String(100)),
        sa.Column("items", sa.Text(), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("tax_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("shipping_cost", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_method", sa.String(50), nullable=False),
        sa.Column("card_last_four", sa.String(4)),
        sa.Column("card_type", sa.String(50)),
        sa.Column("transaction_id", sa.String(100), unique=True),
        sa.Column("payment_token", sa.String(1000), unique=True),
        sa.Column("status", payment_status, nullable=False),
        sa.Column("status_message", sa.String(500)),
        sa.Column("shipping_address", sa.String(200)),
        sa.Column("shipping_city", sa.String(100)),
        sa.Column("shipping_country", sa.String(100)),
        sa.Column("shipping_postal_code", sa.String(20)),
        sa.Column("shipping_phone", sa.String(20)),
        sa.Column("notes", sa.String(1000)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime()),
        sa.Column("refunded_at", sa.DateTime()),
    )
    op.create_index("ix_payments_user_id", "payments", ["user_id"])
    op.create_index("ix_payments_status", "payments", ["status"])


def downgrade() -> None:
    op.drop_index("ix_payments_status", table_name="payments")
    op.drop_index("ix_payments_user_id", table_name="payments")
    op.drop_table("payments")
    op.drop_table("products")
    op.drop_table("users")
    payment_status.drop(op.get_bind(), checkfirst=True)
