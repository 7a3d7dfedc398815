"""orders, payments, counters and menu tables

Revision ID: 0001_orders_core
Revises: None
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision: str = "0001_orders_core"
down_revision: str | None = None
branch_labels: tuple[str, ...] | None = None
depends_on: tuple[str, ...] | None = None

MONEY = sa.Numeric(12, 2)


def _order_fk() -> sa.Column:
    return sa.Column(
        "order_id", sa.String(36), sa.ForeignKey("orders.id"), nullable=False, index=True
    )


def upgrade() -> None:
    op.create_table(
        "orders",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("order_number", sa.String(16), nullable=False, unique=True),
        sa.Column("channel", sa.String(16), nullable=False),
        sa.Column("customer_ref", sa.String(64), nullable=True, index=True),
        sa.Column("table_ref", sa.String(64), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, index=True),
        sa.Column("is_complimentary", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("kot_printed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("number_degraded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("subtotal", MONEY, nullable=False),
        sa.Column("total_discount", MONEY, nullable=False),
        sa.Column("total_tax", MONEY, nullable=False),
        sa.Column("total", MONEY, nullable=False),
        sa.Column("round_off", MONEY, nullable=False),
        sa.Column("final_amount", MONEY, nullable=False),
        sa.Column("total_paid", MONEY, nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("cancel_reason", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("preparing_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ready_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("served_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("billed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("kot_printed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "order_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _order_fk(),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.String(64), nullable=False),
        sa.Column("name_snapshot", sa.String(), nullable=False),
        sa.Column("price_snapshot", MONEY, nullable=False),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("discount_kind", sa.String(16), nullable=True),
        sa.Column("discount_value", MONEY, nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
    )
    op.create_table(
        "order_discounts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _order_fk(),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("value", MONEY, nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("reason", sa.Text(), nullable=False, server_default=""),
        sa.Column("applied_by", sa.String(64), nullable=True),
    )
    op.create_table(
        "order_taxes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _order_fk(),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(32), nullable=False),
        sa.Column("rate", sa.Numeric(6, 3), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
    )
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _order_fk(),
        sa.Column("method", sa.String(16), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("external_reference", sa.String(64), nullable=True, unique=True),
        sa.Column("applied_by", sa.String(64), nullable=True),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "order_status_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _order_fk(),
        sa.Column("from_status", sa.String(16), nullable=True),
        sa.Column("to_status", sa.String(16), nullable=False),
        sa.Column("actor", sa.String(64), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "order_counters",
        sa.Column("day", sa.String(8), primary_key=True),
        sa.Column("current", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "payment_intents",
        sa.Column("gateway_order_id", sa.String(64), primary_key=True),
        sa.Column(
            "order_id", sa.String(36), sa.ForeignKey("orders.id"), nullable=True, index=True
        ),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_table(
        "menu_items",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("out_of_stock", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    for table in (
        "menu_items",
        "payment_intents",
        "order_counters",
        "order_status_history",
        "payments",
        "order_taxes",
        "order_discounts",
        "order_items",
        "orders",
    ):
        op.drop_table(table)
