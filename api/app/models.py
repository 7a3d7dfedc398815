# models.py

"""Database models for orders, payments and the catalog.

Line items, discounts, taxes, payments and status history are child rows
that are only ever inserted; ``orders`` holds the scalar state that status
transitions update under a compare-and-swap guard.
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

MONEY = Numeric(12, 2)


class Order(Base):
    """Order header with derived amounts and lifecycle timestamps."""

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True)
    order_number = Column(String(16), nullable=False, unique=True)
    channel = Column(String(16), nullable=False)
    customer_ref = Column(String(64), nullable=True, index=True)
    table_ref = Column(String(64), nullable=True)
    status = Column(String(16), nullable=False, index=True)
    is_complimentary = Column(Boolean, nullable=False, default=False)
    kot_printed = Column(Boolean, nullable=False, default=False)
    number_degraded = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=False, default="")
    created_by = Column(String(64), nullable=True)

    subtotal = Column(MONEY, nullable=False)
    total_discount = Column(MONEY, nullable=False)
    total_tax = Column(MONEY, nullable=False)
    total = Column(MONEY, nullable=False)
    round_off = Column(MONEY, nullable=False)
    final_amount = Column(MONEY, nullable=False)
    total_paid = Column(MONEY, nullable=False, default=0)

    version = Column(Integer, nullable=False, default=1)
    cancel_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    preparing_at = Column(DateTime(timezone=True), nullable=True)
    ready_at = Column(DateTime(timezone=True), nullable=True)
    served_at = Column(DateTime(timezone=True), nullable=True)
    billed_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    kot_printed_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship(
        "OrderItem", order_by="OrderItem.position", lazy="selectin"
    )
    discounts = relationship(
        "OrderDiscount", order_by="OrderDiscount.position", lazy="selectin"
    )
    taxes = relationship("OrderTax", order_by="OrderTax.position", lazy="selectin")
    payments = relationship("PaymentRow", order_by="PaymentRow.id", lazy="selectin")
    history = relationship(
        "OrderStatusHistory", order_by="OrderStatusHistory.id", lazy="selectin"
    )


class OrderItem(Base):
    """Snapshotted order line."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    product_id = Column(String(64), nullable=False)
    name_snapshot = Column(String, nullable=False)
    price_snapshot = Column(MONEY, nullable=False)
    qty = Column(Integer, nullable=False)
    discount_kind = Column(String(16), nullable=True)
    discount_value = Column(MONEY, nullable=False, default=0)
    notes = Column(Text, nullable=False, default="")


class OrderDiscount(Base):
    __tablename__ = "order_discounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    kind = Column(String(16), nullable=False)
    value = Column(MONEY, nullable=False)
    amount = Column(MONEY, nullable=False)
    reason = Column(Text, nullable=False, default="")
    applied_by = Column(String(64), nullable=True)


class OrderTax(Base):
    __tablename__ = "order_taxes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    name = Column(String(32), nullable=False)
    rate = Column(Numeric(6, 3), nullable=False)
    amount = Column(MONEY, nullable=False)


class PaymentRow(Base):
    """Append-only payment ledger entry."""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    method = Column(String(16), nullable=False)
    amount = Column(MONEY, nullable=False)
    external_reference = Column(String(64), nullable=True, unique=True)
    applied_by = Column(String(64), nullable=True)
    applied_at = Column(DateTime(timezone=True), nullable=False)


class OrderStatusHistory(Base):
    __tablename__ = "order_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    from_status = Column(String(16), nullable=True)
    to_status = Column(String(16), nullable=False)
    actor = Column(String(64), nullable=True)
    reason = Column(Text, nullable=True)
    at = Column(DateTime(timezone=True), nullable=False)


class OrderCounter(Base):
    """Per-day order sequence, incremented with an atomic upsert."""

    __tablename__ = "order_counters"

    day = Column(String(8), primary_key=True)
    current = Column(Integer, nullable=False, default=0)


class PaymentIntent(Base):
    """Gateway order created for a checkout payment."""

    __tablename__ = "payment_intents"

    gateway_order_id = Column(String(64), primary_key=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=True, index=True)
    amount = Column(MONEY, nullable=False)
    currency = Column(String(3), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class MenuItem(Base):
    """Catalog entry read when snapshotting order lines."""

    __tablename__ = "menu_items"

    id = Column(String(64), primary_key=True)
    name = Column(String, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    out_of_stock = Column(Boolean, nullable=False, default=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    deleted_at = Column(DateTime(timezone=True), nullable=True)
