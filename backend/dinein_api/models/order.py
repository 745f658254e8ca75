"""
Order Models: Order, OrderItem, OrderItemAddon, Payment.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK

if TYPE_CHECKING:
    from .catalog import MenuItem


class Order(Base):
    """
    A submitted (or staff-built) order for a table.

    total_amount is stored exact (subtotal plus tax, unrounded). Payments
    carry the rounded figure charged to the customer.
    """

    __tablename__ = "app_order"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    # Nullable so takeaway orders can exist without a table
    table_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("restaurant_table.id"), nullable=True, index=True
    )
    # Opaque reference to an authenticated customer, if any
    user_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    order_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 6), nullable=False, default=Decimal("0"))
    order_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="chk_order_total_non_negative"),
        # Abandoned-table sweep and staff lookups filter by table and status
        Index("ix_order_table_status", "table_id", "status"),
    )

    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", order_by="OrderItem.id"
    )
    payments: Mapped[list["Payment"]] = relationship(
        back_populates="order", order_by="Payment.id"
    )


class OrderItem(Base):
    """A line of an order with its price snapshot."""

    __tablename__ = "order_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("app_order.id"), nullable=False, index=True
    )
    menu_item_id: Mapped[str] = mapped_column(
        String(20), ForeignKey("menu_item.id"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_order_item_qty_positive"),
        CheckConstraint("unit_price >= 0", name="chk_order_item_price_non_negative"),
    )

    order: Mapped["Order"] = relationship(back_populates="items")
    menu_item: Mapped["MenuItem"] = relationship()
    addons: Mapped[list["OrderItemAddon"]] = relationship(
        back_populates="order_item", order_by="OrderItemAddon.id"
    )


class OrderItemAddon(Base):
    """Add-on snapshot copied from the cart line when the order was placed."""

    __tablename__ = "order_item_addon"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("order_item.id"), nullable=False, index=True
    )
    addon_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    order_item: Mapped["OrderItem"] = relationship(back_populates="addons")


class Payment(Base):
    """Payment record. Card payments settle immediately, counter payments later."""

    __tablename__ = "payment"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("app_order.id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    method: Mapped[str] = mapped_column(String(30), nullable=False)
    payment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="chk_payment_amount_non_negative"),
    )

    order: Mapped["Order"] = relationship(back_populates="payments")
