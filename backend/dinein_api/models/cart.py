"""
Cart Models: Cart, CartItem, CartItemAddon.

One cart per table. Lines carry a snapshot of the price and of the chosen
add-ons at the moment they were added, so later menu edits never change
what the diner already has in the cart.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK

if TYPE_CHECKING:
    from .catalog import MenuItem


class Cart(Base):
    """Shopping cart of the session holding a table."""

    __tablename__ = "cart"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    table_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("restaurant_table.id"), nullable=False, unique=True
    )
    # Used by the idle-cart sweep
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    items: Mapped[list["CartItem"]] = relationship(
        back_populates="cart", order_by="CartItem.id"
    )


class CartItem(Base):
    """A line in a cart. unit_price is menu price plus selected add-ons."""

    __tablename__ = "cart_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    cart_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("cart.id"), nullable=False, index=True
    )
    menu_item_id: Mapped[str] = mapped_column(
        String(20), ForeignKey("menu_item.id"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_cart_item_qty_positive"),
        CheckConstraint("unit_price >= 0", name="chk_cart_item_price_non_negative"),
    )

    cart: Mapped["Cart"] = relationship(back_populates="items")
    menu_item: Mapped["MenuItem"] = relationship()
    addons: Mapped[list["CartItemAddon"]] = relationship(
        back_populates="cart_item", order_by="CartItemAddon.id"
    )


class CartItemAddon(Base):
    """
    Add-on chosen for a cart line.

    addon_id has no foreign key: the add-on may be deleted from the menu
    while the line is still in a cart, the snapshot keeps name and price.
    """

    __tablename__ = "cart_item_addon"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    cart_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("cart_item.id"), nullable=False, index=True
    )
    addon_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    cart_item: Mapped["CartItem"] = relationship(back_populates="addons")
