"""
Catalog Models: Category, MenuItem, Addon, AddonConflict.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK, TimestampMixin


class Category(TimestampMixin, Base):
    """
    Menu category.

    prefix is the identifier namespace for its menu items ("M" gives M001,
    M002, ...). last_sequence is the highest number ever handed out under
    the prefix and only grows, so deleted identifiers are never reissued.
    """

    __tablename__ = "category"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    prefix: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)
    # Unique among active categories, enforced by MenuService
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_sequence: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        CheckConstraint("display_order >= 0", name="chk_category_display_order_non_negative"),
        CheckConstraint("last_sequence >= 0", name="chk_category_sequence_non_negative"),
    )

    menu_items: Mapped[list["MenuItem"]] = relationship(
        back_populates="category", order_by="MenuItem.id"
    )


class MenuItem(TimestampMixin, Base):
    """Sellable item. Its id is the category prefix plus a zero-padded number."""

    __tablename__ = "menu_item"

    id: Mapped[str] = mapped_column(String(20), primary_key=True)
    category_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("category.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    image_path: Mapped[str] = mapped_column(String(255), nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("price >= 0", name="chk_menu_item_price_non_negative"),
    )

    category: Mapped["Category"] = relationship(back_populates="menu_items")
    addons: Mapped[list["Addon"]] = relationship(
        back_populates="menu_item", order_by="Addon.id"
    )


class Addon(Base):
    """Extra for a menu item. type is Optional, Required or Choice."""

    __tablename__ = "addon"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    menu_item_id: Mapped[str] = mapped_column(
        String(20), ForeignKey("menu_item.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    is_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    type: Mapped[str] = mapped_column(String(20), default="Optional", nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("price >= 0", name="chk_addon_price_non_negative"),
        CheckConstraint(
            "type IN ('Optional', 'Required', 'Choice')",
            name="chk_addon_type",
        ),
    )

    menu_item: Mapped["MenuItem"] = relationship(back_populates="addons")


class AddonConflict(Base):
    """
    One direction of a mutual-exclusion edge between two add-ons.

    Edges are always written in both directions by the add-on service, so
    "a conflicts with b" can be answered with a single-direction lookup.
    """

    __tablename__ = "addon_conflict"

    addon_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("addon.id"), primary_key=True
    )
    conflicting_addon_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("addon.id"), primary_key=True, index=True
    )

    __table_args__ = (
        CheckConstraint("addon_id <> conflicting_addon_id", name="chk_addon_conflict_not_self"),
    )
