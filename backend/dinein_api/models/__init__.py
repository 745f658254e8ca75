"""
SQLAlchemy ORM Models Package.

All models are organized into domain-specific modules:
- base: Base class and TimestampMixin
- table: Table (exclusive session lock)
- cart: Cart, CartItem, CartItemAddon
- order: Order, OrderItem, OrderItemAddon, Payment
- catalog: Category, MenuItem, Addon, AddonConflict
"""

# Base classes
from .base import Base, TimestampMixin

# Tables and their lock
from .table import Table

# Carts
from .cart import Cart, CartItem, CartItemAddon

# Orders and payments
from .order import Order, OrderItem, OrderItemAddon, Payment

# Catalog (menu structure)
from .catalog import Category, MenuItem, Addon, AddonConflict

__all__ = [
    "Base",
    "TimestampMixin",
    "Table",
    "Cart",
    "CartItem",
    "CartItemAddon",
    "Order",
    "OrderItem",
    "OrderItemAddon",
    "Payment",
    "Category",
    "MenuItem",
    "Addon",
    "AddonConflict",
]
