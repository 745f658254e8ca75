"""
Repository Pattern implementation.
Centralizes data access with guaranteed eager loading and explicit
delete batches.

Usage:
    from dinein_api.repositories import get_cart_repository

    repo = get_cart_repository(db)
    cart = repo.find_by_table(5)
    repo.purge([cart.id])
"""

from .base import BaseRepository
from .cart import CartRepository, get_cart_repository
from .order import OrderRepository, get_order_repository

__all__ = [
    # Base
    "BaseRepository",
    # Cart
    "CartRepository",
    "get_cart_repository",
    # Order
    "OrderRepository",
    "get_order_repository",
]
