"""
Diner routers - /api/tables/*, /api/cart/*, /api/orders/*, /api/menu/*
Every request identifies its session through the X-Session-Token header.
"""

from .tables import router as tables_router
from .cart import router as cart_router
from .orders import router as orders_router
from .menu import router as menu_router

__all__ = ["tables_router", "cart_router", "orders_router", "menu_router"]
