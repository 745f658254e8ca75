"""
Domain Services - Application Layer.

Services contain business logic and orchestrate operations.
They use Repositories for data access and commit through safe_commit.

Structure:
    Router (thin controller)
        ↓
    Service (business logic)  ← YOU ARE HERE
        ↓
    Repository (data access)
        ↓
    Model (entity)

Usage:
    from dinein_api.services.domain import CartService

    # In router
    service = CartService(db)
    cart = service.get_cart(table_id, session_token)
"""

from .table_lock_service import TableLockService, TableStatus
from .addon_service import AddonService
from .menu_service import MenuService
from .cart_service import CartService, cart_item_output
from .order_service import OrderService, order_output

__all__ = [
    "TableLockService",
    "TableStatus",
    "AddonService",
    "MenuService",
    "CartService",
    "OrderService",
    "cart_item_output",
    "order_output",
]
