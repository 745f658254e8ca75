"""
Admin API router - combines all staff sub-routers.

- tables: provisioning, clearing, staff orders at a table
- orders: counter settlement and order corrections
- categories: category CRUD and display order
- menu_items: menu item CRUD and identifier preview
- addons: add-on CRUD and conflict sets

All routes are prefixed with /api/admin
"""

from fastapi import APIRouter

from .tables import router as tables_router
from .orders import router as orders_router
from .categories import router as categories_router
from .menu_items import router as menu_items_router
from .addons import router as addons_router


router = APIRouter(prefix="/api/admin")

# Note: Order matters for route matching - more specific routes first
router.include_router(tables_router)
router.include_router(orders_router)
router.include_router(categories_router)
router.include_router(menu_items_router)
router.include_router(addons_router)


__all__ = ["router"]
