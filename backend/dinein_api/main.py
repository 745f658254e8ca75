"""
REST API main application.
Entry point for the FastAPI REST server.
"""

from fastapi import FastAPI

from shared.config.settings import settings
from dinein_api.core import (
    configure_cors,
    lifespan,
    register_error_handlers,
    register_middlewares,
)
from dinein_api.routers.public import health_router
from dinein_api.routers.diner import (
    cart_router,
    menu_router,
    orders_router,
    tables_router,
)
from dinein_api.routers.admin import router as admin_router


# Create FastAPI application
app = FastAPI(
    title="Dine-In REST API",
    description="Table occupancy, carts, orders and menu management for dine-in service",
    version="0.1.0",
    lifespan=lifespan,
)

register_middlewares(app)
configure_cors(app)
register_error_handlers(app)


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router)
app.include_router(tables_router)
app.include_router(cart_router)
app.include_router(orders_router)
app.include_router(menu_router)
app.include_router(admin_router)


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "dinein_api.main:app",
        host="0.0.0.0",
        port=settings.rest_api_port,
        reload=True,
    )
