"""FastAPI application for the Store Service."""

from fastapi import FastAPI
from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from services.store_service.routers import (
    admin_router,
    catalog_router,
    orders_router,
    vendor_router,
)


def create_app() -> FastAPI:
    """Create and configure the Store Service FastAPI app."""
    app = FastAPI(
        title="MotorBuy Store Service",
        version="0.1.0",
        description="Multi-vendor marketplace - catalog, checkout, orders and fulfilment.",
    )
    add_observability_middleware(app)
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "store"}

    # Buyer routes (catalog, checkout, orders)
    app.include_router(catalog_router, prefix="/store")
    app.include_router(orders_router, prefix="/store")

    # Vendor fulfilment
    app.include_router(vendor_router, prefix="/vendor")

    # Admin oversight
    app.include_router(admin_router, prefix="/admin/store")

    return app


app = create_app()
