"""API route registration."""

from fastapi import FastAPI

from src.api.routes import admin, cart, orders, products, search, seller, system


def include_api_routes(app: FastAPI) -> None:
    """Attach all API routers to the application."""

    app.include_router(system.router)
    app.include_router(products.router)
    app.include_router(search.router)
    app.include_router(cart.router)
    app.include_router(orders.router)
    app.include_router(seller.router)
    app.include_router(admin.router)
