"""FastAPI application factory and bootstrap helpers."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.errors import register_exception_handlers
from src.api.routes import include_api_routes
from src.config import settings
from src.services.cache.cache_service import get_cache_service, get_redis_client
from src.services.errors import StoreUnavailableError
from src.services.storage.mongo_store import MongoDocumentStore, get_document_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events."""
    store = get_document_store()
    if isinstance(store, MongoDocumentStore):
        try:
            await store.ensure_indexes()
            logger.info("MongoDB indexes ensured for %s", settings.MONGO_DB)
        except StoreUnavailableError:
            # Requests will surface store errors individually.
            logger.exception("MongoDB unavailable at startup")

    yield

    client = get_redis_client()
    await get_cache_service(client).drain()
    try:
        await client.aclose()
    except Exception:
        logger.debug("Redis client already closed")
    await store.close()
    logger.info("Storefront API shut down")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Storefront API",
        description="Catalog, cart and order workflow for the storefront",
        version="1.0.0",
        lifespan=lifespan,
    )

    _configure_cors(app)
    register_exception_handlers(app)
    include_api_routes(app)

    return app


def _configure_cors(app: FastAPI) -> None:
    """Allow broad access in non-production environments."""

    if settings.is_production:
        return

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
