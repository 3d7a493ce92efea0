"""System-level routes such as health checks."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from src.config import settings
from src.services.cache.cache_service import CacheDependency
from src.services.storage.document_store import DocumentStore
from src.services.storage.mongo_store import get_document_store

router = APIRouter(tags=["system"])


@router.get("/")
async def read_root() -> dict[str, str]:
    """Hello World endpoint used by smoke tests."""

    return {"message": "Storefront API running"}


@router.get("/health")
async def health_check(
    store: Annotated[DocumentStore, Depends(get_document_store)],
    cache: CacheDependency,
) -> dict[str, str]:
    """Health check endpoint with store and cache connectivity checks."""

    store_status = "connected" if await store.ping() else "disconnected"
    if not cache.enabled:
        cache_status = "disabled"
    else:
        cache_status = "connected" if await cache.ping() else "disconnected"

    return {
        "status": "healthy" if store_status == "connected" else "degraded",
        "store": store_status,
        "cache": cache_status,
        "environment": settings.ENVIRONMENT,
    }
