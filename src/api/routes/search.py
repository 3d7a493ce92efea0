"""Product search and per-user recent activity routes."""

from __future__ import annotations

from fastapi import APIRouter, Query

from src.models.product import SearchResponse
from src.services.cache.recent_activity import RecentActivityDependency
from src.services.catalog.catalog_service import CatalogDependency
from src.services.identity.identity_client import (
    OptionalPrincipalDependency,
    PrincipalDependency,
)

router = APIRouter(prefix="/search", tags=["search"])


@router.get(
    "",
    response_model=SearchResponse,
    summary="Search active products by name, description or category",
)
async def search_products(
    catalog: CatalogDependency,
    recent: RecentActivityDependency,
    principal: OptionalPrincipalDependency,
    q: str = Query("", description="Search term"),
) -> dict:
    result = await catalog.search_products(q)
    if principal is not None:
        await recent.add_recent_search(principal.id, result["query"])
    return result


@router.get("/recent", summary="List the caller's recent searches")
async def list_recent_searches(
    principal: PrincipalDependency,
    recent: RecentActivityDependency,
) -> dict:
    searches = await recent.get_recent_searches(principal.id)
    return {"count": len(searches), "searches": searches}


@router.delete("/recent", summary="Clear the caller's recent searches")
async def clear_recent_searches(
    principal: PrincipalDependency,
    recent: RecentActivityDependency,
) -> dict[str, str]:
    await recent.clear_recent_searches(principal.id)
    return {"message": "Recent searches cleared successfully"}


@router.get("/recently-viewed", summary="List the caller's recently viewed products")
async def list_recently_viewed(
    principal: PrincipalDependency,
    recent: RecentActivityDependency,
    limit: int = Query(10, ge=1, le=50),
) -> dict:
    products = await recent.get_recently_viewed(principal.id, limit)
    return {"count": len(products), "products": products}
