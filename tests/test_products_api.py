"""API tests for catalog browsing, search, seller and admin routes."""

import pytest
from conftest import auth, seed_product, stock_of

from src.main import app
from src.services.cache.cache_service import CacheService, get_cache_service
from src.services.storage.document_store import PRODUCTS

BUYER = auth("buyer", "buyer-1")
SELLER = auth("seller", "seller-1")
OTHER_SELLER = auth("seller", "seller-2")
ADMIN = auth("admin", "admin-1")

PAYLOAD = {
    "name": "Aurora Floor Lamp",
    "description": "Brushed brass floor lamp",
    "price": 199.99,
    "category": "Lighting",
    "stock": 4,
}


@pytest.mark.asyncio
async def test_root_and_health(client):
    root = await client.get("/")
    assert root.json() == {"message": "Storefront API running"}

    health = await client.get("/health")
    assert health.status_code == 200
    body = health.json()
    assert body["status"] == "healthy"
    assert body["store"] == "connected"
    assert body["cache"] == "connected"


@pytest.mark.asyncio
async def test_seller_creates_and_lists_product(client):
    response = await client.post("/products", json=PAYLOAD, headers=SELLER)

    assert response.status_code == 201
    created = response.json()
    assert created["seller_id"] == "seller-1"
    assert created["is_active"] is True

    listed = await client.get("/products")
    assert [p["_id"] for p in listed.json()] == [created["_id"]]

    mine = await client.get("/seller/products", headers=SELLER)
    assert [p["_id"] for p in mine.json()] == [created["_id"]]


@pytest.mark.asyncio
async def test_create_product_role_and_validation(client):
    as_buyer = await client.post("/products", json=PAYLOAD, headers=BUYER)
    assert as_buyer.status_code == 403

    invalid = await client.post(
        "/products", json={**PAYLOAD, "price": -1}, headers=SELLER
    )
    assert invalid.status_code == 400
    assert invalid.json()["error"] == "invalid_request"


@pytest.mark.asyncio
async def test_browse_filters_by_category_case_insensitively(client, store):
    lamp = await seed_product(store, name="Lamp", category="Lighting")
    await seed_product(store, name="Rug", category="Textiles")
    await seed_product(store, name="Old Lamp", category="Lighting", is_active=False)

    response = await client.get("/products", params={"category": "lighting"})

    assert [p["_id"] for p in response.json()] == [lamp.id]


@pytest.mark.asyncio
async def test_listing_served_from_cache_until_invalidated(client, store, redis_client):
    product = await seed_product(store, price=100.0)

    first = await client.get("/products")
    assert first.json()[0]["price"] == 100.0

    await store.conditional_update(PRODUCTS, product.id, {}, {"$set": {"price": 80.0}})
    cached = await client.get("/products")
    assert cached.json()[0]["price"] == 100.0

    update = await client.put(
        f"/products/{product.id}", json={"price": 120.0}, headers=SELLER
    )
    assert update.status_code == 200
    await get_cache_service(redis_client).drain()

    fresh = await client.get("/products")
    assert fresh.json()[0]["price"] == 120.0


@pytest.mark.asyncio
async def test_update_requires_ownership(client, store):
    product = await seed_product(store)

    response = await client.put(
        f"/products/{product.id}", json={"price": 1.0}, headers=OTHER_SELLER
    )

    assert response.status_code == 403

    missing = await client.put("/products/ghost", json={"price": 1.0}, headers=SELLER)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_deactivated_product_disappears(client, store, redis_client):
    product = await seed_product(store)
    assert (await client.get(f"/products/{product.id}")).status_code == 200

    denied = await client.delete(f"/products/{product.id}", headers=OTHER_SELLER)
    assert denied.status_code == 403

    response = await client.delete(f"/products/{product.id}", headers=ADMIN)
    assert response.status_code == 200
    assert response.json()["is_active"] is False
    await get_cache_service(redis_client).drain()

    assert (await client.get(f"/products/{product.id}")).status_code == 404
    assert (await client.get("/products")).json() == []


@pytest.mark.asyncio
async def test_viewing_product_tracks_recently_viewed(client, store):
    lamp = await seed_product(store, name="Lamp")
    rug = await seed_product(store, name="Rug")

    await client.get(f"/products/{lamp.id}", headers=BUYER)
    await client.get(f"/products/{rug.id}", headers=BUYER)
    await client.get(f"/products/{lamp.id}", headers=BUYER)
    await client.get(f"/products/{rug.id}")

    response = await client.get("/search/recently-viewed", headers=BUYER)

    body = response.json()
    assert body["count"] == 2
    assert [p["_id"] for p in body["products"]] == [lamp.id, rug.id]


@pytest.mark.asyncio
async def test_search_and_recent_searches(client, store):
    lamp = await seed_product(store, name="Brass Lamp", category="Lighting")
    await seed_product(store, name="Wool Rug", category="Textiles")

    response = await client.get("/search", params={"q": "  LAMP "}, headers=BUYER)

    assert response.status_code == 200
    body = response.json()
    assert body["query"] == "lamp"
    assert body["count"] == 1
    assert body["products"][0]["_id"] == lamp.id

    by_category = await client.get("/search", params={"q": "textiles"})
    assert by_category.json()["count"] == 1

    recent = await client.get("/search/recent", headers=BUYER)
    assert [s["query"] for s in recent.json()["searches"]] == ["lamp"]

    cleared = await client.delete("/search/recent", headers=BUYER)
    assert cleared.status_code == 200
    assert (await client.get("/search/recent", headers=BUYER)).json()["count"] == 0


@pytest.mark.asyncio
async def test_empty_search_is_rejected(client):
    response = await client.get("/search", params={"q": "   "})

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"


@pytest.mark.asyncio
async def test_recent_searches_require_authentication(client):
    assert (await client.get("/search/recent")).status_code == 401


@pytest.mark.asyncio
async def test_bulk_stock_update(client, store):
    lamp = await seed_product(store, name="Lamp", stock=1)
    rug = await seed_product(store, name="Rug", stock=1)
    foreign = await seed_product(store, name="Vase", seller_id="seller-2", stock=1)

    response = await client.patch(
        "/seller/stock",
        json={"items": [{"product_id": lamp.id, "stock": 10}, {"product_id": rug.id, "stock": 0}]},
        headers=SELLER,
    )
    assert response.status_code == 200
    assert await stock_of(store, lamp.id) == 10
    assert await stock_of(store, rug.id) == 0

    denied = await client.patch(
        "/seller/stock",
        json={"items": [{"product_id": lamp.id, "stock": 3}, {"product_id": foreign.id, "stock": 3}]},
        headers=SELLER,
    )
    assert denied.status_code == 403
    assert await stock_of(store, lamp.id) == 10
    assert await stock_of(store, foreign.id) == 1


@pytest.mark.asyncio
async def test_admin_deactivates_seller_products(client, store):
    await seed_product(store, name="Lamp")
    await seed_product(store, name="Rug")
    kept = await seed_product(store, name="Vase", seller_id="seller-2")

    denied = await client.post(
        "/admin/sellers/seller-1/deactivate-products", headers=SELLER
    )
    assert denied.status_code == 403

    response = await client.post(
        "/admin/sellers/seller-1/deactivate-products", headers=ADMIN
    )
    assert response.json() == {"seller_id": "seller-1", "deactivated": 2}

    listed = await client.get("/products")
    assert [p["_id"] for p in listed.json()] == [kept.id]


@pytest.mark.asyncio
async def test_owner_reactivates_hidden_product(client, store, redis_client):
    product = await seed_product(store)
    await client.delete(f"/products/{product.id}", headers=SELLER)
    await get_cache_service(redis_client).drain()
    assert (await client.get("/products")).json() == []

    denied = await client.patch(
        f"/products/{product.id}/status", json={"is_active": True}, headers=OTHER_SELLER
    )
    assert denied.status_code == 403
    as_buyer = await client.patch(
        f"/products/{product.id}/status", json={"is_active": True}, headers=BUYER
    )
    assert as_buyer.status_code == 403

    response = await client.patch(
        f"/products/{product.id}/status", json={"is_active": True}, headers=SELLER
    )
    assert response.status_code == 200
    assert response.json()["is_active"] is True
    await get_cache_service(redis_client).drain()

    assert [p["_id"] for p in (await client.get("/products")).json()] == [product.id]
    assert (await client.get(f"/products/{product.id}")).status_code == 200


@pytest.mark.asyncio
async def test_status_route_can_hide_product(client, store):
    product = await seed_product(store)

    response = await client.patch(
        f"/products/{product.id}/status", json={"is_active": False}, headers=ADMIN
    )

    assert response.status_code == 200
    assert response.json()["is_active"] is False
    missing = await client.patch(
        "/products/ghost/status", json={"is_active": True}, headers=SELLER
    )
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_health_reports_disabled_cache(client, redis_client):
    app.dependency_overrides[get_cache_service] = lambda: CacheService(
        redis_client, enabled=False
    )
    try:
        response = await client.get("/health")
    finally:
        app.dependency_overrides.pop(get_cache_service, None)

    body = response.json()
    assert body["cache"] == "disabled"
    assert body["status"] == "healthy"
