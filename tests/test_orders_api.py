"""API tests for cart and order routes."""

import pytest
from conftest import auth, seed_product, seed_user, stock_of

BUYER = auth("buyer", "buyer-1")
SELLER = auth("seller", "seller-1")


@pytest.mark.asyncio
async def test_cart_requires_authentication(client):
    response = await client.get("/cart")

    assert response.status_code == 401
    assert response.json()["error"] == "unauthenticated"
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(client):
    response = await client.get("/orders", headers={"Authorization": "Bearer wizard:x"})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_cart_is_buyer_only(client):
    response = await client.get("/cart", headers=SELLER)

    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


@pytest.mark.asyncio
async def test_cart_round_trip(client, store):
    product = await seed_product(store, stock=3)

    response = await client.post(
        "/cart", json={"product_id": product.id, "quantity": 2}, headers=BUYER
    )
    assert response.status_code == 200
    assert response.json()["items"] == [{"product_id": product.id, "quantity": 2}]

    response = await client.put(
        f"/cart/{product.id}", json={"quantity": 5}, headers=BUYER
    )
    assert response.json()["items"][0]["quantity"] == 5

    response = await client.delete(f"/cart/{product.id}", headers=BUYER)
    assert response.json()["items"] == []

    response = await client.get("/cart", headers=BUYER)
    assert response.json()["_id"] == "buyer-1"


@pytest.mark.asyncio
async def test_cart_rejects_bad_quantity_and_unknown_product(client, store):
    product = await seed_product(store)

    response = await client.post(
        "/cart", json={"product_id": product.id, "quantity": 0}, headers=BUYER
    )
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"

    response = await client.post(
        "/cart", json={"product_id": "ghost", "quantity": 1}, headers=BUYER
    )
    assert response.status_code == 404
    assert response.json()["error"] == "product_not_found"


@pytest.mark.asyncio
async def test_place_order_flow(client, store):
    await seed_user(store, "buyer-1", address="12 Market Street")
    product = await seed_product(store, price=100.0, stock=5)
    await client.post(
        "/cart", json={"product_id": product.id, "quantity": 2}, headers=BUYER
    )

    response = await client.post("/orders", headers=BUYER)

    assert response.status_code == 201
    body = response.json()
    assert body["warnings"] == []
    order = body["order"]
    assert order["status"] == "pending"
    assert order["total_price"] == 200.0
    assert order["shipping_address"] == "12 Market Street"
    assert await stock_of(store, product.id) == 3

    cart = await client.get("/cart", headers=BUYER)
    assert cart.json()["items"] == []

    listed = await client.get("/orders", headers=BUYER)
    assert [o["_id"] for o in listed.json()] == [order["_id"]]

    fetched = await client.get(f"/orders/{order['_id']}", headers=SELLER)
    assert fetched.status_code == 200

    hidden = await client.get(
        f"/orders/{order['_id']}", headers=auth("buyer", "buyer-2")
    )
    assert hidden.status_code == 404


@pytest.mark.asyncio
async def test_place_order_with_address_override(client, store):
    product = await seed_product(store)
    await client.post("/cart", json={"product_id": product.id}, headers=BUYER)

    response = await client.post(
        "/orders", json={"shipping_address": "Depot 4"}, headers=BUYER
    )

    assert response.status_code == 201
    assert response.json()["order"]["shipping_address"] == "Depot 4"


@pytest.mark.asyncio
async def test_empty_cart_order_is_rejected(client):
    response = await client.post("/orders", headers=BUYER)

    assert response.status_code == 400
    assert response.json()["error"] == "empty_cart"


@pytest.mark.asyncio
async def test_insufficient_stock_conflict(client, store):
    product = await seed_product(store, name="Rug", stock=1)
    await client.post(
        "/cart", json={"product_id": product.id, "quantity": 3}, headers=BUYER
    )

    response = await client.post("/orders", headers=BUYER)

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "insufficient_stock"
    assert body["product_id"] == product.id
    assert body["requested"] == 3
    assert body["available"] == 1
    assert "Rug" in body["detail"]
    assert await stock_of(store, product.id) == 1


@pytest.mark.asyncio
async def test_cancel_order_restores_stock(client, store):
    product = await seed_product(store, stock=5)
    await client.post(
        "/cart", json={"product_id": product.id, "quantity": 2}, headers=BUYER
    )
    order_id = (await client.post("/orders", headers=BUYER)).json()["order"]["_id"]

    response = await client.patch(f"/orders/{order_id}/cancel", headers=BUYER)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert await stock_of(store, product.id) == 5

    again = await client.patch(f"/orders/{order_id}/cancel", headers=BUYER)
    assert again.status_code == 409
    assert again.json()["error"] == "invalid_state"
    assert await stock_of(store, product.id) == 5


@pytest.mark.asyncio
async def test_status_updates_through_api(client, store):
    product = await seed_product(store, stock=5)
    await client.post("/cart", json={"product_id": product.id}, headers=BUYER)
    order_id = (await client.post("/orders", headers=BUYER)).json()["order"]["_id"]

    bad = await client.patch(
        f"/orders/{order_id}/status", json={"status": "lost"}, headers=SELLER
    )
    assert bad.status_code == 400
    assert bad.json()["error"] == "invalid_status"

    denied = await client.patch(
        f"/orders/{order_id}/status", json={"status": "shipped"}, headers=BUYER
    )
    assert denied.status_code == 403

    shipped = await client.patch(
        f"/seller/orders/{order_id}/status", json={"status": "shipped"}, headers=SELLER
    )
    assert shipped.status_code == 200
    assert shipped.json()["status"] == "shipped"

    backwards = await client.patch(
        f"/orders/{order_id}/status",
        json={"status": "pending"},
        headers=auth("admin", "admin-1"),
    )
    assert backwards.status_code == 409

    seller_orders = await client.get("/seller/orders", headers=SELLER)
    assert [o["_id"] for o in seller_orders.json()] == [order_id]
