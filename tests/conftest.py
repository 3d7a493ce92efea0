"""Pytest configuration and fixtures for the storefront service."""

from __future__ import annotations

import pytest
import pytest_asyncio
from fakeredis import aioredis as fakeredis
from httpx import ASGITransport, AsyncClient

from src.models.product import Product
from src.models.user import Principal
from src.services.cache.cache_service import (
    CacheService,
    get_cache_service,
    get_redis_client,
)
from src.services.errors import AuthenticationError
from src.services.identity.identity_client import (
    IdentityResolver,
    get_identity_resolver,
)
from src.services.storage.document_store import (
    CARTS,
    PRODUCTS,
    USERS,
    InMemoryDocumentStore,
)
from src.services.storage.mongo_store import get_document_store


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "asyncio: marks tests as async tests")


class StubIdentityResolver(IdentityResolver):
    """Accepts tokens of the form ``<role>:<principal id>``."""

    async def resolve_principal(self, credential: str) -> Principal:
        role, _, principal_id = credential.partition(":")
        try:
            return Principal(id=principal_id, role=role)
        except ValueError as exc:
            raise AuthenticationError("Authentication failed. Invalid token.") from exc


def auth(role: str, principal_id: str) -> dict[str, str]:
    """Authorization header understood by ``StubIdentityResolver``."""
    return {"Authorization": f"Bearer {role}:{principal_id}"}


async def seed_product(
    store: InMemoryDocumentStore,
    *,
    seller_id: str = "seller-1",
    name: str = "Brass Lamp",
    price: float = 100.0,
    stock: int = 5,
    category: str = "Lighting",
    is_active: bool = True,
) -> Product:
    product = Product(
        name=name,
        description=f"{name} for testing",
        price=price,
        category=category,
        stock=stock,
        seller_id=seller_id,
        is_active=is_active,
    )
    await store.insert(PRODUCTS, product.to_document())
    return product


async def seed_cart(
    store: InMemoryDocumentStore, buyer_id: str, lines: list[tuple[str, int]]
) -> None:
    await store.insert(
        CARTS,
        {
            "_id": buyer_id,
            "items": [{"product_id": pid, "quantity": qty} for pid, qty in lines],
        },
    )


async def seed_user(
    store: InMemoryDocumentStore, user_id: str, address: str | None = None
) -> None:
    await store.insert(USERS, {"_id": user_id, "name": user_id, "address": address})


async def stock_of(store: InMemoryDocumentStore, product_id: str) -> int:
    doc = await store.find_by_id(PRODUCTS, product_id)
    return doc["stock"]


@pytest.fixture()
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest_asyncio.fixture()
async def redis_client():
    """Provide a fake Redis client for each test."""
    client = fakeredis.FakeRedis(decode_responses=True)
    try:
        yield client
    finally:
        await client.flushdb()
        await client.aclose()


@pytest_asyncio.fixture()
async def cache(redis_client):
    service = CacheService(redis_client)
    yield service
    await service.drain()


@pytest_asyncio.fixture()
async def client(store, redis_client):
    """Return an HTTPX async client pointing at the FastAPI app."""
    from src.main import app

    app.dependency_overrides[get_document_store] = lambda: store
    app.dependency_overrides[get_redis_client] = lambda: redis_client
    app.dependency_overrides[get_identity_resolver] = lambda: StubIdentityResolver()

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://testserver",
        ) as test_client:
            yield test_client
    finally:
        await get_cache_service(redis_client).drain()
        app.dependency_overrides.pop(get_document_store, None)
        app.dependency_overrides.pop(get_redis_client, None)
        app.dependency_overrides.pop(get_identity_resolver, None)
