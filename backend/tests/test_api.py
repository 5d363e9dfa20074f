"""Tests for the HTTP API, with the adapter registry swapped for fakes."""

from decimal import Decimal

import httpx
import pytest

from pricelens.core.exceptions import AuthError, NetworkError
from pricelens.dependencies import get_cache, get_registry
from pricelens.integrations.health import DOWN_THRESHOLD
from pricelens.integrations.registry import AdapterRegistry
from pricelens.main import app


class FakeCache:
    def __init__(self, healthy: bool):
        self.healthy = healthy

    async def health_check(self) -> bool:
        return self.healthy


@pytest.fixture
def registry():
    return AdapterRegistry()


@pytest.fixture
async def client(registry):
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_cache] = lambda: None
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def _item(title, store, price, **extra):
    return {"title": title, "store": store, "price": price, **extra}


class TestRoot:

    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["health"] == "/api/v1/health"


class TestHealth:

    async def test_all_ok(self, client, registry, make_adapter, make_raw):
        adapter, _ = make_adapter([make_raw()], store_id="alpha")
        registry.register(adapter)

        response = await client.get("/api/v1/health")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "ok"
        assert body["redis"] == "disabled"
        assert body["adapters"][0]["store_id"] == "alpha"
        assert body["adapters"][0]["status"] == "unknown"

    async def test_down_adapter_degrades(self, client, registry, make_adapter):
        adapter, _ = make_adapter([AuthError("alpha", "rejected")], store_id="alpha")
        registry.register(adapter)
        for _ in range(DOWN_THRESHOLD):
            await registry.search_all("widget")

        body = (await client.get("/api/v1/health")).json()

        assert body["status"] == "degraded"
        assert body["adapters"][0]["status"] == "down"
        assert body["adapters"][0]["consecutive_failures"] == DOWN_THRESHOLD

    async def test_redis_failure_degrades(self, client):
        app.dependency_overrides[get_cache] = lambda: FakeCache(healthy=False)

        body = (await client.get("/api/v1/health")).json()

        assert body["status"] == "degraded"
        assert body["redis"] == "error: ping failed"


class TestSearch:

    @pytest.mark.parametrize("params", [{}, {"q": ""}, {"q": "   "}])
    async def test_blank_query_rejected(self, client, params):
        response = await client.get("/api/v1/prices/search", params=params)

        assert response.status_code == 400
        assert response.json()["detail"] == "Search query 'q' cannot be empty"

    async def test_limit_validated(self, client):
        response = await client.get("/api/v1/prices/search", params={"q": "tv", "limit": 0})

        assert response.status_code == 422

    async def test_ranked_comparison(self, client, registry, make_adapter, make_raw):
        a, a_client = make_adapter([make_raw(_item("Widget", "A", 9.99, shipping=2))], store_id="a")
        b, _ = make_adapter([make_raw(_item("Widget", "B", 8.00, shipping=5))], store_id="b")
        c, _ = make_adapter([NetworkError("c", "connection reset")], store_id="c", max_retries=0)
        for adapter in (a, b, c):
            registry.register(adapter)

        response = await client.get("/api/v1/prices/search", params={"q": "  widget "})

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        data = body["data"]
        assert data["query"] == "widget"
        assert a_client.calls == [("search", "widget")]

        group = data["results"][0]
        assert group["product_name"] == "Widget"
        assert group["store_count"] == 2
        assert group["best_deal_store_id"] == "a"
        first, second = group["prices"]
        assert first["rank"] == 1 and first["is_best_deal"] is True
        assert Decimal(str(first["total_price"])) == Decimal("11.99")
        assert first["formatted_price"] == "$9.99"
        assert second["formatted_difference"] == "+$1.01"
        assert Decimal(str(second["price_difference"])) == Decimal("1.01")

        stores = {s["store_id"]: s for s in data["stores"]}
        assert stores["a"]["ok"] is True and stores["a"]["result_count"] == 1
        assert stores["c"]["ok"] is False
        assert stores["c"]["error_type"] == "network"

    async def test_locale_formats_prices(self, client, registry, make_adapter, make_raw):
        a, _ = make_adapter([make_raw(_item("Widget", "A", 9.99))], store_id="a")
        registry.register(a)

        response = await client.get(
            "/api/v1/prices/search", params={"q": "widget", "locale": "de_DE"}
        )

        entry = response.json()["data"]["results"][0]["prices"][0]
        assert "9,99" in entry["formatted_price"]


class TestBarcode:

    async def test_invalid_code_rejected(self, client):
        response = await client.get("/api/v1/prices/barcode/12ab")

        assert response.status_code == 400

    async def test_barcode_comparison(self, client, registry, make_adapter, make_raw):
        a, a_client = make_adapter(
            [make_raw(_item("Widget", "A", 10, upc="012345678905"))], store_id="a"
        )
        b, _ = make_adapter(
            [make_raw(_item("Gizmo", "B", 2, upc="036000291452"))], store_id="b"
        )
        registry.register(a)
        registry.register(b)

        response = await client.get("/api/v1/prices/barcode/0-12345-67890-5")

        assert response.status_code == 200
        data = response.json()["data"]
        assert a_client.calls == [("identifier", "012345678905")]
        assert data["query"] == "012345678905"
        assert [p["store_id"] for p in data["results"][0]["prices"]] == ["a"]

    async def test_no_matches_is_empty(self, client, registry, make_adapter, make_raw):
        a, _ = make_adapter([make_raw()], store_id="a")
        registry.register(a)

        response = await client.get("/api/v1/prices/barcode/012345678905")

        assert response.status_code == 200
        assert response.json()["data"]["results"] == []
