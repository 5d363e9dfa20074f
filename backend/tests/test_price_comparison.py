"""Tests for the end-to-end price comparison service."""

from decimal import Decimal

from pricelens.core.exceptions import AuthError, NetworkError
from pricelens.integrations.registry import AdapterRegistry
from pricelens.services.aggregation import AggregationService, NameMatcher
from pricelens.services.price_comparison import PriceComparisonService


def _item(title, store, price, **extra):
    return {"title": title, "store": store, "price": price, **extra}


def _registry(*adapters):
    registry = AdapterRegistry()
    for adapter in adapters:
        registry.register(adapter)
    return registry


class TestCompare:

    async def test_groups_ranked_by_coverage_then_price(self, make_adapter, make_raw):
        a, _ = make_adapter(
            [make_raw(_item("Widget", "A", 9.99, shipping=2), _item("Gadget", "A", 3))],
            store_id="a",
        )
        b, _ = make_adapter([make_raw(_item("Widget", "B", 8.00, shipping=5))], store_id="b")
        service = PriceComparisonService(_registry(a, b))

        comparison = await service.compare("widget")

        assert [r.product_name for r in comparison.results] == ["Widget", "Gadget"]
        widget = comparison.results[0]
        assert widget.best_deal.store_id == "a"
        assert widget.entries[1].formatted_difference == "+$1.01"
        assert comparison.succeeded == ["a", "b"]
        assert comparison.failed == {}

    async def test_failed_stores_reported_not_ranked(self, make_adapter, make_raw, sleeper):
        ok, _ = make_adapter([make_raw(_item("Widget", "Ok", 10))], store_id="ok")
        down, _ = make_adapter([NetworkError("down", "connection reset")], store_id="down")
        locked, _ = make_adapter([AuthError("locked", "bad key")], store_id="locked")
        service = PriceComparisonService(_registry(ok, down, locked))

        comparison = await service.compare("widget")

        assert comparison.succeeded == ["ok"]
        assert set(comparison.failed) == {"down", "locked"}
        assert "connection reset" in comparison.failed["down"]
        assert [e.store_id for e in comparison.results[0].entries] == ["ok"]

    async def test_every_store_failing_gives_empty_results(self, make_adapter):
        a, _ = make_adapter([AuthError("a", "x")], store_id="a")
        comparison = await PriceComparisonService(_registry(a)).compare("widget")

        assert comparison.results == []
        assert comparison.succeeded == []

    async def test_max_groups(self, make_adapter, make_raw):
        a, _ = make_adapter(
            [make_raw(_item("One", "A", 1), _item("Two", "A", 2), _item("Three", "A", 3))],
            store_id="a",
        )
        comparison = await PriceComparisonService(_registry(a)).compare("thing", max_groups=2)

        # Equal coverage falls back to lowest total
        assert [r.product_name for r in comparison.results] == ["One", "Two"]

    async def test_custom_aggregation(self, make_adapter, make_raw):
        a, _ = make_adapter(
            [make_raw(_item("Widget", "A", 5, category="tools"), _item("Widget", "A", 6, category="toys"))],
            store_id="a",
        )
        service = PriceComparisonService(_registry(a), AggregationService(matcher=NameMatcher()))

        comparison = await service.compare("widget")

        assert len(comparison.results) == 2


class TestCompareIdentifier:

    async def test_single_ranked_result(self, make_adapter, make_raw):
        a, a_client = make_adapter(
            [make_raw(_item("Widget", "A", 10, upc="012345678905"))], store_id="a"
        )
        b, _ = make_adapter(
            [make_raw(_item("Widget 2-pack", "B", 9, ean="0012345678905"))], store_id="b"
        )
        c, _ = make_adapter([make_raw(_item("Other", "C", 1, upc="036000291452"))], store_id="c")
        service = PriceComparisonService(_registry(a, b, c))

        comparison = await service.compare_identifier("012345678905")

        assert a_client.calls == [("identifier", "012345678905")]
        assert len(comparison.results) == 1
        result = comparison.results[0]
        assert [e.store_id for e in result.entries] == ["b", "a"]
        assert result.entries[1].price_difference == Decimal("1")
        assert comparison.query == "012345678905"

    async def test_no_matches(self, make_adapter, make_raw):
        a, _ = make_adapter([make_raw()], store_id="a")

        comparison = await PriceComparisonService(_registry(a)).compare_identifier("012345678905")

        assert comparison.results == []
        assert comparison.succeeded == ["a"]
