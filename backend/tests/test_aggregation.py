"""Tests for cross-store aggregation, ranking and product matching."""

from decimal import Decimal

import pytest

from pricelens.integrations.base import NormalizedPrice, NormalizedProduct
from pricelens.services.aggregation import (
    AggregationService,
    BarcodeMatcher,
    BarcodeOrNameMatcher,
    NameMatcher,
)


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def make_price(fetched_at):
    def _make(store_name, price, shipping="0", *, in_stock=True, currency="USD", url=None, store_id=None):
        store_id = store_id or store_name.lower().replace(" ", "-")
        return NormalizedPrice(
            store_id=store_id,
            store_name=store_name,
            price=Decimal(str(price)),
            shipping_cost=Decimal(str(shipping)),
            in_stock=in_stock,
            currency=currency,
            product_url=url or f"https://{store_id}.example.com/widget",
            fetched_at=fetched_at,
        )

    return _make


@pytest.fixture
def make_product(fetched_at):
    def _make(name, *prices, barcode=None, category=None, source="fake"):
        return NormalizedProduct(
            name=name,
            prices=list(prices),
            source_provider=source,
            fetched_at=fetched_at,
            barcode=barcode,
            category=category,
        )

    return _make


@pytest.fixture
def service():
    return AggregationService()


def _ranking(result):
    return [(e.rank, e.store_id, e.is_best_deal) for e in result.entries]


# ============================================================================
# RANKING
# ============================================================================


class TestRanking:

    def test_widget_scenario(self, service, make_price, make_product):
        per_store = {
            "a": [make_product("Widget", make_price("A", "9.99", "2"))],
            "b": [make_product("Widget", make_price("B", "8.00", "5"))],
        }

        result = service.aggregate(per_store)

        assert _ranking(result) == [(1, "a", True), (2, "b", False)]
        first, second = result.entries
        assert first.total_price == Decimal("11.99")
        assert first.price_difference is None
        assert second.total_price == Decimal("13.00")
        assert second.price_difference == Decimal("1.01")
        assert second.formatted_difference == "+$1.01"
        assert result.price_spread == Decimal("1.01")
        assert result.store_count == 2
        assert result.best_deal is first
        assert result.all_out_of_stock is False

    def test_cheapest_out_of_stock_is_never_best(self, service, make_price, make_product):
        per_store = {
            "a": [make_product("Widget", make_price("A", "9.99", "2", in_stock=False))],
            "b": [make_product("Widget", make_price("B", "8.00", "5"))],
        }

        result = service.aggregate(per_store)

        assert _ranking(result) == [(1, "a", False), (2, "b", True)]
        # Differences are measured from the best deal, so cheaper entries go negative
        assert result.entries[0].formatted_difference == "-$1.01"
        assert result.entries[1].price_difference is None

    def test_all_out_of_stock(self, service, make_price, make_product):
        per_store = {
            "a": [make_product("Widget", make_price("A", "10", in_stock=False))],
            "b": [make_product("Widget", make_price("B", "12", in_stock=False))],
        }

        result = service.aggregate(per_store)

        assert result.all_out_of_stock is True
        assert result.best_deal is None
        assert not any(e.is_best_deal for e in result.entries)
        assert result.entries[0].price_difference is None
        assert result.entries[1].price_difference == Decimal("2")

    def test_ties_broken_by_store_name_then_id(self, service, make_price):
        prices = [
            make_price("zeta", "10"),
            make_price("Alpha", "10", store_id="alpha-2"),
            make_price("alpha", "10", store_id="alpha-1"),
            make_price("Mid", "9"),
        ]

        result = service.aggregate_prices(prices)

        assert [e.store_id for e in result.entries] == ["mid", "alpha-1", "alpha-2", "zeta"]

    def test_rank_order_implies_non_decreasing_total(self, service, make_price):
        prices = [make_price(f"S{i}", p, s) for i, (p, s) in enumerate(
            [("5", "3"), ("4", "0"), ("10", "0"), ("1", "9"), ("7", "1")]
        )]

        result = service.aggregate_prices(prices)

        totals = [e.total_price for e in result.entries]
        assert totals == sorted(totals)
        assert [e.rank for e in result.entries] == [1, 2, 3, 4, 5]

    def test_idempotent(self, service, make_price, make_product):
        per_store = {
            "a": [make_product("Widget", make_price("A", "9.99", "2"))],
            "b": [make_product("Widget", make_price("B", "8.00", "5", in_stock=False))],
            "c": [make_product("Widget", make_price("C", "11.99"))],
        }

        first = service.aggregate(per_store)
        second = service.aggregate(per_store)

        assert first == second
        assert _ranking(first) == _ranking(second)

    def test_empty_input(self, service):
        result = service.aggregate({})

        assert result.is_empty
        assert result.store_count == 0
        assert result.best_deal is None
        assert result.lowest_total is None


class TestFiltering:

    def test_duplicate_store_url_keeps_cheapest(self, service, make_price):
        prices = [
            make_price("A", "12", url="https://a.example.com/w"),
            make_price("A", "10", url="https://a.example.com/w"),
            make_price("A", "11", url="https://a.example.com/w-bundle"),
        ]

        result = service.aggregate_prices(prices)

        assert [e.total_price for e in result.entries] == [Decimal("10"), Decimal("11")]
        assert result.store_count == 1

    def test_other_currencies_excluded(self, service, make_price):
        prices = [make_price("A", "10"), make_price("B", "5", currency="EUR")]

        result = service.aggregate_prices(prices)

        assert [e.store_id for e in result.entries] == ["a"]

    def test_service_currency_configurable(self, make_price):
        service = AggregationService(currency="eur", locale="de_DE")
        prices = [make_price("A", "10", currency="EUR"), make_price("B", "12", currency="EUR")]

        result = service.aggregate_prices(prices)

        assert result.currency == "EUR"
        assert "2,00" in result.entries[1].formatted_difference
        assert result.entries[1].formatted_difference.startswith("+")


# ============================================================================
# MATCHING
# ============================================================================


class TestMatchers:

    def test_barcode_matcher_ignores_padding_and_skips_missing(self, make_price, make_product):
        products = [
            make_product("Widget", make_price("A", "1"), barcode="012345678905"),
            make_product("Widget (2 pack)", make_price("B", "2"), barcode="0012345678905"),
            make_product("Widget", make_price("C", "3")),
        ]

        groups = BarcodeMatcher().group(products)

        assert list(groups) == ["barcode:12345678905"]
        assert len(groups["barcode:12345678905"]) == 2

    def test_name_matcher_respects_category(self, make_price, make_product):
        products = [
            make_product("Widget Pro!", make_price("A", "1"), category="Tools"),
            make_product("widget  pro", make_price("B", "2"), category="tools"),
            make_product("Widget Pro", make_price("C", "3"), category="Toys"),
        ]

        groups = NameMatcher().group(products)

        assert [len(g) for g in groups.values()] == [2, 1]

    def test_barcode_or_name_joins_unbarcoded_by_name(self, make_price, make_product):
        products = [
            make_product("Widget", make_price("A", "1"), barcode="012345678905"),
            make_product("widget", make_price("B", "2")),
            make_product("Gadget", make_price("C", "3")),
        ]

        groups = BarcodeOrNameMatcher().group(products)

        assert len(groups) == 2
        assert [p.prices[0].store_id for p in groups["barcode:12345678905"]] == ["a", "b"]

    def test_aggregate_picks_group_covering_most_stores(self, service, make_price, make_product):
        per_store = {
            "a": [
                make_product("Gadget", make_price("A", "1")),
                make_product("Widget", make_price("A", "10", url="https://a.example.com/widget2")),
            ],
            "b": [make_product("Widget", make_price("B", "12"))],
            "c": [make_product("Widget", make_price("C", "11"))],
        }

        result = service.aggregate(per_store)

        assert result.product_name == "Widget"
        assert result.store_count == 3

    def test_aggregate_all_returns_every_group(self, service, make_price, make_product):
        per_store = {
            "a": [make_product("Gadget", make_price("A", "1"))],
            "b": [make_product("Widget", make_price("B", "2"))],
        }

        results = service.aggregate_all(per_store)

        assert [r.product_name for r in results] == ["Gadget", "Widget"]

    def test_custom_matcher(self, make_price, make_product):
        service = AggregationService(matcher=BarcodeMatcher())
        per_store = {
            "a": [make_product("Widget", make_price("A", "1"))],
        }

        assert service.aggregate(per_store).is_empty
