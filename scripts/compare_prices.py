"""Manual price comparison runner for testing and debugging adapters.

Runs a query (or a barcode lookup) against every configured store and
prints the ranked comparison plus each store's outcome.

Usage:
    python scripts/compare_prices.py "sony wh-1000xm5"
    python scripts/compare_prices.py "usb c cable" --category electronics --limit 5
    python scripts/compare_prices.py --barcode 027242923232
    python scripts/compare_prices.py "airpods" --store amazon
"""

import argparse
import asyncio

from pricelens.config import settings
from pricelens.core.logging import configure_logging
from pricelens.integrations.base import SearchOptions
from pricelens.integrations.register_adapters import build_default_registry
from pricelens.services.aggregation import AggregatedResult, AggregationService
from pricelens.services.price_comparison import ComparisonResult, PriceComparisonService


async def run_comparison(
    query: str = None,
    barcode: str = None,
    category: str = None,
    limit: int = 10,
    stores: list = None,
    max_groups: int = 3,
):
    """Run a comparison and display the results."""
    registry = build_default_registry(settings)

    enabled = [a.store_id for a in registry.enabled_adapters()]
    if not enabled:
        print("\n❌ No store is configured. Set provider credentials in .env.\n")
        return

    if stores:
        unknown = [s for s in stores if not registry.has_adapter(s)]
        if unknown:
            print(f"\n❌ Error: Unknown store(s) {', '.join(unknown)}")
            print("\n📋 Available stores:")
            for store_id in sorted(registry.get_registered_stores()):
                print(f"   - {store_id}")
            return
        for store_id in registry.get_registered_stores():
            if store_id not in stores:
                registry.unregister(store_id)

    print(f"\n{'='*70}")
    print(f"  Comparing: {barcode or query}")
    print(f"{'='*70}")
    print(f"  Stores: {', '.join(a.store_id for a in registry.enabled_adapters())}")
    if category:
        print(f"  Category: {category}")
    print(f"{'='*70}\n")

    service = PriceComparisonService(
        registry,
        AggregationService(currency=settings.DEFAULT_CURRENCY, locale=settings.DEFAULT_LOCALE),
    )
    options = SearchOptions(limit=limit, category=category)
    if barcode:
        comparison = await service.compare_identifier(barcode, options)
    else:
        comparison = await service.compare(query, options, max_groups=max_groups)

    _print_comparison(comparison)


def _print_comparison(comparison: ComparisonResult) -> None:
    if not comparison.results:
        print("⚠️  No comparable prices found.\n")

    for i, result in enumerate(comparison.results, 1):
        _print_group(i, result)

    print(f"{'='*70}")
    print("  Stores")
    print(f"{'='*70}")
    for store_id, outcome in comparison.outcomes.items():
        if outcome.ok:
            count = len(outcome.products) or len(outcome.prices)
            print(f"  ✅ {store_id}: {count} results in {outcome.elapsed_ms} ms")
        else:
            print(f"  ❌ {store_id}: {outcome.error.error_type} - {outcome.error}")
    print()


def _print_group(index: int, result: AggregatedResult) -> None:
    print(f"[{index}] {result.product_name or result.barcode or 'Barcode lookup'}")
    print(f"    Stores: {result.store_count}  Spread: {result.price_spread}")
    if result.all_out_of_stock:
        print("    ⚠️  Out of stock everywhere")

    for entry in result.entries:
        p = entry.price
        marker = "⭐" if entry.is_best_deal else "  "
        stock = "" if p.in_stock else " (out of stock)"
        diff = f"  {entry.formatted_difference}" if entry.formatted_difference else ""
        print(f"    {marker} #{entry.rank} {p.store_name}: {p.formatted_price} + {p.shipping_cost} shipping = {p.total_price}{diff}{stock}")
    print()


def main():
    """Parse arguments and run the comparison."""
    parser = argparse.ArgumentParser(
        description="Compare prices across configured stores",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/compare_prices.py "sony wh-1000xm5"
  python scripts/compare_prices.py --barcode 027242923232
        """,
    )

    parser.add_argument("query", nargs="?", help="Free-text product query")
    parser.add_argument("--barcode", help="UPC/EAN/GTIN to look up instead of a query")
    parser.add_argument("--category", help="Category slug (e.g., 'electronics')")
    parser.add_argument("--limit", type=int, default=10, help="Results per store (default: 10)")
    parser.add_argument("--store", action="append", dest="stores", help="Only query this store (repeatable)")
    parser.add_argument("--groups", type=int, default=3, help="Matched products to show (default: 3)")

    args = parser.parse_args()
    if not args.query and not args.barcode:
        parser.error("a query or --barcode is required")

    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    asyncio.run(
        run_comparison(
            query=args.query,
            barcode=args.barcode,
            category=args.category,
            limit=args.limit,
            stores=args.stores,
            max_groups=args.groups,
        )
    )


if __name__ == "__main__":
    main()
