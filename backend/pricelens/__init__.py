"""PriceLens price-comparison backend."""
